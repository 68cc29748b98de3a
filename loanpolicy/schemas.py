from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class ConfusionCountsModel(BaseModel):
    tp: int
    fp: int
    tn: int
    fn: int


class FeatureImportance(BaseModel):
    feature: str
    importance: float


class CreditReport(BaseModel):
    threshold: float
    payoff: float
    gain: float
    loss: float
    confusion: ConfusionCountsModel
    model_profit_holdout: float = Field(..., description="Realised profit of the model policy on the labeled hold-out")
    bank_profit_holdout: float = Field(..., description="Realised profit of the historical policy on the same hold-out")
    unlabeled_decisions: Dict[str, int] = Field(..., description="Granted/denied counts for historically denied loans")
    metrics: Dict[str, float]
    n_candidates: int
    top_features: List[FeatureImportance] = []


class TopCustomer(BaseModel):
    user_id: int
    items: int


class ItemTopCustomer(BaseModel):
    item_id: int
    item_name: str
    user_id: int
    count: int


class KSweepRow(BaseModel):
    k: int
    inertia: float
    silhouette: Optional[float] = None


class RetailReport(BaseModel):
    top_customer: TopCustomer
    top_customer_per_item: List[ItemTopCustomer]
    k: int
    k_sweep: List[KSweepRow]
    groups: Dict[int, List[str]]


class DecisionRequest(BaseModel):
    # Raw feature payload; missing values are filled by the stored imputation policy
    features: Dict[str, Any] = Field(..., description="Raw feature payload matching training schema")


class DecisionResponse(BaseModel):
    probability: float
    decision: str
    threshold: float
