import json
import os
from pathlib import Path
from typing import Optional, Tuple

import pandas as pd

from .classifier import ClassifierAdapter
from .errors import ClassifierContractError
from .pipeline import MODEL_FILE, POLICY_FILE
from .policy import apply_threshold
from .records import scored_records

# Cached singletons
_adapter: Optional[ClassifierAdapter] = None
_default_threshold: Optional[float] = None


def models_dir() -> Path:
    return Path(os.environ.get("LOANPOLICY_MODELS_DIR", "models"))


def load_artifacts() -> Tuple[ClassifierAdapter, float]:
    """Loads the artifacts written by ``loanpolicy credit``.
    - model.joblib: fitted pipeline, feature order and imputation policy
    - policy.json: the profit-maximising threshold
    """
    global _adapter, _default_threshold
    if _adapter is None:
        _adapter = ClassifierAdapter.load(models_dir() / MODEL_FILE)
    if _default_threshold is None:
        with open(models_dir() / POLICY_FILE) as f:
            _default_threshold = float(json.load(f)["threshold"])
    return _adapter, _default_threshold


def reset_artifacts() -> None:
    global _adapter, _default_threshold
    _adapter = None
    _default_threshold = None


def predict_repayment(payload: dict) -> float:
    adapter, _ = load_artifacts()

    unexpected = sorted(set(payload) - set(adapter.feature_cols_))
    if unexpected:
        raise ClassifierContractError(f"Unexpected features: {unexpected}")

    # Absent keys are missing values; the stored policy decides whether they are allowed
    row = {k: payload.get(k, None) for k in adapter.feature_cols_}
    X = pd.DataFrame([row], columns=adapter.feature_cols_)
    if adapter.policy is not None:
        X = adapter.policy.apply(X, columns=adapter.feature_cols_)
    return float(adapter.predict_probability(X)[0])


def decide(payload: dict, threshold: Optional[float] = None) -> Tuple[float, str, float]:
    _, default_threshold = load_artifacts()
    t = default_threshold if threshold is None else float(threshold)
    p = predict_repayment(payload)
    decision = apply_threshold(scored_records(["request"], [p]), t)[0].decision
    return p, decision.value, t
