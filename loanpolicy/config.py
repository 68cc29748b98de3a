from dataclasses import dataclass
from typing import Tuple, Union


@dataclass
class Config:
    # Inputs / outputs
    loans_path: str = "dat/loan_table.csv"
    borrowers_path: str = "dat/borrower_table.csv"
    purchases_path: str = "dat/purchase_history.csv"
    items_path: str = "dat/item_to_id.csv"
    out_dir: str = "outputs"
    models_dir: str = "models"

    # Credit tables
    id_col: str = "loan_id"
    granted_col: str = "loan_granted"
    outcome_col: str = "loan_repaid"

    # Not used as features (timestamp of the application)
    drop_cols: Tuple[str, ...] = ("date",)

    # Categoricals (one-hot encoded before the model)
    cat_cols: Tuple[str, ...] = ("loan_purpose",)

    # Structural missingness
    # - previous-loan columns are empty for first-time borrowers -> new level -1
    # - card utilisation is empty when the card limit is 0 -> sentinel -1 (observed range is >= 0)
    categorical_sentinels: Tuple[Tuple[str, float], ...] = (
        ("fully_repaid_previous_loans", -1),
        ("currently_repaying_other_loans", -1),
    )
    continuous_sentinels: Tuple[Tuple[str, float], ...] = (
        ("avg_percentage_credit_card_limit_used_last_year", -1.0),
    )

    # Payoff: +gain per granted repaid loan, -loss per granted defaulted loan
    gain: float = 1.0
    loss: float = 1.0

    # Split
    test_frac: float = 0.34
    random_state: int = 42

    # Model ("random_forest" or "lightgbm")
    model_type: str = "random_forest"
    n_estimators: int = 100
    max_features: Union[int, float, str] = "sqrt"
    min_samples_leaf: int = 1

    # Partial dependence (numeric tables)
    pdp_features: Tuple[str, ...] = (
        "saving_amount",
        "checking_amount",
        "yearly_salary",
        "total_credit_card_limit",
        "is_employed",
    )
    pdp_grid_resolution: int = 20
    top_importances: int = 10

    # Retail tables
    user_col: str = "user_id"
    basket_col: str = "id"
    item_id_col: str = "Item_id"
    item_name_col: str = "Item_name"

    # Item grouping
    k_values: Tuple[int, ...] = tuple(range(2, 16))
