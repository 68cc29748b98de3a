from typing import Dict

import numpy as np
import pandas as pd

from sklearn.metrics import average_precision_score, brier_score_loss, roc_auc_score

from .errors import EmptyInputError


def holdout_metrics(y_true, proba) -> Dict[str, float]:
    y_true = np.asarray(y_true).astype(int)
    proba = np.asarray(proba).astype(float)
    if len(y_true) == 0:
        raise EmptyInputError("No hold-out rows to evaluate")

    # ranking metrics are undefined with a single class
    both = len(np.unique(y_true)) == 2
    return {
        "roc_auc": float(roc_auc_score(y_true, proba)) if both else float("nan"),
        "pr_auc": float(average_precision_score(y_true, proba)) if both else float("nan"),
        "brier": float(brier_score_loss(y_true, proba)),
        "repaid_rate": float(y_true.mean()),
        "n": int(len(y_true)),
    }


def decile_table(y_true, proba, n_bins: int = 10) -> pd.DataFrame:
    """
    Hold-out rows ranked by P(repaid) and cut into equal-count bins, best bin first.

    Bins are cut on the rank rather than the probability itself, so tied
    probabilities still fill every bin and no row is dropped. With fewer rows than bins, each row is a bin.
    """
    y = np.asarray(y_true).astype(int)
    p = np.asarray(proba).astype(float)
    if len(y) == 0:
        raise EmptyInputError("No hold-out rows to rank")
    if len(y) != len(p):
        raise ValueError(f"{len(y)} outcomes but {len(p)} probabilities")

    rank = pd.Series(p).rank(method="first")
    bins = pd.qcut(rank, min(n_bins, len(y)), labels=False) + 1
    df = pd.DataFrame({"decile": bins.to_numpy(), "y": y, "p": p})

    agg = (
        df.groupby("decile")
        .agg(n=("y", "size"), avg_probability=("p", "mean"), min_probability=("p", "min"), repaid=("y", "sum"))
        .sort_index(ascending=False)
        .reset_index()
    )
    agg["repaid_rate"] = agg["repaid"] / agg["n"]

    overall = y.mean()
    agg["lift_vs_overall"] = agg["repaid_rate"] / overall if overall > 0 else np.nan
    # share of volume and of repayers captured when granting from the top bin down
    agg["cum_volume"] = agg["n"].cumsum() / len(y)
    agg["cum_repaid_share"] = agg["repaid"].cumsum() / y.sum() if y.sum() > 0 else np.nan
    return agg
