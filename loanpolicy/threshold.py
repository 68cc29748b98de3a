"""
Profit-maximising decision threshold.

Policy: grant iff P(repaid) > t. Between two consecutive observed
probabilities the partition does not change, so the candidates are the
distinct observed probabilities plus one "grant everyone" candidate below
them: 0.0 when every probability is above it, otherwise GRANT_ALL, the
largest float below zero. Counts for all candidates come from a single sort and
cumulative sums over the probability levels, walking from the top of the
range down.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import ClassifierContractError, EmptyInputError, MissingOutcomeError
from .records import ConfusionCounts, ScoredRecord

logger = logging.getLogger(__name__)

PayoffFn = Callable[[ConfusionCounts], float]

# Grants every record, including those scored exactly 0.0
GRANT_ALL = float(np.nextafter(0.0, -1.0))


@dataclass(frozen=True)
class LinearPayoff:
    """payoff = tp*TP + fp*FP + tn*TN + fn*FN"""

    tp: float = 1.0
    fp: float = -1.0
    tn: float = 0.0
    fn: float = 0.0

    def __call__(self, counts: ConfusionCounts) -> float:
        return float(
            self.tp * counts.tp + self.fp * counts.fp + self.tn * counts.tn + self.fn * counts.fn
        )


def profit_payoff(gain: float = 1.0, loss: float = 1.0) -> LinearPayoff:
    """+gain for each granted loan that is repaid, -loss for each granted loan that is not."""
    return LinearPayoff(tp=gain, fp=-loss, tn=0.0, fn=0.0)


@dataclass(frozen=True)
class ThresholdResult:
    threshold: float
    payoff: float
    counts: ConfusionCounts


def _labeled_arrays(records: Sequence[ScoredRecord]) -> Tuple[np.ndarray, np.ndarray]:
    if len(records) == 0:
        raise EmptyInputError("No labeled records to evaluate")

    missing = [r.record_id for r in records if r.outcome is None]
    if missing:
        raise MissingOutcomeError(f"{len(missing)} records have no outcome (e.g. {missing[:5]})")

    proba = np.array([r.probability for r in records], dtype=float)
    y = np.array([r.outcome for r in records], dtype=int)

    if not np.isfinite(proba).all() or (proba < 0).any() or (proba > 1).any():
        raise ClassifierContractError("Probabilities must be finite and within [0, 1]")
    if not np.isin(y, (0, 1)).all():
        raise ValueError("Outcomes must be 0 or 1")
    return proba, y


def confusion_at(records: Sequence[ScoredRecord], threshold: float) -> ConfusionCounts:
    """Direct O(n) count at one threshold."""
    proba, y = _labeled_arrays(records)
    granted = proba > threshold
    return ConfusionCounts(
        tp=int((granted & (y == 1)).sum()),
        fp=int((granted & (y == 0)).sum()),
        tn=int((~granted & (y == 0)).sum()),
        fn=int((~granted & (y == 1)).sum()),
    )


def sweep_thresholds(records: Sequence[ScoredRecord], payoff: PayoffFn) -> pd.DataFrame:
    """One row per candidate threshold (ascending): threshold, tp, fp, tn, fn, payoff."""
    proba, y = _labeled_arrays(records)
    n_pos = int(y.sum())
    n_neg = len(y) - n_pos

    levels, inverse = np.unique(proba, return_inverse=True)
    pos_at = np.bincount(inverse.ravel(), weights=y, minlength=len(levels)).astype(int)
    neg_at = np.bincount(inverse.ravel(), weights=1 - y, minlength=len(levels)).astype(int)

    # Records strictly above each level: reverse running total, excluding the level itself
    tp = np.cumsum(pos_at[::-1])[::-1] - pos_at
    fp = np.cumsum(neg_at[::-1])[::-1] - neg_at

    grant_all = 0.0 if levels[0] > 0.0 else GRANT_ALL
    thresholds = np.concatenate(([grant_all], levels))
    tp = np.concatenate(([n_pos], tp))
    fp = np.concatenate(([n_neg], fp))

    curve = pd.DataFrame(
        {
            "threshold": thresholds.astype(float),
            "tp": tp.astype(int),
            "fp": fp.astype(int),
            "tn": (n_neg - fp).astype(int),
            "fn": (n_pos - tp).astype(int),
        }
    )
    curve["payoff"] = [
        float(payoff(ConfusionCounts(int(a), int(b), int(c), int(d))))
        for a, b, c, d in curve[["tp", "fp", "tn", "fn"]].itertuples(index=False)
    ]
    if not np.isfinite(curve["payoff"]).all():
        raise ValueError("Payoff function returned a non-finite value")
    return curve


def find_best_threshold(records: Sequence[ScoredRecord], payoff: PayoffFn) -> ThresholdResult:
    """Maximum payoff over all thresholds; ties go to the smallest threshold."""
    curve = sweep_thresholds(records, payoff)

    # curve is sorted by threshold; payoffs within rounding of the maximum count as ties
    payoffs = curve["payoff"].to_numpy()
    tied = np.isclose(payoffs, payoffs.max(), rtol=1e-12, atol=1e-9)
    best = curve.iloc[int(np.flatnonzero(tied)[0])]
    result = ThresholdResult(
        threshold=float(best["threshold"]),
        payoff=float(best["payoff"]),
        counts=ConfusionCounts(int(best["tp"]), int(best["fp"]), int(best["tn"]), int(best["fn"])),
    )
    logger.info(
        "Best threshold %.4f over %d candidates: payoff=%.2f %s",
        result.threshold, len(curve), result.payoff, result.counts.as_dict(),
    )
    return result
