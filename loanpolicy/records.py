from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class ScoredRecord:
    """A record id with its predicted P(repaid) and, when observed, its outcome (1=repaid)."""

    record_id: object
    probability: float
    outcome: Optional[int] = None


@dataclass(frozen=True)
class ConfusionCounts:
    """Confusion counts of a grant policy. Positive = repaid, predicted positive = granted."""

    tp: int
    fp: int
    tn: int
    fn: int

    @property
    def total(self) -> int:
        return self.tp + self.fp + self.tn + self.fn

    @property
    def granted(self) -> int:
        return self.tp + self.fp

    def as_dict(self) -> dict:
        return {"tp": self.tp, "fp": self.fp, "tn": self.tn, "fn": self.fn}


class Decision(str, Enum):
    GRANT = "grant"
    DENY = "deny"


@dataclass(frozen=True)
class PolicyDecision:
    record_id: object
    probability: float
    decision: Decision
    outcome: Optional[int] = None

    @property
    def granted(self) -> bool:
        return self.decision is Decision.GRANT


def scored_records(
    ids: Iterable,
    probabilities: Iterable[float],
    outcomes: Optional[Iterable] = None,
) -> List[ScoredRecord]:
    """Zip ids, probabilities and (optional) outcomes into ScoredRecords.

    Missing outcomes (None / NaN) become ``None``.
    """
    ids = list(ids)
    proba = np.asarray(list(probabilities), dtype=float)
    if len(proba) != len(ids):
        raise ValueError(f"{len(ids)} ids but {len(proba)} probabilities")

    if outcomes is None:
        outs = [None] * len(ids)
    else:
        outs = [None if pd.isna(o) else int(o) for o in outcomes]
        if len(outs) != len(ids):
            raise ValueError(f"{len(ids)} ids but {len(outs)} outcomes")

    return [ScoredRecord(i, float(p), o) for i, p, o in zip(ids, proba, outs)]
