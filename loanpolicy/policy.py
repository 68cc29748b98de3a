from typing import Dict, List, Sequence

from .errors import EmptyInputError, MissingOutcomeError
from .records import Decision, PolicyDecision, ScoredRecord


def apply_threshold(records: Sequence[ScoredRecord], threshold: float) -> List[PolicyDecision]:
    """Grant iff probability > threshold (a probability equal to the threshold is denied)."""
    return [
        PolicyDecision(
            record_id=r.record_id,
            probability=r.probability,
            decision=Decision.GRANT if r.probability > threshold else Decision.DENY,
            outcome=r.outcome,
        )
        for r in records
    ]


def _require_outcomes(items) -> None:
    missing = [d.record_id for d in items if d.outcome is None]
    if missing:
        raise MissingOutcomeError(
            f"Cannot realise profit for {len(missing)} records without an outcome (e.g. {missing[:5]})"
        )


def realized_profit(decision: PolicyDecision, gain: float = 1.0, loss: float = 1.0) -> float:
    if decision.outcome is None:
        raise MissingOutcomeError(f"Record {decision.record_id!r} has no outcome")
    if not decision.granted:
        return 0.0
    return float(gain) if decision.outcome == 1 else -float(loss)


def aggregate_profit(decisions: Sequence[PolicyDecision], gain: float = 1.0, loss: float = 1.0) -> float:
    _require_outcomes(decisions)
    return float(sum(realized_profit(d, gain, loss) for d in decisions))


def decision_counts(decisions: Sequence[PolicyDecision]) -> Dict[str, int]:
    granted = sum(1 for d in decisions if d.granted)
    return {"granted": granted, "denied": len(decisions) - granted}


def historical_profit(records: Sequence[ScoredRecord], gain: float = 1.0, loss: float = 1.0) -> float:
    """
    Profit of the bank's own policy on a labeled population. Every labeled
    loan was granted by the bank, so each one counts +gain or -loss.
    """
    if len(records) == 0:
        raise EmptyInputError("No labeled records for the historical baseline")
    _require_outcomes(records)
    return float(sum(gain if r.outcome == 1 else -loss for r in records))
