import pytest

from loanpolicy.errors import EmptyInputError, MissingOutcomeError
from loanpolicy.policy import (
    aggregate_profit,
    apply_threshold,
    decision_counts,
    historical_profit,
    realized_profit,
)
from loanpolicy.records import Decision, PolicyDecision, ScoredRecord, scored_records
from loanpolicy.threshold import find_best_threshold, profit_payoff


def test_equality_denies():
    records = scored_records(["a", "b", "c", "d"], [0.9, 0.5, 0.52, 0.3])
    decisions = apply_threshold(records, 0.52)

    assert [d.decision for d in decisions] == [Decision.GRANT, Decision.DENY, Decision.DENY, Decision.DENY]
    assert [d.record_id for d in decisions] == ["a", "b", "c", "d"]


def test_profit_grant_repaid_grant_default_deny():
    decisions = [
        PolicyDecision("a", 0.9, Decision.GRANT, outcome=1),
        PolicyDecision("b", 0.8, Decision.GRANT, outcome=0),
        PolicyDecision("c", 0.1, Decision.DENY, outcome=1),
    ]
    assert aggregate_profit(decisions, gain=1, loss=1) == 0
    assert aggregate_profit(decisions, gain=3, loss=1) == 2


def test_deny_realises_nothing():
    assert realized_profit(PolicyDecision("x", 0.1, Decision.DENY, outcome=0), gain=5, loss=7) == 0


def test_profit_requires_outcomes():
    decisions = apply_threshold([ScoredRecord("a", 0.9, 1), ScoredRecord("b", 0.2, None)], 0.5)
    with pytest.raises(MissingOutcomeError):
        aggregate_profit(decisions)


def test_decision_counts_on_unlabeled():
    decisions = apply_threshold(scored_records(range(5), [0.1, 0.6, 0.7, 0.2, 0.9]), 0.5)
    assert decision_counts(decisions) == {"granted": 3, "denied": 2}
    assert decision_counts([]) == {"granted": 0, "denied": 0}


def test_historical_profit_counts_every_labeled_loan():
    records = scored_records(range(4), [0.1, 0.2, 0.3, 0.4], [1, 1, 0, 1])
    assert historical_profit(records, gain=1, loss=2) == 1

    with pytest.raises(EmptyInputError):
        historical_profit([])
    with pytest.raises(MissingOutcomeError):
        historical_profit(scored_records([1], [0.5]))


def test_profit_at_best_threshold_matches_payoff():
    records = scored_records(range(6), [0.15, 0.35, 0.55, 0.65, 0.8, 0.95], [0, 0, 1, 0, 1, 1])
    best = find_best_threshold(records, profit_payoff(gain=2, loss=1))
    decisions = apply_threshold(records, best.threshold)

    assert aggregate_profit(decisions, gain=2, loss=1) == pytest.approx(best.payoff)
