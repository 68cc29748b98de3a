import numpy as np
import pytest

from loanpolicy.errors import ClassifierContractError, EmptyInputError, MissingOutcomeError
from loanpolicy.records import ConfusionCounts, ScoredRecord, scored_records
from loanpolicy.threshold import (
    GRANT_ALL,
    LinearPayoff,
    confusion_at,
    find_best_threshold,
    profit_payoff,
    sweep_thresholds,
)


def _random_records(seed: int, n: int):
    rng = np.random.default_rng(seed)
    # coarse rounding produces ties between probabilities
    proba = rng.random(n).round(1 if seed % 2 else 2)
    y = (rng.random(n) < proba).astype(int)
    return scored_records(range(n), proba, y)


def _brute_force_best(records, payoff):
    proba = sorted({r.probability for r in records})
    grid = set(proba) | {0.0, 1.0, proba[0] - 1.0}
    grid |= {(a + b) / 2 for a, b in zip(proba, proba[1:])}
    return max(payoff(confusion_at(records, t)) for t in grid)


def test_four_loans_example():
    records = [
        ScoredRecord("a", 0.9, 1),
        ScoredRecord("b", 0.3, 0),
        ScoredRecord("c", 0.6, 1),
        ScoredRecord("d", 0.4, 0),
    ]
    best = find_best_threshold(records, profit_payoff(gain=1, loss=1))

    assert 0.4 <= best.threshold < 0.6
    assert best.threshold == pytest.approx(0.4)
    assert best.payoff == 2
    assert best.counts == ConfusionCounts(tp=2, fp=0, tn=2, fn=0)


def test_empty_input():
    with pytest.raises(EmptyInputError):
        find_best_threshold([], profit_payoff())


def test_missing_outcome_rejected():
    records = [ScoredRecord(1, 0.5, 1), ScoredRecord(2, 0.7, None)]
    with pytest.raises(MissingOutcomeError):
        find_best_threshold(records, profit_payoff())


@pytest.mark.parametrize("bad", [-0.1, 1.2, float("nan")])
def test_probability_out_of_range(bad):
    records = [ScoredRecord(1, 0.5, 1), ScoredRecord(2, bad, 0)]
    with pytest.raises(ClassifierContractError):
        sweep_thresholds(records, profit_payoff())


@pytest.mark.parametrize("seed", range(12))
def test_matches_brute_force(seed):
    records = _random_records(seed, n=5 + 7 * seed)
    rng = np.random.default_rng(100 + seed)
    payoff = LinearPayoff(*rng.normal(size=4).round(2))

    best = find_best_threshold(records, payoff)

    assert best.payoff == pytest.approx(_brute_force_best(records, payoff))
    assert best.counts == confusion_at(records, best.threshold)


@pytest.mark.parametrize("seed", range(6))
def test_sweep_counts_are_exact_and_complete(seed):
    records = _random_records(seed, n=40)
    curve = sweep_thresholds(records, profit_payoff())

    for row in curve.itertuples(index=False):
        counts = confusion_at(records, row.threshold)
        assert (row.tp, row.fp, row.tn, row.fn) == (counts.tp, counts.fp, counts.tn, counts.fn)
        assert row.tp + row.fp + row.tn + row.fn == len(records)


@pytest.mark.parametrize("seed", range(6))
def test_counts_monotone_as_threshold_falls(seed):
    curve = sweep_thresholds(_random_records(seed, n=50), profit_payoff())
    desc = curve.sort_values("threshold", ascending=False)

    assert (np.diff(desc["tp"]) >= 0).all()
    assert (np.diff(desc["fp"]) >= 0).all()
    assert (np.diff(desc["tn"]) <= 0).all()
    assert (np.diff(desc["fn"]) <= 0).all()


def test_candidates_are_observed_probabilities_plus_zero():
    records = scored_records("abcd", [0.2, 0.5, 0.5, 0.8], [0, 1, 0, 1])
    curve = sweep_thresholds(records, profit_payoff())
    assert curve["threshold"].tolist() == [0.0, 0.2, 0.5, 0.8]

    # zero already observed: the grant-everyone candidate sits below it
    records = scored_records("abc", [0.0, 0.5, 0.8], [0, 1, 1])
    curve = sweep_thresholds(records, profit_payoff())
    assert curve["threshold"].tolist() == [GRANT_ALL, 0.0, 0.5, 0.8]
    assert curve.loc[0, ["tp", "fp"]].tolist() == [2, 1]


def test_grants_records_scored_zero():
    records = scored_records("abc", [0.0, 0.0, 0.5], [1, 1, 1])
    best = find_best_threshold(records, profit_payoff())

    assert best.threshold < 0.0
    assert best.payoff == 3
    assert best.counts == ConfusionCounts(tp=3, fp=0, tn=0, fn=0)
    assert confusion_at(records, best.threshold) == best.counts


def test_ties_go_to_smallest_threshold():
    records = scored_records(range(4), [0.1, 0.3, 0.6, 0.9], [0, 1, 0, 1])
    best = find_best_threshold(records, LinearPayoff(0, 0, 0, 0))
    assert best.threshold == 0.0

    # TP - FP reaches 1 at both 0.1 and 0.6
    best = find_best_threshold(records, profit_payoff())
    assert best.threshold == pytest.approx(0.1)
    assert best.payoff == 1
    assert best.counts == ConfusionCounts(tp=2, fp=1, tn=1, fn=0)


def test_ties_survive_float_rounding():
    # 0.1*5 - 0.2*2 rounds below 0.1*3 - 0.2*1 although both equal 0.1
    records = scored_records(range(7), [0.9, 0.8, 0.7, 0.6, 0.5, 0.4, 0.3], [0, 1, 1, 1, 0, 1, 1])
    best = find_best_threshold(records, profit_payoff(gain=0.1, loss=0.2))

    assert best.threshold == 0.0
    assert best.payoff == pytest.approx(0.1)
    assert best.counts == ConfusionCounts(tp=5, fp=2, tn=0, fn=0)


def test_deterministic():
    records = _random_records(7, n=80)
    first = find_best_threshold(records, profit_payoff())
    second = find_best_threshold(list(reversed(records)), profit_payoff())
    assert first == second


def test_non_finite_payoff_rejected():
    records = scored_records(range(2), [0.2, 0.7], [0, 1])
    with pytest.raises(ValueError):
        sweep_thresholds(records, lambda c: float("inf"))
