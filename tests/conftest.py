"""
Shared fixtures: a synthetic loan/borrower dataset with the same structural
missingness as the real one, and a tiny retail dataset.
"""
import numpy as np
import pandas as pd
import pytest

from loanpolicy.config import Config


def make_loan_tables(n: int = 600, seed: int = 0):
    rng = np.random.default_rng(seed)

    loan_id = np.arange(1000, 1000 + n)
    is_first_loan = rng.integers(0, 2, n)
    fully_repaid = np.where(is_first_loan == 1, np.nan, rng.integers(0, 2, n))
    currently_repaying = np.where(is_first_loan == 1, np.nan, rng.integers(0, 2, n))

    card_limit = np.where(rng.random(n) < 0.15, 0, rng.integers(500, 10000, n)).astype(float)
    utilisation = np.where(card_limit == 0, np.nan, rng.random(n).round(2))

    saving = rng.integers(0, 5000, n)
    checking = rng.integers(0, 6000, n)
    employed = rng.integers(0, 2, n)
    salary = np.where(employed == 1, rng.integers(10000, 60000, n), 0)
    age = rng.integers(18, 70, n)
    dependents = rng.integers(0, 6, n)
    purpose = rng.choice(["business", "investment", "home", "emergency_funds", "other"], n)

    log_odds = -2.0 + saving / 1500 + checking / 2000 + 1.0 * employed - 0.2 * dependents
    p_repaid = 1 / (1 + np.exp(-log_odds))
    granted = rng.integers(0, 2, n)
    repaid = (rng.random(n) < p_repaid).astype(float)
    repaid[granted == 0] = np.nan

    loans = pd.DataFrame(
        {
            "loan_id": loan_id,
            "loan_purpose": purpose,
            "date": pd.date_range("2012-01-02", periods=n, freq="D").strftime("%Y-%m-%d"),
            "loan_granted": granted,
            "loan_repaid": repaid,
        }
    )
    borrowers = pd.DataFrame(
        {
            "loan_id": loan_id[::-1],
            "is_first_loan": is_first_loan[::-1],
            "fully_repaid_previous_loans": fully_repaid[::-1],
            "currently_repaying_other_loans": currently_repaying[::-1],
            "total_credit_card_limit": card_limit[::-1],
            "avg_percentage_credit_card_limit_used_last_year": utilisation[::-1],
            "saving_amount": saving[::-1],
            "checking_amount": checking[::-1],
            "is_employed": employed[::-1],
            "yearly_salary": salary[::-1],
            "age": age[::-1],
            "dependent_number": dependents[::-1],
        }
    )
    return loans, borrowers


@pytest.fixture
def cfg():
    return Config(n_estimators=30)


@pytest.fixture
def loan_tables():
    return make_loan_tables()


@pytest.fixture
def retail_tables():
    purchases = pd.DataFrame(
        {
            "user_id": [1, 2, 1, 3, 2],
            "id": ["1,2", "2,3", "1", "3,4", "2"],
        }
    )
    items = pd.DataFrame(
        {
            "Item_name": ["apple", "bread", "cheese", "milk"],
            "Item_id": [1, 2, 3, 4],
        }
    )
    return purchases, items
