# pipeline.py
# End-to-end analyses (explicit composition, no shared state):
# - credit: join loans + borrowers, sentinel imputation, labeled/unlabeled split,
#   random forest on granted loans, profit-maximising threshold on a hold-out,
#   realised profit vs. the bank's own policy, decisions for denied loans,
#   importance + partial dependence tables
# - retail: baskets -> item lines, best customers, item x transaction matrix,
#   k-means over a range of k to group items
#
# Usage:
#   loanpolicy credit --loans dat/loan_table.csv --borrowers dat/borrower_table.csv
#   loanpolicy retail --purchases dat/purchase_history.csv --items dat/item_to_id.csv

import argparse
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd

from sklearn.model_selection import train_test_split

from .classifier import ClassifierAdapter
from .config import Config
from .errors import EmptyInputError
from .evaluation import decile_table, holdout_metrics
from .policy import aggregate_profit, apply_threshold, decision_counts, historical_profit
from .prepare import ImputationPolicy, prepare
from .records import scored_records
from .retail import (
    ItemGrouping,
    explode_purchases,
    group_items,
    item_transaction_matrix,
    top_customer,
    top_customer_per_item,
)
from .schemas import (
    ConfusionCountsModel,
    CreditReport,
    FeatureImportance,
    ItemTopCustomer,
    KSweepRow,
    RetailReport,
    TopCustomer,
)
from .threshold import find_best_threshold, profit_payoff, sweep_thresholds

logger = logging.getLogger(__name__)

MODEL_FILE = "model.joblib"
POLICY_FILE = "policy.json"


# -----------------------
# IO helpers
# -----------------------
def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def assert_csv_ok(path: str) -> None:
    if not os.path.exists(path):
        raise FileNotFoundError(f"CSV not found: {path}")
    size = os.path.getsize(path)
    if size < 10:
        raise ValueError(f"CSV seems empty/invalid (size={size} bytes): {path}")


def read_csv(path: str) -> pd.DataFrame:
    assert_csv_ok(path)
    return pd.read_csv(path)


# -----------------------
# Credit analysis
# -----------------------
@dataclass(frozen=True)
class CreditAnalysis:
    report: CreditReport
    adapter: ClassifierAdapter
    policy: ImputationPolicy
    threshold_curve: pd.DataFrame
    feature_importance: pd.DataFrame
    partial_dependence: pd.DataFrame
    deciles: pd.DataFrame


def run_credit_analysis(loans: pd.DataFrame, borrowers: pd.DataFrame, cfg: Config) -> CreditAnalysis:
    policy = ImputationPolicy.from_config(cfg)
    data = prepare(loans, borrowers, policy, cfg)
    if data.labeled.empty:
        raise EmptyInputError("No granted loans with a known outcome")

    X = data.labeled[data.feature_cols]
    y = data.labeled[cfg.outcome_col]

    # Hold-out on granted loans only: it is the only population with observed profit
    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=cfg.test_frac, stratify=y, random_state=cfg.random_state
    )

    adapter = ClassifierAdapter(cfg).fit(X_train, y_train)
    adapter.policy = policy

    proba_test = adapter.predict_probability(X_test)
    holdout = scored_records(X_test.index, proba_test, y_test)

    payoff = profit_payoff(cfg.gain, cfg.loss)
    curve = sweep_thresholds(holdout, payoff)
    best = find_best_threshold(holdout, payoff)

    decisions = apply_threshold(holdout, best.threshold)
    model_profit = aggregate_profit(decisions, cfg.gain, cfg.loss)
    bank_profit = historical_profit(holdout, cfg.gain, cfg.loss)
    logger.info("Hold-out profit: model=%.1f bank=%.1f", model_profit, bank_profit)

    # Denied loans: counterfactual decisions only, no outcome to realise profit on
    if data.unlabeled.empty:
        unlabeled_counts = {"granted": 0, "denied": 0}
    else:
        X_denied = data.unlabeled[data.feature_cols]
        denied = scored_records(X_denied.index, adapter.predict_probability(X_denied))
        unlabeled_counts = decision_counts(apply_threshold(denied, best.threshold))
    logger.info("Historically denied loans under the new policy: %s", unlabeled_counts)

    importance = adapter.feature_importance()
    pdp = adapter.partial_dependence_table(X_train, cfg.pdp_features, cfg.pdp_grid_resolution)

    report = CreditReport(
        threshold=best.threshold,
        payoff=best.payoff,
        gain=cfg.gain,
        loss=cfg.loss,
        confusion=ConfusionCountsModel(**best.counts.as_dict()),
        model_profit_holdout=model_profit,
        bank_profit_holdout=bank_profit,
        unlabeled_decisions=unlabeled_counts,
        metrics=holdout_metrics(y_test, proba_test),
        n_candidates=len(curve),
        top_features=[
            FeatureImportance(feature=str(r.feature), importance=float(r.importance))
            for r in importance.head(cfg.top_importances).itertuples(index=False)
        ],
    )
    return CreditAnalysis(
        report=report,
        adapter=adapter,
        policy=policy,
        threshold_curve=curve,
        feature_importance=importance,
        partial_dependence=pdp,
        deciles=decile_table(y_test, proba_test),
    )


def save_credit_outputs(result: CreditAnalysis, cfg: Config) -> None:
    reports_dir = Path(cfg.out_dir) / "reports"
    models_dir = Path(cfg.models_dir)
    ensure_dir(reports_dir)
    ensure_dir(models_dir)

    with open(reports_dir / "credit_report.json", "w") as f:
        f.write(result.report.model_dump_json(indent=2))
    result.threshold_curve.to_csv(reports_dir / "threshold_curve.csv", index=False)
    result.feature_importance.to_csv(reports_dir / "feature_importance.csv", index=False)
    result.partial_dependence.to_csv(reports_dir / "partial_dependence.csv", index=False)
    result.deciles.to_csv(reports_dir / "decile_table.csv", index=False)

    # Model + imputation policy travel together so serving cannot drift from training
    result.adapter.save(models_dir / MODEL_FILE, policy=result.policy)
    with open(models_dir / POLICY_FILE, "w") as f:
        json.dump({"threshold": result.report.threshold, "gain": cfg.gain, "loss": cfg.loss}, f, indent=2)


# -----------------------
# Retail analysis
# -----------------------
@dataclass(frozen=True)
class RetailAnalysis:
    report: RetailReport
    lines: pd.DataFrame
    matrix: pd.DataFrame
    grouping: ItemGrouping


def run_retail_analysis(purchases: pd.DataFrame, items: pd.DataFrame, cfg: Config) -> RetailAnalysis:
    lines = explode_purchases(purchases, items, cfg)
    best = top_customer(lines, cfg)
    per_item = top_customer_per_item(lines, cfg)

    matrix = item_transaction_matrix(lines, cfg)
    names = lines.drop_duplicates(cfg.item_id_col).set_index(cfg.item_id_col)[cfg.item_name_col]
    grouping = group_items(matrix, names, cfg.k_values, random_state=cfg.random_state)

    report = RetailReport(
        top_customer=TopCustomer(**best),
        top_customer_per_item=[
            ItemTopCustomer(
                item_id=int(r.item_id), item_name=str(r.item_name), user_id=int(r.user_id), count=int(r.count)
            )
            for r in per_item.itertuples(index=False)
        ],
        k=grouping.k,
        k_sweep=[
            KSweepRow(
                k=int(r.k),
                inertia=float(r.inertia),
                silhouette=None if np.isnan(r.silhouette) else float(r.silhouette),
            )
            for r in grouping.sweep.itertuples(index=False)
        ],
        groups=grouping.groups,
    )
    return RetailAnalysis(report=report, lines=lines, matrix=matrix, grouping=grouping)


def save_retail_outputs(result: RetailAnalysis, cfg: Config) -> None:
    reports_dir = Path(cfg.out_dir) / "reports"
    ensure_dir(reports_dir)
    with open(reports_dir / "retail_report.json", "w") as f:
        f.write(result.report.model_dump_json(indent=2))
    result.grouping.sweep.to_csv(reports_dir / "k_sweep.csv", index=False)


# -----------------------
# Main
# -----------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="loanpolicy")
    parser.add_argument("--out_dir", type=str, default="outputs")
    parser.add_argument("--models_dir", type=str, default="models")
    parser.add_argument("--random_state", type=int, default=42)
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    credit = sub.add_parser("credit", help="Loan granting policy")
    credit.add_argument("--loans", type=str, default="dat/loan_table.csv")
    credit.add_argument("--borrowers", type=str, default="dat/borrower_table.csv")
    credit.add_argument("--gain", type=float, default=1.0)
    credit.add_argument("--loss", type=float, default=1.0)
    credit.add_argument("--model", choices=["random_forest", "lightgbm"], default="random_forest")

    retail = sub.add_parser("retail", help="Customer lookups and item grouping")
    retail.add_argument("--purchases", type=str, default="dat/purchase_history.csv")
    retail.add_argument("--items", type=str, default="dat/item_to_id.csv")
    retail.add_argument("--k_min", type=int, default=2)
    retail.add_argument("--k_max", type=int, default=15)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    cfg = Config(out_dir=args.out_dir, models_dir=args.models_dir, random_state=args.random_state)

    if args.command == "credit":
        cfg.loans_path, cfg.borrowers_path = args.loans, args.borrowers
        cfg.gain, cfg.loss, cfg.model_type = args.gain, args.loss, args.model
        result = run_credit_analysis(read_csv(cfg.loans_path), read_csv(cfg.borrowers_path), cfg)
        save_credit_outputs(result, cfg)
        report = result.report
    else:
        cfg.purchases_path, cfg.items_path = args.purchases, args.items
        cfg.k_values = tuple(range(args.k_min, args.k_max + 1))
        result = run_retail_analysis(read_csv(cfg.purchases_path), read_csv(cfg.items_path), cfg)
        save_retail_outputs(result, cfg)
        report = result.report

    print("Analysis completed.")
    print(report.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
