"""
Retail purchase analysis: reshape baskets into item lines, the two lookup
questions (best customer overall, best customer per item), and a k-means
grouping of items from their transaction co-occurrence.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List

import numpy as np
import pandas as pd

from .clustering import ClusterAssignment, choose_k, cluster, sweep_k
from .config import Config
from .prepare import join_tables

logger = logging.getLogger(__name__)


def explode_purchases(purchases: pd.DataFrame, items: pd.DataFrame, cfg: Config) -> pd.DataFrame:
    """One row per (transaction, item): user, transaction_id, item id, item name."""
    missing = purchases[cfg.basket_col].isna() | purchases[cfg.user_col].isna()
    if missing.any():
        raise ValueError(f"{int(missing.sum())} purchase rows have no user or no basket")

    out = purchases[[cfg.user_col, cfg.basket_col]].copy()
    out["transaction_id"] = np.arange(len(out))
    out[cfg.item_id_col] = out[cfg.basket_col].astype(str).str.split(",")
    lines = out.drop(columns=cfg.basket_col).explode(cfg.item_id_col)
    lines[cfg.item_id_col] = pd.to_numeric(lines[cfg.item_id_col].str.strip(), errors="raise").astype("int64")

    catalog = items[[cfg.item_id_col, cfg.item_name_col]].copy()
    catalog[cfg.item_id_col] = catalog[cfg.item_id_col].astype("int64")

    lines = join_tables(lines, catalog, key=cfg.item_id_col, validate="many_to_one", require_all_right=False)
    logger.info(
        "Exploded %d transactions into %d item lines (%d users, %d items)",
        len(purchases), len(lines), lines[cfg.user_col].nunique(), lines[cfg.item_id_col].nunique(),
    )
    return lines.reset_index(drop=True)


def top_customer(lines: pd.DataFrame, cfg: Config) -> Dict[str, int]:
    """The user who bought the most items overall (ties to the smaller user id)."""
    if lines.empty:
        raise ValueError("No purchase lines")
    counts = lines.groupby(cfg.user_col).size().rename("items").reset_index()
    best = counts.sort_values(["items", cfg.user_col], ascending=[False, True]).iloc[0]
    return {"user_id": int(best[cfg.user_col]), "items": int(best["items"])}


def top_customer_per_item(lines: pd.DataFrame, cfg: Config) -> pd.DataFrame:
    """For each item, the user who bought it most often (ties to the smaller user id)."""
    counts = (
        lines.groupby([cfg.item_id_col, cfg.item_name_col, cfg.user_col])
        .size()
        .rename("count")
        .reset_index()
    )
    best = (
        counts.sort_values([cfg.item_id_col, "count", cfg.user_col], ascending=[True, False, True])
        .drop_duplicates(subset=cfg.item_id_col)
        .reset_index(drop=True)
    )
    return best.rename(columns={cfg.item_id_col: "item_id", cfg.item_name_col: "item_name", cfg.user_col: "user_id"})


def item_transaction_matrix(lines: pd.DataFrame, cfg: Config) -> pd.DataFrame:
    """Item x transaction 0/1 matrix, indexed by item id."""
    m = pd.crosstab(lines[cfg.item_id_col], lines["transaction_id"])
    return m.clip(upper=1)


@dataclass(frozen=True)
class ItemGrouping:
    sweep: pd.DataFrame
    k: int
    assignment: ClusterAssignment
    groups: Dict[int, List[str]]


def group_items(
    matrix: pd.DataFrame,
    item_names: pd.Series,
    k_values: Iterable[int],
    random_state: int = 42,
) -> ItemGrouping:
    sweep = sweep_k(matrix, k_values, random_state=random_state)
    k = choose_k(sweep)
    assignment = cluster(matrix, k, random_state=random_state)

    groups: Dict[int, List[str]] = {}
    for item_id, cid in assignment.labels.items():
        groups.setdefault(int(cid), []).append(str(item_names.get(item_id, item_id)))
    groups = {cid: sorted(names) for cid, names in sorted(groups.items())}

    logger.info("Grouped %d items into k=%d clusters", len(matrix), k)
    return ItemGrouping(sweep=sweep, k=k, assignment=assignment, groups=groups)
