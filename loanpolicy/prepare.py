import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from .config import Config
from .errors import JoinError, MissingOutcomeError, UnhandledMissingValueError

logger = logging.getLogger(__name__)

CATEGORICAL = "categorical"
CONTINUOUS = "continuous"


# -----------------------
# Imputation policy
# -----------------------
@dataclass(frozen=True)
class ImputationRule:
    kind: str
    fill_value: object

    def __post_init__(self):
        if self.kind not in (CATEGORICAL, CONTINUOUS):
            raise ValueError(f"Unknown imputation kind: {self.kind!r}")


@dataclass(frozen=True)
class ImputationPolicy:
    """Feature -> sentinel rule. The same policy object is applied at training and at serving."""

    rules: Mapping[str, ImputationRule] = field(default_factory=dict)

    @classmethod
    def from_config(cls, cfg: Config) -> "ImputationPolicy":
        rules: Dict[str, ImputationRule] = {}
        for col, value in cfg.categorical_sentinels:
            rules[col] = ImputationRule(CATEGORICAL, value)
        for col, value in cfg.continuous_sentinels:
            rules[col] = ImputationRule(CONTINUOUS, value)
        return cls(rules)

    def validate(self, df: pd.DataFrame) -> None:
        """
        Checks that every sentinel is distinguishable from real data:
        - continuous sentinels must lie outside the observed [min, max]
        - categorical sentinels must not already be an observed level
        """
        for col, rule in self.rules.items():
            if col not in df.columns:
                continue
            s = df[col].dropna()
            if s.empty:
                continue
            if rule.kind == CONTINUOUS:
                x = pd.to_numeric(s, errors="coerce")
                lo, hi = float(x.min()), float(x.max())
                if lo <= float(rule.fill_value) <= hi:
                    raise ValueError(
                        f"Sentinel {rule.fill_value} for {col} lies inside the observed range [{lo}, {hi}]"
                    )
            elif (s == rule.fill_value).any():
                raise ValueError(f"Sentinel {rule.fill_value!r} for {col} is already an observed level")

    def apply(self, df: pd.DataFrame, columns: Optional[Iterable[str]] = None) -> pd.DataFrame:
        """
        Fills covered columns with their sentinel and fails on any other column
        (among ``columns``) that still has missing values. Already-imputed data
        passes through unchanged.
        """
        out = df.copy()
        columns = list(out.columns) if columns is None else list(columns)

        for col in columns:
            rule = self.rules.get(col)
            if rule is None or col not in out.columns:
                continue
            n_missing = int(out[col].isna().sum())
            if n_missing:
                logger.debug("Imputing %d missing values in %s with %r", n_missing, col, rule.fill_value)
                out[col] = out[col].fillna(rule.fill_value)

        unhandled = [c for c in columns if c in out.columns and out[c].isna().any()]
        if unhandled:
            raise UnhandledMissingValueError(unhandled)
        return out


# -----------------------
# Join + split
# -----------------------
def join_tables(
    left: pd.DataFrame,
    right: pd.DataFrame,
    key: str,
    validate: str = "one_to_one",
    require_match: bool = True,
    require_all_right: bool = True,
) -> pd.DataFrame:
    """
    Left join on ``key``. Raises JoinError when:
    - ``key`` is missing from either table or duplicated against ``validate``
    - a left row has no match (``require_match``)
    - a right row matches no left row (``require_all_right``)
    """
    for name, frame in (("left", left), ("right", right)):
        if key not in frame.columns:
            raise JoinError(f"Join key {key!r} missing from {name} table")

    try:
        merged = left.merge(right, on=key, how="left", validate=validate, indicator=True)
    except pd.errors.MergeError as e:
        raise JoinError(f"Join on {key!r} violates {validate}: {e}") from e

    unmatched = merged["_merge"] == "left_only"
    if require_match and unmatched.any():
        sample = merged.loc[unmatched, key].head(5).tolist()
        raise JoinError(f"{int(unmatched.sum())} rows have no match on {key!r} (e.g. {sample})")

    orphans = ~right[key].isin(left[key])
    if require_all_right and orphans.any():
        sample = right.loc[orphans, key].head(5).tolist()
        raise JoinError(f"{int(orphans.sum())} right rows match no left row on {key!r} (e.g. {sample})")

    return merged.drop(columns="_merge")


def split_by_outcome(
    df: pd.DataFrame, outcome_col: str, granted_col: Optional[str] = None
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Returns (labeled, unlabeled). Labeled rows carry an observed outcome, cast to int."""
    known = df[outcome_col].notna()

    if granted_col is not None and granted_col in df.columns:
        granted_unknown = (df[granted_col] == 1) & ~known
        if granted_unknown.any():
            raise MissingOutcomeError(
                f"{int(granted_unknown.sum())} granted rows have no {outcome_col}"
            )

    labeled = df.loc[known].copy()
    labeled[outcome_col] = labeled[outcome_col].astype(int)
    unlabeled = df.loc[~known].copy()
    return labeled, unlabeled


@dataclass(frozen=True)
class PreparedData:
    labeled: pd.DataFrame
    unlabeled: pd.DataFrame
    feature_cols: List[str]


def feature_columns(df: pd.DataFrame, cfg: Config) -> List[str]:
    excluded = {cfg.id_col, cfg.outcome_col, cfg.granted_col, *cfg.drop_cols}
    return [c for c in df.columns if c not in excluded]


def prepare(
    loans: pd.DataFrame,
    borrowers: pd.DataFrame,
    policy: ImputationPolicy,
    cfg: Config,
) -> PreparedData:
    df = join_tables(loans, borrowers, key=cfg.id_col, validate="one_to_one")
    df = df.set_index(cfg.id_col)

    feature_cols = feature_columns(df, cfg)
    policy.validate(df[feature_cols])
    df = policy.apply(df, columns=feature_cols)

    labeled, unlabeled = split_by_outcome(df, cfg.outcome_col, cfg.granted_col)
    logger.info(
        "Prepared %d rows: %d labeled, %d unlabeled, %d features",
        len(df), len(labeled), len(unlabeled), len(feature_cols),
    )
    return PreparedData(labeled=labeled, unlabeled=unlabeled, feature_cols=feature_cols)
