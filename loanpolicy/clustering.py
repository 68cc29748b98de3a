import logging
from dataclasses import dataclass
from typing import Iterable

import numpy as np
import pandas as pd

from sklearn.cluster import KMeans
from sklearn.metrics import silhouette_score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClusterAssignment:
    labels: pd.Series        # record id -> cluster id
    inertia: float
    centers: np.ndarray


def cluster(points: pd.DataFrame, k: int, random_state: int = 42) -> ClusterAssignment:
    """k-means on the rows of ``points`` (index = record id)."""
    n = len(points)
    if not 1 <= k <= n:
        raise ValueError(f"k must be in [1, {n}], got {k}")

    km = KMeans(n_clusters=k, n_init=10, random_state=random_state)
    labels = km.fit_predict(points.to_numpy(dtype=float))
    return ClusterAssignment(
        labels=pd.Series(labels, index=points.index, name="cluster"),
        inertia=float(km.inertia_),
        centers=km.cluster_centers_,
    )


def total_within_cluster_variance(assignment: ClusterAssignment) -> float:
    return assignment.inertia


def sweep_k(points: pd.DataFrame, k_values: Iterable[int], random_state: int = 42) -> pd.DataFrame:
    """Inertia and silhouette per k (silhouette is NaN where undefined: k == 1 or k == n)."""
    X = points.to_numpy(dtype=float)
    rows = []
    for k in sorted(set(int(k) for k in k_values)):
        if k > len(points):
            logger.warning("Skipping k=%d: only %d points", k, len(points))
            continue
        a = cluster(points, k, random_state=random_state)
        n_labels = a.labels.nunique()
        sil = float(silhouette_score(X, a.labels.to_numpy())) if 1 < n_labels < len(points) else np.nan
        rows.append({"k": k, "inertia": total_within_cluster_variance(a), "silhouette": sil})
    return pd.DataFrame(rows, columns=["k", "inertia", "silhouette"])


def choose_k(sweep: pd.DataFrame) -> int:
    """Highest silhouette, ties to the smaller k; smallest k when no silhouette is defined."""
    if sweep.empty:
        raise ValueError("Empty k sweep")
    scored = sweep.dropna(subset=["silhouette"])
    if scored.empty:
        return int(sweep["k"].min())
    best = scored["silhouette"].max()
    return int(scored.loc[scored["silhouette"] == best, "k"].min())
