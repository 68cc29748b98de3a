import logging
from pathlib import Path
from typing import List, Optional, Sequence

import joblib
import numpy as np
import pandas as pd

from sklearn.compose import ColumnTransformer
from sklearn.ensemble import RandomForestClassifier
from sklearn.inspection import partial_dependence
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder

from .config import Config
from .errors import ClassifierContractError

try:
    from lightgbm import LGBMClassifier
except ImportError as e:
    raise ImportError(
        "lightgbm is not installed. Run: pip install lightgbm"
    ) from e

logger = logging.getLogger(__name__)


class ClassifierAdapter:
    """
    Boundary around the external probabilistic classifier.

    - fit(features, labels) records the feature order
    - predict_probability(features) returns P(outcome == 1) for every row,
      after aligning the columns to the fitted order
    """

    def __init__(self, cfg: Config):
        self.cfg = cfg
        self.pipeline_: Optional[Pipeline] = None
        self.feature_cols_: Optional[List[str]] = None
        self.policy = None

    # -----------------------
    # Fit / predict
    # -----------------------
    def _build_estimator(self):
        if self.cfg.model_type == "random_forest":
            return RandomForestClassifier(
                n_estimators=self.cfg.n_estimators,
                max_features=self.cfg.max_features,
                min_samples_leaf=self.cfg.min_samples_leaf,
                random_state=self.cfg.random_state,
                n_jobs=-1,
            )
        if self.cfg.model_type == "lightgbm":
            return LGBMClassifier(
                n_estimators=self.cfg.n_estimators,
                learning_rate=0.05,
                num_leaves=31,
                random_state=self.cfg.random_state,
                verbose=-1,
            )
        raise ValueError(f"Unknown model_type: {self.cfg.model_type!r}")

    def _build_pipeline(self, feature_cols: List[str]) -> Pipeline:
        cat_cols = [c for c in feature_cols if c in self.cfg.cat_cols]
        num_cols = [c for c in feature_cols if c not in cat_cols]

        pre = ColumnTransformer(
            transformers=[
                ("num", "passthrough", num_cols),
                ("cat", OneHotEncoder(handle_unknown="ignore"), cat_cols),
            ],
            remainder="drop",
            verbose_feature_names_out=False,
        )
        return Pipeline(steps=[("preprocess", pre), ("model", self._build_estimator())])

    def fit(self, features: pd.DataFrame, labels) -> "ClassifierAdapter":
        y = np.asarray(labels).astype(int)
        if len(y) != len(features):
            raise ValueError(f"{len(features)} feature rows but {len(y)} labels")
        if len(np.unique(y)) < 2:
            raise ValueError("Training labels must contain both outcomes")

        self.feature_cols_ = list(features.columns)
        self.pipeline_ = self._build_pipeline(self.feature_cols_)
        self.pipeline_.fit(features, y)
        logger.info(
            "Fitted %s on %d rows x %d features (positive rate %.3f)",
            self.cfg.model_type, len(y), len(self.feature_cols_), y.mean(),
        )
        return self

    def _check_fitted(self) -> None:
        if self.pipeline_ is None or self.feature_cols_ is None:
            raise ClassifierContractError("Classifier has not been fitted")

    def align(self, features: pd.DataFrame) -> pd.DataFrame:
        """Reorders columns to the fitted order; a different column set is a contract error."""
        self._check_fitted()
        got, expected = set(features.columns), set(self.feature_cols_)
        if got != expected:
            raise ClassifierContractError(
                f"Feature schema mismatch: missing={sorted(expected - got)} unexpected={sorted(got - expected)}"
            )
        return features[self.feature_cols_]

    def predict_probability(self, features: pd.DataFrame) -> np.ndarray:
        X = self.align(features)
        model = self.pipeline_.named_steps["model"]
        classes = list(model.classes_)
        if 1 not in classes:
            raise ClassifierContractError(f"Classifier has no positive class (classes={classes})")

        proba = np.asarray(self.pipeline_.predict_proba(X)[:, classes.index(1)], dtype=float)
        if not np.isfinite(proba).all() or (proba < 0).any() or (proba > 1).any():
            raise ClassifierContractError("Classifier returned probabilities outside [0, 1]")
        return proba

    # -----------------------
    # Interpretability tables
    # -----------------------
    def feature_importance(self) -> pd.DataFrame:
        self._check_fitted()
        pre = self.pipeline_.named_steps["preprocess"]
        model = self.pipeline_.named_steps["model"]
        fi = pd.DataFrame(
            {"feature": pre.get_feature_names_out(), "importance": model.feature_importances_}
        )
        fi["importance"] = fi["importance"] / max(fi["importance"].sum(), 1e-12)
        return fi.sort_values("importance", ascending=False).reset_index(drop=True)

    def partial_dependence_table(
        self,
        features: pd.DataFrame,
        columns: Sequence[str],
        grid_resolution: int = 20,
    ) -> pd.DataFrame:
        """Average P(repaid) over a grid of values, one block of rows per numeric feature."""
        X = self.align(features)
        frames = []
        for col in columns:
            if col not in X.columns or col in self.cfg.cat_cols:
                logger.warning("Skipping partial dependence for %s (not a numeric feature)", col)
                continue
            res = partial_dependence(
                self.pipeline_, X, [col], grid_resolution=grid_resolution, kind="average"
            )
            frames.append(
                pd.DataFrame(
                    {
                        "feature": col,
                        "value": np.asarray(res["grid_values"][0], dtype=float),
                        "average_probability": np.asarray(res["average"][0], dtype=float),
                    }
                )
            )
        if not frames:
            return pd.DataFrame(columns=["feature", "value", "average_probability"])
        return pd.concat(frames, ignore_index=True)

    # -----------------------
    # Persistence
    # -----------------------
    def save(self, path: Path, policy=None) -> None:
        self._check_fitted()
        joblib.dump(
            {
                "pipeline": self.pipeline_,
                "feature_cols": self.feature_cols_,
                "config": self.cfg,
                "policy": policy if policy is not None else self.policy,
            },
            path,
        )

    @classmethod
    def load(cls, path: Path) -> "ClassifierAdapter":
        bundle = joblib.load(path)
        adapter = cls(bundle["config"])
        adapter.pipeline_ = bundle["pipeline"]
        adapter.feature_cols_ = list(bundle["feature_cols"])
        adapter.policy = bundle.get("policy")
        return adapter
