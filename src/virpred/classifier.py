"""
Radial-kernel SVM classifier.

Features are centered and scaled with statistics from the training data
only, then classified with an RBF support vector machine. The kernel
width ``sigma`` follows the kernlab convention ``exp(-sigma * |x - y|^2)``,
which is scikit-learn's ``gamma``.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import joblib
import numpy as np
import pandas as pd
from sklearn.model_selection import GridSearchCV, StratifiedKFold
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVC

from .config import (
    C_GRID,
    CV_FOLDS,
    FULL_MATCH_C,
    FULL_MATCH_SIGMA,
    POSITIVE_LABEL,
    SIGMA_GRID,
)
from .errors import PredictionError, TrainingError
from .reference import ReferenceDataset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainedModel:
    """A fitted pipeline bound to the ordered feature set it was trained on."""

    pipeline: Pipeline
    features: List[str]
    sigma: float
    C: float
    positive_label: Any = POSITIVE_LABEL
    cv_score: Optional[float] = None

    def _frame(self, scores: pd.DataFrame) -> pd.DataFrame:
        if list(scores.columns) != self.features:
            raise PredictionError(
                f"Model was trained on {len(self.features)} features; "
                f"got {scores.shape[1]} columns in a different set or order"
            )
        return scores

    def predict_positive(self, scores: pd.DataFrame) -> np.ndarray:
        """Boolean array, True where the positive class is predicted."""
        return self.pipeline.predict(self._frame(scores)) == self.positive_label

    def positive_probability(self, scores: pd.DataFrame) -> np.ndarray:
        """Estimated probability of the positive class per row."""
        classes = list(self.pipeline.classes_)
        column = classes.index(self.positive_label)
        return self.pipeline.predict_proba(self._frame(scores))[:, column]


def build_pipeline(sigma: float, C: float, probability: bool = True, random_state: int = 42) -> Pipeline:
    """Standardize-then-SVM pipeline for one hyperparameter pair."""
    return Pipeline([
        ("scaler", StandardScaler()),
        ("svm", SVC(kernel="rbf", gamma=sigma, C=C, probability=probability, random_state=random_state)),
    ])


def tune_hyperparameters(
    X: pd.DataFrame,
    y: pd.Series,
    sigma_grid: Sequence[float] = SIGMA_GRID,
    c_grid: Sequence[float] = C_GRID,
    n_splits: int = CV_FOLDS,
    random_state: int = 42,
    n_jobs: int = 1,
) -> Dict[str, float]:
    """
    Grid search over kernel width and regularization with stratified k-fold CV.

    Returns:
        Dict with ``sigma``, ``C`` and the mean CV accuracy ``score``
    """
    logger.info(
        f"Performing parameter tuning with {n_splits}-fold CV over "
        f"{len(sigma_grid)} x {len(c_grid)} (sigma, C) grid..."
    )
    cv = StratifiedKFold(n_splits=n_splits, shuffle=True, random_state=random_state)
    search = GridSearchCV(
        build_pipeline(sigma_grid[0], c_grid[0], probability=False, random_state=random_state),
        param_grid={"svm__gamma": list(sigma_grid), "svm__C": list(c_grid)},
        scoring="accuracy",
        cv=cv,
        n_jobs=n_jobs,
        refit=False,
    )
    search.fit(X, y)
    best = search.best_params_
    logger.info(
        f"Best params: sigma={best['svm__gamma']}, C={best['svm__C']}, "
        f"CV accuracy={search.best_score_:.3f}"
    )
    return {"sigma": best["svm__gamma"], "C": best["svm__C"], "score": float(search.best_score_)}


def train_classifier(
    reference: ReferenceDataset,
    features: Optional[Sequence[str]] = None,
    tune: bool = False,
    sigma_grid: Sequence[float] = SIGMA_GRID,
    c_grid: Sequence[float] = C_GRID,
    random_state: int = 42,
    n_jobs: int = 1,
) -> TrainedModel:
    """
    Fit the SVM on the reference dataset.

    Args:
        reference: Labelled reference dataset
        features: Feature subset to train on, in reference order; all
            reference features when omitted
        tune: Search the (sigma, C) grid with cross-validation instead of
            using the fixed full-feature hyperparameters
        sigma_grid: Kernel widths searched when tuning
        c_grid: Regularization values searched when tuning
        random_state: Seed for CV splits and probability calibration
        n_jobs: Parallel jobs for the grid search

    Returns:
        TrainedModel bound to ``features``

    Raises:
        TrainingError: If the data are unusable or fitting fails
    """
    features = list(features) if features is not None else reference.feature_names
    data = reference.subset(features)
    X, y = data.features, data.labels

    try:
        if tune:
            best = tune_hyperparameters(
                X, y,
                sigma_grid=sigma_grid,
                c_grid=c_grid,
                random_state=random_state,
                n_jobs=n_jobs,
            )
            sigma, C, cv_score = best["sigma"], best["C"], best["score"]
        else:
            sigma, C, cv_score = FULL_MATCH_SIGMA, FULL_MATCH_C, None

        pipeline = build_pipeline(sigma, C, probability=True, random_state=random_state)
        pipeline.fit(X, y)
    except TrainingError:
        raise
    except Exception as e:
        raise TrainingError(f"Model training failed: {e}") from e

    logger.info(f"Trained SVM on {len(X)} samples x {len(features)} features (sigma={sigma}, C={C})")
    return TrainedModel(
        pipeline=pipeline,
        features=features,
        sigma=sigma,
        C=C,
        positive_label=POSITIVE_LABEL,
        cv_score=cv_score,
    )


def save_model(model: TrainedModel, path: Union[str, Path]) -> None:
    """Persist a trained model with joblib."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(model, path)
    logger.info(f"Saved model to {path}")


def load_model(path: Union[str, Path]) -> TrainedModel:
    """Load a model written by :func:`save_model`."""
    try:
        model = joblib.load(path)
    except Exception as e:
        raise TrainingError(f"Failed to load model from {path}: {e}") from e
    if not isinstance(model, TrainedModel):
        raise TrainingError(f"{path} does not contain a VirPred model")
    return model
