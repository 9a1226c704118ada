"""Bundled reference training dataset.

The reference dataset holds GSVA scores of labelled historical samples:
one column per GO:BP gene set plus a ``Label`` column (1 = virulent,
0 = avirulent). It ships with the package as ``data/train_data.csv``.
"""

import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import List, Optional, Sequence, Union

import pandas as pd

from .config import LABEL_COLUMN, POSITIVE_LABEL
from .errors import TrainingError

logger = logging.getLogger(__name__)

BUNDLED_REFERENCE = "train_data.csv"


@dataclass(frozen=True)
class ReferenceDataset:
    """Labelled feature vectors used to fit the classifier."""

    features: pd.DataFrame  # samples x gene sets
    labels: pd.Series

    @property
    def feature_names(self) -> List[str]:
        return list(self.features.columns)

    def subset(self, names: Sequence[str]) -> "ReferenceDataset":
        """Restrict to ``names``, in the order given."""
        missing = [n for n in names if n not in self.features.columns]
        if missing:
            raise TrainingError(
                f"Features not in reference dataset: {', '.join(missing)}"
            )
        return ReferenceDataset(features=self.features.loc[:, list(names)], labels=self.labels)


def from_frame(frame: pd.DataFrame, source: str = "reference data") -> ReferenceDataset:
    """Split a table with a ``Label`` column into a :class:`ReferenceDataset`."""
    if LABEL_COLUMN not in frame.columns:
        raise TrainingError(f"{source} must contain a '{LABEL_COLUMN}' column")

    feature_cols = [c for c in frame.columns if c != LABEL_COLUMN]
    if not feature_cols:
        raise TrainingError(f"No features found in {source}")

    labels = frame[LABEL_COLUMN]
    classes = sorted(pd.unique(labels).tolist(), key=str)
    if len(classes) != 2:
        raise TrainingError(
            f"{source} must contain exactly 2 classes, found {len(classes)}: {classes}"
        )
    if POSITIVE_LABEL not in classes:
        raise TrainingError(
            f"{source} has no samples of the positive class ({POSITIVE_LABEL!r})"
        )

    features = frame[feature_cols].apply(pd.to_numeric, errors="coerce")
    if features.isna().any().any():
        raise TrainingError(f"{source} contains missing or non-numeric feature values")

    return ReferenceDataset(features=features.astype(float), labels=labels)


def load_reference(path: Optional[Union[str, Path]] = None) -> ReferenceDataset:
    """
    Load the reference dataset.

    Args:
        path: CSV file with feature columns and ``Label``. Defaults to the
            dataset bundled with the package.

    Raises:
        TrainingError: If the file is missing or malformed
    """
    try:
        if path is None:
            source = f"bundled {BUNDLED_REFERENCE}"
            with resources.files("virpred.data").joinpath(BUNDLED_REFERENCE).open("r") as fh:
                frame = pd.read_csv(fh)
        else:
            source = str(path)
            frame = pd.read_csv(path)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise TrainingError(f"Failed to load training data: {e}") from e

    dataset = from_frame(frame, source=source)
    logger.info(
        f"Loaded reference dataset from {source}: "
        f"{len(dataset.features)} samples, {len(dataset.feature_names)} features"
    )
    return dataset
