"""Per-sample virulence prediction."""

import logging
import math
from dataclasses import asdict, dataclass
from typing import List, Optional, Sequence

import pandas as pd

from .classifier import TrainedModel
from .config import NEGATIVE_CLASS_NAME, POSITIVE_CLASS_NAME
from .errors import PredictionError
from .tasks import TaskGroup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PredictionRecord:
    """Prediction for one sample."""

    sample_id: str
    prediction: str  # "Virulent" | "Avirulent"
    probability: float  # probability of the positive (virulent) class

    def to_dict(self) -> dict:
        return asdict(self)


def chunk_samples(sample_ids: Sequence[str], chunk_size: int) -> List[List[str]]:
    """Split sample ids into contiguous chunks of at most ``chunk_size``."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    ids = list(sample_ids)
    return [ids[i:i + chunk_size] for i in range(0, len(ids), chunk_size)]


def _predict_chunk(model: TrainedModel, samples: pd.DataFrame) -> List[PredictionRecord]:
    positive = model.predict_positive(samples)
    probability = model.positive_probability(samples)
    return [
        PredictionRecord(
            sample_id=str(sample_id),
            prediction=POSITIVE_CLASS_NAME if is_pos else NEGATIVE_CLASS_NAME,
            probability=float(prob),
        )
        for sample_id, is_pos, prob in zip(samples.index, positive, probability)
    ]


def predict_samples(
    model: TrainedModel,
    scores: pd.DataFrame,
    chunk_size: Optional[int] = None,
    workers: int = 1,
) -> List[PredictionRecord]:
    """
    Predict every sample column of a score matrix.

    Args:
        model: Trained model
        scores: Gene sets x samples score matrix containing the model features
        chunk_size: Samples per chunk; by default samples are spread evenly
            over the workers
        workers: Number of worker threads

    Returns:
        One PredictionRecord per sample, in column order

    Raises:
        PredictionError: If any chunk fails; no partial results are returned
    """
    missing = [f for f in model.features if f not in scores.index]
    if missing:
        raise PredictionError(
            f"Score matrix lacks {len(missing)} model features: {', '.join(missing)}"
        )

    samples = scores.loc[model.features].T
    sample_ids = list(samples.index)
    if not sample_ids:
        raise PredictionError("Score matrix has no samples to predict")

    if chunk_size is None:
        chunk_size = math.ceil(len(sample_ids) / max(1, workers))
    chunks = chunk_samples(sample_ids, chunk_size)
    logger.info(f"Predicting {len(sample_ids)} samples in {len(chunks)} chunk(s)")

    try:
        with TaskGroup(max_workers=min(workers, len(chunks)), name="predict") as group:
            parts = group.map(lambda ids: _predict_chunk(model, samples.loc[ids]), chunks)
    except PredictionError:
        raise
    except Exception as e:
        raise PredictionError(f"Prediction failed: {e}") from e

    return [record for part in parts for record in part]
