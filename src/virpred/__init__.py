"""Influenza virulence prediction from host gene expression.

Scores an expression matrix against MSigDB GO:BP gene sets with GSVA and
classifies each sample with an RBF support vector machine trained on a
bundled reference dataset.

Usage::

    from virpred import PredictConfig, run_prediction

    config = PredictConfig(input_path="expression.csv", format="Normalize")
    result = run_prediction(config)
    result.raise_for_error()
    for record in result.records:
        print(record.sample_id, record.prediction, record.probability)
"""

from virpred.config import PredictConfig
from virpred.errors import (
    InputFormatError,
    InsufficientFeaturesError,
    OutputWriteError,
    PartialFeatureWarning,
    PredictionError,
    ReferenceFetchError,
    ScoringError,
    TrainingError,
    VirPredError,
)
from virpred.pipeline import PipelineResult, run_prediction
from virpred.predictor import PredictionRecord

__version__ = "0.1.0"

__all__ = [
    "PredictConfig",
    "PipelineResult",
    "PredictionRecord",
    "run_prediction",
    "VirPredError",
    "InputFormatError",
    "ReferenceFetchError",
    "ScoringError",
    "InsufficientFeaturesError",
    "TrainingError",
    "PredictionError",
    "OutputWriteError",
    "PartialFeatureWarning",
]
