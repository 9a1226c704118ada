"""
VirPred pipeline orchestrator.

Runs load -> gene sets -> GSVA -> feature matching -> model -> prediction
-> report for one :class:`~virpred.config.PredictConfig` and returns a
:class:`PipelineResult`. A failing step stops the run and is recorded on
the result; the report is only written once every earlier step has
succeeded.
"""

import logging
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from .classifier import TrainedModel, load_model, train_classifier
from .config import PredictConfig
from .errors import PartialFeatureWarning, VirPredError
from .genesets import GeneSetProvider
from .loader import load_expression
from .matcher import FeatureMatch, match_features
from .predictor import PredictionRecord, predict_samples
from .reference import ReferenceDataset, load_reference
from .report import report_path, summarize, write_report
from .scoring import score_gene_sets

logger = logging.getLogger(__name__)


class _StepFailed(Exception):
    pass


@dataclass
class PipelineResult:
    """Outcome of a prediction run: records and stats, or the error that stopped it."""

    records: List[PredictionRecord] = field(default_factory=list)
    output_path: Optional[Path] = None
    stats: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    match: Optional[FeatureMatch] = None
    error: Optional[VirPredError] = None
    failed_step: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


def _run_step(result: PipelineResult, name: str, fn: Callable[[], Any]) -> Any:
    logger.debug(f"Step: {name}")
    try:
        return fn()
    except VirPredError as e:
        logger.error(f"{name} failed: {e}")
        result.error = e
        result.failed_step = name
        raise _StepFailed(name) from e


def _obtain_model(config: PredictConfig, reference: ReferenceDataset, match: FeatureMatch) -> TrainedModel:
    if config.model_path is not None and not match.needs_tuning:
        model = load_model(config.model_path)
        if model.features == match.features:
            logger.info(f"Using pre-fit model from {config.model_path}")
            return model
        logger.warning(
            f"Pre-fit model at {config.model_path} uses a different feature set; retraining"
        )
    return train_classifier(
        reference,
        features=match.features,
        tune=match.needs_tuning,
        sigma_grid=config.sigma_grid,
        c_grid=config.c_grid,
        random_state=config.random_state,
        n_jobs=config.workers,
    )


def run_prediction(config: PredictConfig) -> PipelineResult:
    """
    Run the full prediction pipeline.

    Args:
        config: Run configuration

    Returns:
        PipelineResult; ``result.ok`` is False when a step failed, in which
        case no report has been written
    """
    result = PipelineResult()
    try:
        _execute(config, result)
    except _StepFailed:
        pass
    return result


def _execute(config: PredictConfig, result: PipelineResult) -> None:
    logger.info(f"Reading input data from {config.input_path}")
    expr: pd.DataFrame = _run_step(result, "load", lambda: load_expression(config.input_path))
    result.stats["genes"], result.stats["samples"] = expr.shape

    provider = GeneSetProvider(
        release=config.msigdb_release,
        cache_dir=config.cache_dir,
        timeout=config.timeout,
        local_path=config.gene_sets_path,
    )
    gene_sets = _run_step(result, "gene_sets", provider.get_gene_sets)

    scores: pd.DataFrame = _run_step(
        result,
        "scoring",
        lambda: score_gene_sets(
            expr, gene_sets, kcdf=config.format, min_size=config.min_size, workers=config.workers
        ),
    )
    result.stats["gene_sets_scored"] = scores.shape[0]

    reference = _run_step(result, "reference", lambda: load_reference(config.reference_path))

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", PartialFeatureWarning)
        match = _run_step(result, "matching", lambda: match_features(scores.index, reference.feature_names))
    result.warnings.extend(str(w.message) for w in caught if issubclass(w.category, PartialFeatureWarning))
    result.match = match
    result.stats["features_matched"] = len(match.features)
    result.stats["features_required"] = match.required

    model = _run_step(result, "training", lambda: _obtain_model(config, reference, match))

    records = _run_step(
        result,
        "prediction",
        lambda: predict_samples(model, scores, chunk_size=config.chunk_size, workers=config.workers),
    )

    path = report_path(config.output_dir, config.prefix, config.run_date)
    result.output_path = _run_step(result, "report", lambda: write_report(records, path))
    result.records = records
    result.stats.update(summarize(records))
