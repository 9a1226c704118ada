"""CSV report of per-sample predictions."""

import logging
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from .config import NEGATIVE_CLASS_NAME, POSITIVE_CLASS_NAME
from .errors import OutputWriteError
from .predictor import PredictionRecord

logger = logging.getLogger(__name__)

REPORT_COLUMNS = ["SampleID", "Prediction", "Probability"]


def report_path(output_dir: Union[str, Path], prefix: str, run_date: Optional[date] = None) -> Path:
    """Output file name ``{prefix}_{YYYYMMDD}.csv`` inside ``output_dir``."""
    run_date = run_date or date.today()
    return Path(output_dir) / f"{prefix}_{run_date.strftime('%Y%m%d')}.csv"


def records_to_frame(records: Sequence[PredictionRecord]) -> pd.DataFrame:
    return pd.DataFrame(
        [[r.sample_id, r.prediction, r.probability] for r in records],
        columns=REPORT_COLUMNS,
    )


def write_report(records: Sequence[PredictionRecord], path: Union[str, Path]) -> Path:
    """
    Write predictions to ``path`` as CSV.

    The file is written next to its destination and moved into place, so
    a failed write never leaves a partial report behind.

    Raises:
        OutputWriteError: On any I/O failure
    """
    path = Path(path)
    frame = records_to_frame(records)
    tmp_name = None
    try:
        if not path.parent.exists():
            logger.info(f"Creating output directory: {path.parent}")
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            frame.to_csv(fh, index=False)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise OutputWriteError(f"Failed to save results to {path}: {e}") from e

    logger.info(f"Wrote {len(frame)} predictions to {path}")
    return path


def read_report(path: Union[str, Path]) -> List[PredictionRecord]:
    """Read a report written by :func:`write_report`."""
    # Sample ids such as "NA" or "null" must come back verbatim
    frame = pd.read_csv(
        path,
        dtype={"SampleID": str, "Prediction": str},
        keep_default_na=False,
        na_values=[],
        float_precision="round_trip",
    )
    if list(frame.columns) != REPORT_COLUMNS:
        raise ValueError(f"{path} is not a VirPred report (columns: {list(frame.columns)})")
    return [
        PredictionRecord(sample_id=row.SampleID, prediction=row.Prediction, probability=float(row.Probability))
        for row in frame.itertuples(index=False)
    ]


def summarize(records: Sequence[PredictionRecord]) -> Dict[str, int]:
    """Sample and per-class prediction counts."""
    virulent = sum(1 for r in records if r.prediction == POSITIVE_CLASS_NAME)
    avirulent = sum(1 for r in records if r.prediction == NEGATIVE_CLASS_NAME)
    return {"samples": len(records), "virulent": virulent, "avirulent": avirulent}
