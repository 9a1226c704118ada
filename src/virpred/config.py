"""Run configuration and shared constants for VirPred.

A :class:`PredictConfig` carries every option of a prediction run and is
passed explicitly into :func:`virpred.pipeline.run_prediction`. Defaults
for machine-specific settings can come from the environment or a ``.env``
file (see :func:`load_env_defaults`).
"""

import os
from dataclasses import dataclass, field, fields
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv

# =============================================================================
# Constants
# =============================================================================

VALID_FORMATS = ("Normalize", "Counts")
DEFAULT_FORMAT = "Normalize"
DEFAULT_PREFIX = "VirPred_results"

# MSigDB C5 GO:BP, Homo sapiens
DEFAULT_MSIGDB_RELEASE = "2024.1.Hs"
MSIGDB_GMT_URL = (
    "https://data.broadinstitute.org/gsea-msigdb/msigdb/release/"
    "{release}/c5.go.bp.v{release}.symbols.gmt"
)
DEFAULT_CACHE_DIR = Path.home() / ".virpred"
DEFAULT_TIMEOUT = 1800

MIN_GENE_SET_SIZE = 10

# Fixed SVM hyperparameters used when every reference feature is present
FULL_MATCH_SIGMA = 0.34
FULL_MATCH_C = 0.2

# Grid searched when the model is retrained on a feature subset
SIGMA_GRID: List[float] = [round(i * 0.01, 2) for i in range(1, 101)]
C_GRID: List[float] = [round(i * 0.1, 1) for i in range(1, 101)]
CV_FOLDS = 5

LABEL_COLUMN = "Label"
POSITIVE_LABEL = 1
POSITIVE_CLASS_NAME = "Virulent"
NEGATIVE_CLASS_NAME = "Avirulent"

_ENV_KEYS = {
    "cache_dir": "VIRPRED_CACHE_DIR",
    "msigdb_release": "VIRPRED_MSIGDB_RELEASE",
    "timeout": "VIRPRED_TIMEOUT",
    "workers": "VIRPRED_WORKERS",
}


def default_workers() -> int:
    """One worker per core, leaving one core free."""
    return max(1, (os.cpu_count() or 1) - 1)


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class PredictConfig:
    """Options for a single prediction run."""

    input_path: Path
    format: str = DEFAULT_FORMAT  # "Normalize" or "Counts"
    output_dir: Path = field(default_factory=Path.cwd)
    prefix: str = DEFAULT_PREFIX

    # Reference data overrides
    gene_sets_path: Optional[Path] = None  # local GMT instead of MSigDB download
    reference_path: Optional[Path] = None  # defaults to the bundled train_data.csv
    model_path: Optional[Path] = None  # pre-fit model for the full-match case

    # Gene-set retrieval
    msigdb_release: str = DEFAULT_MSIGDB_RELEASE
    cache_dir: Path = DEFAULT_CACHE_DIR
    timeout: int = DEFAULT_TIMEOUT

    # Scoring / training
    min_size: int = MIN_GENE_SET_SIZE
    workers: int = field(default_factory=default_workers)
    chunk_size: Optional[int] = None
    random_state: int = 42
    sigma_grid: List[float] = field(default_factory=lambda: list(SIGMA_GRID))
    c_grid: List[float] = field(default_factory=lambda: list(C_GRID))

    run_date: Optional[date] = None

    def __post_init__(self) -> None:
        self.input_path = Path(self.input_path)
        self.output_dir = Path(self.output_dir)
        self.cache_dir = Path(self.cache_dir)
        for name in ("gene_sets_path", "reference_path", "model_path"):
            value = getattr(self, name)
            if value is not None:
                setattr(self, name, Path(value))
        if self.format not in VALID_FORMATS:
            raise ValueError(
                f"Invalid format: '{self.format}'. "
                f"Must be one of: {', '.join(VALID_FORMATS)}"
            )
        if self.workers < 1:
            raise ValueError("workers must be at least 1")

    @classmethod
    def from_env(cls, input_path: Union[str, Path], **overrides: Any) -> "PredictConfig":
        """Build a config from environment defaults plus explicit overrides.

        Overrides set to ``None`` are ignored so that unset CLI options fall
        back to the environment, then to the dataclass defaults.
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = load_env_defaults()
        for key, value in overrides.items():
            if key not in known:
                raise TypeError(f"Unknown config option: {key}")
            if value is not None:
                values[key] = value
        return cls(input_path=Path(input_path), **values)


def load_env_defaults(env_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load ``.env`` and return config values set through ``VIRPRED_*`` variables."""
    load_dotenv(env_file)

    values: Dict[str, Any] = {}
    for name, env_key in _ENV_KEYS.items():
        raw = os.environ.get(env_key)
        if not raw:
            continue
        if name in ("timeout", "workers"):
            try:
                values[name] = int(raw)
            except ValueError as e:
                raise ValueError(f"{env_key} must be an integer, got {raw!r}") from e
        elif name == "cache_dir":
            values[name] = Path(raw).expanduser()
        else:
            values[name] = raw
    return values
