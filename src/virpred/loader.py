"""Expression matrix loader.

Reads a delimited file with genes as rows and samples as columns. The
first column holds the gene identifiers. Comma-separated input is tried
first; tab-separated input is the fallback.
"""

import logging
from pathlib import Path
from typing import List, Union

import pandas as pd

from .errors import InputFormatError

logger = logging.getLogger(__name__)

DELIMITERS = ((",", "CSV"), ("\t", "TSV"))


def _read_delimited(path: Path, sep: str) -> pd.DataFrame:
    return pd.read_csv(path, sep=sep, index_col=0)


def _read_header(path: Path, sep: str) -> List[str]:
    """Sample labels exactly as written; pandas renames repeated headers on a normal read."""
    header = pd.read_csv(path, sep=sep, header=None, nrows=1, dtype=str, keep_default_na=False)
    return [str(label).strip() for label in header.iloc[0, 1:]]


def load_expression(path: Union[str, Path]) -> pd.DataFrame:
    """
    Load an expression matrix from a CSV or TSV file.

    Args:
        path: Path to the expression file

    Returns:
        DataFrame indexed by gene identifier with one float column per sample

    Raises:
        InputFormatError: If the file cannot be parsed or fails validation
    """
    path = Path(path)
    if not path.is_file():
        raise InputFormatError(f"Input file not found: {path}")

    data = None
    errors = []
    for sep, label in DELIMITERS:
        try:
            candidate = _read_delimited(path, sep)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            errors.append(f"{label}: {e}")
            continue
        if candidate.shape[1] == 0:
            errors.append(f"{label}: no sample columns found")
            continue
        dup_cols = _duplicates(_read_header(path, sep))
        if dup_cols:
            raise InputFormatError(
                f"{path} has duplicate sample identifiers: {', '.join(dup_cols[:10])}"
            )
        logger.debug(f"Parsed {path} as {label}")
        data = candidate
        break

    if data is None:
        raise InputFormatError(
            f"Failed to read input file {path}: " + "; ".join(errors)
        )

    return validate_expression(data, source=str(path))


def _duplicates(labels: List[str]) -> List[str]:
    seen = pd.Index(labels)
    return seen[seen.duplicated()].unique().tolist()


def validate_expression(data: pd.DataFrame, source: str = "input") -> pd.DataFrame:
    """Check an expression matrix and return it with string labels and float values."""
    if data.shape[0] == 0 or data.shape[1] == 0:
        raise InputFormatError(
            f"{source} appears to be empty or improperly formatted "
            f"({data.shape[0]} genes x {data.shape[1]} samples)"
        )

    labels = pd.Series(data.index, dtype=object)
    blank = labels.isna() | (labels.astype(str).str.strip() == "")
    if blank.any():
        raise InputFormatError(
            f"{source} must have row names (gene identifiers); "
            f"{int(blank.sum())} rows have no label"
        )

    data = data.copy()
    data.index = data.index.astype(str).str.strip()
    data.columns = data.columns.astype(str).str.strip()

    dup_rows = data.index[data.index.duplicated()].unique().tolist()
    if dup_rows:
        raise InputFormatError(
            f"{source} has duplicate gene identifiers: {', '.join(dup_rows[:10])}"
        )
    dup_cols = data.columns[data.columns.duplicated()].unique().tolist()
    if dup_cols:
        raise InputFormatError(
            f"{source} has duplicate sample identifiers: {', '.join(dup_cols[:10])}"
        )

    numeric = data.apply(pd.to_numeric, errors="coerce")
    bad = numeric.isna() & data.notna()
    if bad.any().any():
        bad_cols = bad.columns[bad.any()].tolist()
        raise InputFormatError(
            f"{source} contains non-numeric values in samples: {', '.join(bad_cols)}"
        )
    if numeric.isna().any().any():
        raise InputFormatError(
            f"{source} contains {int(numeric.isna().sum().sum())} missing values"
        )

    logger.info(f"Loaded {numeric.shape[0]} genes x {numeric.shape[1]} samples from {source}")
    return numeric.astype(float)
