"""
Gene Set Variation Analysis (GSVA) scoring.

Turns a genes x samples expression matrix into a gene-sets x samples
enrichment score matrix (Hänzelmann, Castelo & Guinney, 2013):

1. Each gene's expression is compared with its own distribution across
   samples through a kernel CDF estimate (Gaussian for normalized data,
   Poisson for raw counts) and mapped to log-odds.
2. Genes are ranked per sample and given symmetric rank weights.
3. Each gene set gets a Kolmogorov-Smirnov-like random walk score per
   sample; the score is the sum of the largest positive and negative
   deviations.

Work is split into independent chunks (genes for the density step, gene
sets for the walk step), so running with several workers gives the same
numbers as running with one.
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy.stats import norm, poisson

from .config import MIN_GENE_SET_SIZE, VALID_FORMATS
from .errors import ScoringError
from .tasks import TaskGroup

logger = logging.getLogger(__name__)

# Upper bound on genes x samples x samples cells held in memory per density chunk
_DENSITY_CELLS_PER_CHUNK = 4_000_000
_GENE_SETS_PER_CHUNK = 250


def _chunks(items: Sequence, size: int) -> List[Sequence]:
    size = max(1, size)
    return [items[i:i + size] for i in range(0, len(items), size)]


# =============================================================================
# Kernel CDF estimates
# =============================================================================


def gaussian_density(x: np.ndarray) -> np.ndarray:
    """Gaussian-kernel CDF of each value against its own row, bandwidth sd/4."""
    bw = x.std(axis=1, ddof=1) / 4.0
    diff = (x[:, :, None] - x[:, None, :]) / bw[:, None, None]
    return norm.cdf(diff).mean(axis=2)


def poisson_density(x: np.ndarray) -> np.ndarray:
    """Poisson-kernel CDF of each count against its own row, lambda = count + 0.5."""
    return poisson.cdf(x[:, :, None], x[:, None, :] + 0.5).mean(axis=2)


_KERNELS = {
    "Normalize": gaussian_density,
    "Counts": poisson_density,
}


def compute_gene_density(x: np.ndarray, kcdf: str, workers: int = 1) -> np.ndarray:
    """Log-odds of the kernel CDF estimate for every gene and sample."""
    kernel = _KERNELS[kcdf]
    n_samples = x.shape[1]
    rows_per_chunk = max(1, _DENSITY_CELLS_PER_CHUNK // (n_samples * n_samples))
    blocks = _chunks(np.arange(x.shape[0]), rows_per_chunk)

    with TaskGroup(max_workers=workers, name="density") as group:
        parts = group.map(lambda rows: kernel(x[rows]), blocks)

    cdf = np.vstack(parts)
    return np.log(cdf / (1.0 - cdf))


# =============================================================================
# Ranking and random walk
# =============================================================================


def rank_genes(density: np.ndarray) -> np.ndarray:
    """Per-sample position of each gene in decreasing density order (1 = top)."""
    n_genes, n_samples = density.shape
    positions = np.empty_like(density, dtype=np.int64)
    ranks = np.arange(1, n_genes + 1)
    for j in range(n_samples):
        order = np.argsort(-density[:, j], kind="mergesort")
        positions[order, j] = ranks
    return positions


def rank_weights(positions: np.ndarray) -> np.ndarray:
    """Symmetric rank score |n - pos + 1 - n/2|, large at both ends of the ranking."""
    n_genes = positions.shape[0]
    return np.abs(n_genes - positions + 1 - n_genes / 2.0)


def random_walk_scores(positions: np.ndarray, weights: np.ndarray, members: np.ndarray) -> np.ndarray:
    """
    Max-deviation enrichment score of one gene set in every sample.

    The walk only changes direction at member genes, so its extremes are
    found from the member positions alone: the maximum right after a hit,
    the minimum right before one.

    Args:
        positions: genes x samples rank positions (1 = top)
        weights: genes x samples rank weights
        members: row indices of the gene set members

    Returns:
        Array with one score per sample
    """
    n_genes = positions.shape[0]
    k = len(members)
    miss_step = float(max(n_genes - k, 1))

    member_pos = positions[members]
    order = np.argsort(member_pos, axis=0, kind="mergesort")
    pos_sorted = np.take_along_axis(member_pos, order, axis=0)
    w_sorted = np.take_along_axis(weights[members], order, axis=0)

    cum_w = np.cumsum(w_sorted, axis=0)
    total = cum_w[-1]
    total = np.where(total > 0, total, 1.0)
    hit_index = np.arange(1, k + 1)[:, None]
    misses = (pos_sorted - hit_index) / miss_step

    after_hit = cum_w / total - misses
    before_hit = (cum_w - w_sorted) / total - misses

    max_dev = np.maximum(after_hit.max(axis=0), 0.0)
    min_dev = np.minimum(before_hit.min(axis=0), 0.0)
    return max_dev + min_dev


# =============================================================================
# Public API
# =============================================================================


def filter_gene_sets(
    gene_sets: Dict[str, List[str]],
    genes: pd.Index,
    min_size: int = MIN_GENE_SET_SIZE,
    max_size: Optional[int] = None,
) -> Dict[str, np.ndarray]:
    """Map gene sets onto row indices, keeping those within the size bounds."""
    index = {gene: i for i, gene in enumerate(genes)}
    kept: Dict[str, np.ndarray] = {}
    for name, members in gene_sets.items():
        rows = sorted({index[g] for g in members if g in index})
        if len(rows) < min_size:
            continue
        if max_size is not None and len(rows) > max_size:
            continue
        kept[name] = np.asarray(rows, dtype=np.int64)
    return kept


def score_gene_sets(
    expr: pd.DataFrame,
    gene_sets: Dict[str, List[str]],
    kcdf: str = "Normalize",
    min_size: int = MIN_GENE_SET_SIZE,
    max_size: Optional[int] = None,
    workers: int = 1,
) -> pd.DataFrame:
    """
    Compute GSVA enrichment scores.

    Args:
        expr: Expression matrix, genes as rows and samples as columns
        gene_sets: Gene-set identifier -> member gene symbols
        kcdf: "Normalize" (Gaussian kernel) or "Counts" (Poisson kernel)
        min_size: Minimum number of member genes present in ``expr``
        max_size: Optional maximum number of member genes present
        workers: Number of worker threads

    Returns:
        DataFrame of scores, gene sets as rows and the samples of ``expr``
        as columns in their original order

    Raises:
        ScoringError: On an invalid mode, unusable input or any failure
            during the computation
    """
    if kcdf not in VALID_FORMATS:
        raise ScoringError(
            f"Invalid format: '{kcdf}'. Must be one of: {', '.join(VALID_FORMATS)}"
        )
    if expr.shape[1] < 2:
        raise ScoringError(
            f"GSVA needs at least 2 samples, got {expr.shape[1]}"
        )

    try:
        values = expr.to_numpy(dtype=float)
        if kcdf == "Counts" and (values < 0).any():
            raise ScoringError("Counts format requires non-negative expression values")

        variable = values.std(axis=1, ddof=1) > 0
        dropped = int((~variable).sum())
        if dropped:
            logger.info(f"Removed {dropped} genes with constant expression across samples")
        values = values[variable]
        genes = expr.index[variable]

        sets = filter_gene_sets(gene_sets, genes, min_size=min_size, max_size=max_size)
        if not sets:
            raise ScoringError(
                f"No gene sets with at least {min_size} genes present in the input "
                f"({len(genes)} usable genes, {len(gene_sets)} gene sets tested)"
            )
        logger.info(
            f"Scoring {len(sets)} of {len(gene_sets)} gene sets "
            f"({kcdf} kernel, {len(genes)} genes x {values.shape[1]} samples)"
        )

        density = compute_gene_density(values, kcdf, workers=workers)
        positions = rank_genes(density)
        weights = rank_weights(positions)

        names = list(sets)

        def score_block(block: Sequence[str]) -> np.ndarray:
            return np.vstack([random_walk_scores(positions, weights, sets[n]) for n in block])

        with TaskGroup(max_workers=workers, name="gsva") as group:
            parts = group.map(score_block, _chunks(names, _GENE_SETS_PER_CHUNK))

    except ScoringError:
        raise
    except Exception as e:
        raise ScoringError(f"GSVA analysis failed: {e}") from e

    return pd.DataFrame(np.vstack(parts), index=pd.Index(names, name="gene_set"), columns=expr.columns)
