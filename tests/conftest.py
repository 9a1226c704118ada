"""Shared builders for small, fully local VirPred runs."""

from pathlib import Path
from typing import List

import numpy as np
import pandas as pd
import pytest

N_GENES = 20
N_SAMPLES = 5
N_GENE_SETS = 10

GENES = [f"G{i:02d}" for i in range(1, N_GENES + 1)]
SAMPLES = [f"S{i}" for i in range(1, N_SAMPLES + 1)]
GENE_SET_NAMES = [f"GOBP_SET_{i:02d}" for i in range(1, N_GENE_SETS + 1)]


def make_expression(n_genes=N_GENES, n_samples=N_SAMPLES, seed=7) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    values = rng.normal(loc=6.0, scale=1.5, size=(n_genes, n_samples))
    return pd.DataFrame(
        values,
        index=[f"G{i:02d}" for i in range(1, n_genes + 1)],
        columns=[f"S{i}" for i in range(1, n_samples + 1)],
    )


def make_gmt_text(names: List[str] = GENE_SET_NAMES, size: int = 12) -> str:
    """Each gene set is a window of ``size`` consecutive genes, wrapping around."""
    lines = []
    for offset, name in enumerate(names):
        members = [GENES[(offset + k) % N_GENES] for k in range(size)]
        lines.append("\t".join([name, "http://example.org/" + name] + members))
    return "\n".join(lines) + "\n"


def make_reference(features: List[str], n_samples=30, seed=11) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    labels = np.array([i % 2 for i in range(n_samples)])
    shift = np.where(labels == 1, 0.3, -0.3)[:, None]
    values = np.clip(shift + rng.normal(scale=0.2, size=(n_samples, len(features))), -0.95, 0.95)
    frame = pd.DataFrame(values, columns=features)
    frame["Label"] = labels
    return frame


@pytest.fixture
def scenario(tmp_path):
    """Writes an expression file and a GMT; returns a helper to add reference CSVs."""

    class Scenario:
        expression_path = tmp_path / "expression.csv"
        gmt_path = tmp_path / "go_bp.gmt"
        output_dir = tmp_path / "results"

        def reference(self, n_missing: int = 0) -> Path:
            features = GENE_SET_NAMES[: N_GENE_SETS - n_missing] + [
                f"GOBP_ABSENT_{i}" for i in range(n_missing)
            ]
            path = tmp_path / f"reference_missing{n_missing}.csv"
            make_reference(features).to_csv(path, index=False)
            return path

    make_expression().to_csv(Scenario.expression_path)
    Scenario.gmt_path.write_text(make_gmt_text())
    return Scenario()
