"""Unit tests for PredictConfig and environment defaults."""

from pathlib import Path

import pytest

from virpred.config import (
    C_GRID,
    DEFAULT_MSIGDB_RELEASE,
    DEFAULT_PREFIX,
    SIGMA_GRID,
    PredictConfig,
    default_workers,
    load_env_defaults,
)

ENV_KEYS = ("VIRPRED_CACHE_DIR", "VIRPRED_MSIGDB_RELEASE", "VIRPRED_TIMEOUT", "VIRPRED_WORKERS")


@pytest.fixture
def clean_env(monkeypatch):
    """Unset VIRPRED_* and restore them afterwards, including values loaded from .env files."""
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "placeholder")
        monkeypatch.delenv(key)
    return monkeypatch


class TestPredictConfig:

    def test_defaults(self, clean_env):
        config = PredictConfig(input_path="expr.csv")
        assert config.input_path == Path("expr.csv")
        assert config.format == "Normalize"
        assert config.prefix == DEFAULT_PREFIX
        assert config.output_dir == Path.cwd()
        assert config.msigdb_release == DEFAULT_MSIGDB_RELEASE
        assert config.workers == default_workers()
        assert config.reference_path is None

    def test_grids(self):
        assert len(SIGMA_GRID) == 100
        assert SIGMA_GRID[0] == 0.01 and SIGMA_GRID[-1] == 1.0
        assert len(C_GRID) == 100
        assert C_GRID[0] == 0.1 and C_GRID[-1] == 10.0

    def test_grids_are_copied_per_config(self):
        config = PredictConfig(input_path="expr.csv")
        config.sigma_grid.append(5.0)
        assert 5.0 not in SIGMA_GRID

    def test_paths_are_coerced(self):
        config = PredictConfig(input_path="expr.csv", output_dir="out", reference_path="ref.csv")
        assert config.output_dir == Path("out")
        assert config.reference_path == Path("ref.csv")

    def test_invalid_format(self):
        with pytest.raises(ValueError, match="Invalid format"):
            PredictConfig(input_path="expr.csv", format="TPM")

    def test_invalid_workers(self):
        with pytest.raises(ValueError):
            PredictConfig(input_path="expr.csv", workers=0)


class TestFromEnv:

    def test_environment_values(self, clean_env, tmp_path):
        clean_env.setenv("VIRPRED_CACHE_DIR", str(tmp_path))
        clean_env.setenv("VIRPRED_MSIGDB_RELEASE", "2023.2.Hs")
        clean_env.setenv("VIRPRED_TIMEOUT", "60")
        clean_env.setenv("VIRPRED_WORKERS", "3")

        config = PredictConfig.from_env("expr.csv")

        assert config.cache_dir == tmp_path
        assert config.msigdb_release == "2023.2.Hs"
        assert config.timeout == 60
        assert config.workers == 3

    def test_explicit_overrides_win(self, clean_env):
        clean_env.setenv("VIRPRED_WORKERS", "3")
        config = PredictConfig.from_env("expr.csv", workers=1, prefix="run")
        assert config.workers == 1
        assert config.prefix == "run"

    def test_none_overrides_are_ignored(self, clean_env):
        clean_env.setenv("VIRPRED_TIMEOUT", "90")
        config = PredictConfig.from_env("expr.csv", timeout=None, output_dir=None)
        assert config.timeout == 90
        assert config.output_dir == Path.cwd()

    def test_unknown_override(self, clean_env):
        with pytest.raises(TypeError, match="bogus"):
            PredictConfig.from_env("expr.csv", bogus=1)

    def test_non_integer_timeout(self, clean_env):
        clean_env.setenv("VIRPRED_TIMEOUT", "soon")
        with pytest.raises(ValueError, match="VIRPRED_TIMEOUT"):
            load_env_defaults()

    def test_reads_env_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("VIRPRED_WORKERS=2\nVIRPRED_MSIGDB_RELEASE=2025.1.Hs\n")

        values = load_env_defaults(env_file)

        assert values["workers"] == 2
        assert values["msigdb_release"] == "2025.1.Hs"
