"""Tests for the virpred command line."""

import pytest
from click.testing import CliRunner

from virpred.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


def _args(scenario, reference, *extra):
    return [
        "-i", str(scenario.expression_path),
        "-o", str(scenario.output_dir),
        "--gene-sets", str(scenario.gmt_path),
        "--reference", str(reference),
        "--workers", "1",
        *extra,
    ]


class TestCli:

    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "--input" in result.output
        assert "Normalize" in result.output
        assert "virpred -i data.csv -f Counts -o ./results" in result.output
        assert "synthetic" in result.output

    def test_requires_input(self, runner):
        result = runner.invoke(cli, [])
        assert result.exit_code == 2
        assert "--input" in result.output

    def test_rejects_unknown_format(self, runner, scenario):
        result = runner.invoke(cli, _args(scenario, scenario.reference(), "-f", "TPM"))
        assert result.exit_code == 2

    def test_successful_run(self, runner, scenario):
        result = runner.invoke(cli, _args(scenario, scenario.reference(), "-p", "flu"))

        assert result.exit_code == 0, result.output
        assert "=== VirPred Analysis Parameters ===" in result.output
        assert "Data format: Normalize" in result.output
        assert "Analysis completed successfully!" in result.output
        assert "Input genes: 20" in result.output
        assert "Input samples: 5" in result.output
        assert "Features used: 10/10" in result.output

        reports = list(scenario.output_dir.glob("flu_*.csv"))
        assert len(reports) == 1
        assert f"Results saved to: {reports[0]}" in result.output
        assert reports[0].read_text().splitlines()[0] == "SampleID,Prediction,Probability"

    def test_partial_match_warns(self, runner, scenario, monkeypatch):
        monkeypatch.setattr("virpred.config.SIGMA_GRID", [0.1, 0.5])
        monkeypatch.setattr("virpred.config.C_GRID", [1.0])

        result = runner.invoke(cli, _args(scenario, scenario.reference(n_missing=1)))

        assert result.exit_code == 0, result.output
        assert "[WARNING] Only 9/10 features available" in result.output
        assert "GOBP_ABSENT_0" in result.output
        assert len(list(scenario.output_dir.glob("VirPred_results_*.csv"))) == 1

    def test_insufficient_features_exit_code(self, runner, scenario):
        result = runner.invoke(cli, _args(scenario, scenario.reference(n_missing=4)))

        assert result.exit_code == 1
        assert "Error (InsufficientFeaturesError)" in result.output
        assert "Analysis completed successfully!" not in result.output
        assert not scenario.output_dir.exists()

    def test_corrupt_model_exit_code(self, runner, scenario, tmp_path):
        model_path = tmp_path / "model.joblib"
        model_path.write_bytes(b"\x00garbage")

        result = runner.invoke(cli, _args(scenario, scenario.reference(), "--model", str(model_path)))

        assert result.exit_code == 1
        assert "Error (TrainingError)" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)

    def test_malformed_input(self, runner, scenario, tmp_path):
        bad = tmp_path / "bad.csv"
        bad.write_text("gene,S1,S2\nG1,1.0,oops\n")
        args = _args(scenario, scenario.reference())
        args[1] = str(bad)

        result = runner.invoke(cli, args)

        assert result.exit_code == 1
        assert "Error (InputFormatError)" in result.output
