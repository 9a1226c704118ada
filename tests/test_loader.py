"""Unit tests for the expression matrix loader."""

import pandas as pd
import pytest

from virpred.errors import InputFormatError
from virpred.loader import load_expression, validate_expression

from conftest import make_expression


class TestLoadExpression:

    def test_reads_csv(self, tmp_path):
        path = tmp_path / "expr.csv"
        make_expression().to_csv(path)

        data = load_expression(path)

        assert data.shape == (20, 5)
        assert list(data.columns) == ["S1", "S2", "S3", "S4", "S5"]
        assert data.index[0] == "G01"

    def test_falls_back_to_tsv(self, tmp_path):
        path = tmp_path / "expr.tsv"
        make_expression().to_csv(path, sep="\t")

        data = load_expression(path)

        assert data.shape == (20, 5)
        pd.testing.assert_frame_equal(data, make_expression(), check_names=False)

    def test_missing_file(self, tmp_path):
        with pytest.raises(InputFormatError, match="not found"):
            load_expression(tmp_path / "nope.csv")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")
        with pytest.raises(InputFormatError):
            load_expression(path)

    def test_header_only(self, tmp_path):
        path = tmp_path / "header.csv"
        path.write_text("gene,S1,S2\n")
        with pytest.raises(InputFormatError, match="empty"):
            load_expression(path)

    def test_single_column_has_no_samples(self, tmp_path):
        path = tmp_path / "genes.csv"
        path.write_text("gene\nG1\nG2\n")
        with pytest.raises(InputFormatError):
            load_expression(path)

    @pytest.mark.parametrize("sep", [",", "\t"])
    def test_duplicate_sample_headers_in_file(self, tmp_path, sep):
        path = tmp_path / "dups.txt"
        path.write_text(sep.join(["gene", "S1", "S2", "S1"]) + "\n" + sep.join(["G1", "1.0", "2.0", "3.0"]) + "\n")
        with pytest.raises(InputFormatError, match="duplicate sample identifiers: S1"):
            load_expression(path)

    def test_sample_labels_match_file_header(self, tmp_path):
        path = tmp_path / "expr.csv"
        path.write_text("gene,S1,S1x\nG1,1.0,2.0\nG2,3.0,4.0\n")
        assert list(load_expression(path).columns) == ["S1", "S1x"]

    def test_non_numeric_values(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("gene,S1,S2\nG1,1.0,abc\nG2,2.0,3.0\n")
        with pytest.raises(InputFormatError, match="non-numeric.*S2"):
            load_expression(path)


class TestValidateExpression:

    def test_missing_row_labels(self):
        data = pd.DataFrame({"S1": [1.0, 2.0]}, index=["G1", None])
        with pytest.raises(InputFormatError, match="row names"):
            validate_expression(data)

    def test_blank_row_labels(self):
        data = pd.DataFrame({"S1": [1.0, 2.0]}, index=["G1", "  "])
        with pytest.raises(InputFormatError, match="row names"):
            validate_expression(data)

    def test_duplicate_genes(self):
        data = pd.DataFrame({"S1": [1.0, 2.0]}, index=["G1", "G1"])
        with pytest.raises(InputFormatError, match="duplicate gene"):
            validate_expression(data)

    def test_duplicate_samples(self):
        data = pd.DataFrame([[1.0, 2.0]], index=["G1"], columns=["S1", "S1"])
        with pytest.raises(InputFormatError, match="duplicate sample"):
            validate_expression(data)

    def test_missing_values(self):
        data = pd.DataFrame({"S1": [1.0, None]}, index=["G1", "G2"])
        with pytest.raises(InputFormatError, match="missing values"):
            validate_expression(data)

    def test_labels_become_strings(self):
        data = pd.DataFrame({1: [1, 2]}, index=[100, 200])
        result = validate_expression(data)
        assert list(result.index) == ["100", "200"]
        assert list(result.columns) == ["1"]
        assert result.dtypes.iloc[0] == float

    def test_never_returns_missing_labels(self):
        result = validate_expression(make_expression())
        assert not result.index.isna().any()
        assert (result.index.str.len() > 0).all()
