import numpy as np
import pandas as pd
import pytest

from credit_preprocessing import (
    ID_COL, NUMERIC_COLUMNS, load_data, validate_schema, drop_incomplete_rows,
    numeric_matrix, log_transform, standardize_columns, transform
)
from segmentation_errors import DataFormatError, DegenerateColumnError


class TestLoadData:
    def test_loads_full_schema(self, credit_dataset, write_csv):
        df = load_data(write_csv(credit_dataset))
        assert df.shape == (120, 18)
        assert list(df.columns) == [ID_COL] + NUMERIC_COLUMNS

    def test_missing_identifier_raises(self, credit_dataset, write_csv):
        path = write_csv(credit_dataset.drop(columns=[ID_COL]))
        with pytest.raises(DataFormatError) as excinfo:
            load_data(path)
        assert excinfo.value.columns == [ID_COL]
        assert excinfo.value.stage == "load"

    def test_missing_numeric_column_raises(self, credit_dataset, write_csv):
        path = write_csv(credit_dataset.drop(columns=["TENURE", "PAYMENTS"]))
        with pytest.raises(DataFormatError) as excinfo:
            load_data(path)
        assert set(excinfo.value.columns) == {"TENURE", "PAYMENTS"}
        assert "TENURE" in str(excinfo.value)

    def test_non_numeric_values_raise(self, credit_dataset):
        df = credit_dataset.astype({"BALANCE": object})
        df.loc[0, "BALANCE"] = "n/a-ish"
        with pytest.raises(DataFormatError, match="BALANCE"):
            validate_schema(df)

    def test_duplicate_identifiers_raise(self, credit_dataset):
        df = credit_dataset.copy()
        df.loc[1, ID_COL] = df.loc[0, ID_COL]
        with pytest.raises(DataFormatError, match="Duplicate"):
            validate_schema(df)

    def test_blank_identifier_raises(self, credit_dataset, write_csv):
        df = credit_dataset.copy()
        df.loc[5, ID_COL] = np.nan
        with pytest.raises(DataFormatError, match="blank identifier") as excinfo:
            load_data(write_csv(df))
        assert excinfo.value.columns == [ID_COL]

    def test_extra_columns_are_ignored(self, credit_dataset, capsys):
        df = credit_dataset.assign(NOTES="x")
        valid = validate_schema(df)
        assert "NOTES" not in valid.columns
        assert "NOTES" in capsys.readouterr().out


class TestDropIncompleteRows:
    def test_row_retained_iff_complete(self, credit_dataset):
        cleaned = drop_incomplete_rows(credit_dataset)
        expected = credit_dataset[NUMERIC_COLUMNS].notna().all(axis=1)

        assert len(cleaned) <= len(credit_dataset)
        assert len(cleaned) == int(expected.sum()) == 117
        assert set(cleaned[ID_COL]) == set(credit_dataset.loc[expected, ID_COL])
        assert not cleaned[NUMERIC_COLUMNS].isna().any().any()

    def test_complete_dataset_unchanged(self, four_row_dataset):
        assert len(drop_incomplete_rows(four_row_dataset)) == 4


class TestTransform:
    def test_log1p_non_negative_and_zero_fixed(self, four_row_dataset):
        logged = log_transform(numeric_matrix(four_row_dataset))
        assert (logged >= 0).all().all()
        assert logged.loc["C1"].tolist() == [0.0, 0.0]
        assert logged.loc["C2", "BALANCE"] == pytest.approx(np.log(101.0))

    def test_log1p_undefined_below_minus_one(self):
        matrix = pd.DataFrame({"BALANCE": [1.0, -2.0]}, index=["a", "b"])
        with pytest.raises(DataFormatError) as excinfo:
            log_transform(matrix)
        assert excinfo.value.stage == "transform"

    def test_standardized_columns_have_zero_mean_unit_variance(self, credit_dataset):
        matrix = transform(drop_incomplete_rows(credit_dataset), standardize=True)
        np.testing.assert_allclose(matrix.mean().to_numpy(), 0.0, atol=1e-10)
        np.testing.assert_allclose(matrix.var(ddof=1).to_numpy(), 1.0, rtol=1e-10)

    def test_identifier_is_index_not_column(self, four_row_dataset):
        matrix = transform(four_row_dataset, standardize=False)
        assert ID_COL not in matrix.columns
        assert list(matrix.index) == ["C1", "C2", "C3", "C4"]
        assert matrix.shape == (4, 2)

    def test_constant_column_raises_degenerate_error_by_name(self, four_row_dataset):
        df = four_row_dataset.assign(TENURE=12.0)
        with pytest.raises(DegenerateColumnError) as excinfo:
            transform(df, standardize=True)
        assert excinfo.value.columns == ["TENURE"]
        assert "TENURE" in str(excinfo.value)
        assert excinfo.value.stage == "transform"

    def test_constant_column_ok_without_standardization(self, four_row_dataset):
        df = four_row_dataset.assign(TENURE=12.0)
        matrix = transform(df, standardize=False)
        assert "TENURE" in matrix.columns

    def test_drop_degenerate_excludes_column(self, four_row_dataset, capsys):
        df = four_row_dataset.assign(TENURE=12.0)
        matrix = transform(df, standardize=True, drop_degenerate=True)
        assert list(matrix.columns) == ["BALANCE", "PURCHASES"]
        assert "TENURE" in capsys.readouterr().out

    def test_standardize_does_not_mutate_input(self, four_row_dataset):
        matrix = numeric_matrix(four_row_dataset)
        before = matrix.copy()
        standardize_columns(matrix)
        pd.testing.assert_frame_equal(matrix, before)
