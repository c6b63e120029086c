import numpy as np
import pandas as pd
import pytest

from credit_preprocessing import ID_COL, drop_incomplete_rows
from descriptive_stats import (
    compute_skewness, summarize_columns, correlation_matrix, describe_dataset,
    plot_correlation_heatmap, plot_skewness, plot_distributions
)


@pytest.fixture
def small_dataset():
    return pd.DataFrame({
        ID_COL: ["a", "b", "c", "d", "e"],
        "SYMMETRIC": [1.0, 2.0, 3.0, 4.0, 5.0],
        "RIGHT_TAIL": [1.0, 1.0, 2.0, 2.0, 50.0],
        "DOUBLED": [2.0, 4.0, 6.0, 8.0, 10.0],
    })


def test_summary_columns_and_values(small_dataset):
    summary = summarize_columns(small_dataset)

    assert list(summary.index) == ["SYMMETRIC", "RIGHT_TAIL", "DOUBLED"]
    for col in ["count", "mean", "median", "std", "skewness"]:
        assert col in summary.columns
    assert summary.loc["SYMMETRIC", "count"] == 5
    assert summary.loc["SYMMETRIC", "mean"] == pytest.approx(3.0)
    assert summary.loc["RIGHT_TAIL", "median"] == pytest.approx(2.0)
    assert summary.loc["SYMMETRIC", "std"] == pytest.approx(np.std([1, 2, 3, 4, 5], ddof=1))


def test_skewness_is_third_standardized_moment(small_dataset):
    x = small_dataset["RIGHT_TAIL"].to_numpy()
    d = x - x.mean()
    expected = (d ** 3).mean() / (d ** 2).mean() ** 1.5

    skewness = compute_skewness(small_dataset)
    assert skewness["RIGHT_TAIL"] == pytest.approx(expected)
    assert skewness["RIGHT_TAIL"] > 1.0
    assert skewness["SYMMETRIC"] == pytest.approx(0.0, abs=1e-12)


def test_correlation_matrix_is_pearson(small_dataset):
    corr = correlation_matrix(small_dataset)

    assert ID_COL not in corr.columns
    np.testing.assert_allclose(np.diag(corr), 1.0)
    np.testing.assert_allclose(corr.to_numpy(), corr.to_numpy().T)
    assert corr.loc["SYMMETRIC", "DOUBLED"] == pytest.approx(1.0)


def test_describe_dataset_flags_skewed_columns(small_dataset, capsys):
    result = describe_dataset(small_dataset)

    assert result['skewed_columns'] == ["RIGHT_TAIL"]
    assert set(result) == {'summary', 'correlation', 'skewness', 'skewed_columns'}
    assert "RIGHT_TAIL" in capsys.readouterr().out


def test_plots_are_written(credit_dataset, tmp_path):
    dataset = drop_incomplete_rows(credit_dataset)
    result = describe_dataset(dataset)

    plot_correlation_heatmap(result['correlation'], save_path=tmp_path / "corr.png")
    plot_skewness(result['skewness'], save_path=tmp_path / "skew.png")
    plot_distributions(dataset.set_index(ID_COL), save_path=tmp_path / "dist.png")

    for name in ["corr.png", "skew.png", "dist.png"]:
        assert (tmp_path / name).exists()
