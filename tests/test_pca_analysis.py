import numpy as np
import pandas as pd
import pytest

from credit_preprocessing import drop_incomplete_rows, numeric_matrix, transform
from pca_analysis import (
    compute_pca, variance_table, compare_pca_runs, plot_scree, plot_loadings
)


@pytest.fixture
def correlated_matrix():
    rng = np.random.default_rng(1)
    base = rng.normal(size=200)
    return pd.DataFrame({
        "A": base + rng.normal(scale=0.1, size=200),
        "B": 2 * base + rng.normal(scale=0.1, size=200),
        "C": rng.normal(size=200),
    }, index=[f"id{i}" for i in range(200)])


def test_explained_variance_sums_to_one_and_is_non_increasing(credit_dataset):
    matrix = transform(drop_incomplete_rows(credit_dataset), standardize=False)
    basis = compute_pca(matrix, label="log1p")

    ratio = basis.explained_variance_ratio.to_numpy()
    assert ratio.sum() == pytest.approx(1.0)
    assert np.all(np.diff(ratio) <= 1e-12)
    assert basis.cumulative_variance_ratio.iloc[-1] == pytest.approx(1.0)
    assert basis.n_components == 17


def test_shapes_and_identifiers(correlated_matrix):
    basis = compute_pca(correlated_matrix)

    assert basis.loadings.shape == (3, 3)
    assert list(basis.loadings.index) == ["A", "B", "C"]
    assert list(basis.scores.index) == list(correlated_matrix.index)
    assert list(basis.scores.columns) == ["PC1", "PC2", "PC3"]


def test_first_component_captures_shared_variance(correlated_matrix):
    basis = compute_pca(correlated_matrix)

    # A and B are nearly collinear: PC1 holds about two of three unit variances
    assert basis.explained_variance_ratio["PC1"] == pytest.approx(2 / 3, abs=0.05)
    assert basis.components_for(0.6) == 1
    assert basis.components_for(0.9) == 2
    assert basis.components_for(1.0) == 3
    loadings = basis.loadings["PC1"].abs()
    assert loadings["A"] > loadings["C"] and loadings["B"] > loadings["C"]


def test_rank_deficient_input_still_returns_result():
    matrix = pd.DataFrame({
        "X": [1.0, 2.0, 3.0, 4.0, 5.0],
        "X_COPY": [1.0, 2.0, 3.0, 4.0, 5.0],
        "Y": [5.0, 3.0, 4.0, 1.0, 2.0],
    })
    basis = compute_pca(matrix)

    assert basis.explained_variance_ratio.sum() == pytest.approx(1.0)
    assert basis.explained_variance_ratio["PC3"] == pytest.approx(0.0, abs=1e-10)


def test_raw_and_log_runs_compare_side_by_side(credit_dataset):
    dataset = drop_incomplete_rows(credit_dataset)
    raw = compute_pca(numeric_matrix(dataset), label="raw")
    logged = compute_pca(transform(dataset, standardize=False), label="log1p")

    comparison = compare_pca_runs(raw, logged)
    assert list(comparison.columns) == ["raw", "log1p"]
    assert len(comparison) == 17

    table = variance_table(raw)
    assert list(table.columns) == ["eigenvalue", "explained_variance_ratio",
                                   "cumulative_variance_ratio"]


def test_plots_are_written(correlated_matrix, tmp_path):
    basis = compute_pca(correlated_matrix, label="test")
    plot_scree([basis, basis], save_path=tmp_path / "scree.png")
    plot_loadings(basis, n_components=2, save_path=tmp_path / "loadings.png")
    assert (tmp_path / "scree.png").exists()
    assert (tmp_path / "loadings.png").exists()
