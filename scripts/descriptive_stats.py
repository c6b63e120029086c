"""
descriptive_stats.py
-----------------------------------
Summary statistics, Pearson correlations, and skewness for the numeric
measures. Purely informational: results feed the report and motivate the
log transform applied before PCA and clustering.
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from scipy.stats import skew

from credit_preprocessing import numeric_columns
from report_utils import save_figure

# -------------------------
# CONFIG
# -------------------------
# |skewness| above this is flagged as heavily skewed
SKEW_THRESHOLD = 1.0


# -------------------------
# STATISTICS
# -------------------------
def compute_skewness(df: pd.DataFrame) -> pd.Series:
    """Third standardized moment of each numeric column."""
    cols = numeric_columns(df)
    values = {c: float(skew(df[c].dropna().to_numpy(dtype=float), bias=True)) for c in cols}
    return pd.Series(values, name="skewness")


def summarize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Per-column count, mean, median, standard deviation, and skewness.

    Returns:
        DataFrame with one row per numeric column
    """
    cols = numeric_columns(df)
    summary = pd.DataFrame({
        'count': df[cols].count(),
        'mean': df[cols].mean(),
        'median': df[cols].median(),
        'std': df[cols].std(ddof=1),
        'min': df[cols].min(),
        'max': df[cols].max(),
    })
    summary['skewness'] = compute_skewness(df)
    return summary


def correlation_matrix(df: pd.DataFrame) -> pd.DataFrame:
    """Full pairwise Pearson correlation matrix of the numeric columns."""
    return df[numeric_columns(df)].corr(method='pearson')


def describe_dataset(df: pd.DataFrame) -> dict:
    """
    Run the descriptive-stats stage.

    Returns:
        Dictionary with summary table, correlation matrix, skewness, and the
        columns flagged as heavily skewed
    """
    print("\n🔄 Computing descriptive statistics...")
    summary = summarize_columns(df)
    corr = correlation_matrix(df)
    skewness = summary['skewness']
    skewed = skewness[skewness.abs() > SKEW_THRESHOLD].sort_values(ascending=False)

    print(f"✅ Summarized {len(summary)} numeric columns over {len(df)} rows")
    print(f"\n📊 Heavily skewed columns (|skew| > {SKEW_THRESHOLD}): {len(skewed)}")
    for col, value in skewed.items():
        print(f"   {col}: {value:.2f}")

    # Strongest off-diagonal pairs
    upper = corr.where(np.triu(np.ones(corr.shape, dtype=bool), k=1))
    top_pairs = upper.stack().dropna().abs().sort_values(ascending=False).head(5)
    print("\n📊 Strongest correlations:")
    for (a, b), value in top_pairs.items():
        print(f"   {a} ~ {b}: {corr.loc[a, b]:.3f}")

    return {
        'summary': summary,
        'correlation': corr,
        'skewness': skewness,
        'skewed_columns': skewed.index.tolist(),
    }


# -------------------------
# VISUALIZATIONS
# -------------------------
def plot_correlation_heatmap(corr: pd.DataFrame, title="Correlation Matrix", save_path=None):
    """Plot Pearson correlation matrix as heatmap."""
    plt.figure(figsize=(max(8, len(corr) * 0.6), max(6, len(corr) * 0.5)))
    sns.heatmap(corr, annot=True, fmt='.2f', cmap='coolwarm', vmin=-1, vmax=1,
                annot_kws={'size': 7})
    plt.title(title, fontsize=14, fontweight='bold')
    plt.tight_layout()
    save_figure(save_path, "correlation heatmap")


def plot_skewness(skewness: pd.Series, save_path=None):
    """Bar plot of per-column skewness, with the skew threshold marked."""
    ordered = skewness.sort_values()
    colors = ['coral' if abs(v) > SKEW_THRESHOLD else 'steelblue' for v in ordered]

    plt.figure(figsize=(10, max(5, len(ordered) * 0.35)))
    plt.barh(range(len(ordered)), ordered.values, color=colors)
    plt.yticks(range(len(ordered)), ordered.index)
    plt.axvline(x=SKEW_THRESHOLD, color='red', linestyle='--', linewidth=1)
    plt.axvline(x=-SKEW_THRESHOLD, color='red', linestyle='--', linewidth=1)
    plt.xlabel('Skewness', fontsize=12)
    plt.title('Skewness by Column', fontsize=14, fontweight='bold')
    plt.grid(axis='x', alpha=0.3)
    plt.tight_layout()
    save_figure(save_path, "skewness plot")


def plot_distributions(matrix: pd.DataFrame, title="Distributions", bins=40, save_path=None):
    """Histogram grid, one panel per column."""
    cols = list(matrix.columns)
    n_cols = 4
    n_rows = int(np.ceil(len(cols) / n_cols))

    fig, axes = plt.subplots(n_rows, n_cols, figsize=(4 * n_cols, 2.8 * n_rows))
    axes = np.atleast_1d(axes).ravel()
    for ax, col in zip(axes, cols):
        ax.hist(matrix[col].dropna(), bins=bins, color='steelblue', alpha=0.8)
        ax.set_title(col, fontsize=9)
        ax.grid(alpha=0.3)
    for ax in axes[len(cols):]:
        ax.set_visible(False)

    plt.suptitle(title, fontsize=14, fontweight='bold', y=1.01)
    plt.tight_layout()
    save_figure(save_path, "distribution plot")
