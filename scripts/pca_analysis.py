"""
pca_analysis.py
-----------------------------------
Principal Component Analysis on centered-and-scaled numeric matrices.

Run twice per report: once on the raw measures and once on the log1p
measures, to show how the log transform spreads variance across components.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from report_utils import save_figure


@dataclass
class PrincipalComponentBasis:
    """Loadings, explained variance, and per-record scores of one PCA run."""
    label: str
    loadings: pd.DataFrame                    # features x components
    eigenvalues: pd.Series
    explained_variance_ratio: pd.Series
    cumulative_variance_ratio: pd.Series
    scores: pd.DataFrame                      # records x components

    @property
    def n_components(self) -> int:
        return len(self.explained_variance_ratio)

    def components_for(self, target: float = 0.8) -> int:
        """Smallest number of leading components reaching the target cumulative variance."""
        reached = self.cumulative_variance_ratio >= target - 1e-12
        if not reached.any():
            return self.n_components
        return int(np.argmax(reached.to_numpy())) + 1


def compute_pca(matrix: pd.DataFrame, label: str = "pca") -> PrincipalComponentBasis:
    """
    Fit PCA on the correlation structure of the matrix.

    Columns are centered and scaled before the decomposition, so this is the
    eigendecomposition of the correlation matrix. Components are ordered by
    descending explained variance.

    Args:
        matrix: Numeric DataFrame indexed by identifier
        label: Name for this run (used in logs and reports)

    Returns:
        PrincipalComponentBasis
    """
    print(f"\n🔄 Computing PCA [{label}] on {matrix.shape[0]} rows x {matrix.shape[1]} columns...")

    X_scaled = StandardScaler().fit_transform(matrix.to_numpy(dtype=float))
    n_components = min(X_scaled.shape)
    pca = PCA(n_components=n_components, svd_solver='full')
    scores = pca.fit_transform(X_scaled)

    names = [f"PC{i + 1}" for i in range(n_components)]
    ratio = pd.Series(pca.explained_variance_ratio_, index=names, name="explained_variance_ratio")
    basis = PrincipalComponentBasis(
        label=label,
        loadings=pd.DataFrame(pca.components_.T, index=matrix.columns, columns=names),
        eigenvalues=pd.Series(pca.explained_variance_, index=names, name="eigenvalue"),
        explained_variance_ratio=ratio,
        cumulative_variance_ratio=ratio.cumsum().rename("cumulative_variance_ratio"),
        scores=pd.DataFrame(scores, index=matrix.index, columns=names),
    )

    print(f"✅ PCA [{label}] complete")
    for name in names[:min(5, n_components)]:
        print(f"   {name}: {ratio[name] * 100:5.1f}% "
              f"(cumulative {basis.cumulative_variance_ratio[name] * 100:5.1f}%)")
    print(f"   Components for 80% variance: {basis.components_for(0.8)}")
    return basis


def variance_table(basis: PrincipalComponentBasis) -> pd.DataFrame:
    """Eigenvalue, marginal and cumulative variance fraction per component."""
    return pd.concat(
        [basis.eigenvalues, basis.explained_variance_ratio, basis.cumulative_variance_ratio],
        axis=1,
    )


def compare_pca_runs(*bases: PrincipalComponentBasis) -> pd.DataFrame:
    """Cumulative explained variance of several runs side by side."""
    return pd.concat(
        {basis.label: basis.cumulative_variance_ratio for basis in bases},
        axis=1,
    )


# -------------------------
# VISUALIZATIONS
# -------------------------
def plot_scree(bases, save_path=None):
    """
    Plot marginal (bars) and cumulative (line) explained variance per run.

    Args:
        bases: List of PrincipalComponentBasis
        save_path: Path to save plot (optional)
    """
    fig, axes = plt.subplots(1, len(bases), figsize=(7 * len(bases), 5), squeeze=False)
    for ax, basis in zip(axes[0], bases):
        x = np.arange(1, basis.n_components + 1)
        ax.bar(x, basis.explained_variance_ratio.values, color='steelblue', alpha=0.7,
               label='Marginal')
        ax.plot(x, basis.cumulative_variance_ratio.values, marker='o', color='coral',
                linewidth=2, label='Cumulative')
        ax.axhline(y=0.8, color='gray', linestyle='--', linewidth=1)
        ax.set_xticks(x)
        ax.set_ylim([0, 1.05])
        ax.set_xlabel('Principal Component', fontsize=12)
        ax.set_ylabel('Explained Variance Fraction', fontsize=12)
        ax.set_title(f'Scree Plot: {basis.label}', fontsize=13, fontweight='bold')
        ax.legend()
        ax.grid(alpha=0.3)
    plt.tight_layout()
    save_figure(save_path, "scree plot")


def plot_loadings(basis: PrincipalComponentBasis, n_components=3, save_path=None):
    """Heatmap of loadings for the leading components."""
    loadings = basis.loadings.iloc[:, :n_components]
    plt.figure(figsize=(2.5 * n_components + 4, max(6, len(loadings) * 0.4)))
    sns.heatmap(loadings, annot=True, fmt='.2f', cmap='RdYlBu_r', center=0,
                cbar_kws={'label': 'Loading'})
    plt.xlabel('Component', fontsize=12)
    plt.ylabel('Feature', fontsize=12)
    plt.title(f'PCA Loadings: {basis.label}', fontsize=14, fontweight='bold')
    plt.tight_layout()
    save_figure(save_path, "loadings heatmap")
