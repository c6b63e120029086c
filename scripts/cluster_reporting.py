"""
cluster_reporting.py
-----------------------------------
Joins cluster assignments back to the original (untransformed) records,
computes per-cluster aggregates, and renders the narrative report.
"""

from datetime import datetime
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from clustering_utils import NOISE_LABEL
from credit_preprocessing import ID_COL
from report_utils import save_figure

# -------------------------
# CONFIG
# -------------------------
BALANCE_COL = "BALANCE"
PURCHASES_COL = "PURCHASES"
UNDEFINED = "undefined"


# -------------------------
# JOIN & SUMMARY
# -------------------------
def join_assignment(dataset: pd.DataFrame, assignment: pd.Series) -> pd.DataFrame:
    """
    Inner-join a ClusterAssignment onto the original records by identifier.

    Records without an assignment (and assignments without a record) are
    dropped and counted, never propagated.

    Returns:
        Copy of the dataset restricted to assigned records, with a 'cluster' column
    """
    labels = assignment.rename_axis(ID_COL).rename('cluster').reset_index()
    joined = dataset.merge(labels, on=ID_COL, how='inner', validate='one_to_one')

    n_unassigned = len(dataset) - len(joined)
    n_orphaned = len(labels) - len(joined)
    if n_unassigned or n_orphaned:
        print(f"⚠️  Join [{assignment.name}]: dropped {n_unassigned} records without an assignment "
              f"and {n_orphaned} assignments without a record")
    else:
        print(f"✅ Join [{assignment.name}]: all {len(joined)} records assigned")
    return joined


def summarize_clusters(joined: pd.DataFrame, balance_col=BALANCE_COL,
                       purchases_col=PURCHASES_COL) -> pd.DataFrame:
    """
    Per-cluster size, mean balance, mean purchases, and purchases-to-balance ratio.

    A cluster whose mean balance is zero has an undefined ratio (NaN).
    """
    grouped = joined.groupby('cluster')
    summary = pd.DataFrame({
        'n_customers': grouped.size(),
        'mean_balance': grouped[balance_col].mean(),
        'mean_purchases': grouped[purchases_col].mean(),
    })
    summary['pct_customers'] = summary['n_customers'] / summary['n_customers'].sum() * 100
    summary['purchases_to_balance'] = (
        summary['mean_purchases'] / summary['mean_balance'].where(summary['mean_balance'] != 0)
    )
    return summary[['n_customers', 'pct_customers', 'mean_balance', 'mean_purchases',
                    'purchases_to_balance']]


def format_ratio(value) -> str:
    return UNDEFINED if pd.isna(value) else f"{value:.3f}"


def cluster_label(cluster) -> str:
    return "Unclassified" if cluster == NOISE_LABEL else f"Cluster {cluster}"


def print_cluster_summary(summary: pd.DataFrame, title: str) -> None:
    """Console table of a ClusterSummary."""
    print(f"\n📊 {title}:")
    for cluster, row in summary.iterrows():
        print(f"   {cluster_label(cluster)}: {int(row['n_customers'])} customers "
              f"({row['pct_customers']:.1f}%), mean balance {row['mean_balance']:,.2f}, "
              f"mean purchases {row['mean_purchases']:,.2f}, "
              f"ratio {format_ratio(row['purchases_to_balance'])}")


def compare_assignments(first: pd.Series, second: pd.Series) -> pd.DataFrame:
    """Cross-tabulate two assignments over their shared records."""
    shared = first.index.intersection(second.index)
    return pd.crosstab(first.loc[shared], second.loc[shared],
                       rownames=[first.name], colnames=[second.name])


def describe_centroid(centroid: pd.Series, n_features=3) -> str:
    """Phrase naming the most above- and below-average features of a standardized centroid."""
    ordered = centroid.sort_values()
    high = [c for c in ordered.index[::-1][:n_features] if ordered[c] > 0.25]
    low = [c for c in ordered.index[:n_features] if ordered[c] < -0.25]
    parts = []
    if high:
        parts.append("high " + ", ".join(high))
    if low:
        parts.append("low " + ", ".join(low))
    return "; ".join(parts) if parts else "close to average on every measure"


# -------------------------
# VISUALIZATIONS
# -------------------------
def plot_cluster_summary(summary: pd.DataFrame, title="Balance and Purchases by Cluster",
                         save_path=None):
    """Grouped bars of mean balance and mean purchases per cluster."""
    x = np.arange(len(summary))
    width = 0.4

    plt.figure(figsize=(max(8, len(summary) * 1.4), 6))
    plt.bar(x - width / 2, summary['mean_balance'], width, label='Mean balance',
            color='steelblue', alpha=0.8)
    plt.bar(x + width / 2, summary['mean_purchases'], width, label='Mean purchases',
            color='coral', alpha=0.8)
    for i, (_, row) in enumerate(summary.iterrows()):
        top = max(row['mean_balance'], row['mean_purchases'])
        plt.text(i, top * 1.02, f"n={int(row['n_customers'])}", ha='center', fontsize=9)
    plt.xticks(x, [cluster_label(c) for c in summary.index])
    plt.ylabel('Amount', fontsize=12)
    plt.title(title, fontsize=14, fontweight='bold')
    plt.legend()
    plt.grid(axis='y', alpha=0.3)
    plt.tight_layout()
    save_figure(save_path, "cluster summary plot")


# -------------------------
# REPORT
# -------------------------
def markdown_table(df: pd.DataFrame, float_fmt="{:.3f}", index=True) -> list:
    """Render a DataFrame as Markdown table lines; NaN prints as 'undefined'."""
    def fmt(v):
        if isinstance(v, (float, np.floating)):
            return UNDEFINED if np.isnan(v) else float_fmt.format(v)
        return str(v)

    cols = ([df.index.name or ""] if index else []) + [str(c) for c in df.columns]
    lines = ["| " + " | ".join(cols) + " |", "|" + "---|" * len(cols)]
    # itertuples keeps per-column dtypes, so counts stay integers
    for row in df.itertuples(index=True, name=None):
        idx, values = row[0], row[1:]
        cells = ([str(idx)] if index else []) + [fmt(v) for v in values]
        lines.append("| " + " | ".join(cells) + " |")
    return lines


def _figure_link(results: dict, key: str, caption: str) -> list:
    path = results.get('figures', {}).get(key)
    return [f"![{caption}]({Path(path).name})", ""] if path else []


def write_report(results: dict, output_path: Path) -> Path:
    """
    Write the narrative Markdown report for one pipeline run.

    Args:
        results: Dictionary returned by cluster_analysis.run_pipeline()
        output_path: Markdown file to write (figures are linked relative to it)

    Returns:
        Path of the written report
    """
    lines = []
    lines.append("# Credit Card Customer Segmentation")
    lines.append("")
    lines.append(f"Analysis Date: {datetime.now().strftime('%Y-%m-%d %H:%M')}")
    lines.append(f"Random Seed: {results['seed']}")
    lines.append("")

    # Data
    lines.append("## Data")
    lines.append("")
    lines.append(f"- Records loaded: {results['n_raw']:,}")
    lines.append(f"- Records with a missing measure (dropped once, upfront): "
                 f"{results['n_raw'] - results['n_clean']:,}")
    lines.append(f"- Records analyzed: {results['n_clean']:,}")
    lines.append("")

    # Descriptive statistics
    desc = results['descriptive']
    lines.append("## Descriptive Statistics")
    lines.append("")
    lines.extend(markdown_table(desc['summary'], float_fmt="{:,.2f}"))
    lines.append("")
    if desc['skewed_columns']:
        lines.append(f"{len(desc['skewed_columns'])} of {len(desc['summary'])} measures are heavily "
                     f"right-skewed ({', '.join(desc['skewed_columns'])}). Every measure is therefore "
                     f"log1p-transformed and standardized before distance-based analysis.")
        lines.append("")
    lines.extend(_figure_link(results, 'skewness', 'Skewness'))
    lines.extend(_figure_link(results, 'correlation', 'Correlation matrix'))
    lines.extend(_figure_link(results, 'distributions_log', 'Log-transformed distributions'))

    # PCA
    pca_raw, pca_log = results['pca']['raw'], results['pca']['log']
    lines.append("## Principal Component Analysis")
    lines.append("")
    lines.append(f"On the raw measures, {pca_raw.components_for(0.8)} components are needed to explain "
                 f"80% of the variance (PC1 alone: {pca_raw.explained_variance_ratio.iloc[0] * 100:.1f}%). "
                 f"After the log transform, {pca_log.components_for(0.8)} components are needed "
                 f"(PC1 alone: {pca_log.explained_variance_ratio.iloc[0] * 100:.1f}%).")
    lines.append("")
    lines.extend(markdown_table(results['pca']['comparison']))
    lines.append("")
    lines.extend(_figure_link(results, 'scree', 'Scree plots'))
    lines.extend(_figure_link(results, 'loadings_log', 'Loadings (log)'))

    # Hierarchical clustering
    lines.append("## Hierarchical Clustering (Ward)")
    lines.append("")
    lines.append("Group counts at several cut heights of the dendrogram inform the choice of k "
                 "for k-means; k is not selected automatically.")
    lines.append("")
    lines.extend(markdown_table(results['cut_table'], float_fmt="{:.2f}", index=False))
    lines.append("")
    lines.extend(_figure_link(results, 'dendrogram', 'Dendrogram'))

    # K-means
    lines.append("## K-Means Segments")
    lines.append("")
    for k, run in results['kmeans'].items():
        evaluation = run['evaluation']
        lines.append(f"### k = {k}")
        lines.append("")
        lines.append(f"Silhouette {evaluation['silhouette_avg']:.3f}, "
                     f"Calinski-Harabasz {evaluation['calinski_harabasz']:.1f}, "
                     f"Davies-Bouldin {evaluation['davies_bouldin']:.3f}, "
                     f"WCSS {evaluation['wcss']:.1f}.")
        lines.append("")
        for cluster, row in run['summary'].iterrows():
            lines.append(f"- **{cluster_label(cluster)}** ({int(row['n_customers']):,} customers, "
                         f"{row['pct_customers']:.1f}%): mean balance {row['mean_balance']:,.2f}, "
                         f"mean purchases {row['mean_purchases']:,.2f}, purchases/balance "
                         f"{format_ratio(row['purchases_to_balance'])}; "
                         f"{describe_centroid(run['centroids'].loc[cluster])}.")
        lines.append("")
        lines.extend(_figure_link(results, f'kmeans_k{k}_2d', f'k={k} on PC1/PC2'))
        lines.extend(_figure_link(results, f'kmeans_k{k}_3d', f'k={k} on PC1/PC2/PC3'))

    # Density clustering
    density = results['density']
    summary = density['summary']
    n_noise = int(summary.loc[NOISE_LABEL, 'n_customers']) if NOISE_LABEL in summary.index else 0
    lines.append("## Density-Based Clustering (HDBSCAN)")
    lines.append("")
    lines.append(f"HDBSCAN found {density['evaluation']['n_clusters']} clusters and left "
                 f"{n_noise:,} records ({n_noise / results['n_clean'] * 100:.1f}%) unclassified. "
                 f"Cluster density in this data is uneven, so density-based methods produce a few "
                 f"small clusters and classify most records as noise.")
    lines.append("")
    lines.extend(markdown_table(summary, float_fmt="{:,.2f}"))
    lines.append("")
    lines.extend(_figure_link(results, 'hdbscan_2d', 'HDBSCAN on PC1/PC2'))

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    print(f"✅ Saved report to: {output_path}")
    return output_path
