"""
cluster_analysis.py
-----------------------------------
Main analysis script for the credit-card segmentation report:
"Which behavioral segments exist among credit-card accounts?"

Single linear run over a static CSV:
load & clean -> descriptive stats -> log1p/standardize -> PCA (raw vs log)
-> Ward hierarchical clustering -> k-means (k = 4, 6, 7) -> HDBSCAN
-> per-cluster summaries joined back to the original records -> report.
"""

import os
import sys
from pathlib import Path

import pandas as pd

# Add scripts directory to path for imports
scripts_dir = Path(__file__).resolve().parent
if str(scripts_dir) not in sys.path:
    sys.path.insert(0, str(scripts_dir))

from credit_preprocessing import (
    load_data, check_missing_values, drop_incomplete_rows, numeric_matrix,
    log_transform, transform
)
from descriptive_stats import (
    describe_dataset, plot_correlation_heatmap, plot_skewness, plot_distributions
)
from pca_analysis import (
    compute_pca, compare_pca_runs, variance_table, plot_scree, plot_loadings
)
from clustering_utils import (
    hac, cut, cut_heights, count_clusters_by_height, kmeans, density_cluster,
    evaluate_clusters, cluster_centroids, plot_dendrogram, plot_clusters_2d,
    plot_clusters_3d, plot_cluster_centroids, plot_cluster_distributions
)
from cluster_reporting import (
    join_assignment, summarize_clusters, print_cluster_summary,
    compare_assignments, plot_cluster_summary, write_report
)
from report_utils import get_base_dir, get_output_dir, pipeline_stage, TeeOutput

# -------------------------
# CONFIG
# -------------------------
BASE_DIR = get_base_dir()
DATA_PATH = Path(os.environ.get("CC_DATA_PATH", BASE_DIR / "data" / "CC GENERAL.csv"))
RANDOM_STATE = 42
KMEANS_K_VALUES = (4, 6, 7)
KMEANS_MAX_ITER = 300
HAC_CUT_FRACTIONS = (0.15, 0.25, 0.40, 0.60)  # of the maximum merge height
HDBSCAN_MIN_POINTS = 15
DROP_DEGENERATE_COLUMNS = False
PROFILE_FEATURES = ["BALANCE", "PURCHASES", "CASH_ADVANCE", "CREDIT_LIMIT", "PAYMENTS"]


# -------------------------
# FUNCTIONS
# -------------------------
def _closest_cut(cut_table: pd.DataFrame, k: int) -> float:
    """Cut height whose group count is nearest to k."""
    idx = (cut_table['n_clusters'] - k).abs().idxmin()
    return cut_table.loc[idx, 'height']


def run_pipeline(data_path: Path = DATA_PATH, output_dir: Path = None,
                 k_values=KMEANS_K_VALUES, hdbscan_min_points=HDBSCAN_MIN_POINTS,
                 cut_fractions=HAC_CUT_FRACTIONS, seed=RANDOM_STATE,
                 make_plots=True) -> dict:
    """
    Execute every stage once, in order.

    Each stage fully materializes its output before the next begins; any
    error is terminal and reported with the stage name.

    Returns:
        Dictionary of every intermediate value, consumed by the report
    """
    output_dir = Path(output_dir) if output_dir else get_output_dir()
    output_dir.mkdir(parents=True, exist_ok=True)
    figures = {}

    def figure_path(key):
        if not make_plots:
            return None
        figures[key] = output_dir / f"{key}.png"
        return figures[key]

    with pipeline_stage("load", "Loading and cleaning"):
        df_raw = load_data(data_path)
        check_missing_values(df_raw)
        dataset = drop_incomplete_rows(df_raw)

    with pipeline_stage("describe", "Descriptive statistics"):
        descriptive = describe_dataset(dataset)
        if make_plots:
            plot_correlation_heatmap(descriptive['correlation'],
                                     save_path=figure_path('correlation'))
            plot_skewness(descriptive['skewness'], save_path=figure_path('skewness'))
            plot_distributions(numeric_matrix(dataset), title='Raw Distributions',
                               save_path=figure_path('distributions_raw'))
            plot_distributions(log_transform(numeric_matrix(dataset)),
                               title='log1p Distributions',
                               save_path=figure_path('distributions_log'))

    with pipeline_stage("transform", "Log transform and standardization"):
        matrix_log = transform(dataset, standardize=False)
        matrix = transform(dataset, standardize=True, drop_degenerate=DROP_DEGENERATE_COLUMNS)

    with pipeline_stage("pca", "Principal component analysis"):
        pca_raw = compute_pca(numeric_matrix(dataset), label="raw")
        pca_log = compute_pca(matrix_log, label="log1p")
        comparison = compare_pca_runs(pca_raw, pca_log)
        if make_plots:
            plot_scree([pca_raw, pca_log], save_path=figure_path('scree'))
            plot_loadings(pca_log, save_path=figure_path('loadings_log'))
        # Projection used for every cluster chart
        projection = pca_log.scores

    with pipeline_stage("hac", "Hierarchical clustering"):
        dendrogram = hac(matrix, linkage="ward", metric="euclidean")
        heights = cut_heights(dendrogram, cut_fractions)
        cut_table = count_clusters_by_height(dendrogram, heights)
        hac_runs = {}
        for h in heights:
            assignment = cut(dendrogram, h)
            hac_runs[h] = {
                'assignment': assignment,
                'evaluation': evaluate_clusters(matrix, assignment),
                'summary': summarize_clusters(join_assignment(dataset, assignment)),
            }
        if make_plots:
            plot_dendrogram(dendrogram, heights, save_path=figure_path('dendrogram'))

    with pipeline_stage("kmeans", "K-means clustering"):
        kmeans_runs = {}
        for k in k_values:
            assignment = kmeans(matrix, k, seed=seed, max_iter=KMEANS_MAX_ITER)
            joined = join_assignment(dataset, assignment)
            summary = summarize_clusters(joined)
            print_cluster_summary(summary, f"k={k} segments")
            hac_assignment = hac_runs[_closest_cut(cut_table, k)]['assignment']
            kmeans_runs[k] = {
                'assignment': assignment,
                'evaluation': evaluate_clusters(matrix, assignment),
                'centroids': cluster_centroids(matrix, assignment),
                'summary': summary,
                'vs_hac': compare_assignments(assignment, hac_assignment),
            }
            if make_plots:
                title = f'Customer Segments (K-means, k={k})'
                plot_clusters_2d(projection, assignment, title=title,
                                 save_path=figure_path(f'kmeans_k{k}_2d'))
                plot_clusters_3d(projection, assignment, title=title,
                                 save_path=figure_path(f'kmeans_k{k}_3d'))
                plot_cluster_centroids(kmeans_runs[k]['centroids'],
                                       sizes=kmeans_runs[k]['evaluation']['cluster_sizes'],
                                       title=f'Segment Profiles (k={k})',
                                       save_path=figure_path(f'kmeans_k{k}_centroids'))
                plot_cluster_summary(summary, save_path=figure_path(f'kmeans_k{k}_summary'))
                features = [f for f in PROFILE_FEATURES if f in joined.columns]
                if features:
                    plot_cluster_distributions(joined, 'cluster', features,
                                               save_path=figure_path(f'kmeans_k{k}_distributions'))

    with pipeline_stage("density", "Density-based clustering"):
        assignment = density_cluster(matrix, min_points=hdbscan_min_points)
        summary = summarize_clusters(join_assignment(dataset, assignment))
        print_cluster_summary(summary, "HDBSCAN clusters")
        density = {
            'assignment': assignment,
            'evaluation': evaluate_clusters(matrix, assignment),
            'summary': summary,
        }
        if make_plots:
            plot_clusters_2d(projection, assignment, title='HDBSCAN Clusters',
                             save_path=figure_path('hdbscan_2d'))

    results = {
        'seed': seed,
        'n_raw': len(df_raw),
        'n_clean': len(dataset),
        'dataset': dataset,
        'descriptive': descriptive,
        'matrix': matrix,
        'pca': {'raw': pca_raw, 'log': pca_log, 'comparison': comparison},
        'dendrogram': dendrogram,
        'cut_table': cut_table,
        'hac': hac_runs,
        'kmeans': kmeans_runs,
        'density': density,
        'figures': figures,
    }

    with pipeline_stage("report", "Saving results"):
        save_results(results, output_dir)
        write_report(results, output_dir / "segmentation_report.md")

    return results


def save_results(results: dict, output_dir: Path) -> None:
    """Save every intermediate table to CSV."""
    desc = results['descriptive']
    desc['summary'].to_csv(output_dir / "descriptive_summary.csv")
    desc['correlation'].to_csv(output_dir / "correlation_matrix.csv")
    print(f"✅ Saved descriptive statistics to: {output_dir}")

    for name in ('raw', 'log'):
        basis = results['pca'][name]
        variance_table(basis).to_csv(output_dir / f"pca_{name}_variance.csv")
        basis.loadings.to_csv(output_dir / f"pca_{name}_loadings.csv")
    results['pca']['comparison'].to_csv(output_dir / "pca_cumulative_comparison.csv")
    print(f"✅ Saved PCA variance tables and loadings")

    results['cut_table'].to_csv(output_dir / "hac_cut_heights.csv", index=False)

    # One column per ClusterAssignment, side by side
    assignments = [run['assignment'] for run in results['hac'].values()]
    assignments += [run['assignment'] for run in results['kmeans'].values()]
    assignments.append(results['density']['assignment'])
    assignments_path = output_dir / "cluster_assignments.csv"
    pd.concat(assignments, axis=1).to_csv(assignments_path)
    print(f"✅ Saved cluster assignments to: {assignments_path}")

    eval_rows = []
    runs = [(run['assignment'].name, run) for run in results['hac'].values()]
    runs += [(run['assignment'].name, run) for run in results['kmeans'].values()]
    runs.append((results['density']['assignment'].name, results['density']))
    for name, run in runs:
        evaluation = run['evaluation']
        eval_rows.append({
            'assignment': name,
            'n_clusters': evaluation['n_clusters'],
            'n_classified': evaluation['n_classified'],
            'silhouette_avg': evaluation['silhouette_avg'],
            'calinski_harabasz': evaluation['calinski_harabasz'],
            'davies_bouldin': evaluation['davies_bouldin'],
            'wcss': evaluation['wcss'],
        })
        run['summary'].to_csv(output_dir / f"summary_{name}.csv")
    pd.DataFrame(eval_rows).to_csv(output_dir / "cluster_evaluation.csv", index=False)
    print(f"✅ Saved cluster evaluation metrics and summaries")

    for k, run in results['kmeans'].items():
        run['centroids'].to_csv(output_dir / f"centroids_kmeans_k{k}.csv")
        run['vs_hac'].to_csv(output_dir / f"crosstab_kmeans_k{k}_vs_hac.csv")


def main(data_path: Path = None):
    """Main segmentation analysis pipeline."""
    output_dir = get_output_dir()
    with TeeOutput(output_dir / "run_log.txt"):
        print("="*60)
        print("CLUSTER ANALYSIS: CREDIT CARD CUSTOMER SEGMENTS")
        print("="*60)
        run_pipeline(data_path or DATA_PATH, output_dir)

        print("\n" + "="*60)
        print("ANALYSIS COMPLETE")
        print("="*60)
        print(f"\nAll results saved to: {output_dir}")


if __name__ == "__main__":
    main(Path(sys.argv[1]) if len(sys.argv) > 1 else None)
