"""
clustering_utils.py
-----------------------------------
Clustering procedures, evaluation, and visualization.

Three independent procedures run on the transformed matrix:
- hierarchical agglomerative clustering (Ward linkage) cut at several heights
- k-means (Lloyd's algorithm, seeded random-row initialization)
- HDBSCAN density clustering, which may leave records unclassified

Each produces a ClusterAssignment: an int Series indexed by identifier with
labels 1..k, and NOISE_LABEL for unclassified records.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from scipy.cluster import hierarchy
from scipy.spatial.distance import pdist
from sklearn.cluster import HDBSCAN, KMeans
from sklearn.metrics import silhouette_score, silhouette_samples
from sklearn.metrics import calinski_harabasz_score, davies_bouldin_score

from report_utils import save_figure
from segmentation_errors import ClusteringConvergenceError, SegmentationError

# -------------------------
# CONFIG
# -------------------------
NOISE_LABEL = 0
KMEANS_MAX_ITER = 300
KMEANS_N_INIT = 10


# -------------------------
# HIERARCHICAL CLUSTERING
# -------------------------
@dataclass
class Dendrogram:
    """Merge tree of an agglomerative clustering run."""
    linkage_matrix: np.ndarray   # (n-1) x 4: left, right, height, size
    ids: pd.Index
    method: str = "ward"
    metric: str = "euclidean"

    @property
    def heights(self) -> np.ndarray:
        return self.linkage_matrix[:, 2]

    @property
    def max_height(self) -> float:
        return float(self.heights.max())


def hac(matrix: pd.DataFrame, linkage="ward", metric="euclidean") -> Dendrogram:
    """
    Agglomerate rows until one cluster remains.

    Builds the full pairwise distance matrix, then repeatedly merges the pair
    of clusters that minimizes the linkage criterion. Merge heights must be
    non-decreasing.

    Raises:
        ValueError: Ward linkage requested with a non-Euclidean metric
        SegmentationError: fewer than two rows, or non-monotonic merge heights
    """
    linkage, metric = linkage.lower(), metric.lower()
    if linkage == "ward" and metric != "euclidean":
        raise ValueError("Ward linkage requires the Euclidean metric")
    if len(matrix) < 2:
        raise SegmentationError("Hierarchical clustering needs at least two rows", stage="hac")

    print(f"\n🔄 Hierarchical clustering ({linkage}, {metric}) on {len(matrix)} rows...")
    distances = pdist(matrix.to_numpy(dtype=float), metric=metric)
    Z = hierarchy.linkage(distances, method=linkage)

    if not hierarchy.is_monotonic(Z):
        raise SegmentationError("Merge heights are not monotonic", stage="hac")

    dendrogram = Dendrogram(linkage_matrix=Z, ids=matrix.index.copy(), method=linkage, metric=metric)
    print(f"✅ Built dendrogram with {len(Z)} merges (max height {dendrogram.max_height:.2f})")
    return dendrogram


def cut(dendrogram: Dendrogram, height: float) -> pd.Series:
    """
    Flat clusters from applying every merge at or below the given height.

    Returns:
        ClusterAssignment with labels 1..k
    """
    labels = hierarchy.fcluster(dendrogram.linkage_matrix, t=height, criterion='distance')
    return pd.Series(labels.astype(int), index=dendrogram.ids, name=f"hac_h{height:g}")


def cut_heights(dendrogram: Dendrogram, fractions) -> list:
    """Absolute cut heights as fractions of the dendrogram's maximum merge height."""
    return [float(f * dendrogram.max_height) for f in fractions]


def count_clusters_by_height(dendrogram: Dendrogram, heights) -> pd.DataFrame:
    """Number of groups (and their sizes) produced by each cut height."""
    rows = []
    for h in heights:
        sizes = cut(dendrogram, h).value_counts().sort_values(ascending=False)
        rows.append({
            'height': h,
            'n_clusters': len(sizes),
            'largest': int(sizes.iloc[0]),
            'smallest': int(sizes.iloc[-1]),
        })
    table = pd.DataFrame(rows)
    print("\n📊 Groups by cut height:")
    for _, row in table.iterrows():
        print(f"   h={row['height']:.2f}: {int(row['n_clusters'])} clusters")
    return table


# -------------------------
# K-MEANS
# -------------------------
def kmeans(matrix: pd.DataFrame, k: int, seed: int = 42,
           max_iter: int = KMEANS_MAX_ITER, n_init: int = KMEANS_N_INIT) -> pd.Series:
    """
    Lloyd's k-means with centers initialized from k distinct random rows.

    Deterministic for a fixed seed. The best of n_init seeded restarts (lowest
    within-cluster sum of squares) is kept.

    Raises:
        ValueError: k outside 1..n_rows
        ClusteringConvergenceError: assignments still changing after max_iter
    """
    if not 1 <= k <= len(matrix):
        raise ValueError(f"k must be between 1 and {len(matrix)}, got {k}")

    print(f"\n🔄 Performing K-means clustering with k={k} (seed={seed})...")
    # One spare iteration: a run that settles within max_iter stops at n_iter_ <= max_iter
    model = KMeans(n_clusters=k, init='random', n_init=n_init, max_iter=max_iter + 1,
                   tol=0.0, algorithm='lloyd', random_state=seed)
    labels = model.fit_predict(matrix.to_numpy(dtype=float))

    if model.n_iter_ > max_iter:
        raise ClusteringConvergenceError(k, max_iter)

    assignment = pd.Series(labels.astype(int) + 1, index=matrix.index, name=f"kmeans_k{k}")
    print(f"✅ Clustering complete after {model.n_iter_} iterations")
    print(f"   Cluster sizes: {assignment.value_counts().sort_index().to_dict()}")
    return assignment


# -------------------------
# DENSITY CLUSTERING
# -------------------------
def density_cluster(matrix: pd.DataFrame, min_points: int = 15, min_samples=None) -> pd.Series:
    """
    HDBSCAN: hierarchy of mutual-reachability clusters, flattened by an
    excess-of-mass (stability) cut.

    Records outside every stable cluster get NOISE_LABEL. On data with uneven
    cluster density most records end up unclassified.
    """
    print(f"\n🔄 Running HDBSCAN (min_points={min_points})...")
    model = HDBSCAN(min_cluster_size=min_points, min_samples=min_samples,
                    cluster_selection_method='eom')
    raw = model.fit_predict(matrix.to_numpy(dtype=float))

    labels = np.where(raw < 0, NOISE_LABEL, raw + 1).astype(int)
    assignment = pd.Series(labels, index=matrix.index, name=f"hdbscan_m{min_points}")

    n_noise = int((assignment == NOISE_LABEL).sum())
    n_clusters = assignment[assignment != NOISE_LABEL].nunique()
    print(f"✅ HDBSCAN found {n_clusters} clusters")
    print(f"   Unclassified: {n_noise} ({n_noise / len(assignment) * 100:.1f}%)")
    return assignment


# -------------------------
# CLUSTER EVALUATION
# -------------------------
def cluster_centroids(matrix: pd.DataFrame, assignment: pd.Series) -> pd.DataFrame:
    """Mean of each column per cluster (noise excluded)."""
    labels = assignment.reindex(matrix.index)
    mask = labels != NOISE_LABEL
    return matrix[mask].groupby(labels[mask].rename('cluster')).mean()


def evaluate_clusters(matrix: pd.DataFrame, assignment: pd.Series) -> dict:
    """
    Evaluate cluster quality using multiple metrics.

    Unclassified records are excluded. Scores that need at least two clusters
    (and fewer clusters than records) are NaN otherwise.

    Returns:
        Dictionary of evaluation metrics
    """
    labels = assignment.reindex(matrix.index)
    mask = (labels != NOISE_LABEL).to_numpy()
    X = matrix.to_numpy(dtype=float)[mask]
    y = labels.to_numpy()[mask]

    # Within-cluster sum of squares (cohesion)
    centroids = cluster_centroids(matrix, assignment)
    wcss = float(sum(
        ((X[y == c] - centroids.loc[c].to_numpy()) ** 2).sum() for c in centroids.index
    ))

    n_clusters = len(np.unique(y))
    metrics = {
        'n_clusters': n_clusters,
        'n_classified': int(mask.sum()),
        'wcss': wcss,
        'silhouette_avg': np.nan,
        'silhouette_by_cluster': {},
        'calinski_harabasz': np.nan,
        'davies_bouldin': np.nan,
        'cluster_sizes': pd.Series(y).value_counts().sort_index().to_dict(),
    }
    if 2 <= n_clusters < len(y):
        sample_silhouette_values = silhouette_samples(X, y)
        metrics['silhouette_avg'] = float(silhouette_score(X, y))
        metrics['silhouette_by_cluster'] = {
            int(c): float(sample_silhouette_values[y == c].mean()) for c in np.unique(y)
        }
        metrics['calinski_harabasz'] = float(calinski_harabasz_score(X, y))
        metrics['davies_bouldin'] = float(davies_bouldin_score(X, y))
    return metrics


# -------------------------
# VISUALIZATIONS
# -------------------------
def plot_dendrogram(dendrogram: Dendrogram, heights=(), truncate_p=40, save_path=None):
    """
    Plot the (truncated) dendrogram with horizontal lines at the cut heights.

    Args:
        dendrogram: Dendrogram from hac()
        heights: Cut heights to mark
        truncate_p: Number of leaf clusters shown
        save_path: Path to save plot (optional)
    """
    plt.figure(figsize=(15, 7))
    hierarchy.dendrogram(dendrogram.linkage_matrix, truncate_mode='lastp', p=truncate_p,
                         show_leaf_counts=True, no_labels=False, leaf_font_size=8)
    for h in heights:
        plt.axhline(y=h, color='red', linestyle='--', linewidth=1)
        plt.text(plt.xlim()[1], h, f' h={h:.1f}', va='center', fontsize=9, color='red')
    plt.xlabel('Records (cluster size)', fontsize=12)
    plt.ylabel('Merge Height', fontsize=12)
    plt.title(f'Hierarchical Clustering Dendrogram ({dendrogram.method.title()} linkage)',
              fontsize=14, fontweight='bold')
    plt.tight_layout()
    save_figure(save_path, "dendrogram")


def plot_clusters_2d(scores: pd.DataFrame, assignment: pd.Series, title="Clusters", save_path=None):
    """Scatter of records on PC1/PC2, colored by cluster."""
    df_plot = scores.iloc[:, :2].copy()
    df_plot['Cluster'] = assignment.reindex(scores.index).map(
        lambda c: 'Unclassified' if c == NOISE_LABEL else f'Cluster {c}'
    )

    plt.figure(figsize=(9, 7))
    sns.scatterplot(x=df_plot.columns[0], y=df_plot.columns[1], hue='Cluster', data=df_plot,
                    palette='Set2', s=15, alpha=0.7, linewidth=0,
                    hue_order=sorted(df_plot['Cluster'].unique()))
    plt.xlabel('Principal Component 1', fontsize=12)
    plt.ylabel('Principal Component 2', fontsize=12)
    plt.title(title, fontsize=14, fontweight='bold')
    plt.legend(bbox_to_anchor=(1.02, 1), loc='upper left')
    plt.tight_layout()
    save_figure(save_path, "2-D cluster projection")


def plot_clusters_3d(scores: pd.DataFrame, assignment: pd.Series, title="Clusters", save_path=None):
    """Scatter of records on PC1/PC2/PC3, colored by cluster."""
    if scores.shape[1] < 3:
        print(f"⚠️  Skipping 3-D projection: only {scores.shape[1]} components")
        return
    labels = assignment.reindex(scores.index)
    unique_clusters = sorted(labels.unique())
    colors = plt.cm.Set2(np.linspace(0, 1, max(len(unique_clusters), 2)))

    fig = plt.figure(figsize=(10, 8))
    ax = fig.add_subplot(111, projection='3d')
    for cluster, color in zip(unique_clusters, colors):
        pts = scores[labels == cluster]
        noise = cluster == NOISE_LABEL
        ax.scatter(pts.iloc[:, 0], pts.iloc[:, 1], pts.iloc[:, 2],
                   c=[color], s=8, alpha=0.3 if noise else 0.6, marker='x' if noise else 'o',
                   label='Unclassified' if noise else f'Cluster {cluster}')
    ax.set_xlabel('PC1')
    ax.set_ylabel('PC2')
    ax.set_zlabel('PC3')
    ax.set_title(title, fontweight='bold')
    ax.legend()
    save_figure(save_path, "3-D cluster projection")


def plot_cluster_centroids(centroids: pd.DataFrame, sizes=None, title='Segment Profiles',
                           save_path=None):
    """
    Heatmap of segment centroids: one column per segment, one row per account measure.

    Centroids come from the standardized log1p matrix, so 0 is the average
    account and each unit is one standard deviation.

    Args:
        centroids: Output of cluster_centroids()
        sizes: Optional mapping of cluster label to member count, shown under each label
        title: Plot title
        save_path: Path to save plot (optional)
    """
    sizes = sizes or {}
    profile = centroids.T
    profile.columns = [f'Cluster {c}\n(n={sizes[c]:,})' if c in sizes else f'Cluster {c}'
                       for c in centroids.index]

    plt.figure(figsize=(max(8, len(profile.columns) * 1.3), max(6, len(profile) * 0.45)))
    sns.heatmap(profile, annot=True, fmt='.2f', cmap='RdBu_r', center=0,
                cbar_kws={'label': 'Std. deviations from average (log1p scale)'})
    plt.xlabel('Segment', fontsize=12)
    plt.ylabel('Account measure', fontsize=12)
    plt.title(title, fontsize=14, fontweight='bold')
    plt.tight_layout()
    save_figure(save_path, "segment profile heatmap")


def plot_cluster_distributions(df, cluster_col, features, save_path=None):
    """
    Plot feature distributions by cluster.

    Args:
        df: DataFrame with cluster assignments
        cluster_col: Name of cluster column
        features: List of numeric feature names to plot
        save_path: Path to save plot (optional)
    """
    n_features = len(features)
    fig, axes = plt.subplots(n_features, 1, figsize=(10, n_features * 3))
    if n_features == 1:
        axes = [axes]

    for ax, feature in zip(axes, features):
        df.boxplot(column=feature, by=cluster_col, ax=ax, showfliers=False)
        ax.set_title(f'{feature} Distribution by Cluster', fontsize=11)
        ax.set_xlabel('Cluster', fontsize=10)
        ax.set_ylabel(feature, fontsize=10)
        ax.grid(alpha=0.3)

    plt.suptitle('Feature Distributions by Cluster', fontsize=14, fontweight='bold', y=1.02)
    plt.tight_layout()
    save_figure(save_path, "feature distributions plot")
