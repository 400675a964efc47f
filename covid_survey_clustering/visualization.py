"""
Visualization utilities for answer-profile analysis.
Optional module for plotting and visual interpretation.
"""

import logging
import os
from typing import Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from scipy.cluster.hierarchy import dendrogram as scipy_dendrogram

from .data_structures import Dendrogram

logger = logging.getLogger(__name__)


def plot_cluster_sizes(cluster_labels: np.ndarray,
                       figsize: Tuple[int, int] = (10, 6),
                       title: str = "Profile Size Distribution") -> plt.Figure:
    """
    Plot bar chart of cluster sizes.

    Args:
        cluster_labels: Cluster assignments for each subject
        figsize: Figure size
        title: Plot title

    Returns:
        Matplotlib figure
    """
    unique, counts = np.unique(cluster_labels, return_counts=True)

    fig, ax = plt.subplots(figsize=figsize)
    bars = ax.bar(range(len(counts)), counts, color='#1f77b4')
    ax.set_xlabel('Profile')
    ax.set_ylabel('Number of Subjects')
    ax.set_title(title)
    ax.set_xticks(range(len(unique)))
    ax.set_xticklabels([f"Profile {c}" for c in unique], rotation=45)

    for bar in bars:
        height = bar.get_height()
        ax.text(bar.get_x() + bar.get_width() / 2., height,
                f'{int(height)}',
                ha='center', va='bottom')

    plt.tight_layout()
    return fig


def plot_dendrogram(tree: Dendrogram,
                    n_clusters: Optional[int] = None,
                    labels: Optional[list] = None,
                    figsize: Tuple[int, int] = (14, 6),
                    title: str = "Ward Dendrogram (Optimal Matching)") -> plt.Figure:
    """
    Plot the merge tree, optionally coloured at the height that yields ``n_clusters``.

    Args:
        tree: Fitted dendrogram
        n_clusters: Cut to highlight
        labels: Leaf labels (default: subject positions)
        figsize: Figure size
        title: Plot title

    Returns:
        Matplotlib figure
    """
    Z = tree.to_linkage_matrix()
    color_threshold = None
    if n_clusters is not None and 1 < n_clusters <= tree.n_leaves:
        heights = tree.heights
        # between the last kept merge and the first skipped one
        upper = heights[tree.n_leaves - n_clusters]
        lower = heights[tree.n_leaves - n_clusters - 1] if tree.n_leaves - n_clusters > 0 else 0.0
        color_threshold = (upper + lower) / 2

    fig, ax = plt.subplots(figsize=figsize)
    scipy_dendrogram(
        Z,
        ax=ax,
        labels=labels,
        color_threshold=color_threshold,
        no_labels=labels is None and tree.n_leaves > 60,
    )
    if color_threshold is not None:
        ax.axhline(y=color_threshold, color='r', linestyle='--', alpha=0.5)
    ax.set_ylabel('Merge height')
    ax.set_title(title)

    plt.tight_layout()
    return fig


def plot_dissimilarity_heatmap(dissimilarity: np.ndarray,
                               tree: Optional[Dendrogram] = None,
                               figsize: Tuple[int, int] = (10, 8),
                               title: str = "Optimal Matching Dissimilarities") -> plt.Figure:
    """
    Plot the subject x subject matrix, ordered by dendrogram leaves when a tree is given.
    """
    D = np.asarray(dissimilarity)
    if tree is not None:
        order = scipy_dendrogram(tree.to_linkage_matrix(), no_plot=True)['leaves']
        D = D[np.ix_(order, order)]

    fig, ax = plt.subplots(figsize=figsize)
    sns.heatmap(D, cmap='viridis', ax=ax, xticklabels=False, yticklabels=False,
                cbar_kws={'label': 'Dissimilarity'})
    ax.set_title(title)

    plt.tight_layout()
    return fig


def plot_transition_rates(rates: pd.DataFrame,
                          figsize: Tuple[int, int] = (10, 8),
                          title: str = "Transition Rates") -> plt.Figure:
    """
    Plot the state -> state transition-rate matrix.

    Args:
        rates: DataFrame from TransitionRates.to_dataframe()
        figsize: Figure size
        title: Plot title

    Returns:
        Matplotlib figure
    """
    fig, ax = plt.subplots(figsize=figsize)
    sns.heatmap(rates, cmap='YlOrRd', vmin=0, vmax=1, ax=ax,
                annot=rates.shape[0] <= 12, fmt='.2f',
                cbar_kws={'label': 'P(next state)'})
    ax.set_xlabel('Target state')
    ax.set_ylabel('Source state')
    ax.set_title(title)

    plt.tight_layout()
    return fig


def plot_cluster_range(cluster_range: pd.DataFrame,
                       figsize: Tuple[int, int] = (8, 5),
                       title: str = "Partition Quality by Number of Profiles") -> plt.Figure:
    """Plot silhouette against k, from evaluate_cluster_range()."""
    fig, ax = plt.subplots(figsize=figsize)
    ax.plot(cluster_range['k'], cluster_range['silhouette'], marker='o',
            linewidth=2, color='steelblue')
    ax.set_xlabel('Number of profiles (k)')
    ax.set_ylabel('Average silhouette')
    ax.set_title(title)
    ax.grid(alpha=0.3)

    plt.tight_layout()
    return fig


def save_all_plots(pipeline, output_dir: str = 'plots'):
    """
    Generate and save all available plots for a fitted pipeline.

    Args:
        pipeline: Fitted SequenceClusteringPipeline
        output_dir: Directory to save plots
    """
    os.makedirs(output_dir, exist_ok=True)
    result = pipeline.result
    if result is None:
        raise ValueError("Pipeline not fitted yet. Call fit() first.")

    def _save(fig, name):
        path = os.path.join(output_dir, name)
        fig.savefig(path, dpi=300, bbox_inches='tight')
        plt.close(fig)
        logger.info("Saved: %s", path)

    _save(plot_cluster_sizes(result.labels), 'cluster_sizes.png')
    _save(plot_dendrogram(result.dendrogram, n_clusters=pipeline.config.n_clusters),
          'dendrogram.png')
    _save(plot_dissimilarity_heatmap(result.dissimilarity, result.dendrogram),
          'dissimilarity_heatmap.png')
    _save(plot_transition_rates(result.transition_rates.to_dataframe(result.corpus.state_labels)),
          'transition_rates.png')

    cluster_range = pipeline.evaluate_cluster_range()
    if not cluster_range.empty:
        _save(plot_cluster_range(cluster_range), 'cluster_range.png')
