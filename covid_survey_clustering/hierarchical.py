"""
Ward agglomerative clustering on a precomputed dissimilarity matrix.
"""

import logging
from typing import Optional

import numpy as np

from .config import LINKAGE_METHODS
from .data_structures import Dendrogram, MergeNode, readonly
from .errors import ConfigurationError, DataIntegrityError, DegenerateInputError

logger = logging.getLogger(__name__)


def validate_dissimilarity(dissimilarity: np.ndarray, atol: float = 1e-9) -> np.ndarray:
    """Check that a dissimilarity matrix is square, finite, symmetric, non-negative, zero on the diagonal."""
    D = np.asarray(dissimilarity, dtype=float)
    if D.ndim != 2 or D.shape[0] != D.shape[1]:
        raise DataIntegrityError(f"Dissimilarity matrix must be square, got shape {D.shape}")
    if D.shape[0] < 2:
        raise DegenerateInputError(f"At least 2 subjects are required, got {D.shape[0]}")
    if not np.all(np.isfinite(D)):
        raise DataIntegrityError("Dissimilarity matrix contains NaN or infinite values")
    if np.any(D < 0):
        raise DataIntegrityError("Dissimilarity matrix contains negative values")
    if not np.allclose(D, D.T, rtol=0, atol=atol):
        raise DataIntegrityError("Dissimilarity matrix is not symmetric")
    if np.any(np.abs(np.diag(D)) > atol):
        raise DataIntegrityError("Dissimilarity matrix has a non-zero diagonal")
    return D


def cut_tree(dendrogram: Dendrogram, n_clusters: int) -> np.ndarray:
    """
    Assign every subject a cluster id in 1..n_clusters.

    Replays merges until exactly ``n_clusters`` groups remain; ids follow the
    order in which subjects first appear.
    """
    n = dendrogram.n_leaves
    if not 1 <= n_clusters <= n:
        raise ConfigurationError(f"n_clusters must be between 1 and {n}, got {n_clusters}")

    parent = list(range(2 * n - 1))
    for t, merge in enumerate(dendrogram.merges[: n - n_clusters]):
        parent[merge.left] = n + t
        parent[merge.right] = n + t

    def root(node):
        while parent[node] != node:
            node = parent[node]
        return node

    labels = np.empty(n, dtype=int)
    ids = {}
    for leaf in range(n):
        r = root(leaf)
        if r not in ids:
            ids[r] = len(ids) + 1
        labels[leaf] = ids[r]
    return readonly(labels)


class HierarchicalClusterer:
    """
    Agglomerative clustering with Ward's minimum-variance criterion.

    Cluster-to-cluster dissimilarities are maintained with the Lance-Williams
    update, so no coordinate space is needed:

        d(k, i+j) = ((n_i + n_k) d(k, i) + (n_j + n_k) d(k, j) - n_k d(i, j)) / (n_i + n_j + n_k)

    ``ward.D2`` applies the update to squared dissimilarities and reports the
    square root as merge height; ``ward.D`` applies it to the raw values.
    Ties are resolved in favour of the lowest (i, j) pair, where a cluster is
    indexed by the lowest subject it contains.
    """

    def __init__(self, method: str = "ward.D2", atol: float = 1e-9):
        if method not in LINKAGE_METHODS:
            raise ConfigurationError(f"Unknown linkage '{method}' (expected one of {LINKAGE_METHODS})")
        self.method = method
        self.atol = atol
        self.dendrogram_: Optional[Dendrogram] = None
        self.labels_: Optional[np.ndarray] = None

    def fit(self, dissimilarity: np.ndarray) -> Dendrogram:
        """
        Build the full merge tree (n_subjects - 1 merges).

        Args:
            dissimilarity: Symmetric subject x subject matrix

        Returns:
            Dendrogram
        """
        D = validate_dissimilarity(dissimilarity, self.atol)
        n = D.shape[0]
        squared = self.method == "ward.D2"

        W = D ** 2 if squared else D.copy()
        np.fill_diagonal(W, np.inf)
        upper = np.triu(np.ones((n, n), dtype=bool), k=1)
        active = np.ones(n, dtype=bool)
        sizes = np.ones(n, dtype=float)
        node_of = np.arange(n)
        merges = []

        for t in range(n - 1):
            candidates = np.where(upper, W, np.inf)
            i, j = divmod(int(np.argmin(candidates)), n)
            cost = W[i, j]

            others = np.flatnonzero(active)
            others = others[(others != i) & (others != j)]
            n_i, n_j, n_k = sizes[i], sizes[j], sizes[others]
            updated = (
                (n_i + n_k) * W[i, others]
                + (n_j + n_k) * W[j, others]
                - n_k * cost
            ) / (n_i + n_j + n_k)
            updated = np.maximum(updated, 0.0)
            W[i, others] = updated
            W[others, i] = updated
            W[j, :] = np.inf
            W[:, j] = np.inf
            active[j] = False

            left, right = sorted((int(node_of[i]), int(node_of[j])))
            sizes[i] = n_i + n_j
            node_of[i] = n + t
            height = float(np.sqrt(cost)) if squared else float(cost)
            merges.append(MergeNode(left=left, right=right, height=height, size=int(sizes[i])))

        self.dendrogram_ = Dendrogram(n_leaves=n, merges=tuple(merges))
        logger.info(
            "Built %s dendrogram over %d subjects (final height %.4f)",
            self.method, n, merges[-1].height,
        )
        return self.dendrogram_

    def cut(self, n_clusters: int = 2) -> np.ndarray:
        """Cut the fitted tree into ``n_clusters`` groups."""
        if self.dendrogram_ is None:
            raise ValueError("Clusterer not fitted. Call fit() first.")
        self.labels_ = cut_tree(self.dendrogram_, n_clusters)
        return self.labels_

    def fit_predict(self, dissimilarity: np.ndarray, n_clusters: int = 2) -> np.ndarray:
        """Fit the tree and cut it in one call."""
        n = np.asarray(dissimilarity).shape[0]
        if not 1 <= n_clusters <= n:
            raise ConfigurationError(f"n_clusters must be between 1 and {n}, got {n_clusters}")
        self.fit(dissimilarity)
        return self.cut(n_clusters)

    def get_cluster_sizes(self) -> dict:
        """Get the size of each cluster."""
        if self.labels_ is None:
            raise ValueError("Clusterer not cut yet. Call cut() first.")
        unique, counts = np.unique(self.labels_, return_counts=True)
        return {int(u): int(c) for u, c in zip(unique, counts)}
