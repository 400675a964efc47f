"""
Optimal Matching dissimilarities between subject sequences.
"""

import logging
from typing import Sequence

import numpy as np
from joblib import Parallel, delayed
from scipy.spatial.distance import squareform

from .data_structures import SequenceCorpus, readonly
from .errors import ConfigurationError, DataIntegrityError, DegenerateInputError
from .substitution import SubstitutionCostMatrix

logger = logging.getLogger(__name__)


def align_batch(A: np.ndarray, B: np.ndarray, costs: np.ndarray, indel: float) -> np.ndarray:
    """
    Minimum alignment cost between rows ``A[p]`` and ``B[p]`` for every pair ``p``.

    The dynamic program runs over the (n+1) x (m+1) grid; each grid cell is a
    vector over the batch of pairs, so every pair follows the same recurrence:

        cell(i, 0) = i * indel
        cell(0, j) = j * indel
        cell(i, j) = min(cell(i-1, j-1) + cost(A[i], B[j]),
                         cell(i-1, j) + indel,
                         cell(i, j-1) + indel)

    Args:
        A: State indices, shape (batch, n)
        B: State indices, shape (batch, m)
        costs: Substitution cost matrix (n_states, n_states)
        indel: Insertion/deletion cost

    Returns:
        cell(n, m) for each pair, shape (batch,)
    """
    batch, n = A.shape
    m = B.shape[1]
    prev = np.empty((m + 1, batch), dtype=float)
    for j in range(m + 1):
        prev[j] = j * indel
    curr = np.empty_like(prev)

    for i in range(1, n + 1):
        curr[0] = i * indel
        sub = costs[A[:, i - 1][None, :], B.T]
        for j in range(1, m + 1):
            curr[j] = np.minimum(
                prev[j - 1] + sub[j - 1],
                np.minimum(prev[j] + indel, curr[j - 1] + indel),
            )
        prev, curr = curr, prev

    return prev[m].copy()


def _align_chunk(sequences: np.ndarray, rows: np.ndarray, cols: np.ndarray,
                 costs: np.ndarray, indel: float):
    return rows, cols, align_batch(sequences[rows], sequences[cols], costs, indel)


class OptimalMatchingDistance:
    """
    Pairwise Optimal Matching distances with transition-derived substitution
    costs and a constant indel cost.

    Each unordered pair of distinct sequences is aligned once. The upper
    triangle of pair indices is split into fixed-size contiguous chunks that
    workers process independently; every cell of the result is written once.
    """

    def __init__(self, substitution: SubstitutionCostMatrix, indel_cost: float = 1.0,
                 n_jobs: int = 1, chunk_size: int = 2048):
        """
        Initialize the distance engine.

        Args:
            substitution: Substitution cost model
            indel_cost: Cost of one insertion or deletion
            n_jobs: joblib workers for the pairwise computation (-1 = all cores)
            chunk_size: Number of pairs per work unit
        """
        if indel_cost < 0:
            raise ConfigurationError(f"indel_cost must be non-negative, got {indel_cost}")
        if chunk_size < 1:
            raise ConfigurationError(f"chunk_size must be >= 1, got {chunk_size}")
        self.substitution = substitution
        self.indel_cost = float(indel_cost)
        self.n_jobs = n_jobs
        self.chunk_size = chunk_size
        self.dissimilarity_ = None

    def _check_states(self, states: np.ndarray):
        if states.size and (states.min() < 0 or states.max() >= self.substitution.n_states):
            raise DataIntegrityError(
                f"Sequences use states outside the {self.substitution.n_states}-state alphabet"
            )

    def distance(self, seq_a: Sequence[int], seq_b: Sequence[int]) -> float:
        """Optimal Matching distance between two state-index sequences."""
        a = np.asarray(seq_a, dtype=np.int64)
        b = np.asarray(seq_b, dtype=np.int64)
        if a.ndim != 1 or b.ndim != 1:
            raise DataIntegrityError("Sequences must be one-dimensional")
        if len(a) != len(b):
            raise DataIntegrityError(
                f"Sequences must have equal length, got {len(a)} and {len(b)}"
            )
        self._check_states(a)
        self._check_states(b)
        return float(align_batch(a[None, :], b[None, :], self.substitution.costs, self.indel_cost)[0])

    def pairwise(self, corpus: SequenceCorpus) -> np.ndarray:
        """
        Compute the subject x subject dissimilarity matrix.

        Args:
            corpus: Sequences of all subjects

        Returns:
            Read-only symmetric matrix (n_subjects, n_subjects) with a zero diagonal
        """
        states = np.asarray(corpus.states)
        if states.ndim != 2:
            raise DataIntegrityError(f"Sequence matrix must be 2-D, got shape {states.shape}")
        if corpus.n_states != self.substitution.n_states:
            raise DataIntegrityError(
                f"Corpus has {corpus.n_states} states but the cost matrix covers "
                f"{self.substitution.n_states}"
            )
        self._check_states(states)

        distinct, inverse = corpus.unique()
        n_distinct = len(distinct)
        if n_distinct < 2:
            raise DegenerateInputError(
                f"At least 2 distinct sequences are required, got {n_distinct}"
            )

        rows, cols = np.triu_indices(n_distinct, k=1)
        n_chunks = max(1, int(np.ceil(len(rows) / self.chunk_size)))
        logger.info(
            "Aligning %d pairs of distinct sequences (%d subjects) in %d chunk(s), n_jobs=%s",
            len(rows), corpus.n_subjects, n_chunks, self.n_jobs,
        )

        results = Parallel(n_jobs=self.n_jobs)(
            delayed(_align_chunk)(distinct, r, c, self.substitution.costs, self.indel_cost)
            for r, c in zip(np.array_split(rows, n_chunks), np.array_split(cols, n_chunks))
        )

        unique_dist = np.zeros((n_distinct, n_distinct), dtype=float)
        for r, c, values in results:
            unique_dist[r, c] = values
            unique_dist[c, r] = values

        dissimilarity = unique_dist[np.ix_(inverse, inverse)]
        self.dissimilarity_ = readonly(dissimilarity)
        return self.dissimilarity_

    def condensed(self) -> np.ndarray:
        """Condensed (upper-triangle) form of the last computed matrix."""
        if self.dissimilarity_ is None:
            raise ValueError("No dissimilarities computed yet. Call pairwise() first.")
        return squareform(self.dissimilarity_, checks=False)
