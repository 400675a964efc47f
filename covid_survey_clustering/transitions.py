"""
Empirical transition rates between adjacent sequence positions.
"""

import logging

import numpy as np

from .data_structures import SequenceCorpus, TransitionRates, readonly

logger = logging.getLogger(__name__)


class TransitionRateEstimator:
    """
    Count state transitions at adjacent positions (i -> i+1) over the whole
    corpus and normalize each source-state row to probabilities.

    Rows with no outgoing transition stay at zero and are reported as
    low-support states.
    """

    def __init__(self):
        self.counts_ = None
        self.rates_ = None

    @staticmethod
    def count(states: np.ndarray, n_states: int) -> np.ndarray:
        """Directional transition counts for a block of sequences."""
        counts = np.zeros((n_states, n_states), dtype=np.int64)
        if states.shape[1] < 2:
            return counts
        sources = states[:, :-1].ravel()
        targets = states[:, 1:].ravel()
        np.add.at(counts, (sources, targets), 1)
        return counts

    def fit(self, corpus: SequenceCorpus) -> TransitionRates:
        counts = self.count(corpus.states, corpus.n_states)

        row_sums = counts.sum(axis=1)
        rates = np.zeros(counts.shape, dtype=float)
        supported = row_sums > 0
        rates[supported] = counts[supported] / row_sums[supported, None]

        low_support = tuple(int(s) for s in np.flatnonzero(~supported))
        if low_support:
            logger.warning(
                "%d state(s) have no outgoing transitions: %s",
                len(low_support), [corpus.state_labels[s] for s in low_support],
            )

        self.counts_ = readonly(counts)
        self.rates_ = readonly(rates)
        return TransitionRates(
            counts=self.counts_,
            rates=self.rates_,
            alphabet=corpus.alphabet,
            low_support=low_support,
        )
