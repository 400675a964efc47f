"""
Build one state sequence per subject from the coded survey table.
"""

import logging

import numpy as np

from .config import STATE_SPACES
from .data_structures import EncodedTable, SequenceCorpus, readonly
from .errors import ConfigurationError, DataIntegrityError

logger = logging.getLogger(__name__)


class SequenceBuilder:
    """
    Concatenate each subject's coded answers, in feature order, into a sequence.

    With ``state_space='shared'`` the codes themselves are the states, so code 2
    of one feature and code 2 of the next are the same symbol. With
    ``'feature_value'`` every (feature, code) pair is a distinct state.

    The default is ``'shared'``, not one state per feature-value pair: transition
    rates between adjacent features only inform the substitution costs when
    states recur across positions. Pass ``state_space='feature_value'`` (or set
    it in PipelineConfig) for per-feature alphabets.
    """

    def __init__(self, state_space: str = "shared"):
        if state_space not in STATE_SPACES:
            raise ConfigurationError(
                f"Unknown state_space '{state_space}' (expected one of {STATE_SPACES})"
            )
        self.state_space = state_space

    def build(self, encoded: EncodedTable) -> SequenceCorpus:
        codes = encoded.codes
        if codes.isna().any().any():
            missing = [c for c in codes.columns if codes[c].isna().any()]
            raise DataIntegrityError(f"Missing codes after encoding in features: {missing}")

        values = codes.to_numpy()
        if not np.issubdtype(values.dtype, np.integer):
            raise DataIntegrityError(f"Encoded table must hold integer codes, got {values.dtype}")
        features = tuple(codes.columns)

        if self.state_space == "shared":
            alphabet = tuple(int(c) for c in np.unique(values))
            states = np.searchsorted(np.asarray(alphabet), values)
            state_labels = tuple(str(c) for c in alphabet)
        else:
            alphabet = []
            state_labels = []
            offsets = {}
            for name in features:
                offsets[name] = len(alphabet)
                for code in sorted(encoded.labels[name]):
                    alphabet.append((name, code))
                    state_labels.append(f"{name}={encoded.labels[name][code]}")
            alphabet = tuple(alphabet)
            state_labels = tuple(state_labels)
            states = np.column_stack([
                offsets[name] + codes[name].to_numpy() - 1 for name in features
            ])

        states = readonly(np.ascontiguousarray(states, dtype=np.int64))
        if states.shape != (len(codes), len(features)):
            raise DataIntegrityError(
                f"Sequence matrix has shape {states.shape}, expected {(len(codes), len(features))}"
            )

        corpus = SequenceCorpus(
            states=states,
            alphabet=alphabet,
            state_labels=state_labels,
            features=features,
            subject_ids=tuple(codes.index),
        )
        logger.info(
            "Built %d sequences of length %d over %d states (%d distinct sequences)",
            corpus.n_subjects, corpus.length, corpus.n_states, corpus.n_distinct(),
        )
        return corpus
