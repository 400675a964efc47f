import numpy as np
import pandas as pd
import pytest

from covid_survey_clustering.data_structures import (
    FeatureSchema, FeatureSpec, FeatureKind, SequenceCorpus,
)

LEVELS = ('a', 'b', 'c')


def create_sample_data():
    """Two well-separated groups of 12 subjects each."""
    rows = []
    for i in range(24):
        first = i < 12
        main, alt = ('a', 'b') if first else ('c', 'b')
        rows.append({
            'subject_id': f'S{i:02d}',
            'age': 25 + i if first else 40 + i,
            'sport': 'yes' if first else 'no',
            'q1': main,
            'q2': main,
            'q3': [main, alt, main][i % 3],
            'q4': main,
            'q5': [main, alt][i % 2],
            'notes': 'free text' if i % 4 == 0 else None,
        })
    return pd.DataFrame(rows).set_index('subject_id')


def create_sample_schema():
    return FeatureSchema(features=(
        FeatureSpec('age', FeatureKind.NUMERIC),
        FeatureSpec('sport', FeatureKind.CATEGORICAL, ('no', 'yes')),
        FeatureSpec('q1', FeatureKind.CATEGORICAL, LEVELS),
        FeatureSpec('q2', FeatureKind.CATEGORICAL, LEVELS),
        FeatureSpec('q3', FeatureKind.CATEGORICAL, LEVELS),
        FeatureSpec('q4', FeatureKind.CATEGORICAL, LEVELS),
        FeatureSpec('q5', FeatureKind.CATEGORICAL, LEVELS),
        FeatureSpec('notes', FeatureKind.EXCLUDED),
    ))


def make_corpus(states, alphabet=None):
    """SequenceCorpus from a list of state-index rows."""
    states = np.asarray(states, dtype=np.int64)
    if alphabet is None:
        alphabet = tuple(range(int(states.max()) + 1))
    return SequenceCorpus(
        states=states,
        alphabet=tuple(alphabet),
        state_labels=tuple(str(s) for s in alphabet),
        features=tuple(f'f{i}' for i in range(states.shape[1])),
        subject_ids=tuple(range(states.shape[0])),
    )


@pytest.fixture
def sample_data():
    return create_sample_data()


@pytest.fixture
def sample_schema():
    return create_sample_schema()
