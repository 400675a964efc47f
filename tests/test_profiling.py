"""
Tests for cluster profiling and cluster-range evaluation.
"""

import numpy as np
import pandas as pd
import pytest
from scipy.spatial.distance import pdist, squareform

from covid_survey_clustering.hierarchical import HierarchicalClusterer
from covid_survey_clustering.profiling import ClusterProfiler, evaluate_cluster_range


def create_profile_data():
    labels = np.array([1] * 20 + [2] * 20)
    df = pd.DataFrame({
        'sport': ['yes'] * 18 + ['no'] * 2 + ['no'] * 17 + ['yes'] * 3,
        'age': list(range(20, 40)) + list(range(50, 70)),
        'anosmia': ['yes', 'no'] * 20,
        'comments': [None] * 40,
    }, index=[f'S{i:02d}' for i in range(40)])
    return labels, df


def test_associations():
    labels, df = create_profile_data()
    profiler = ClusterProfiler(labels, df)
    result = profiler.associate(['sport', 'age', 'anosmia'])

    assert list(result['variable']) == ['age', 'sport', 'anosmia']
    by_var = result.set_index('variable')
    assert by_var.loc['sport', 'test'] == 'chi2'
    assert by_var.loc['sport', 'p_value'] < 0.001
    assert 0.5 < by_var.loc['sport', 'effect_size'] <= 1.0
    assert by_var.loc['age', 'test'] == 'kruskal'
    assert by_var.loc['age', 'p_value'] < 0.001
    assert by_var.loc['anosmia', 'p_value'] > 0.5


def test_schema_decides_test_and_exclusions():
    from covid_survey_clustering.data_structures import FeatureSchema, FeatureSpec, FeatureKind

    labels, df = create_profile_data()
    schema = FeatureSchema(features=(
        FeatureSpec('age', FeatureKind.CATEGORICAL),
        FeatureSpec('comments', FeatureKind.EXCLUDED),
    ))
    result = ClusterProfiler(labels, df, schema=schema).associate()

    assert 'comments' not in set(result['variable'])
    assert result.set_index('variable').loc['age', 'test'] == 'chi2'


def test_all_missing_variable_is_not_tested():
    labels, df = create_profile_data()
    result = ClusterProfiler(labels, df).associate(['comments'])

    assert result.loc[0, 'n'] == 0
    assert pd.isna(result.loc[0, 'test'])
    assert np.isnan(result.loc[0, 'p_value'])


def test_unparseable_numeric_answers_are_left_out():
    from covid_survey_clustering.data_structures import FeatureSchema, FeatureSpec, FeatureKind

    labels, df = create_profile_data()
    df['age'] = df['age'].astype(str)
    df.loc['S00', 'age'] = 'unknown'
    schema = FeatureSchema(features=(FeatureSpec('age', FeatureKind.NUMERIC),))
    result = ClusterProfiler(labels, df, schema=schema).associate(['age'])

    assert result.loc[0, 'test'] == 'kruskal'
    assert result.loc[0, 'n'] == 39
    assert result.loc[0, 'p_value'] < 0.001


def test_cluster_summary_and_membership():
    labels, df = create_profile_data()
    D = squareform(pdist(np.asarray(df['age'], dtype=float)[:, None]))
    profiler = ClusterProfiler(labels, df, dissimilarity=D)

    summary = profiler.get_cluster_summary()
    assert list(summary['n_subjects']) == [20, 20]
    assert summary['share'].sum() == pytest.approx(1.0)
    # mean |i - j| over ordered pairs of 20 consecutive ages
    assert summary.loc[0, 'mean_within_dissimilarity'] == pytest.approx(7.0)

    membership = profiler.get_subject_cluster_membership()
    assert list(membership.columns) == ['subject_id', 'cluster_id']
    assert membership['subject_id'].iloc[-1] == 'S39'

    shares = profiler.crosstab('sport', normalize=True)
    assert shares.loc[1, 'yes'] == pytest.approx(0.9)


def test_label_count_must_match_subjects():
    _, df = create_profile_data()
    with pytest.raises(ValueError):
        ClusterProfiler(np.ones(3, dtype=int), df)


def test_evaluate_cluster_range():
    rng = np.random.default_rng(0)
    points = np.vstack([rng.normal(0, 0.3, size=(8, 2)), rng.normal(5, 0.3, size=(8, 2))])
    D = squareform(pdist(points))
    tree = HierarchicalClusterer().fit(D)

    result = evaluate_cluster_range(tree, D, k_values=[1, 2, 3, 16])
    assert list(result['k']) == [2, 3]
    best = result.set_index('k')['silhouette']
    assert best[2] > 0.8
    assert best[2] > best[3]
    assert (result['min_cluster_size'] >= 1).all()
