"""
Tests for Optimal Matching distances.
"""

import itertools

import numpy as np
import pytest

from conftest import make_corpus
from covid_survey_clustering.distance import OptimalMatchingDistance
from covid_survey_clustering.errors import (
    ConfigurationError, DataIntegrityError, DegenerateInputError,
)
from covid_survey_clustering.substitution import SubstitutionCostMatrix


def reference_om(a, b, costs, indel):
    """Scalar dynamic program, one cell at a time."""
    n, m = len(a), len(b)
    grid = [[0.0] * (m + 1) for _ in range(n + 1)]
    for i in range(1, n + 1):
        grid[i][0] = i * indel
    for j in range(1, m + 1):
        grid[0][j] = j * indel
    for i in range(1, n + 1):
        for j in range(1, m + 1):
            grid[i][j] = min(
                grid[i - 1][j - 1] + costs[a[i - 1]][b[j - 1]],
                grid[i - 1][j] + indel,
                grid[i][j - 1] + indel,
            )
    return grid[n][m]


def random_costs(n_states, rng):
    upper = rng.uniform(0.1, 2.0, size=(n_states, n_states))
    costs = np.triu(upper, k=1)
    return costs + costs.T


def test_three_subject_scenario():
    # A = 0, B = 1
    corpus = make_corpus([[0, 0], [0, 1], [1, 1]], alphabet=('A', 'B'))
    om = OptimalMatchingDistance(SubstitutionCostMatrix.from_constant(('A', 'B'), 1.0), indel_cost=1.0)
    D = om.pairwise(corpus)

    np.testing.assert_array_equal(D, [[0, 1, 2], [1, 0, 1], [2, 1, 0]])


def test_identical_sequences_have_zero_distance():
    om = OptimalMatchingDistance(SubstitutionCostMatrix.from_constant((0, 1, 2), 2.0))
    assert om.distance([0, 2, 1, 1], [0, 2, 1, 1]) == 0.0


def test_single_difference_costs_one_substitution():
    costs = np.array([
        [0.0, 0.7, 1.5],
        [0.7, 0.0, 1.2],
        [1.5, 1.2, 0.0],
    ])
    om = OptimalMatchingDistance(SubstitutionCostMatrix(costs, (0, 1, 2)), indel_cost=1.0)

    assert om.distance([0, 1, 2, 1], [0, 1, 0, 1]) == pytest.approx(1.5)
    assert om.distance([1, 1, 1], [1, 2, 1]) == pytest.approx(1.2)


def test_indels_used_when_cheaper_than_substitution():
    om = OptimalMatchingDistance(SubstitutionCostMatrix.from_constant((0, 1), 5.0), indel_cost=1.0)
    # delete the leading 0, append a 0
    assert om.distance([0, 1], [1, 0]) == 2.0


def test_matches_scalar_dynamic_program():
    rng = np.random.default_rng(7)
    costs = random_costs(4, rng)
    om = OptimalMatchingDistance(SubstitutionCostMatrix(costs, (0, 1, 2, 3)), indel_cost=0.8)
    for _ in range(20):
        a = rng.integers(0, 4, size=6)
        b = rng.integers(0, 4, size=6)
        assert om.distance(a, b) == pytest.approx(reference_om(a, b, costs, 0.8))


def test_pairwise_is_symmetric_with_zero_diagonal():
    rng = np.random.default_rng(0)
    corpus = make_corpus(rng.integers(0, 3, size=(15, 5)), alphabet=(0, 1, 2))
    om = OptimalMatchingDistance(SubstitutionCostMatrix(random_costs(3, rng), (0, 1, 2)))
    D = om.pairwise(corpus)

    assert D.shape == (15, 15)
    np.testing.assert_array_equal(D, D.T)
    np.testing.assert_array_equal(np.diag(D), 0.0)
    assert not D.flags.writeable
    assert om.condensed().shape == (15 * 14 // 2,)


def test_triangle_inequality():
    rng = np.random.default_rng(1)
    corpus = make_corpus(rng.integers(0, 3, size=(12, 5)), alphabet=(0, 1, 2))
    om = OptimalMatchingDistance(SubstitutionCostMatrix.from_constant((0, 1, 2), 1.5), indel_cost=1.0)
    D = om.pairwise(corpus)

    for i, j, k in itertools.permutations(range(12), 3):
        assert D[i, k] <= D[i, j] + D[j, k] + 1e-12


def test_duplicate_sequences_share_distances():
    corpus = make_corpus([[0, 1, 1], [1, 1, 0], [0, 1, 1], [1, 1, 0]])
    om = OptimalMatchingDistance(SubstitutionCostMatrix.from_constant((0, 1), 1.0))
    D = om.pairwise(corpus)

    assert D[0, 2] == 0.0
    assert D[1, 3] == 0.0
    assert D[0, 1] == D[2, 3] == D[0, 3] == 2.0


def test_result_independent_of_workers_and_chunking():
    rng = np.random.default_rng(3)
    corpus = make_corpus(rng.integers(0, 4, size=(20, 6)), alphabet=(0, 1, 2, 3))
    substitution = SubstitutionCostMatrix(random_costs(4, rng), (0, 1, 2, 3))

    serial = OptimalMatchingDistance(substitution, n_jobs=1).pairwise(corpus)
    parallel = OptimalMatchingDistance(substitution, n_jobs=2, chunk_size=7).pairwise(corpus)

    np.testing.assert_array_equal(serial, parallel)


def test_fewer_than_two_distinct_sequences_raises():
    corpus = make_corpus([[0, 1], [0, 1], [0, 1]])
    om = OptimalMatchingDistance(SubstitutionCostMatrix.from_constant((0, 1), 1.0))
    with pytest.raises(DegenerateInputError):
        om.pairwise(corpus)


def test_invalid_inputs_raise():
    substitution = SubstitutionCostMatrix.from_constant((0, 1), 1.0)
    with pytest.raises(ConfigurationError):
        OptimalMatchingDistance(substitution, indel_cost=-1.0)

    om = OptimalMatchingDistance(substitution)
    with pytest.raises(DataIntegrityError):
        om.distance([0, 1], [0, 1, 1])
    with pytest.raises(DataIntegrityError):
        om.distance([0, 5], [0, 1])
    with pytest.raises(DataIntegrityError):
        om.pairwise(make_corpus([[0, 1], [2, 1]]))
