"""
Substitution costs derived from transition rates.
"""

import logging
from typing import Tuple, Any, Optional

import numpy as np
import pandas as pd

from .data_structures import TransitionRates, readonly
from .errors import ConfigurationError, DataIntegrityError

logger = logging.getLogger(__name__)


class SubstitutionCostMatrix:
    """
    Symmetric, non-negative state x state substitution costs with a zero diagonal.
    """

    def __init__(self, costs: np.ndarray, alphabet: Tuple[Any, ...], atol: float = 1e-12):
        costs = np.array(costs, dtype=float)
        if costs.ndim != 2 or costs.shape[0] != costs.shape[1]:
            raise DataIntegrityError(f"Substitution costs must be square, got shape {costs.shape}")
        if costs.shape[0] != len(alphabet):
            raise DataIntegrityError(
                f"Substitution costs cover {costs.shape[0]} states but the alphabet has {len(alphabet)}"
            )
        if not np.all(np.isfinite(costs)):
            raise DataIntegrityError("Substitution costs contain NaN or infinite values")
        if np.any(costs < 0):
            raise DataIntegrityError("Substitution costs must be non-negative")
        if not np.allclose(costs, costs.T, rtol=0, atol=atol):
            raise DataIntegrityError("Substitution costs must be symmetric")
        if np.any(np.diag(costs) != 0):
            raise DataIntegrityError("Substitution cost of a state with itself must be 0")

        self.costs = readonly(costs)
        self.alphabet = tuple(alphabet)

    @classmethod
    def from_transition_rates(cls, rates: TransitionRates,
                              max_cost: float = 2.0) -> "SubstitutionCostMatrix":
        """
        cost(a, b) = max_cost - P(a -> b) - P(b -> a), floored at 0; cost(a, a) = 0.

        Pairs involving a state without outgoing transitions get ``max_cost``.
        """
        if max_cost <= 0:
            raise ConfigurationError(f"max_cost must be positive, got {max_cost}")

        P = np.asarray(rates.rates, dtype=float)
        costs = np.clip(max_cost - P - P.T, 0.0, None)
        low = list(rates.low_support)
        if low:
            costs[low, :] = max_cost
            costs[:, low] = max_cost
        np.fill_diagonal(costs, 0.0)

        logger.info(
            "Derived substitution costs for %d states (%d low-support)",
            len(rates.alphabet), len(low),
        )
        return cls(costs, rates.alphabet)

    @classmethod
    def from_constant(cls, alphabet: Tuple[Any, ...], value: float = 2.0) -> "SubstitutionCostMatrix":
        """Same cost for every pair of distinct states."""
        n = len(alphabet)
        costs = np.full((n, n), float(value))
        np.fill_diagonal(costs, 0.0)
        return cls(costs, alphabet)

    @property
    def n_states(self) -> int:
        return len(self.alphabet)

    def cost(self, a: int, b: int) -> float:
        """Cost between two state indices."""
        return float(self.costs[a, b])

    def to_dataframe(self, state_labels: Optional[Tuple[str, ...]] = None) -> pd.DataFrame:
        names = list(state_labels or [str(s) for s in self.alphabet])
        return pd.DataFrame(self.costs, index=names, columns=names)
