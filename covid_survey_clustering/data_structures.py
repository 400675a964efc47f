"""
Data structures for survey sequences and clustering artifacts.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Tuple, Optional, Any
from enum import Enum

import numpy as np
import pandas as pd

from .errors import ConfigurationError


def readonly(array: np.ndarray) -> np.ndarray:
    """Return ``array`` with its write flag cleared."""
    array.flags.writeable = False
    return array


class FeatureKind(Enum):
    """How a survey feature takes part in the analysis."""
    CATEGORICAL = "categorical"
    NUMERIC = "numeric"
    EXCLUDED = "excluded"


@dataclass(frozen=True)
class FeatureSpec:
    """Declared type of a single survey feature."""
    name: str
    kind: FeatureKind
    categories: Optional[Tuple[str, ...]] = None

    def __str__(self):
        return f"{self.name}:{self.kind.value}"


@dataclass(frozen=True)
class FeatureSchema:
    """
    Ordered feature declarations fixed before encoding.

    The categorical features, in declaration order, form the allow-list used
    to build sequences.
    """
    features: Tuple[FeatureSpec, ...]

    def __post_init__(self):
        names = [spec.name for spec in self.features]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate features in schema: {duplicates}")

    @property
    def categorical_features(self) -> List[str]:
        return [s.name for s in self.features if s.kind == FeatureKind.CATEGORICAL]

    @property
    def numeric_features(self) -> List[str]:
        return [s.name for s in self.features if s.kind == FeatureKind.NUMERIC]

    def get(self, name: str) -> FeatureSpec:
        for spec in self.features:
            if spec.name == name:
                return spec
        raise ConfigurationError(f"Feature '{name}' is not declared in the schema")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeatureSchema":
        """
        Build a schema from a plain mapping.

        Accepts either ``{"features": [{"name": ..., "kind": ..., "categories": [...]}]}``
        or a flat ``{"feature_name": "categorical", ...}`` mapping.
        """
        if "features" in data and isinstance(data["features"], list):
            entries = data["features"]
        else:
            entries = [{"name": name, "kind": kind} for name, kind in data.items()]

        specs = []
        for entry in entries:
            try:
                kind = FeatureKind(str(entry["kind"]).lower())
            except (KeyError, ValueError):
                raise ConfigurationError(f"Invalid feature kind in schema entry: {entry}")
            categories = entry.get("categories")
            specs.append(FeatureSpec(
                name=str(entry["name"]),
                kind=kind,
                categories=tuple(str(c) for c in categories) if categories else None,
            ))
        return cls(features=tuple(specs))

    @classmethod
    def categorical(cls, names: List[str]) -> "FeatureSchema":
        """Schema declaring every listed feature as categorical."""
        return cls(features=tuple(FeatureSpec(n, FeatureKind.CATEGORICAL) for n in names))


@dataclass(frozen=True)
class EncodedTable:
    """Integer-coded survey answers for the retained features."""
    codes: pd.DataFrame
    labels: Dict[str, Dict[int, str]]
    dropped: Tuple[str, ...] = ()

    @property
    def features(self) -> List[str]:
        return list(self.codes.columns)

    @property
    def n_subjects(self) -> int:
        return len(self.codes)


@dataclass(frozen=True)
class SequenceCorpus:
    """
    One state sequence per subject, all of the same length.

    ``states`` holds indices into ``alphabet`` with shape (n_subjects, n_features).
    """
    states: np.ndarray
    alphabet: Tuple[Any, ...]
    state_labels: Tuple[str, ...]
    features: Tuple[str, ...]
    subject_ids: Tuple[Any, ...]

    @property
    def n_subjects(self) -> int:
        return self.states.shape[0]

    @property
    def length(self) -> int:
        return self.states.shape[1]

    @property
    def n_states(self) -> int:
        return len(self.alphabet)

    def unique(self) -> Tuple[np.ndarray, np.ndarray]:
        """Distinct sequences (in first-seen order) and the inverse index."""
        _, first, inverse = np.unique(
            self.states, axis=0, return_index=True, return_inverse=True
        )
        inverse = inverse.reshape(-1)
        order = np.argsort(first, kind="stable")
        rank = np.empty_like(order)
        rank[order] = np.arange(len(order))
        return self.states[np.sort(first)], rank[inverse]

    def n_distinct(self) -> int:
        return len(np.unique(self.states, axis=0))

    def to_dataframe(self) -> pd.DataFrame:
        """Sequences with state labels, one row per subject."""
        labels = np.asarray(self.state_labels, dtype=object)[self.states]
        return pd.DataFrame(labels, index=list(self.subject_ids), columns=list(self.features))


@dataclass(frozen=True)
class TransitionRates:
    """Directional adjacent-position transition counts and row-normalized rates."""
    counts: np.ndarray
    rates: np.ndarray
    alphabet: Tuple[Any, ...]
    low_support: Tuple[int, ...] = ()

    def to_dataframe(self, state_labels: Optional[Tuple[str, ...]] = None) -> pd.DataFrame:
        names = list(state_labels or self.alphabet)
        return pd.DataFrame(self.rates, index=[f"{n} ->" for n in names], columns=[f"-> {n}" for n in names])


@dataclass(frozen=True)
class MergeNode:
    """One agglomeration step: node ids ``left`` and ``right`` joined at ``height``."""
    left: int
    right: int
    height: float
    size: int


@dataclass(frozen=True)
class Dendrogram:
    """
    Merge tree stored as an arena of merge records.

    Leaves are subjects ``0..n_leaves-1``; merge ``t`` creates node ``n_leaves + t``.
    """
    n_leaves: int
    merges: Tuple[MergeNode, ...] = field(default_factory=tuple)

    @property
    def heights(self) -> np.ndarray:
        return np.array([m.height for m in self.merges], dtype=float)

    def to_linkage_matrix(self) -> np.ndarray:
        """Convert to a scipy-compatible linkage matrix."""
        Z = np.zeros((len(self.merges), 4), dtype=float)
        for t, merge in enumerate(self.merges):
            Z[t] = [merge.left, merge.right, merge.height, merge.size]
        return Z

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {"node": self.n_leaves + t, "left": m.left, "right": m.right,
                 "height": m.height, "size": m.size}
                for t, m in enumerate(self.merges)
            ],
            columns=["node", "left", "right", "height", "size"],
        )
