"""
Run configuration for the sequence clustering pipeline.
"""

import json
from dataclasses import dataclass, asdict, fields
from typing import Dict, Any

from .errors import ConfigurationError

STATE_SPACES = ("shared", "feature_value")
LINKAGE_METHODS = ("ward.D2", "ward.D")


@dataclass(frozen=True)
class PipelineConfig:
    """
    Numeric and structural settings for one batch run.

    Args:
        indel_cost: Cost of inserting or deleting one state during alignment
        n_clusters: Number of profiles to cut the dendrogram into
        max_cost: Constant of the transition-rate cost formula (maximal substitution penalty)
        state_space: 'shared' (codes form one alphabet) or 'feature_value'
        linkage: 'ward.D2' (squared dissimilarities) or 'ward.D'
        n_jobs: Workers for the pairwise distance computation (-1 = all cores)
    """
    indel_cost: float = 1.0
    n_clusters: int = 2
    max_cost: float = 2.0
    state_space: str = "shared"
    linkage: str = "ward.D2"
    n_jobs: int = 1

    def __post_init__(self):
        self.validate()

    def validate(self):
        if self.indel_cost < 0:
            raise ConfigurationError(f"indel_cost must be non-negative, got {self.indel_cost}")
        if self.max_cost <= 0:
            raise ConfigurationError(f"max_cost must be positive, got {self.max_cost}")
        if self.n_clusters < 1:
            raise ConfigurationError(f"n_clusters must be >= 1, got {self.n_clusters}")
        if self.state_space not in STATE_SPACES:
            raise ConfigurationError(
                f"Unknown state_space '{self.state_space}' (expected one of {STATE_SPACES})"
            )
        if self.linkage not in LINKAGE_METHODS:
            raise ConfigurationError(
                f"Unknown linkage '{self.linkage}' (expected one of {LINKAGE_METHODS})"
            )
        if self.n_jobs == 0:
            raise ConfigurationError("n_jobs must be non-zero")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {unknown}")
        return cls(**data)

    @classmethod
    def from_json(cls, path: str) -> "PipelineConfig":
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Cannot read configuration file {path}: {exc}") from exc
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
