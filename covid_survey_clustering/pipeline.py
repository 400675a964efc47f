"""
Main pipeline orchestrating the sequence clustering workflow.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional, Dict

import numpy as np
import pandas as pd

from .config import PipelineConfig
from .data_structures import (
    FeatureSchema, EncodedTable, SequenceCorpus, TransitionRates, Dendrogram,
)
from .distance import OptimalMatchingDistance
from .encoding import CategoricalEncoder
from .errors import SequenceClusteringError, ConfigurationError
from .hierarchical import HierarchicalClusterer
from .profiling import ClusterProfiler, evaluate_cluster_range
from .sequences import SequenceBuilder
from .substitution import SubstitutionCostMatrix
from .transitions import TransitionRateEstimator

logger = logging.getLogger(__name__)


@contextmanager
def _stage(name: str):
    """Tag errors raised inside a pipeline stage with the stage name."""
    try:
        yield
    except SequenceClusteringError as exc:
        exc.with_stage(name)
        raise


@dataclass(frozen=True)
class PipelineResult:
    """Artifacts of one run."""
    encoded: EncodedTable
    corpus: SequenceCorpus
    transition_rates: TransitionRates
    substitution: SubstitutionCostMatrix
    dissimilarity: np.ndarray
    dendrogram: Dendrogram
    labels: np.ndarray


class SequenceClusteringPipeline:
    """
    Complete pipeline for survey answer profiles.

    encode -> sequences -> transition rates -> substitution costs
    -> Optimal Matching dissimilarities -> Ward tree -> cut into k clusters
    """

    def __init__(self, schema: FeatureSchema, config: Optional[PipelineConfig] = None):
        """
        Initialize clustering pipeline.

        Args:
            schema: Feature declarations (categorical features form the allow-list)
            config: Run settings (default: indel cost 1, k = 2)
        """
        self.schema = schema
        self.config = config or PipelineConfig()

        self.encoder: Optional[CategoricalEncoder] = None
        self.clusterer: Optional[HierarchicalClusterer] = None
        self.original: Optional[pd.DataFrame] = None
        self.result: Optional[PipelineResult] = None

    def fit(self, df: pd.DataFrame) -> PipelineResult:
        """
        Run every stage on a survey table.

        Args:
            df: Subjects x raw answers

        Returns:
            PipelineResult holding the six output artifacts
        """
        config = self.config
        logger.info("Running pipeline on %d subjects with %s", len(df), config)

        with _stage("encode"):
            self.encoder = CategoricalEncoder(self.schema)
            encoded = self.encoder.fit_transform(df)
            if not 1 <= config.n_clusters <= encoded.n_subjects:
                raise ConfigurationError(
                    f"n_clusters must be between 1 and {encoded.n_subjects}, got {config.n_clusters}"
                )

        with _stage("sequences"):
            corpus = SequenceBuilder(state_space=config.state_space).build(encoded)

        with _stage("transitions"):
            rates = TransitionRateEstimator().fit(corpus)

        with _stage("substitution"):
            substitution = SubstitutionCostMatrix.from_transition_rates(
                rates, max_cost=config.max_cost
            )

        with _stage("distance"):
            dissimilarity = OptimalMatchingDistance(
                substitution, indel_cost=config.indel_cost, n_jobs=config.n_jobs
            ).pairwise(corpus)

        with _stage("clustering"):
            self.clusterer = HierarchicalClusterer(method=config.linkage)
            dendrogram = self.clusterer.fit(dissimilarity)
            labels = self.clusterer.cut(config.n_clusters)

        logger.info("Cluster sizes: %s", self.clusterer.get_cluster_sizes())
        self.original = df
        self.result = PipelineResult(
            encoded=encoded,
            corpus=corpus,
            transition_rates=rates,
            substitution=substitution,
            dissimilarity=dissimilarity,
            dendrogram=dendrogram,
            labels=labels,
        )
        return self.result

    def _require_fit(self) -> PipelineResult:
        if self.result is None:
            raise ValueError("Pipeline not fitted yet. Call fit() first.")
        return self.result

    def get_cluster_labels(self) -> np.ndarray:
        """Get cluster labels (1..k) for all subjects."""
        return self._require_fit().labels

    def get_profiler(self) -> ClusterProfiler:
        result = self._require_fit()
        return ClusterProfiler(
            result.labels, self.original,
            dissimilarity=result.dissimilarity, schema=self.schema,
        )

    def get_cluster_summary(self) -> pd.DataFrame:
        """Get summary statistics for each cluster."""
        return self.get_profiler().get_cluster_summary()

    def get_subject_assignments(self) -> pd.DataFrame:
        """Get subject-to-cluster assignments."""
        return self.get_profiler().get_subject_cluster_membership()

    def get_associations(self) -> pd.DataFrame:
        """Association tests between cluster membership and study variables."""
        return self.get_profiler().associate()

    def evaluate_cluster_range(self, k_values=range(2, 7)) -> pd.DataFrame:
        result = self._require_fit()
        return evaluate_cluster_range(result.dendrogram, result.dissimilarity, k_values)

    def get_artifact_tables(self) -> Dict[str, pd.DataFrame]:
        """Output artifacts as DataFrames, keyed by file stem."""
        result = self._require_fit()
        subjects = list(result.corpus.subject_ids)
        labels = result.corpus.state_labels
        return {
            'encoded': result.encoded.codes,
            'transition_rates': result.transition_rates.to_dataframe(labels),
            'substitution_costs': result.substitution.to_dataframe(labels),
            'dissimilarity': pd.DataFrame(result.dissimilarity, index=subjects, columns=subjects),
            'dendrogram': result.dendrogram.to_dataframe(),
            'assignments': self.get_subject_assignments(),
        }
