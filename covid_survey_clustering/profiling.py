"""
Cluster profiling for reporting.
Relates profile membership to the original study variables.
"""

import logging
from typing import List, Optional, Iterable

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.metrics import silhouette_score

from .data_structures import Dendrogram, FeatureSchema, FeatureKind
from .hierarchical import cut_tree

logger = logging.getLogger(__name__)


def evaluate_cluster_range(dendrogram: Dendrogram, dissimilarity: np.ndarray,
                           k_values: Iterable[int] = range(2, 7)) -> pd.DataFrame:
    """
    Partition quality for several cuts of the same tree.

    Args:
        dendrogram: Fitted merge tree
        dissimilarity: Matrix the tree was built from
        k_values: Cluster counts to evaluate

    Returns:
        DataFrame with k, silhouette, height of the last merge kept and smallest cluster size
    """
    D = np.asarray(dissimilarity, dtype=float)
    n = dendrogram.n_leaves
    heights = dendrogram.heights
    rows = []
    for k in k_values:
        if not 2 <= k <= n - 1:
            logger.debug("Skipping k=%d (valid range 2..%d)", k, n - 1)
            continue
        labels = cut_tree(dendrogram, k)
        rows.append({
            'k': int(k),
            'silhouette': float(silhouette_score(D, labels, metric='precomputed')),
            'last_merge_height': float(heights[n - k - 1]),
            'min_cluster_size': int(np.bincount(labels)[1:].min()),
        })
    return pd.DataFrame(rows, columns=['k', 'silhouette', 'last_merge_height', 'min_cluster_size'])


class ClusterProfiler:
    """
    Describe clusters with the study variables they were not built from.

    Consumes the cluster assignment, the original (pre-encoding) table and,
    optionally, the dissimilarity matrix. Nothing it receives is modified.
    """

    def __init__(self, labels: np.ndarray, original: pd.DataFrame,
                 dissimilarity: Optional[np.ndarray] = None,
                 schema: Optional[FeatureSchema] = None):
        """
        Initialize profiler.

        Args:
            labels: Cluster id (1..k) for each subject, in table row order
            original: Original survey table (subjects x variables)
            dissimilarity: Optional subject x subject matrix for cohesion statistics
            schema: Optional declarations deciding which test applies to each variable
        """
        labels = np.asarray(labels)
        if len(labels) != len(original):
            raise ValueError(
                f"{len(labels)} cluster labels for {len(original)} subjects"
            )
        self.labels = labels
        self.original = original
        self.dissimilarity = dissimilarity
        self.schema = schema

    def _kind(self, variable: str) -> FeatureKind:
        if self.schema is not None:
            declared = {spec.name: spec.kind for spec in self.schema.features}
            if variable in declared:
                return declared[variable]
        column = self.original[variable]
        if pd.api.types.is_numeric_dtype(column) and not pd.api.types.is_bool_dtype(column):
            return FeatureKind.NUMERIC
        return FeatureKind.CATEGORICAL

    def get_cluster_summary(self) -> pd.DataFrame:
        """
        Size, share and cohesion of each cluster.

        Returns:
            DataFrame with one row per cluster
        """
        summaries = []
        n = len(self.labels)
        for cluster_id in np.unique(self.labels):
            mask = self.labels == cluster_id
            n_subjects = int(mask.sum())
            row = {
                'cluster_id': int(cluster_id),
                'n_subjects': n_subjects,
                'share': n_subjects / n,
            }
            if self.dissimilarity is not None:
                block = np.asarray(self.dissimilarity)[np.ix_(mask, mask)]
                n_pairs = n_subjects * (n_subjects - 1)
                row['mean_within_dissimilarity'] = float(block.sum() / n_pairs) if n_pairs else 0.0
            summaries.append(row)
        return pd.DataFrame(summaries)

    def get_subject_cluster_membership(self) -> pd.DataFrame:
        """DataFrame mapping subject ids to cluster ids."""
        return pd.DataFrame({
            'subject_id': list(self.original.index),
            'cluster_id': self.labels,
        })

    def crosstab(self, variable: str, normalize: bool = False) -> pd.DataFrame:
        """Counts (or within-cluster shares) of each answer of ``variable`` per cluster."""
        return pd.crosstab(
            pd.Series(self.labels, index=self.original.index, name='cluster_id'),
            self.original[variable],
            normalize='index' if normalize else False,
        )

    def associate(self, variables: Optional[List[str]] = None) -> pd.DataFrame:
        """
        Association between cluster membership and each study variable.

        Categorical variables use a chi-square test of independence with
        Cramer's V; numeric variables use a Kruskal-Wallis test with epsilon
        squared. Subjects with a missing answer, or a non-numeric answer to a
        numeric variable, are left out of that test.

        Args:
            variables: Variables to test (default: every column of the original table)

        Returns:
            DataFrame with one row per variable, sorted by p-value
        """
        if variables is None:
            variables = [
                c for c in self.original.columns
                if self.schema is None or self._kind(c) != FeatureKind.EXCLUDED
            ]

        rows = []
        for variable in variables:
            kind = self._kind(variable)
            if kind == FeatureKind.EXCLUDED:
                continue
            column = self.original[variable]
            if kind == FeatureKind.NUMERIC:
                # unparseable answers count as missing
                column = pd.to_numeric(column, errors='coerce')
            present = column.notna().to_numpy()
            values = column[present]
            labels = self.labels[present]
            row = {'variable': variable, 'kind': kind.value, 'n': int(present.sum()),
                   'test': None, 'statistic': np.nan, 'dof': np.nan,
                   'p_value': np.nan, 'effect_size': np.nan}

            if row['n'] == 0:
                logger.debug("No answers recorded for %s", variable)
            elif kind == FeatureKind.NUMERIC:
                row['test'] = 'kruskal'
                groups = [values[labels == c].astype(float) for c in np.unique(labels)]
                groups = [g for g in groups if len(g) > 0]
                if len(groups) >= 2:
                    try:
                        h, p = stats.kruskal(*groups)
                    except ValueError as exc:
                        logger.debug("Kruskal-Wallis not computable for %s: %s", variable, exc)
                    else:
                        row.update(statistic=float(h), dof=len(groups) - 1, p_value=float(p),
                                   effect_size=float(h / (row['n'] - 1)) if row['n'] > 1 else np.nan)
            else:
                row['test'] = 'chi2'
                table = pd.crosstab(labels, values.to_numpy())
                if table.shape[0] >= 2 and table.shape[1] >= 2:
                    chi2, p, dof, _ = stats.chi2_contingency(table)
                    v = np.sqrt(chi2 / (table.to_numpy().sum() * (min(table.shape) - 1)))
                    row.update(statistic=float(chi2), dof=int(dof), p_value=float(p),
                               effect_size=float(v))
                else:
                    logger.debug("Chi-square not computable for %s: table shape %s",
                                 variable, table.shape)
            rows.append(row)

        result = pd.DataFrame(rows, columns=['variable', 'kind', 'n', 'test', 'statistic',
                                             'dof', 'p_value', 'effect_size'])
        return result.sort_values('p_value', na_position='last', kind='stable').reset_index(drop=True)
