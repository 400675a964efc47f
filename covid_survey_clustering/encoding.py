"""
Categorical encoding of raw survey answers into integer codes.
"""

import logging
from typing import List, Dict, Optional

import pandas as pd

from .data_structures import FeatureSchema, EncodedTable
from .errors import ConfigurationError, DataIntegrityError, DegenerateInputError

logger = logging.getLogger(__name__)


def _ordered_levels(series: pd.Series, declared: Optional[tuple]) -> List:
    """Stable level order for one feature."""
    if declared:
        return list(declared)
    if isinstance(series.dtype, pd.CategoricalDtype) and series.dtype.ordered:
        return list(series.cat.categories)
    observed = list(pd.unique(series))
    try:
        return sorted(observed)
    except TypeError:
        # mixed value types
        return sorted(observed, key=str)


class CategoricalEncoder:
    """
    Map the allow-listed categorical features of a survey table to integer codes.

    Codes run from 1 to the number of levels of each feature. Features with
    missing answers are dropped; features not declared categorical are ignored.
    """

    def __init__(self, schema: FeatureSchema):
        """
        Initialize encoder.

        Args:
            schema: Feature declarations; its categorical features form the allow-list
        """
        self.schema = schema
        self.level_to_code: Dict[str, Dict[str, int]] = {}
        self.code_to_label: Dict[str, Dict[int, str]] = {}
        self.dropped: List[str] = []
        self.encoded: Optional[EncodedTable] = None

    def fit_transform(self, df: pd.DataFrame) -> EncodedTable:
        """
        Encode the survey table.

        Args:
            df: Subjects x raw answers

        Returns:
            EncodedTable restricted to the retained features, in allow-list order
        """
        allow_list = self.schema.categorical_features
        if not allow_list:
            raise ConfigurationError("Schema declares no categorical features")

        absent = [name for name in allow_list if name not in df.columns]
        if absent:
            raise ConfigurationError(f"Allow-listed features absent from the dataset: {absent}")

        self.level_to_code = {}
        self.code_to_label = {}
        self.dropped = []
        columns = {}

        for name in allow_list:
            series = df[name]
            if series.isna().any():
                logger.warning(
                    "Dropping feature %s: %d missing answer(s)", name, int(series.isna().sum())
                )
                self.dropped.append(name)
                continue

            levels = _ordered_levels(series, self.schema.get(name).categories)
            # answers are matched as text, so 1 and '1' are one level
            levels = list(dict.fromkeys(str(level) for level in levels))
            mapping = {level: code for code, level in enumerate(levels, start=1)}
            values = series.astype(str)
            unknown = sorted(set(values) - set(mapping))
            if unknown:
                raise DataIntegrityError(
                    f"Feature '{name}' has answers outside its declared categories: {unknown}"
                )

            self.level_to_code[name] = mapping
            self.code_to_label[name] = {code: label for label, code in mapping.items()}
            columns[name] = values.map(mapping).astype(int)

        if not columns:
            raise DegenerateInputError("No categorical feature survived encoding")

        codes = pd.DataFrame(columns, index=df.index)
        logger.info(
            "Encoded %d subjects x %d features (%d dropped)",
            len(codes), codes.shape[1], len(self.dropped),
        )
        self.encoded = EncodedTable(
            codes=codes,
            labels={name: dict(m) for name, m in self.code_to_label.items()},
            dropped=tuple(self.dropped),
        )
        return self.encoded

    def inverse_transform(self, codes: pd.DataFrame) -> pd.DataFrame:
        """Map integer codes back to answer labels."""
        if not self.code_to_label:
            raise ValueError("Encoder not fitted. Call fit_transform() first.")
        return pd.DataFrame(
            {name: codes[name].map(self.code_to_label[name]) for name in codes.columns},
            index=codes.index,
        )

    def get_n_levels(self) -> Dict[str, int]:
        """Number of levels per retained feature."""
        return {name: len(mapping) for name, mapping in self.level_to_code.items()}
