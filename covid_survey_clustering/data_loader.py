"""
Loading utilities for survey tables and feature schemas.
"""

import json
import logging
from typing import Optional

import pandas as pd
from pandas.errors import ParserError

from .data_structures import FeatureSchema
from .errors import ConfigurationError, DataIntegrityError

logger = logging.getLogger(__name__)


class SurveyDataLoader:
    """Load survey responses and their feature declarations."""

    @staticmethod
    def from_csv(path: str, id_col: Optional[str] = None, sep: str = ",",
                 na_values=("", "NA", "N/A", "NaN")) -> pd.DataFrame:
        """
        Load a survey table from CSV.

        Every column is read as text; types come from the feature schema,
        never from the file.

        Args:
            path: CSV file path
            id_col: Optional column used as subject index (kept out of the answers)
            sep: Field separator
            na_values: Strings treated as missing answers

        Returns:
            DataFrame of subjects x answers
        """
        try:
            df = pd.read_csv(path, sep=sep, dtype=str, keep_default_na=False,
                             na_values=list(na_values))
        except (OSError, ParserError) as exc:
            raise DataIntegrityError(f"Cannot read survey table {path}: {exc}") from exc
        return SurveyDataLoader.from_dataframe(df, id_col=id_col)

    @staticmethod
    def from_dataframe(df: pd.DataFrame, id_col: Optional[str] = None) -> pd.DataFrame:
        """Index a table by its subject id column, if any."""
        if id_col is not None:
            if id_col not in df.columns:
                raise ConfigurationError(f"Subject id column '{id_col}' not found")
            if df[id_col].duplicated().any():
                raise DataIntegrityError(f"Subject id column '{id_col}' has duplicate values")
            df = df.set_index(id_col)
        logger.info("Loaded %d subjects x %d variables", df.shape[0], df.shape[1])
        return df

    @staticmethod
    def coerce_numeric(df: pd.DataFrame, schema: FeatureSchema) -> pd.DataFrame:
        """Convert the schema's numeric features to numbers (unparseable values become missing)."""
        df = df.copy()
        for name in schema.numeric_features:
            if name in df.columns:
                df[name] = pd.to_numeric(df[name], errors='coerce')
        return df


def load_schema(path: str) -> FeatureSchema:
    """Read a FeatureSchema from a JSON file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Cannot read schema file {path}: {exc}") from exc
    return FeatureSchema.from_dict(data)
