"""
================================================================================
SENSOR DATA CLEANING
================================================================================

Purpose: Turn the raw weight-lifting CSV tables into all-numeric predictor
         frames that the filtering and modeling stages can consume.

Steps:
  1. Drop the leading identifier/timestamp columns (first seven)
  2. Coerce nominal-at-rest predictor columns to numeric
     (spreadsheet artefacts such as '#DIV/0!' become missing)
  3. Replace every remaining missing value with zero

The same drop and coercion is applied to the testing table, using what was
learned from the training table, so both end up with identical predictors.

Note: zero-filling happens BEFORE variance/correlation filtering. Mostly-empty
summary columns therefore turn into near-constant zero columns and are later
removed by the near-zero-variance filter.
================================================================================
"""

import logging
from typing import List, Optional

import numpy as np
import pandas as pd

from pre_processing.constants import METADATA_COLUMN_COUNT, METADATA_COLUMNS, TARGET_COLUMN

logger = logging.getLogger(__name__)


def drop_metadata_columns(df: pd.DataFrame, n_columns: int = METADATA_COLUMN_COUNT) -> pd.DataFrame:
    """
    Remove the first `n_columns` columns by position.

    Args:
        df (pd.DataFrame): Raw table
        n_columns (int): Number of leading columns to drop

    Returns:
        pd.DataFrame: Table with `len(df.columns) - n_columns` columns
    """
    if n_columns < 0:
        raise ValueError(f"n_columns must be non-negative, got {n_columns}")
    if df.shape[1] < n_columns:
        raise ValueError(
            f"Cannot drop {n_columns} metadata columns from a table with {df.shape[1]} columns"
        )
    return df.iloc[:, n_columns:].copy()


def coerce_numeric(df: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
    """
    Convert non-numeric columns to numeric; values that do not parse become NaN.

    Args:
        df (pd.DataFrame): Table to convert
        columns (List[str]): Columns to coerce

    Returns:
        pd.DataFrame: Copy of `df` with every listed column numeric
    """
    out = df.copy()
    for col in columns:
        if pd.api.types.is_numeric_dtype(out[col]):
            continue

        before = out[col].notna().sum()
        out[col] = pd.to_numeric(out[col], errors='coerce')
        lost = int(before - out[col].notna().sum())
        if lost:
            logger.info(f"Column '{col}': {lost} value(s) did not parse as numeric and became missing")
    return out


def fill_missing(df: pd.DataFrame, columns: List[str], value: float = 0) -> pd.DataFrame:
    """Replace missing values in `columns` with `value`."""
    out = df.copy()
    out[columns] = out[columns].fillna(value)
    return out


class SensorDataCleaner:
    """
    Clean the training table and apply the identical transformation to new tables.

    Attributes:
        metadata_columns (List[str]): Names of the dropped leading columns
        predictor_columns (List[str]): Predictor names after the drop
        coerced_columns (List[str]): Predictors that were stored as text

    Methods:
        fit_transform: Clean the training table and remember its layout
        transform: Apply the fitted cleaning to another table (e.g. testing)
    """

    def __init__(self, target: str = TARGET_COLUMN,
                 n_metadata_columns: int = METADATA_COLUMN_COUNT,
                 fill_value: float = 0):
        self.target = target
        self.n_metadata_columns = n_metadata_columns
        self.fill_value = fill_value

        self.metadata_columns: Optional[List[str]] = None
        self.predictor_columns: Optional[List[str]] = None
        self.coerced_columns: Optional[List[str]] = None

    def fit_transform(self, data: pd.DataFrame) -> pd.DataFrame:
        """
        Clean the labeled training table.

        Args:
            data (pd.DataFrame): Raw training table including the label column

        Returns:
            pd.DataFrame: Numeric predictors without missing values, plus the label
        """
        if self.target not in data.columns:
            raise ValueError(f"Missing '{self.target}' column")
        if data[self.target].isna().any():
            raise ValueError(f"Label column '{self.target}' has {int(data[self.target].isna().sum())} missing values")

        self.metadata_columns = list(data.columns[:self.n_metadata_columns])
        if self.target in self.metadata_columns:
            raise ValueError(f"Label column '{self.target}' is among the leading metadata columns")

        expected = METADATA_COLUMNS[:self.n_metadata_columns]
        if self.metadata_columns != expected:
            logger.warning(
                f"Leading columns {self.metadata_columns} differ from the expected metadata "
                f"columns {expected}; dropping them by position"
            )

        df = drop_metadata_columns(data, self.n_metadata_columns)
        self.predictor_columns = [col for col in df.columns if col != self.target]
        self.coerced_columns = [
            col for col in self.predictor_columns
            if not pd.api.types.is_numeric_dtype(df[col])
        ]

        logger.info(
            f"Dropped {len(self.metadata_columns)} metadata columns; "
            f"{len(self.predictor_columns)} predictors remain, "
            f"{len(self.coerced_columns)} stored as text"
        )

        df = self._clean_predictors(df)
        df[self.target] = df[self.target].astype(str)
        return df

    def transform(self, data: pd.DataFrame) -> pd.DataFrame:
        """
        Apply the fitted cleaning to another table.

        The table must carry the same leading metadata columns and every
        predictor seen during fitting; any other columns (label, problem id)
        are passed through untouched.
        """
        if self.predictor_columns is None:
            raise ValueError("Must call fit_transform before transform")

        leading = list(data.columns[:self.n_metadata_columns])
        if leading != self.metadata_columns:
            raise ValueError(
                f"Metadata columns do not match the training table: {leading} != {self.metadata_columns}"
            )

        df = drop_metadata_columns(data, self.n_metadata_columns)
        missing = [col for col in self.predictor_columns if col not in df.columns]
        if missing:
            raise ValueError(f"Missing predictor columns: {missing}")

        return self._clean_predictors(df)

    def _clean_predictors(self, df: pd.DataFrame) -> pd.DataFrame:
        df = coerce_numeric(df, self.predictor_columns)
        n_missing = int(df[self.predictor_columns].isna().to_numpy().sum())
        if n_missing:
            total = df.shape[0] * len(self.predictor_columns)
            logger.info(
                f"Filling {n_missing:,} missing values ({n_missing / max(total, 1):.1%}) "
                f"with {self.fill_value}"
            )
        df = fill_missing(df, self.predictor_columns, self.fill_value)
        df[self.predictor_columns] = df[self.predictor_columns].astype(np.float64)
        return df
