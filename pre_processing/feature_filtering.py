"""
================================================================================
REDUNDANT PREDICTOR REMOVAL
================================================================================

Purpose: Shrink the cleaned predictor set before model fitting.

FILTER 1 - Near-zero variance:
  freq_ratio     = count(most common value) / count(second most common value)
  percent_unique = 100 * distinct values / rows
  A column is dropped when it holds a single value, or when
  freq_ratio > freq_cut AND percent_unique <= unique_cut (default cutoffs 95/5 and 10).

FILTER 2 - Pairwise correlation:
  While some pair of remaining predictors has |corr| > cutoff (default 0.90),
  take the most correlated pair and drop the member whose mean absolute
  correlation with the other remaining predictors is larger.

The filters are fitted on the training predictors only; the resulting
predictor list is then applied to training, validation and test tables alike.
================================================================================
"""

import logging
from typing import List, Optional

import numpy as np
import pandas as pd

from pre_processing.constants import (
    CORRELATION_CUTOFF,
    FREQ_CUT,
    ID_COLUMN,
    TARGET_COLUMN,
    UNIQUE_CUT,
)

logger = logging.getLogger(__name__)

NZV_RULES = ('both', 'either')


def near_zero_variance(df: pd.DataFrame,
                       freq_cut: float = FREQ_CUT,
                       unique_cut: float = UNIQUE_CUT,
                       rule: str = 'both') -> pd.DataFrame:
    """
    Compute near-zero-variance diagnostics for every column of `df`.

    Args:
        df (pd.DataFrame): Predictor table
        freq_cut (float): Cutoff for the most/second-most common frequency ratio
        unique_cut (float): Cutoff for the percentage of distinct values
        rule (str): 'both' flags columns failing both cutoffs,
                    'either' flags columns failing at least one

    Returns:
        pd.DataFrame: One row per column with freq_ratio, percent_unique,
                      zero_var and nzv
    """
    if rule not in NZV_RULES:
        raise ValueError(f"rule must be one of {NZV_RULES}, got '{rule}'")

    n_rows = len(df)
    records = []
    for col in df.columns:
        counts = df[col].dropna().value_counts()

        if len(counts) > 1:
            freq_ratio = counts.iloc[0] / counts.iloc[1]
        else:
            freq_ratio = 0.0
        percent_unique = 100 * len(counts) / n_rows if n_rows else 0.0

        records.append({
            'column': col,
            'freq_ratio': float(freq_ratio),
            'percent_unique': float(percent_unique),
            'zero_var': len(counts) <= 1,
        })

    metrics = pd.DataFrame.from_records(
        records, columns=['column', 'freq_ratio', 'percent_unique', 'zero_var']
    ).set_index('column')

    too_frequent = metrics['freq_ratio'] > freq_cut
    too_few_unique = metrics['percent_unique'] <= unique_cut
    if rule == 'both':
        flagged = too_frequent & too_few_unique
    else:
        flagged = too_frequent | too_few_unique

    metrics['nzv'] = flagged | metrics['zero_var']
    return metrics


def find_correlation(corr: pd.DataFrame, cutoff: float = CORRELATION_CUTOFF) -> List[str]:
    """
    Pick columns to remove so no remaining pair exceeds |cutoff|.

    Args:
        corr (pd.DataFrame): Square, symmetric correlation matrix
        cutoff (float): Absolute correlation threshold

    Returns:
        List[str]: Column names to drop, in removal order
    """
    if list(corr.index) != list(corr.columns):
        raise ValueError("Correlation matrix must have matching row and column labels")

    values = corr.to_numpy(dtype=float)
    if np.isnan(values).any():
        raise ValueError("The correlation matrix has some missing values")
    if not np.allclose(values, values.T):
        raise ValueError("Correlation matrix is not symmetric")

    abs_corr = np.abs(values)
    np.fill_diagonal(abs_corr, 0.0)

    names = list(corr.columns)
    keep = np.ones(len(names), dtype=bool)
    dropped: List[str] = []

    while keep.sum() > 1:
        sub = abs_corr[np.ix_(keep, keep)]
        i, j = np.unravel_index(np.argmax(sub), sub.shape)
        if sub[i, j] <= cutoff:
            break

        kept_idx = np.flatnonzero(keep)
        n_others = keep.sum() - 1
        mean_i = sub[i].sum() / n_others
        mean_j = sub[j].sum() / n_others

        # Ties drop the later column
        victim = kept_idx[i] if mean_i > mean_j else kept_idx[j]
        keep[victim] = False
        dropped.append(names[victim])
        logger.debug(
            f"|corr({names[kept_idx[i]]}, {names[kept_idx[j]]})| = {sub[i, j]:.3f} > {cutoff}; "
            f"dropping {names[victim]}"
        )

    return dropped


class RedundantFeatureFilter:
    """
    Fit near-zero-variance and correlation filters on training predictors.

    Attributes:
        feature_columns_ (List[str]): Predictors kept after both filters
        nzv_metrics_ (pd.DataFrame): Diagnostics from the variance filter
        nzv_columns_ (List[str]): Predictors removed for near-zero variance
        correlated_columns_ (List[str]): Predictors removed for correlation
        correlation_matrix_ (pd.DataFrame): Correlations of the kept predictors
    """

    def __init__(self, freq_cut: float = FREQ_CUT,
                 unique_cut: float = UNIQUE_CUT,
                 correlation_cutoff: float = CORRELATION_CUTOFF,
                 nzv_rule: str = 'both',
                 passthrough: tuple = (TARGET_COLUMN, ID_COLUMN)):
        self.freq_cut = freq_cut
        self.unique_cut = unique_cut
        self.correlation_cutoff = correlation_cutoff
        self.nzv_rule = nzv_rule
        self.passthrough = passthrough

        self.feature_columns_: Optional[List[str]] = None
        self.nzv_metrics_: Optional[pd.DataFrame] = None
        self.nzv_columns_: Optional[List[str]] = None
        self.correlated_columns_: Optional[List[str]] = None
        self.correlation_matrix_: Optional[pd.DataFrame] = None

    def fit(self, data: pd.DataFrame) -> 'RedundantFeatureFilter':
        X = data.drop(columns=[c for c in self.passthrough if c in data.columns])

        self.nzv_metrics_ = near_zero_variance(
            X, freq_cut=self.freq_cut, unique_cut=self.unique_cut, rule=self.nzv_rule
        )
        self.nzv_columns_ = self.nzv_metrics_.index[self.nzv_metrics_['nzv']].tolist()
        X = X.drop(columns=self.nzv_columns_)
        logger.info(f"Near-zero variance: removed {len(self.nzv_columns_)} of {len(self.nzv_metrics_)} predictors")

        if X.shape[1] > 1:
            corr = X.corr(method='pearson')
            self.correlated_columns_ = find_correlation(corr, cutoff=self.correlation_cutoff)
        else:
            self.correlated_columns_ = []
        X = X.drop(columns=self.correlated_columns_)
        logger.info(
            f"Correlation > {self.correlation_cutoff}: removed {len(self.correlated_columns_)} predictors; "
            f"{X.shape[1]} remain"
        )

        self.feature_columns_ = list(X.columns)
        self.correlation_matrix_ = X.corr(method='pearson')
        return self

    def transform(self, data: pd.DataFrame) -> pd.DataFrame:
        """Keep the fitted predictors plus any passthrough columns present in `data`."""
        if self.feature_columns_ is None:
            raise RuntimeError("Filter is not fitted. Call fit on the training data first.")

        missing = [col for col in self.feature_columns_ if col not in data.columns]
        if missing:
            raise ValueError(f"Missing predictor columns: {missing}")

        extra = [col for col in self.passthrough if col in data.columns]
        return data[self.feature_columns_ + extra].copy()

    def fit_transform(self, data: pd.DataFrame) -> pd.DataFrame:
        return self.fit(data).transform(data)
