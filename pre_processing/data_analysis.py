"""
================================================================================
DATASET SUMMARIES AND CORRELATION DIAGNOSTICS
================================================================================

Purpose: Small reporting helpers used by the activity report
  - Row/column counts for each stage of the workflow
  - Class distribution of the label
  - Correlation matrix heatmap of the retained predictors
================================================================================
"""

import logging
from typing import Dict, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

logger = logging.getLogger(__name__)

sns.set_style("whitegrid")


def summarize_dimensions(frames: Dict[str, pd.DataFrame]) -> pd.DataFrame:
    """
    Tabulate the shape of each named frame.

    Args:
        frames (Dict[str, pd.DataFrame]): e.g. {'training (raw)': df, ...}

    Returns:
        pd.DataFrame: Columns 'rows' and 'columns', indexed by frame name
    """
    summary = pd.DataFrame(
        [(name, df.shape[0], df.shape[1]) for name, df in frames.items()],
        columns=['dataset', 'rows', 'columns'],
    )
    return summary.set_index('dataset')


def class_distribution(labels: pd.Series) -> pd.DataFrame:
    """Counts and proportions per class, sorted by class label."""
    counts = labels.value_counts().sort_index()
    return pd.DataFrame({
        'count': counts,
        'proportion': counts / counts.sum(),
    })


def plot_correlation_matrix(corr: pd.DataFrame,
                            save_path: Optional[str] = None,
                            show: bool = False,
                            title: str = 'Correlation Matrix of Retained Predictors'):
    """
    Plot the lower triangle of a correlation matrix as a heatmap.

    Args:
        corr (pd.DataFrame): Square correlation matrix
        save_path (str): Path to save plot (optional)
        show (bool): Display the figure interactively
        title (str): Figure title
    """
    logger.info(f"Generating correlation matrix heatmap for {corr.shape[1]} predictors...")

    size = max(8, min(24, 0.35 * corr.shape[1]))
    mask = np.triu(np.ones(corr.shape, dtype=bool), k=1)

    fig, ax = plt.subplots(figsize=(size, size * 0.85))
    sns.heatmap(corr, mask=mask, cmap='RdBu_r', vmin=-1, vmax=1, center=0,
                square=True, linewidths=0.2,
                xticklabels=True, yticklabels=True,
                cbar_kws={'label': 'Pearson correlation', 'shrink': 0.7},
                ax=ax)
    ax.tick_params(axis='both', labelsize=7)
    ax.set_title(title, fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Correlation matrix saved to: {save_path}")

    if show:
        plt.show()
    plt.close(fig)
