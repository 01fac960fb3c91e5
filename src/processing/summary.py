"""
Demographic Index Engine - Summary Statistics
Descriptive tables reported alongside the index output
"""

from typing import Dict, List, Optional

import pandas as pd

from src.processing.composites import PcaResult
from src.processing.indicator_registry import INDEX_COLUMNS
from src.processing.scopes import ReferenceScope
from src.utils.logging import get_logger

logger = get_logger(__name__)


def summarize_columns(
    df: pd.DataFrame, columns: List[str], scope: Optional[ReferenceScope] = None
) -> pd.DataFrame:
    """
    Count, mean, spread and quartiles per column, optionally within a scope.

    Args:
        df: Index table
        columns: Columns to describe
        scope: Restrict to a reference population (default: all records)

    Returns:
        DataFrame indexed by column name
    """
    subset = scope.select(df) if scope is not None else df
    available = [col for col in columns if col in subset.columns]

    summary = subset[available].apply(pd.to_numeric, errors="coerce").describe().T
    summary["missing_share"] = subset[available].isna().mean()
    summary["scope"] = scope.name if scope is not None else "all"

    return summary


def composite_correlations(df: pd.DataFrame, columns: Optional[List[str]] = None) -> pd.DataFrame:
    """Pearson correlation matrix between composite index columns."""
    if columns is None:
        columns = INDEX_COLUMNS
    available = [col for col in columns if col in df.columns]
    return df[available].corr(method="pearson")


def pca_report(results: Dict[str, PcaResult]) -> pd.DataFrame:
    """
    Loadings and explained variance per leading-component variant.

    Args:
        results: PCA results keyed by composite column

    Returns:
        DataFrame with one row per variant
    """
    rows = []
    for column, result in results.items():
        row = {
            "index": column,
            "scaled": result.scaled,
            "n_fit": result.n_fit,
            "explained_variance_ratio": result.explained_variance_ratio,
            "sign_flipped": result.sign_flipped,
        }
        row.update({f"loading_{name}": value for name, value in result.loadings.items()})
        rows.append(row)

    report = pd.DataFrame(rows)
    logger.info(f"PCA report covers {len(report)} variants")
    return report
