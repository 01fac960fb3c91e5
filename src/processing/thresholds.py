"""
Demographic Index Engine - Thresholds and Exceedance
Quantile thresholds per reference scope and exceedance flags for a target population

Threshold: quantile q (default 0.8) of a composite over a reference scope.
Exceedance: value > threshold; missing values stay missing (nullable boolean).

Thresholds are computed independently per scope (national, state, region), so the
same tract can exceed the regional cut-off while falling under the national one.
"""

from typing import Iterable, List, Optional, Union

import pandas as pd

from config.settings import get_settings
from src.processing.indicator_registry import (
    THRESHOLD_INDEXES,
    CompositeIndex,
    exceedance_column,
    index_column,
)
from src.processing.scopes import InvalidReferenceScopeError, ReferenceScope
from src.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


def _validate_quantile(quantile: float) -> float:
    if not 0.0 < quantile < 1.0:
        raise ValueError(f"Quantile must be strictly between 0 and 1, got {quantile}")
    return float(quantile)


def compute_threshold(
    df: pd.DataFrame,
    index: Union[CompositeIndex, str],
    scope: ReferenceScope,
    quantile: Optional[float] = None,
) -> float:
    """
    Quantile of a composite index over a reference scope.

    Args:
        df: Table with geoid and composite columns
        index: Composite index key
        scope: Reference population
        quantile: Quantile in (0, 1) (default: settings.THRESHOLD_QUANTILE)

    Returns:
        Threshold value

    Raises:
        UnknownIndexError: index is not a registered composite
        InvalidReferenceScopeError: scope selects no records, or none with a value
    """
    if quantile is None:
        quantile = settings.THRESHOLD_QUANTILE
    quantile = _validate_quantile(quantile)

    column = index_column(index)
    if column not in df.columns:
        raise KeyError(f"Composite column '{column}' not found")

    values = scope.select(df)[column].dropna()
    if values.empty:
        raise InvalidReferenceScopeError(
            f"Scope '{scope.name}' has no values for {column}"
        )

    return float(values.quantile(quantile))


def flag_exceedance(values: pd.Series, threshold: float) -> pd.Series:
    """
    Flag values strictly above a threshold.

    Args:
        values: Composite scores
        threshold: Cut-off value

    Returns:
        Nullable boolean Series; missing values yield <NA>
    """
    flags = (values > threshold).astype("boolean")
    flags[values.isna()] = pd.NA
    return flags


def flag_scope_exceedance(
    df: pd.DataFrame,
    index: Union[CompositeIndex, str],
    reference_scope: ReferenceScope,
    quantile: Optional[float] = None,
) -> pd.Series:
    """Exceedance of every record against a reference scope's threshold."""
    threshold = compute_threshold(df, index, reference_scope, quantile)
    return flag_exceedance(df[index_column(index)], threshold).rename(exceedance_column(index))


def build_threshold_table(
    df: pd.DataFrame,
    scopes: Iterable[ReferenceScope],
    indexes: Optional[Iterable[Union[CompositeIndex, str]]] = None,
    quantile: Optional[float] = None,
    target_scope: Optional[ReferenceScope] = None,
) -> pd.DataFrame:
    """
    Thresholds and exceedance counts per (reference scope, index).

    Args:
        df: Table with geoid and composite columns
        scopes: Reference populations to derive thresholds from
        indexes: Composite indexes (default: THRESHOLD_INDEXES)
        quantile: Quantile in (0, 1) (default: settings.THRESHOLD_QUANTILE)
        target_scope: Population whose records are flagged (default: all records)

    Returns:
        DataFrame with one row per (reference_scope, index)
    """
    if quantile is None:
        quantile = settings.THRESHOLD_QUANTILE
    if indexes is None:
        indexes = THRESHOLD_INDEXES

    target = target_scope.select(df) if target_scope is not None else df
    target_name = target_scope.name if target_scope is not None else "all"

    rows: List[dict] = []
    for scope in scopes:
        for index in indexes:
            column = index_column(index)
            threshold = compute_threshold(df, index, scope, quantile)
            flags = flag_exceedance(target[column], threshold)

            n_with_data = int(flags.notna().sum())
            n_exceeding = int(flags.sum())

            rows.append(
                {
                    "reference_scope": scope.name,
                    "scope_level": scope.level.value,
                    "index": column,
                    "quantile": quantile,
                    "threshold": threshold,
                    "target_scope": target_name,
                    "n_target": len(target),
                    "n_with_data": n_with_data,
                    "n_exceeding": n_exceeding,
                    "share_exceeding": n_exceeding / n_with_data if n_with_data else float("nan"),
                }
            )

            logger.info(
                f"Threshold {column} @ {scope.name} q={quantile}: {threshold:.3f}, "
                f"{n_exceeding}/{n_with_data} {target_name} records exceed"
            )

    return pd.DataFrame(rows)
