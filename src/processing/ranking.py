"""
Demographic Index Engine - Percentile Ranking
Within-population percentile ranks, independent of indicator units

percentile(v) = rank(v) / N * 100 over the N non-missing values, with tied
values receiving the average of the ranks they span. Ranks lie in (0, 100].
"""

from typing import Union

import numpy as np
import pandas as pd

from src.processing.indicator_registry import INDICATORS, Indicator, get_indicator
from src.processing.scopes import ReferenceScope
from src.utils.logging import get_logger

logger = get_logger(__name__)


def percentile_rank(values: pd.Series) -> pd.Series:
    """
    Percentile rank (0-100] among the non-missing values.

    Args:
        values: Raw values for one variable

    Returns:
        Percentile ranks; missing inputs stay missing
    """
    numeric = pd.to_numeric(values, errors="coerce")
    return numeric.rank(method="average", pct=True, na_option="keep") * 100.0


def rank_within_scope(df: pd.DataFrame, column: str, scope: ReferenceScope) -> pd.Series:
    """
    Percentile rank of `column` among the records of a reference scope.

    Args:
        df: Table holding `column` (and `geoid` for sub-national scopes)
        column: Column to rank
        scope: Reference population

    Returns:
        Series indexed like df; records outside the scope are missing

    Raises:
        InvalidReferenceScopeError: scope selects no records
    """
    if column not in df.columns:
        raise KeyError(f"Column '{column}' not found for percentile ranking")

    in_scope = scope.select(df)

    result = pd.Series(np.nan, index=df.index, name=column)
    result.loc[in_scope.index] = percentile_rank(in_scope[column])

    return result


def rank_indicator(
    values_df: pd.DataFrame, key: Union[Indicator, str], scope: ReferenceScope
) -> pd.Series:
    """
    Percentile rank of one registered indicator within a reference scope.

    Raises:
        UnknownIndicatorError: key is not a registered indicator
    """
    indicator = get_indicator(key)
    pctile = rank_within_scope(values_df, indicator.value_column, scope)
    return pctile.rename(indicator.percentile_column)


def rank_indicators(values_df: pd.DataFrame, scope: ReferenceScope) -> pd.DataFrame:
    """
    Percentile rank each of the five indicators independently.

    Args:
        values_df: Normalized indicator columns (plus `geoid` for sub-national scopes)
        scope: Reference population

    Returns:
        New DataFrame with one `pctile_<indicator>` column per indicator
    """
    logger.info(f"Ranking indicators against scope '{scope.name}'")

    ranked = {}
    for indicator in INDICATORS:
        pctile = rank_indicator(values_df, indicator.key, scope)
        ranked[indicator.percentile_column] = pctile

        logger.info(
            f"Ranked {indicator.key.value}: "
            f"ranked={pctile.notna().sum()}, missing={pctile.isna().sum()}"
        )

    return pd.DataFrame(ranked, index=values_df.index)
