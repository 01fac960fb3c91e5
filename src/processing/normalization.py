"""
Demographic Index Engine - Indicator Normalization
Rescales raw indicators so all five share one direction

Methods:
- Proportion (0-1) -> percent (0-100)
- Life expectancy (years) -> ceiling - years, so shorter lives score higher

Pure transform: no record is dropped, missing stays missing.
"""

from typing import Optional

import numpy as np
import pandas as pd

from config.settings import get_settings
from src.processing.indicator_registry import INDICATORS, IndicatorDefinition, SourceScale
from src.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


def proportion_to_percent(values: pd.Series) -> pd.Series:
    """
    Rescale a 0-1 proportion to percent.

    Args:
        values: Raw proportions

    Returns:
        Percent-scale values (0-100)
    """
    return pd.to_numeric(values, errors="coerce") * 100.0


def invert_life_expectancy(values: pd.Series, ceiling: Optional[float] = None) -> pd.Series:
    """
    Invert life expectancy so that higher = more disadvantage.

    A tract at the ceiling scores 0; every year of life expectancy lost adds one.

    Args:
        values: Life expectancy in years
        ceiling: Assumed practical maximum (default: settings.LIFE_EXPECTANCY_CEILING)

    Returns:
        Inverted indicator (ceiling - years)
    """
    if ceiling is None:
        ceiling = settings.LIFE_EXPECTANCY_CEILING

    return ceiling - pd.to_numeric(values, errors="coerce")


def normalize_indicator(df: pd.DataFrame, indicator: IndicatorDefinition) -> pd.Series:
    """
    Normalize a single indicator according to its definition.

    Args:
        df: DataFrame with raw source columns
        indicator: Indicator definition from registry

    Returns:
        Series on the composite scale
    """
    if indicator.source_column not in df.columns:
        logger.warning(
            f"Indicator {indicator.key.value} column {indicator.source_column} not found"
        )
        return pd.Series(np.nan, index=df.index, name=indicator.value_column)

    values = df[indicator.source_column]

    if indicator.scale == SourceScale.PROPORTION:
        result = proportion_to_percent(values)
    elif indicator.scale == SourceScale.YEARS:
        result = invert_life_expectancy(values)
    else:
        raise ValueError(f"Unknown source scale: {indicator.scale}")

    if result.isna().all():
        logger.warning(f"Indicator {indicator.key.value} has all NaN values")
    else:
        logger.info(
            f"Normalized {indicator.key.value}: "
            f"min={result.min():.3f}, max={result.max():.3f}, "
            f"mean={result.mean():.3f}, missing={result.isna().sum()}"
        )

    return result.rename(indicator.value_column)


def normalize_indicators(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize all five indicators.

    Args:
        df: Joined source table

    Returns:
        New DataFrame (same index) with the five composite-scale columns
    """
    logger.info(f"Normalizing {len(INDICATORS)} indicators for {len(df)} records")

    return pd.concat(
        [normalize_indicator(df, indicator) for indicator in INDICATORS], axis=1
    )
