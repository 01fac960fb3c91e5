"""
Demographic Index Engine - Indicator Registry
Single source of truth for indicator and composite index keys

This registry defines:
- The five demographic indicators and their source columns
- Percent-scale and percentile output column names
- Composite index keys and their output column names

NO column should be read or written by name without being registered here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Union


class UnknownIndicatorError(KeyError):
    """Raised when an indicator key is not in the registry"""


class UnknownIndexError(KeyError):
    """Raised when a composite index key is not in the registry"""


class Indicator(str, Enum):
    """Demographic indicators combined into the composite indexes"""
    LOW_INCOME = "low_income"
    LINGUISTIC_ISOLATION = "ling_isolated"
    LESS_THAN_HIGH_SCHOOL = "less_hs"
    UNEMPLOYMENT = "unemployed"
    LIFE_EXPECTANCY = "life_expectancy"  # Used inverted (150 - years)


class SourceScale(str, Enum):
    """Scale of the raw source value"""
    PROPORTION = "proportion"  # 0-1, rescaled to percent
    YEARS = "years"  # Life expectancy, inverted


@dataclass(frozen=True)
class IndicatorDefinition:
    """
    Definition of a single demographic indicator
    """
    key: Indicator
    source_column: str  # Column name in the joined source table
    value_column: str  # Column used by composites (percent scale / inverted)
    scale: SourceScale
    unit: str
    description: str

    @property
    def percentile_column(self) -> str:
        return f"pctile_{self.key.value}"


INDICATORS: List[IndicatorDefinition] = [
    IndicatorDefinition(
        key=Indicator.LOW_INCOME,
        source_column="LOWINCPCT",
        value_column="pct_low_income",
        scale=SourceScale.PROPORTION,
        unit="Percent of population",
        description="Population with household income below twice the federal poverty level",
    ),
    IndicatorDefinition(
        key=Indicator.LINGUISTIC_ISOLATION,
        source_column="LINGISOPCT",
        value_column="pct_ling_isolated",
        scale=SourceScale.PROPORTION,
        unit="Percent of households",
        description="Households in which no one over 14 speaks English very well",
    ),
    IndicatorDefinition(
        key=Indicator.LESS_THAN_HIGH_SCHOOL,
        source_column="LESSHSPCT",
        value_column="pct_less_hs",
        scale=SourceScale.PROPORTION,
        unit="Percent of adults 25+",
        description="Adults 25 and older without a high school diploma",
    ),
    IndicatorDefinition(
        key=Indicator.UNEMPLOYMENT,
        source_column="UNEMPPCT",
        value_column="pct_unemployed",
        scale=SourceScale.PROPORTION,
        unit="Percent of labor force",
        description="Unemployed share of the civilian labor force",
    ),
    IndicatorDefinition(
        key=Indicator.LIFE_EXPECTANCY,
        source_column="life_expectancy",
        value_column="inv_life_expectancy",
        scale=SourceScale.YEARS,
        unit="Years below the 150-year ceiling",
        description="Life expectancy at birth, inverted so shorter lives score higher",
    ),
]

INDICATORS_BY_KEY: Dict[Indicator, IndicatorDefinition] = {d.key: d for d in INDICATORS}

VALUE_COLUMNS: List[str] = [d.value_column for d in INDICATORS]
PERCENTILE_COLUMNS: List[str] = [d.percentile_column for d in INDICATORS]


def get_indicator(key: Union[Indicator, str]) -> IndicatorDefinition:
    """
    Look up an indicator definition by enum member or key string.

    Raises:
        UnknownIndicatorError: key is not a registered indicator
    """
    try:
        return INDICATORS_BY_KEY[Indicator(key)]
    except ValueError:
        raise UnknownIndicatorError(
            f"Unknown indicator '{key}'. Known: {[i.value for i in Indicator]}"
        ) from None


# ============================================================================
# COMPOSITE INDEXES
# ============================================================================

class CompositeIndex(str, Enum):
    """Composite index derivations"""
    MEAN_OF_VALUES = "mean"
    MEAN_OF_PERCENTILES = "pctile_mean"
    PERCENTILE_OF_MEAN = "mean_pctile"
    PERCENTILE_OF_PERCENTILE_MEAN = "pctile_mean_pctile"
    PCA_VALUES = "pca"
    PCA_VALUES_SCALED = "pca_scaled"
    PCA_PERCENTILES = "pctile_pca"
    PCA_PERCENTILES_SCALED = "pctile_pca_scaled"


def index_column(key: Union[CompositeIndex, str]) -> str:
    """
    Output column name for a composite index.

    Raises:
        UnknownIndexError: key is not a registered composite index
    """
    try:
        index = CompositeIndex(key)
    except ValueError:
        raise UnknownIndexError(
            f"Unknown composite index '{key}'. Known: {[i.value for i in CompositeIndex]}"
        ) from None
    return f"demo_index_{index.value}"


def exceedance_column(key: Union[CompositeIndex, str]) -> str:
    return f"exceeds_{index_column(key)}"


INDEX_COLUMNS: List[str] = [index_column(i) for i in CompositeIndex]

# Indexes with a threshold table row by default
THRESHOLD_INDEXES: List[CompositeIndex] = [
    CompositeIndex.MEAN_OF_VALUES,
    CompositeIndex.MEAN_OF_PERCENTILES,
    CompositeIndex.PCA_VALUES,
    CompositeIndex.PCA_VALUES_SCALED,
]


if __name__ == "__main__":
    print("Demographic Index Engine - Indicator Registry")
    print("=" * 60)

    for definition in INDICATORS:
        print(f"  - {definition.key.value}: {definition.source_column} -> "
              f"{definition.value_column}, {definition.percentile_column}")
        print(f"      {definition.description} ({definition.unit})")

    print("\nComposite indexes:")
    for column in INDEX_COLUMNS:
        print(f"  - {column}")
