"""
Demographic Index Engine - Composite Indexes
Combines the five indicators into scalar disadvantage indexes

Derivations:
- Mean of values (percent-scale indicators)
- Mean of percentiles (per-indicator ranks against a reference scope)
- Percentile of either mean (second-order, unit-free)
- Leading principal component, unscaled or standardized, over values or percentiles

Rules:
- No partial averaging: any missing input makes the composite missing
- PCA is fit on complete rows of the reference scope and applied to every complete row
- PCA sign is flipped when needed so higher = more disadvantage
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from config.settings import get_settings
from src.processing.indicator_registry import (
    PERCENTILE_COLUMNS,
    VALUE_COLUMNS,
    CompositeIndex,
    index_column,
)
from src.processing.ranking import rank_within_scope
from src.processing.scopes import ReferenceScope
from src.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


@dataclass
class PcaResult:
    """Leading-component fit and projection"""
    scores: pd.Series
    loadings: Dict[str, float] = field(default_factory=dict)
    explained_variance_ratio: float = np.nan
    n_fit: int = 0
    scaled: bool = False
    sign_flipped: bool = False


def _strict_row_mean(df: pd.DataFrame, columns: List[str], label: str) -> pd.Series:
    missing_cols = [col for col in columns if col not in df.columns]
    if missing_cols:
        logger.warning(f"{label}: columns not found {missing_cols}")
        return pd.Series(np.nan, index=df.index)

    values = df[columns].apply(pd.to_numeric, errors="coerce")
    return values.mean(axis=1, skipna=False)


def mean_of_values(df: pd.DataFrame) -> pd.Series:
    """
    Arithmetic mean of the five percent-scale indicators.

    Args:
        df: DataFrame with normalized indicator columns

    Returns:
        Composite per record; missing if any indicator is missing
    """
    return _strict_row_mean(df, VALUE_COLUMNS, "mean of values")


def mean_of_percentiles(df: pd.DataFrame) -> pd.Series:
    """
    Arithmetic mean of the five indicator percentiles.

    Args:
        df: DataFrame with pctile_* columns

    Returns:
        Composite per record; missing if any percentile is missing
    """
    return _strict_row_mean(df, PERCENTILE_COLUMNS, "mean of percentiles")


def percentile_of_composite(
    df: pd.DataFrame, index: Union[CompositeIndex, str], scope: ReferenceScope
) -> pd.Series:
    """
    Percentile rank of a composite index over the reference scope.

    Raises:
        UnknownIndexError: index is not a registered composite index
    """
    return rank_within_scope(df, index_column(index), scope)


def leading_component_score(
    df: pd.DataFrame,
    columns: List[str],
    scaled: bool = False,
    reference: Optional[pd.Series] = None,
    fit_mask: Optional[pd.Series] = None,
    min_rows: Optional[int] = None,
) -> PcaResult:
    """
    Project records onto the leading principal component of `columns`.

    Unscaled fits are dominated by the highest-variance indicator; scaled fits
    standardize each column to unit variance first.

    Args:
        df: DataFrame holding `columns`
        columns: Indicator columns to combine
        scaled: Standardize columns before fitting
        reference: Composite the score must correlate positively with
        fit_mask: Rows eligible for fitting (default: all); projection covers
            every complete row regardless
        min_rows: Minimum complete fit rows (default: settings.MIN_PCA_ROWS)

    Returns:
        PcaResult with scores indexed like df
    """
    if min_rows is None:
        min_rows = settings.MIN_PCA_ROWS

    values = df[columns].apply(pd.to_numeric, errors="coerce")
    complete = values.notna().all(axis=1)

    fit_rows = complete
    if fit_mask is not None:
        fit_rows = complete & fit_mask.reindex(df.index, fill_value=False).astype(bool)

    scores = pd.Series(np.nan, index=df.index)
    n_fit = int(fit_rows.sum())

    if n_fit < min_rows:
        logger.warning(
            f"Leading component needs at least {min_rows} complete rows, found {n_fit}"
        )
        return PcaResult(scores=scores, n_fit=n_fit, scaled=scaled)

    X_fit = values[fit_rows].to_numpy(dtype=float)
    X_all = values[complete].to_numpy(dtype=float)

    if scaled:
        scaler = StandardScaler().fit(X_fit)
        X_fit = scaler.transform(X_fit)
        X_all = scaler.transform(X_all)

    # Deterministic: never the randomized solver
    pca = PCA(n_components=1, svd_solver="full")
    pca.fit(X_fit)

    scores[complete] = pca.transform(X_all)[:, 0]
    loadings = pca.components_[0].copy()

    # Component sign is arbitrary; orient it against the reference composite
    sign_flipped = False
    if reference is not None:
        both = scores.notna() & reference.notna()
        corr = np.nan
        if both.sum() >= 2 and scores[both].std() > 0 and reference[both].std() > 0:
            corr = np.corrcoef(scores[both], reference[both])[0, 1]

        if pd.isna(corr):
            logger.warning("Cannot orient leading component: correlation undefined")
        elif corr < 0:
            scores = -scores
            loadings = -loadings
            sign_flipped = True

    result = PcaResult(
        scores=scores,
        loadings=dict(zip(columns, loadings.tolist())),
        explained_variance_ratio=float(pca.explained_variance_ratio_[0]),
        n_fit=n_fit,
        scaled=scaled,
        sign_flipped=sign_flipped,
    )

    logger.info(
        f"Leading component (scaled={scaled}): n_fit={n_fit}, "
        f"explained={result.explained_variance_ratio:.3f}, flipped={sign_flipped}"
    )

    return result


def compute_composites(
    table: pd.DataFrame, scope: ReferenceScope
) -> Tuple[pd.DataFrame, Dict[str, PcaResult]]:
    """
    Calculate every composite index.

    Args:
        table: geoid, normalized indicator and pctile_* columns
        scope: Reference population for second-order percentiles and PCA fits

    Returns:
        Tuple of (composites DataFrame indexed like table, PCA results by column)
    """
    logger.info(f"Calculating composite indexes against scope '{scope.name}'")

    mean_col = index_column(CompositeIndex.MEAN_OF_VALUES)
    pmean_col = index_column(CompositeIndex.MEAN_OF_PERCENTILES)

    composites = pd.DataFrame(index=table.index)
    composites[mean_col] = mean_of_values(table)
    composites[pmean_col] = mean_of_percentiles(table)

    work = pd.concat([table, composites], axis=1)
    composites[index_column(CompositeIndex.PERCENTILE_OF_MEAN)] = percentile_of_composite(
        work, CompositeIndex.MEAN_OF_VALUES, scope
    )
    composites[index_column(CompositeIndex.PERCENTILE_OF_PERCENTILE_MEAN)] = (
        percentile_of_composite(work, CompositeIndex.MEAN_OF_PERCENTILES, scope)
    )

    fit_mask = scope.mask(table)
    reference = composites[mean_col]

    variants = [
        (CompositeIndex.PCA_VALUES, VALUE_COLUMNS, False),
        (CompositeIndex.PCA_VALUES_SCALED, VALUE_COLUMNS, True),
        (CompositeIndex.PCA_PERCENTILES, PERCENTILE_COLUMNS, False),
        (CompositeIndex.PCA_PERCENTILES_SCALED, PERCENTILE_COLUMNS, True),
    ]

    pca_results = {}
    for index, columns, scaled in variants:
        column = index_column(index)
        result = leading_component_score(
            table, columns, scaled=scaled, reference=reference, fit_mask=fit_mask
        )
        composites[column] = result.scores
        pca_results[column] = result

    for column in composites.columns:
        values = composites[column]
        logger.info(
            f"Composite {column}: mean={values.mean():.3f}, missing={values.isna().sum()}"
        )

    return composites, pca_results
