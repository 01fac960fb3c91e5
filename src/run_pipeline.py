"""
Demographic Index Engine - Main Pipeline Orchestration

Runs the complete index pipeline from source extracts through export.

Pipeline stages:
1. Load and join EJSCREEN + life expectancy extracts
2. Normalization
3. Percentile ranking
4. Composite indexes
5. Thresholds and exceedance
6. Summary tables
7. Table (and optional GeoJSON) export

Each stage returns a new table of derived columns; the pipeline concatenates them.

Usage:
    python -m src.run_pipeline --reference-scope national --quantile 0.8
    python -m src.run_pipeline --download --geojson
"""

import argparse
import sys
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

import pandas as pd

from config.settings import get_settings
from src.export.geojson_export import run_geojson_export
from src.export.table_export import run_table_export
from src.ingest.sources import (
    JoinReport,
    LIFE_EXPECTANCY_COLUMN,
    ensure_sources,
    join_sources,
    read_ejscreen,
    read_life_expectancy,
)
from src.processing.composites import PcaResult, compute_composites
from src.processing.indicator_registry import (
    INDEX_COLUMNS,
    THRESHOLD_INDEXES,
    VALUE_COLUMNS,
)
from src.processing.normalization import normalize_indicators
from src.processing.ranking import rank_indicators
from src.processing.scopes import (
    ReferenceScope,
    configured_scopes,
    resolve_scope,
    study_region,
)
from src.processing.summary import composite_correlations, pca_report, summarize_columns
from src.processing.thresholds import build_threshold_table, flag_scope_exceedance
from src.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)
settings = get_settings()


@dataclass
class PipelineResult:
    """Everything produced by one run"""
    table: pd.DataFrame
    join_report: Optional[JoinReport] = None
    thresholds: pd.DataFrame = field(default_factory=pd.DataFrame)
    summary: pd.DataFrame = field(default_factory=pd.DataFrame)
    correlations: pd.DataFrame = field(default_factory=pd.DataFrame)
    pca: pd.DataFrame = field(default_factory=pd.DataFrame)


def build_index_table(
    joined: pd.DataFrame, scope: ReferenceScope
) -> Tuple[pd.DataFrame, Dict[str, PcaResult]]:
    """
    Normalize, rank and combine indicators.

    Args:
        joined: Joined source table (geoid, raw indicators, life_expectancy)
        scope: Reference population for percentiles and PCA fits

    Returns:
        Tuple of (index table, PCA results by composite column)
    """
    values = normalize_indicators(joined)
    with_values = pd.concat([joined, values], axis=1)

    percentiles = rank_indicators(with_values, scope)
    with_percentiles = pd.concat([with_values, percentiles], axis=1)

    composites, pca_results = compute_composites(with_percentiles, scope)
    table = pd.concat([with_percentiles, composites], axis=1)

    return table, pca_results


def run_index_pipeline(
    joined: pd.DataFrame,
    reference_scope: ReferenceScope,
    quantile: Optional[float] = None,
    join_report: Optional[JoinReport] = None,
) -> PipelineResult:
    """
    Compute the index table and its report tables from a joined source table.

    Args:
        joined: Joined source table
        reference_scope: Population for percentiles, PCA fits and exceedance flags
        quantile: Threshold quantile (default: settings.THRESHOLD_QUANTILE)
        join_report: Join statistics to carry into the result

    Returns:
        PipelineResult
    """
    if quantile is None:
        quantile = settings.THRESHOLD_QUANTILE

    table, pca_results = build_index_table(joined, reference_scope)

    flags = [
        flag_scope_exceedance(table, index, reference_scope, quantile)
        for index in THRESHOLD_INDEXES
    ]
    table = pd.concat([table] + flags, axis=1)

    scopes = configured_scopes()
    thresholds = build_threshold_table(
        table, scopes, THRESHOLD_INDEXES, quantile, target_scope=study_region()
    )

    summary_columns = [LIFE_EXPECTANCY_COLUMN] + VALUE_COLUMNS + INDEX_COLUMNS
    summary = pd.concat(
        [summarize_columns(table, summary_columns, scope) for scope in scopes]
    )

    return PipelineResult(
        table=table,
        join_report=join_report,
        thresholds=thresholds,
        summary=summary.rename_axis("column").reset_index(),
        correlations=composite_correlations(table).rename_axis("index").reset_index(),
        pca=pca_report(pca_results),
    )


def load_sources(download: bool = False) -> Tuple[pd.DataFrame, JoinReport]:
    """Locate, read and join the two source extracts."""
    ejscreen_path, life_path = ensure_sources(download=download)
    return join_sources(read_ejscreen(ejscreen_path), read_life_expectancy(life_path))


def main():
    """Main pipeline orchestration"""

    parser = argparse.ArgumentParser(
        description="Demographic Index Engine - Pipeline Orchestration"
    )

    parser.add_argument(
        "--reference-scope",
        type=str,
        default=settings.REFERENCE_SCOPE,
        help="Reference population for percentiles (national, state, region)"
    )

    parser.add_argument(
        "--quantile",
        type=float,
        default=settings.THRESHOLD_QUANTILE,
        help="Exceedance threshold quantile (default: settings.THRESHOLD_QUANTILE)"
    )

    parser.add_argument(
        "--download",
        action="store_true",
        help="Download missing source extracts"
    )

    parser.add_argument(
        "--geojson",
        action="store_true",
        help="Also export a GeoJSON layer (needs TRACT_BOUNDARIES_PATH)"
    )

    parser.add_argument(
        "--no-export",
        action="store_true",
        help="Compute and log only, write nothing"
    )

    args = parser.parse_args()

    setup_logging("pipeline")

    start_time = datetime.now()
    logger.info("=" * 60)
    logger.info("Demographic Index Engine - Pipeline Start")
    logger.info(f"Time: {start_time.isoformat()}")
    logger.info(f"Arguments: {vars(args)}")
    logger.info("=" * 60)

    try:
        scope = resolve_scope(args.reference_scope)

        logger.info("STAGE 1: LOAD AND JOIN SOURCES")
        joined, join_report = load_sources(download=args.download)

        logger.info("STAGE 2: INDEX (Normalize, Rank, Combine, Threshold)")
        result = run_index_pipeline(joined, scope, args.quantile, join_report)

        if not args.no_export:
            logger.info("STAGE 3: EXPORT")
            export = run_table_export(
                result.table,
                reports={
                    "thresholds": result.thresholds,
                    "summary": result.summary,
                    "correlations": result.correlations,
                    "pca": result.pca,
                },
            )
            logger.info(
                f"Export complete: {export['record_count']} records, "
                f"output: {export['output_path']}"
            )

            if args.geojson:
                geo = run_geojson_export(result.table)
                logger.info(f"GeoJSON export complete: {geo['output_path']}")

        duration = (datetime.now() - start_time).total_seconds()
        logger.info("=" * 60)
        logger.info("PIPELINE COMPLETE")
        logger.info(f"Duration: {duration:.1f} seconds")
        logger.info("=" * 60)

        sys.exit(0)

    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user")
        sys.exit(130)

    except Exception as e:
        logger.error(f"Pipeline failed with unhandled exception: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
