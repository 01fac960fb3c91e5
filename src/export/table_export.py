"""
Demographic Index Engine - Table Export
Writes the wide index table consumed by the map and plotting layers

Outputs:
- exports/{basename}.csv (the index table, overwritten by each run)
- exports/{basename}_thresholds.csv, _summary.csv, _pca.csv (report tables)
"""

import hashlib
import os
from typing import Dict, List, Optional

import pandas as pd

from config.settings import get_settings
from src.ingest.sources import EJSCREEN_LABEL_COLUMNS, LIFE_EXPECTANCY_COLUMN
from src.processing.indicator_registry import (
    INDEX_COLUMNS,
    INDICATORS,
    PERCENTILE_COLUMNS,
    VALUE_COLUMNS,
)
from src.processing.scopes import GEOID_COLUMN
from src.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

# Stable column order of the output table
OUTPUT_COLUMNS: List[str] = (
    [GEOID_COLUMN]
    + EJSCREEN_LABEL_COLUMNS
    + [d.source_column for d in INDICATORS if d.source_column != LIFE_EXPECTANCY_COLUMN]
    + [LIFE_EXPECTANCY_COLUMN]
    + VALUE_COLUMNS
    + PERCENTILE_COLUMNS
    + INDEX_COLUMNS
)


def order_output_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Put known columns in their documented order; extra columns (exceedance
    flags) follow in their existing order.
    """
    known = [col for col in OUTPUT_COLUMNS if col in df.columns]
    extra = [col for col in df.columns if col not in OUTPUT_COLUMNS]
    return df[known + extra]


def calculate_file_checksum(file_path: str) -> str:
    """
    Calculate SHA256 checksum of file.

    Args:
        file_path: Path to file

    Returns:
        Hex digest of checksum
    """
    sha256 = hashlib.sha256()

    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256.update(chunk)

    return sha256.hexdigest()


def export_table(df: pd.DataFrame, output_path: str) -> str:
    """
    Write a DataFrame to CSV, creating the directory if needed.

    Returns:
        Path to exported file
    """
    logger.info(f"Exporting {len(df)} rows to {output_path}")

    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    df.to_csv(output_path, index=False)

    file_size = os.path.getsize(output_path)
    logger.info(f"Exported {output_path}, file size: {file_size / 1024:.1f} KB")

    return output_path


def run_table_export(
    index_df: pd.DataFrame,
    reports: Optional[Dict[str, pd.DataFrame]] = None,
    export_dir: Optional[str] = None,
) -> dict:
    """
    Main entry point for table export.

    Args:
        index_df: Assembled index table
        reports: Report tables keyed by suffix (e.g. 'thresholds')
        export_dir: Output directory (default: settings.EXPORT_DIR)

    Returns:
        Dict with export metadata
    """
    export_dir = export_dir or settings.EXPORT_DIR
    basename = settings.OUTPUT_BASENAME

    if index_df.empty:
        raise ValueError("No index records available for export")

    table = order_output_columns(index_df)

    output_path = export_table(table, os.path.join(export_dir, f"{basename}.csv"))

    report_paths = {}
    for suffix, report in (reports or {}).items():
        report_paths[suffix] = export_table(
            report, os.path.join(export_dir, f"{basename}_{suffix}.csv")
        )

    return {
        "record_count": len(table),
        "column_count": len(table.columns),
        "output_path": output_path,
        "checksum": calculate_file_checksum(output_path),
        "report_paths": report_paths,
    }
