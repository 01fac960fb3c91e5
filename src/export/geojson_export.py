"""
Demographic Index Engine - GeoJSON Export
Joins the index table onto tract boundaries for the map layer

Data sources:
- Geometries: tract boundary file (shapefile / GeoPackage / GeoJSON), keyed by GEOID
- Index: output of the index pipeline

Outputs:
- exports/{basename}.geojson
"""

import os
from typing import Optional

import geopandas as gpd
import pandas as pd

from config.settings import get_settings
from src.processing.indicator_registry import INDEX_COLUMNS, PERCENTILE_COLUMNS, VALUE_COLUMNS
from src.processing.scopes import GEOID_COLUMN
from src.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

BOUNDARY_ID_COLUMNS = ["GEOID", "GEOID20", "GEOID10", "geoid"]


def read_tract_boundaries(path: str) -> gpd.GeoDataFrame:
    """
    Read tract polygons and key them by geoid.

    Args:
        path: Any vector file geopandas can read

    Returns:
        GeoDataFrame with geoid and geometry in EPSG:4326
    """
    logger.info(f"Reading tract boundaries from {path}")

    tracts = gpd.read_file(path)

    id_col = next((col for col in BOUNDARY_ID_COLUMNS if col in tracts.columns), None)
    if id_col is None:
        raise KeyError(
            f"No tract identifier column found in {path}; expected one of {BOUNDARY_ID_COLUMNS}"
        )

    tracts = tracts.rename(columns={id_col: GEOID_COLUMN})
    tracts[GEOID_COLUMN] = tracts[GEOID_COLUMN].astype(str).str.zfill(11)

    # Convert to WGS84 (EPSG:4326) for web mapping
    if tracts.crs is not None and tracts.crs != "EPSG:4326":
        tracts = tracts.to_crs("EPSG:4326")

    return tracts[[GEOID_COLUMN, "geometry"]]


def merge_tract_geometry(boundaries: gpd.GeoDataFrame, index_df: pd.DataFrame) -> gpd.GeoDataFrame:
    """
    Attach index columns to tract polygons.

    Only tracts present in both inputs are kept.
    """
    merged = boundaries.merge(index_df, on=GEOID_COLUMN, how="inner")

    if merged.empty:
        raise ValueError(
            "Merge between tract boundaries and index table is empty. "
            "Check that the GEOID codes line up."
        )

    logger.info(f"Merged {len(merged)} of {len(boundaries)} tract boundaries with index data")
    return merged


def prepare_geojson_properties(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Round numeric index columns and replace NaN with JSON null."""
    gdf = gdf.copy()

    for col in VALUE_COLUMNS + PERCENTILE_COLUMNS + INDEX_COLUMNS:
        if col in gdf.columns:
            mask = pd.notna(gdf[col])
            if mask.any():
                gdf.loc[mask, col] = gdf.loc[mask, col].round(4)

    # Fill NaN / <NA> with None (for JSON null)
    for col in [c for c in gdf.columns if c != gdf.geometry.name]:
        gdf[col] = pd.Series(
            [None if pd.isna(v) else v for v in gdf[col]], index=gdf.index, dtype=object
        )

    return gdf


def export_geojson(gdf: gpd.GeoDataFrame, output_path: str) -> str:
    """
    Export GeoDataFrame to GeoJSON file.

    Returns:
        Path to exported file
    """
    logger.info(f"Exporting GeoJSON to {output_path}")

    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    gdf.to_file(output_path, driver="GeoJSON")

    file_size = os.path.getsize(output_path)
    logger.info(f"Exported {len(gdf)} features, file size: {file_size / 1024:.1f} KB")

    return output_path


def run_geojson_export(
    index_df: pd.DataFrame,
    boundaries_path: Optional[str] = None,
    export_dir: Optional[str] = None,
) -> dict:
    """
    Main entry point for GeoJSON export.

    Args:
        index_df: Assembled index table
        boundaries_path: Tract boundary file (default: settings.TRACT_BOUNDARIES_PATH)
        export_dir: Output directory (default: settings.EXPORT_DIR)

    Returns:
        Dict with export metadata
    """
    boundaries_path = boundaries_path or settings.TRACT_BOUNDARIES_PATH
    export_dir = export_dir or settings.EXPORT_DIR

    if not boundaries_path:
        raise ValueError("No tract boundary file configured (TRACT_BOUNDARIES_PATH)")

    boundaries = read_tract_boundaries(boundaries_path)
    merged = prepare_geojson_properties(merge_tract_geometry(boundaries, index_df))

    output_path = export_geojson(
        merged, os.path.join(export_dir, f"{settings.OUTPUT_BASENAME}.geojson")
    )

    return {"record_count": len(merged), "output_path": output_path}
