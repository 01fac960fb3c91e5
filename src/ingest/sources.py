"""
Demographic Index Engine - Source Extracts
Loads the EJSCREEN tract extract and the USALEEP life expectancy table

Data sources:
- EPA EJSCREEN tract CSV (demographic indicators as 0-1 proportions)
- CDC USALEEP US_A.CSV (tract life expectancy at birth, e(0))

Both tables are keyed on the 11-digit tract GEOID and joined with an inner join;
tracts present in only one source are dropped and reported as coverage.
"""

import io
import os
import zipfile
from dataclasses import dataclass
from typing import Optional, Tuple

import pandas as pd
import requests

from config.settings import get_settings
from src.processing.indicator_registry import INDICATORS, SourceScale
from src.processing.scopes import GEOID_COLUMN
from src.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

GEOID_WIDTH = 11
MISSING_MARKERS = ["None", "NA", "N/A", ""]

EJSCREEN_ID_COLUMN = "ID"
EJSCREEN_LABEL_COLUMNS = ["STATE_NAME", "ST_ABBREV", "CNTY_NAME"]
LIFE_EXPECTANCY_ID_COLUMN = "Tract ID"
LIFE_EXPECTANCY_VALUE_COLUMN = "e(0)"
LIFE_EXPECTANCY_COLUMN = "life_expectancy"


@dataclass
class JoinReport:
    """Record counts before and after the inner join"""
    n_ejscreen: int
    n_life_expectancy: int
    n_joined: int

    @property
    def ejscreen_coverage(self) -> float:
        return self.n_joined / self.n_ejscreen if self.n_ejscreen else 0.0

    @property
    def life_expectancy_coverage(self) -> float:
        return self.n_joined / self.n_life_expectancy if self.n_life_expectancy else 0.0


def normalize_geoid(values: pd.Series) -> pd.Series:
    """Strip and zero-pad tract identifiers to 11 characters."""
    return values.astype(str).str.strip().str.replace(r"\.0$", "", regex=True).str.zfill(GEOID_WIDTH)


def _drop_duplicate_geoids(df: pd.DataFrame, source: str) -> pd.DataFrame:
    duplicated = df[GEOID_COLUMN].duplicated(keep="first")
    if duplicated.any():
        logger.warning(f"{source}: dropping {int(duplicated.sum())} duplicate GEOIDs")
        df = df[~duplicated]
    return df.reset_index(drop=True)


def read_ejscreen(path) -> pd.DataFrame:
    """
    Read an EJSCREEN tract extract.

    Args:
        path: CSV path or file-like object

    Returns:
        DataFrame with geoid, label columns and the four proportion indicators
    """
    indicator_cols = [d.source_column for d in INDICATORS if d.scale == SourceScale.PROPORTION]
    wanted = {EJSCREEN_ID_COLUMN, *EJSCREEN_LABEL_COLUMNS, *indicator_cols}

    df = pd.read_csv(
        path,
        dtype={EJSCREEN_ID_COLUMN: str},
        na_values=MISSING_MARKERS,
        keep_default_na=True,
        usecols=lambda col: col in wanted,
    )

    if EJSCREEN_ID_COLUMN not in df.columns:
        raise ValueError(f"EJSCREEN extract has no '{EJSCREEN_ID_COLUMN}' column")

    df = df.rename(columns={EJSCREEN_ID_COLUMN: GEOID_COLUMN})
    df[GEOID_COLUMN] = normalize_geoid(df[GEOID_COLUMN])

    for col in indicator_cols:
        if col not in df.columns:
            logger.warning(f"EJSCREEN extract is missing indicator column {col}")
            continue
        df[col] = pd.to_numeric(df[col], errors="coerce")

    df = _drop_duplicate_geoids(df, "EJSCREEN")

    logger.info(f"Read {len(df)} EJSCREEN tract records")
    return df


def read_life_expectancy(path) -> pd.DataFrame:
    """
    Read the USALEEP tract life expectancy table.

    Args:
        path: CSV path or file-like object

    Returns:
        DataFrame with geoid and life_expectancy (years)
    """
    df = pd.read_csv(
        path,
        dtype={LIFE_EXPECTANCY_ID_COLUMN: str},
        na_values=MISSING_MARKERS,
        usecols=[LIFE_EXPECTANCY_ID_COLUMN, LIFE_EXPECTANCY_VALUE_COLUMN],
    )

    df = df.rename(
        columns={
            LIFE_EXPECTANCY_ID_COLUMN: GEOID_COLUMN,
            LIFE_EXPECTANCY_VALUE_COLUMN: LIFE_EXPECTANCY_COLUMN,
        }
    )
    df[GEOID_COLUMN] = normalize_geoid(df[GEOID_COLUMN])
    df[LIFE_EXPECTANCY_COLUMN] = pd.to_numeric(df[LIFE_EXPECTANCY_COLUMN], errors="coerce")

    df = _drop_duplicate_geoids(df, "USALEEP")

    logger.info(
        f"Read {len(df)} life expectancy records "
        f"(missing={df[LIFE_EXPECTANCY_COLUMN].isna().sum()})"
    )
    return df


def join_sources(
    ejscreen_df: pd.DataFrame, life_df: pd.DataFrame
) -> Tuple[pd.DataFrame, JoinReport]:
    """
    Inner-join the two extracts on geoid.

    Args:
        ejscreen_df: Output of read_ejscreen
        life_df: Output of read_life_expectancy

    Returns:
        Tuple of (joined DataFrame, JoinReport)
    """
    joined = ejscreen_df.merge(
        life_df[[GEOID_COLUMN, LIFE_EXPECTANCY_COLUMN]], on=GEOID_COLUMN, how="inner"
    )
    joined = joined.sort_values(GEOID_COLUMN).reset_index(drop=True)

    report = JoinReport(
        n_ejscreen=len(ejscreen_df),
        n_life_expectancy=len(life_df),
        n_joined=len(joined),
    )

    logger.info(
        f"Joined {report.n_joined} tracts: "
        f"{report.ejscreen_coverage:.1%} of EJSCREEN, "
        f"{report.life_expectancy_coverage:.1%} of life expectancy records"
    )

    return joined, report


def _read_csv_from_bytes(payload: bytes, **kwargs) -> pd.DataFrame:
    """Read a CSV from raw bytes, unpacking the first CSV of a zip archive."""
    if zipfile.is_zipfile(io.BytesIO(payload)):
        with zipfile.ZipFile(io.BytesIO(payload)) as zf:
            csv_name = [f for f in zf.namelist() if f.lower().endswith(".csv")][0]
            with zf.open(csv_name) as f:
                return pd.read_csv(f, **kwargs)
    return pd.read_csv(io.BytesIO(payload), **kwargs)


def fetch_epa_ejscreen(year: Optional[int] = None, dest_path: Optional[str] = None) -> str:
    """
    Download the national EJSCREEN tract file and store it as CSV.

    Args:
        year: EJSCREEN release year (default: settings.EJSCREEN_YEAR)
        dest_path: Where to write the CSV (default: settings.ejscreen_path)

    Returns:
        Path to the CSV
    """
    year = year or settings.EJSCREEN_YEAR
    dest_path = dest_path or settings.ejscreen_path
    url = f"{settings.EPA_EJSCREEN_URL}/{year}/EJSCREEN_{year}_Tracts_with_AS_CNMI_GU_VI.csv.zip"

    logger.info(f"Fetching EPA EJScreen tract data for {year}")

    try:
        response = requests.get(url, timeout=120)
        response.raise_for_status()

        df = _read_csv_from_bytes(response.content, dtype={EJSCREEN_ID_COLUMN: str})

        os.makedirs(os.path.dirname(dest_path) or ".", exist_ok=True)
        df.to_csv(dest_path, index=False)

        logger.info(f"Fetched {len(df)} EJScreen records to {dest_path}")
        return dest_path

    except Exception as e:
        logger.error(f"Failed to fetch EPA EJScreen data: {e}")
        raise


def download_file(url: str, save_path: str, timeout: int = 300) -> bool:
    """
    Download a file from URL with progress logging.

    Args:
        url: URL to download from
        save_path: Local path to save file
        timeout: Request timeout in seconds

    Returns:
        True if successful, False otherwise
    """
    logger.info(f"Downloading: {url}")

    try:
        response = requests.get(url, stream=True, timeout=timeout)
        response.raise_for_status()

        os.makedirs(os.path.dirname(save_path) or ".", exist_ok=True)

        with open(save_path, "wb") as f:
            for chunk in response.iter_content(chunk_size=8192):
                f.write(chunk)

        logger.info(f"Download complete: {save_path}")
        return True

    except requests.exceptions.RequestException as e:
        logger.error(f"Download failed: {e}")
        return False


def ensure_sources(download: bool = False) -> Tuple[str, str]:
    """
    Resolve local source paths, downloading missing extracts when asked.

    Returns:
        Tuple of (ejscreen_path, life_expectancy_path)

    Raises:
        FileNotFoundError: a source is missing and download is False or failed
    """
    ejscreen_path = settings.ejscreen_path
    life_path = settings.life_expectancy_path

    if not os.path.exists(ejscreen_path):
        if not download:
            raise FileNotFoundError(f"EJSCREEN extract not found: {ejscreen_path}")
        fetch_epa_ejscreen(dest_path=ejscreen_path)

    if not os.path.exists(life_path):
        if not download or not download_file(settings.LIFE_EXPECTANCY_URL, life_path):
            raise FileNotFoundError(f"Life expectancy table not found: {life_path}")

    return ejscreen_path, life_path
