"""
Pytest configuration and shared fixtures for Demographic Index Engine tests.
"""

import numpy as np
import pandas as pd
import pytest

from config.settings import get_settings

# Sample tract GEOIDs: study region (first four), rest of the study state, other states
SAMPLE_GEOIDS = [
    "24019970100",  # Dorchester County
    "24039930100",  # Somerset County
    "24045000100",  # Wicomico County
    "24047950100",  # Worcester County
    "24003701000",  # Anne Arundel County
    "24005400100",  # Baltimore County
    "24510010100",  # Baltimore City
    "11001000100",  # District of Columbia
    "51059415100",  # Fairfax County, VA
    "10005050100",  # Sussex County, DE
]


def make_joined_table(
    geoids,
    low_income,
    ling_isolated,
    less_hs,
    unemployed,
    life_expectancy,
) -> pd.DataFrame:
    """Joined source table with proportions in 0-1 and life expectancy in years."""
    return pd.DataFrame(
        {
            "geoid": list(geoids),
            "LOWINCPCT": low_income,
            "LINGISOPCT": ling_isolated,
            "LESSHSPCT": less_hs,
            "UNEMPPCT": unemployed,
            "life_expectancy": life_expectancy,
        }
    )


@pytest.fixture
def make_table():
    """Factory for joined source tables."""
    return make_joined_table


@pytest.fixture
def sample_geoids() -> list:
    """Return sample tract GEOIDs for testing."""
    return SAMPLE_GEOIDS


@pytest.fixture
def joined_table() -> pd.DataFrame:
    """Ten tracts with varied, complete indicator values."""
    return make_joined_table(
        SAMPLE_GEOIDS,
        low_income=[0.45, 0.52, 0.38, 0.30, 0.12, 0.22, 0.61, 0.28, 0.08, 0.35],
        ling_isolated=[0.01, 0.03, 0.02, 0.00, 0.01, 0.04, 0.06, 0.05, 0.09, 0.02],
        less_hs=[0.15, 0.22, 0.14, 0.09, 0.05, 0.10, 0.25, 0.12, 0.04, 0.13],
        unemployed=[0.07, 0.09, 0.06, 0.05, 0.03, 0.04, 0.11, 0.06, 0.02, 0.05],
        life_expectancy=[74.1, 72.8, 75.6, 78.9, 80.2, 78.0, 69.5, 77.3, 84.1, 76.4],
    )


@pytest.fixture
def random_joined_table() -> pd.DataFrame:
    """Fifty tracts of reproducible random indicators, all in Maryland."""
    rng = np.random.default_rng(42)
    n = 50
    geoids = [f"24019{i:06d}" for i in range(n)]
    return make_joined_table(
        geoids,
        low_income=rng.uniform(0.05, 0.7, n),
        ling_isolated=rng.uniform(0.0, 0.1, n),
        less_hs=rng.uniform(0.02, 0.3, n),
        unemployed=rng.uniform(0.01, 0.15, n),
        life_expectancy=rng.uniform(68.0, 86.0, n),
    )


@pytest.fixture
def study_area(monkeypatch):
    """Configure the study state and region to match SAMPLE_GEOIDS."""
    settings = get_settings()
    monkeypatch.setattr(settings, "STUDY_STATE_FIPS", "24")
    monkeypatch.setattr(settings, "STUDY_REGION_NAME", "lower_shore")
    monkeypatch.setattr(settings, "STUDY_REGION_COUNTY_FIPS", ["24019", "24039", "24045", "24047"])
    return settings


@pytest.fixture
def empty_dataframe() -> pd.DataFrame:
    """Return an empty DataFrame for edge case testing."""
    return pd.DataFrame()
