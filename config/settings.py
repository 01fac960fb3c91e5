"""
Demographic Index Engine - Application Settings
Manages environment variables and configuration using Pydantic
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List, Optional
import os


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Nothing is required; every path defaults to a location under DATA_DIR.

    Optional:
        - EJSCREEN_PATH / LIFE_EXPECTANCY_PATH (override local extracts)
        - TRACT_BOUNDARIES_PATH (enables GeoJSON export)
        - STUDY_STATE_FIPS, STUDY_REGION_COUNTY_FIPS (enable state / region scopes)
    """

    # Application
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    # Data sources
    EPA_EJSCREEN_URL: str = "https://gaftp.epa.gov/EJSCREEN"
    EJSCREEN_YEAR: int = 2023
    LIFE_EXPECTANCY_URL: str = (
        "https://ftp.cdc.gov/pub/Health_Statistics/NCHS/Datasets/NVSS/USALEEP/CSV/US_A.CSV"
    )

    # Local extracts
    DATA_DIR: str = "data"
    EJSCREEN_PATH: Optional[str] = None
    LIFE_EXPECTANCY_PATH: Optional[str] = None
    TRACT_BOUNDARIES_PATH: Optional[str] = None

    # Index parameters
    LIFE_EXPECTANCY_CEILING: float = 150.0  # Years; inverted indicator is 0 here
    THRESHOLD_QUANTILE: float = 0.8
    REFERENCE_SCOPE: str = "national"  # national | state | region
    MIN_PCA_ROWS: int = 2

    # Study area; unset levels are left out of the threshold and summary tables
    STUDY_STATE_FIPS: Optional[str] = None
    STUDY_REGION_NAME: str = "region"
    STUDY_REGION_COUNTY_FIPS: List[str] = []

    # File storage
    EXPORT_DIR: str = "exports"
    LOG_DIR: str = "logs"
    OUTPUT_BASENAME: str = "demographic_index"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Create directories if they don't exist
        os.makedirs(self.EXPORT_DIR, exist_ok=True)
        os.makedirs(self.LOG_DIR, exist_ok=True)

    @property
    def ejscreen_path(self) -> str:
        return self.EJSCREEN_PATH or os.path.join(
            self.DATA_DIR, f"EJSCREEN_{self.EJSCREEN_YEAR}_Tracts.csv"
        )

    @property
    def life_expectancy_path(self) -> str:
        return self.LIFE_EXPECTANCY_PATH or os.path.join(self.DATA_DIR, "US_A.CSV")


@lru_cache()
def get_settings() -> Settings:
    """
    Returns cached settings instance.
    Uses lru_cache to avoid re-reading .env on every call.
    """
    return Settings()

