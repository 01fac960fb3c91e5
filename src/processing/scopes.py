"""
Demographic Index Engine - Reference Scopes
Populations against which percentiles and thresholds are computed

A scope selects records by GEOID prefix:
- national: every record
- state: 2-digit state FIPS prefix
- region: 5-digit county FIPS prefix
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from config.settings import get_settings
from src.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

GEOID_COLUMN = "geoid"


class InvalidReferenceScopeError(ValueError):
    """Raised when a reference scope is undefined or selects no records"""


class ScopeLevel(str, Enum):
    """Geographic level of a reference population"""
    NATIONAL = "national"
    STATE = "state"
    REGION = "region"


@dataclass(frozen=True)
class ReferenceScope:
    """
    A named reference population.

    `codes` holds state FIPS codes for STATE scopes and county FIPS codes for
    REGION scopes; it is empty for NATIONAL.
    """
    name: str
    level: ScopeLevel
    codes: Tuple[str, ...] = ()

    def mask(self, df: pd.DataFrame) -> pd.Series:
        """Boolean mask of the records belonging to this scope."""
        if self.level == ScopeLevel.NATIONAL:
            return pd.Series(True, index=df.index)

        if not self.codes:
            raise InvalidReferenceScopeError(
                f"Scope '{self.name}' ({self.level.value}) has no FIPS codes"
            )

        if GEOID_COLUMN not in df.columns:
            raise InvalidReferenceScopeError(
                f"Scope '{self.name}' needs a '{GEOID_COLUMN}' column to select records"
            )

        width = 2 if self.level == ScopeLevel.STATE else 5
        prefixes = df[GEOID_COLUMN].astype(str).str[:width]
        return prefixes.isin(self.codes)

    def select(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Records belonging to this scope.

        Raises:
            InvalidReferenceScopeError: scope selects no records
        """
        mask = self.mask(df)
        if not mask.any():
            raise InvalidReferenceScopeError(
                f"Scope '{self.name}' ({self.level.value}) selects no records "
                f"out of {len(df)}"
            )
        return df[mask]


def national_scope() -> ReferenceScope:
    return ReferenceScope(name="national", level=ScopeLevel.NATIONAL)


def state_scope(state_fips: str, name: Optional[str] = None) -> ReferenceScope:
    state_fips = str(state_fips).zfill(2)
    return ReferenceScope(name=name or f"state_{state_fips}", level=ScopeLevel.STATE,
                          codes=(state_fips,))


def region_scope(name: str, county_fips: Iterable[str]) -> ReferenceScope:
    codes = tuple(str(c).zfill(5) for c in county_fips)
    return ReferenceScope(name=name, level=ScopeLevel.REGION, codes=codes)


def study_state() -> Optional[ReferenceScope]:
    """Study-state scope, or None when STUDY_STATE_FIPS is unset."""
    if not settings.STUDY_STATE_FIPS:
        return None
    return state_scope(settings.STUDY_STATE_FIPS, name=ScopeLevel.STATE.value)


def study_region() -> Optional[ReferenceScope]:
    """Study-region scope, or None when STUDY_REGION_COUNTY_FIPS is empty."""
    if not settings.STUDY_REGION_COUNTY_FIPS:
        return None
    return region_scope(settings.STUDY_REGION_NAME, settings.STUDY_REGION_COUNTY_FIPS)


def configured_scopes() -> List[ReferenceScope]:
    """National scope followed by whichever study scopes are configured."""
    return [scope for scope in (national_scope(), study_state(), study_region()) if scope is not None]


def resolve_scope(name: str) -> ReferenceScope:
    """
    Resolve a scope by level name ('national', 'state', 'region') or by the
    configured region name.

    Raises:
        InvalidReferenceScopeError: name matches no configured scope
    """
    lookup = {ScopeLevel.NATIONAL.value: national_scope()}

    state = study_state()
    if state is not None:
        lookup[ScopeLevel.STATE.value] = state

    region = study_region()
    if region is not None:
        lookup[ScopeLevel.REGION.value] = region
        lookup[region.name] = region

    if name not in lookup:
        hint = ""
        if name == ScopeLevel.STATE.value:
            hint = " (set STUDY_STATE_FIPS)"
        elif name == ScopeLevel.REGION.value:
            hint = " (set STUDY_REGION_COUNTY_FIPS)"
        raise InvalidReferenceScopeError(
            f"Unknown reference scope '{name}'{hint}. Known: {sorted(lookup)}"
        )

    scope = lookup[name]
    logger.info(f"Resolved reference scope '{name}' -> {scope.level.value} {list(scope.codes)}")
    return scope
