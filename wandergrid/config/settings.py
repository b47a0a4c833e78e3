"""Application configuration settings."""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional


def _parse_working_days(raw: str) -> List[int]:
    """Parse a comma separated list of weekday numbers (0=Sun ... 6=Sat)."""
    days = []
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit() and 0 <= int(part) <= 6:
            days.append(int(part))
    return days or [1, 2, 3, 4, 5]


@dataclass
class LeaveEngineSettings:
    """Leave balance engine configuration."""

    # Entitlement id used for requests that do not consume any allowance
    no_impact_key: str = "NO_IMPACT_EVENT"

    # Lieu entitlement is matched by id or by category tag
    lieu_entitlement_id: str = "e2"
    lieu_category: str = "Lieu"

    # Carry-over chains deeper than this resolve to zero
    max_carry_over_depth: int = 5

    # Allowed difference between a split's allocated days and the deduction
    allocation_tolerance: float = 0.1

    # Used when a workspace does not configure its own working days
    default_working_days: List[int] = field(default_factory=lambda: [1, 2, 3, 4, 5])

    observed_suffix: str = " (Observed)"


@dataclass
class Settings:
    """Main application settings."""

    # Application info
    app_name: str = "WanderGrid Leave Engine"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Leave engine
    leave: LeaveEngineSettings = field(default_factory=LeaveEngineSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        return cls(
            app_name=os.getenv("APP_NAME", "WanderGrid Leave Engine"),
            app_version=os.getenv("APP_VERSION", "1.0.0"),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            leave=LeaveEngineSettings(
                no_impact_key=os.getenv("LEAVE_NO_IMPACT_KEY", "NO_IMPACT_EVENT"),
                lieu_entitlement_id=os.getenv("LEAVE_LIEU_ENTITLEMENT_ID", "e2"),
                lieu_category=os.getenv("LEAVE_LIEU_CATEGORY", "Lieu"),
                max_carry_over_depth=int(os.getenv("LEAVE_MAX_CARRY_OVER_DEPTH", "5")),
                allocation_tolerance=float(os.getenv("LEAVE_ALLOCATION_TOLERANCE", "0.1")),
                default_working_days=_parse_working_days(
                    os.getenv("LEAVE_DEFAULT_WORKING_DAYS", "1,2,3,4,5")
                ),
                observed_suffix=os.getenv("LEAVE_OBSERVED_SUFFIX", " (Observed)"),
            ),
        )


# Singleton settings instance
_settings: Optional[Settings] = None


@lru_cache()
def get_settings() -> Settings:
    """Get application settings (cached)."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
    get_settings.cache_clear()
