from typing import Optional
from pydantic import BaseModel, Field, ValidationError, model_validator
import logging

from focus_shield.config.settings import Settings, settings as default_settings
from focus_shield.services.errors import ConfigError

logger = logging.getLogger(__name__)

class ShieldConfig(BaseModel):
    """Soft shield monitor configuration"""
    away_threshold_seconds: int = Field(
        default=15,
        ge=1,
        le=3600,
        description="Continuous away time that fails the session outright"
    )
    warning_threshold_seconds: int = Field(
        default=10,
        ge=1,
        le=3600,
        description="Away time at which a single grace warning is raised"
    )
    tick_interval_ms: int = Field(
        default=1000,
        ge=50,
        le=10000,
        description="Milliseconds between monitor checks"
    )
    grace_window_seconds: int = Field(
        default=5,
        ge=1,
        le=60,
        description="Fixed return window granted once a warning is raised"
    )
    fail_delay_ms: int = Field(
        default=100,
        ge=0,
        le=5000,
        description="Delay between the final 0s warning and the fail event"
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_thresholds(self) -> "ShieldConfig":
        if self.warning_threshold_seconds > self.away_threshold_seconds:
            raise ValueError(
                "warning_threshold_seconds must not exceed away_threshold_seconds"
            )
        return self

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "ShieldConfig":
        """Build a shield configuration from application settings"""
        source = source or default_settings
        try:
            config = cls(
                away_threshold_seconds=source.AWAY_THRESHOLD_SECONDS,
                warning_threshold_seconds=source.WARNING_THRESHOLD_SECONDS,
                tick_interval_ms=source.TICK_INTERVAL_MS,
                grace_window_seconds=source.GRACE_WINDOW_SECONDS,
                fail_delay_ms=source.WARNING_FAIL_DELAY_MS,
            )
        except ValidationError as e:
            logger.error(f"Invalid shield configuration: {e}")
            raise ConfigError(f"Invalid shield configuration: {e}")
        logger.debug(f"Shield configuration loaded: {config}")
        return config
