"""Engine settings.

Defaults match the constants in the core modules. Any of them can be
overridden through ``FINCAST_*`` environment variables (a ``.env`` file in
the working directory is loaded first).
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fincast.core.analyzers import ANOMALY_FLOOR, ANOMALY_WINDOW_DAYS, ANOMALY_Z, BUDGET_WARNING_RATIO
from fincast.core.cards import PROJECTION_CYCLES
from fincast.core.forecast import (
    BILL_ALERT_HORIZON_DAYS,
    FORECAST_HORIZONS,
    SPEND_WINDOW_DAYS,
    UPCOMING_HORIZON_DAYS,
)
from fincast.core.recurring import MAX_CANDIDATES, RECURRING_WINDOW_DAYS

ENV_PREFIX = "FINCAST_"

logger = logging.getLogger("fincast")


class EngineSettings(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    projection_cycles: int = Field(default=PROJECTION_CYCLES, ge=1, le=120)
    forecast_horizons: tuple[int, ...] = FORECAST_HORIZONS
    bill_horizon_days: int = Field(default=BILL_ALERT_HORIZON_DAYS, ge=0)
    upcoming_horizon_days: int = Field(default=UPCOMING_HORIZON_DAYS, ge=0)
    recurring_window_days: int = Field(default=RECURRING_WINDOW_DAYS, ge=1)
    recurring_limit: int = Field(default=MAX_CANDIDATES, ge=0)
    spend_window_days: int = Field(default=SPEND_WINDOW_DAYS, ge=1)
    anomaly_window_days: int = Field(default=ANOMALY_WINDOW_DAYS, ge=1)
    anomaly_z: float = Field(default=ANOMALY_Z, gt=0)
    anomaly_floor: float = Field(default=ANOMALY_FLOOR, ge=0)
    budget_warning_ratio: float = Field(default=BUDGET_WARNING_RATIO, gt=0, le=1)
    log_level: str = "WARNING"

    @field_validator("forecast_horizons", mode="before")
    @classmethod
    def _split_horizons(cls, v):
        if isinstance(v, str):
            return tuple(int(part) for part in v.split(",") if part.strip())
        return v

    @field_validator("forecast_horizons")
    @classmethod
    def _positive_horizons(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        if not v or any(days <= 0 for days in v):
            raise ValueError("forecast horizons must be positive day counts")
        return v

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level '{v}'")
        return level


def load_settings(environ: Mapping[str, str] | None = None) -> EngineSettings:
    """Build settings from ``FINCAST_*`` variables.

    Raises ``RuntimeError`` naming the bad variables when a value fails
    validation.
    """
    env = os.environ if environ is None else environ
    values = {
        name[len(ENV_PREFIX):].lower(): value
        for name, value in env.items()
        if name.startswith(ENV_PREFIX) and value != ""
    }
    try:
        return EngineSettings(**values)
    except ValidationError as e:
        fields = ", ".join(
            ENV_PREFIX + str(err["loc"][0]).upper() for err in e.errors() if err["loc"]
        )
        raise RuntimeError(f"Invalid fincast configuration in {fields}.") from e


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    load_dotenv()
    settings = load_settings()
    logger.setLevel(settings.log_level)
    return settings
