from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import InvalidConfigError

_LOGGER = logging.getLogger("chipsfx.config")

# Envelope lengths, repeat and arpeggio timers are all expressed at this rate.
BASE_SAMPLE_RATE = 44_100
DEFAULT_MASTER_VOLUME = 0.05
MAX_SEED = 2**64


class SynthSettings(BaseModel):
    """Render-time knobs that are not part of a sound's parameters."""

    sample_rate: int = Field(default=BASE_SAMPLE_RATE, gt=0)
    seed: int | None = Field(default=None, ge=0, lt=MAX_SEED)
    master_volume: float = Field(default=DEFAULT_MASTER_VOLUME, ge=0.0)

    model_config = ConfigDict(frozen=True, extra="forbid")


SettingsInput = SynthSettings | Mapping[str, Any] | None


def coerce_settings(settings: SettingsInput) -> SynthSettings:
    match settings:
        case None:
            return SynthSettings()
        case SynthSettings():
            return settings
        case Mapping():
            try:
                return SynthSettings.model_validate(dict(settings))
            except ValidationError as exc:
                _LOGGER.warning("Failed to parse synth settings: %s", exc, exc_info=True)
                raise InvalidConfigError(str(exc)) from exc
        case _:
            raise InvalidConfigError(f"Unsupported settings type: {type(settings).__name__}")
