from __future__ import annotations

from enum import IntEnum
from typing import Annotated

import numpy as np
from pydantic import AfterValidator, BaseModel, ConfigDict


class WaveType(IntEnum):
    SQUARE = 0
    SAWTOOTH = 1
    SINE = 2
    NOISE = 3
    NOISE_METALLIC = 4
    EASE = 5

    @property
    def is_noise(self) -> bool:
        return self in (WaveType.NOISE, WaveType.NOISE_METALLIC)


def _to_float32(value: float) -> float:
    with np.errstate(over="ignore"):
        narrowed = np.float32(value)
    if not np.isfinite(narrowed):
        raise ValueError(f"must be a finite 32-bit float, got {value!r}")
    return float(narrowed)


# Stored values always survive a trip through a finite 32-bit float field.
Float32 = Annotated[float, AfterValidator(_to_float32)]


class ParameterSet(BaseModel):
    """Immutable description of one sound.

    Field order is the serialization order of the binary format; new fields
    may only be appended. Most values live in [0, 1]; the ramp, offset and
    arpeggio-modulation fields are signed and live in [-1, 1].
    """

    wave_type: WaveType = WaveType.SQUARE
    sound_vol: Float32 = 0.5

    base_freq: Float32 = 0.3
    freq_limit: Float32 = 0.0
    freq_ramp: Float32 = 0.0
    freq_dramp: Float32 = 0.0
    duty: Float32 = 0.0
    duty_ramp: Float32 = 0.0

    vib_strength: Float32 = 0.0
    vib_speed: Float32 = 0.0
    vib_delay: Float32 = 0.0

    env_attack: Float32 = 0.0
    env_sustain: Float32 = 0.3
    env_decay: Float32 = 0.4
    env_punch: Float32 = 0.0

    filter_on: bool = False
    lpf_resonance: Float32 = 0.0
    lpf_freq: Float32 = 1.0
    lpf_ramp: Float32 = 0.0
    hpf_freq: Float32 = 0.0
    hpf_ramp: Float32 = 0.0

    pha_offset: Float32 = 0.0
    pha_ramp: Float32 = 0.0

    repeat_speed: Float32 = 0.0

    arp_speed: Float32 = 0.0
    arp_mod: Float32 = 0.0

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)


# Slider ranges used when perturbing parameters.
SIGNED_FIELDS: frozenset[str] = frozenset(
    {
        "freq_ramp",
        "freq_dramp",
        "duty_ramp",
        "lpf_ramp",
        "hpf_ramp",
        "pha_offset",
        "pha_ramp",
        "arp_mod",
    }
)


def field_range(name: str) -> tuple[float, float]:
    if name in SIGNED_FIELDS:
        return (-1.0, 1.0)
    return (0.0, 1.0)
