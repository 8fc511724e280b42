"""Seeded parameter generators for the classic sound categories.

Every generator draws from the ``numpy.random.Generator`` it is given, so
``generate_preset("laser_shoot", np.random.default_rng(7))`` always yields the
same ParameterSet.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Callable

import numpy as np

from .errors import InvalidConfigError
from .params import ParameterSet, WaveType, field_range

_LOGGER = logging.getLogger("chipsfx.presets")

PresetFn = Callable[[np.random.Generator], ParameterSet]

# Fields mutate() never touches.
_FIXED_FIELDS = frozenset({"wave_type", "sound_vol", "filter_on", "freq_limit"})


def _frnd(rng: np.random.Generator, span: float) -> float:
    return float(rng.random()) * span


def _rnd(rng: np.random.Generator, top: int) -> int:
    """Uniform integer in [0, top]."""
    return int(rng.integers(0, top + 1))


def _build(values: dict[str, Any]) -> ParameterSet:
    params = ParameterSet.model_validate(values)
    return params.model_copy(update={"filter_on": params.lpf_freq != 1.0})


def pickup_coin(rng: np.random.Generator) -> ParameterSet:
    v: dict[str, Any] = {}
    v["base_freq"] = 0.4 + _frnd(rng, 0.5)
    v["env_attack"] = 0.0
    v["env_sustain"] = _frnd(rng, 0.1)
    v["env_decay"] = 0.1 + _frnd(rng, 0.4)
    v["env_punch"] = 0.3 + _frnd(rng, 0.3)
    if _rnd(rng, 1):
        v["arp_speed"] = 0.5 + _frnd(rng, 0.2)
        v["arp_mod"] = 0.2 + _frnd(rng, 0.4)
    return _build(v)


def laser_shoot(rng: np.random.Generator) -> ParameterSet:
    v: dict[str, Any] = {}
    wave = _rnd(rng, 2)
    if wave == WaveType.SINE and _rnd(rng, 1):
        wave = _rnd(rng, 1)
    v["wave_type"] = wave
    v["base_freq"] = 0.5 + _frnd(rng, 0.5)
    v["freq_limit"] = max(v["base_freq"] - 0.2 - _frnd(rng, 0.6), 0.2)
    v["freq_ramp"] = -0.15 - _frnd(rng, 0.2)
    if _rnd(rng, 2) == 0:
        v["base_freq"] = 0.3 + _frnd(rng, 0.6)
        v["freq_limit"] = _frnd(rng, 0.1)
        v["freq_ramp"] = -0.35 - _frnd(rng, 0.3)
    if _rnd(rng, 1):
        v["duty"] = _frnd(rng, 0.5)
        v["duty_ramp"] = _frnd(rng, 0.2)
    else:
        v["duty"] = 0.4 + _frnd(rng, 0.5)
        v["duty_ramp"] = -_frnd(rng, 0.7)
    v["env_attack"] = 0.0
    v["env_sustain"] = 0.1 + _frnd(rng, 0.2)
    v["env_decay"] = _frnd(rng, 0.4)
    if _rnd(rng, 1):
        v["env_punch"] = _frnd(rng, 0.3)
    if _rnd(rng, 2) == 0:
        v["pha_offset"] = _frnd(rng, 0.2)
        v["pha_ramp"] = -_frnd(rng, 0.2)
    if _rnd(rng, 1):
        v["hpf_freq"] = _frnd(rng, 0.3)
    return _build(v)


def explosion(rng: np.random.Generator) -> ParameterSet:
    v: dict[str, Any] = {"wave_type": WaveType.NOISE}
    if _rnd(rng, 1):
        v["base_freq"] = 0.1 + _frnd(rng, 0.4)
        v["freq_ramp"] = -0.1 + _frnd(rng, 0.4)
    else:
        v["base_freq"] = 0.2 + _frnd(rng, 0.7)
        v["freq_ramp"] = -0.2 - _frnd(rng, 0.2)
    v["base_freq"] *= v["base_freq"]
    if _rnd(rng, 4) == 0:
        v["freq_ramp"] = 0.0
    if _rnd(rng, 2) == 0:
        v["repeat_speed"] = 0.3 + _frnd(rng, 0.5)
    v["env_attack"] = 0.0
    v["env_sustain"] = 0.1 + _frnd(rng, 0.3)
    v["env_decay"] = _frnd(rng, 0.5)
    if _rnd(rng, 1) == 0:
        v["pha_offset"] = -0.3 + _frnd(rng, 0.9)
        v["pha_ramp"] = -_frnd(rng, 0.3)
    v["env_punch"] = 0.2 + _frnd(rng, 0.6)
    if _rnd(rng, 1):
        v["vib_strength"] = _frnd(rng, 0.7)
        v["vib_speed"] = _frnd(rng, 0.6)
    if _rnd(rng, 2) == 0:
        v["arp_speed"] = 0.6 + _frnd(rng, 0.3)
        v["arp_mod"] = 0.8 - _frnd(rng, 1.6)
    return _build(v)


def powerup(rng: np.random.Generator) -> ParameterSet:
    v: dict[str, Any] = {}
    if _rnd(rng, 1):
        v["wave_type"] = WaveType.SAWTOOTH
    else:
        v["duty"] = _frnd(rng, 0.6)
    v["base_freq"] = 0.2 + _frnd(rng, 0.3)
    if _rnd(rng, 1):
        v["freq_ramp"] = 0.1 + _frnd(rng, 0.4)
        v["repeat_speed"] = 0.4 + _frnd(rng, 0.4)
    else:
        v["freq_ramp"] = 0.05 + _frnd(rng, 0.2)
        if _rnd(rng, 1):
            v["vib_strength"] = _frnd(rng, 0.7)
            v["vib_speed"] = _frnd(rng, 0.6)
    v["env_attack"] = 0.0
    v["env_sustain"] = _frnd(rng, 0.4)
    v["env_decay"] = 0.1 + _frnd(rng, 0.4)
    return _build(v)


def hit_hurt(rng: np.random.Generator) -> ParameterSet:
    v: dict[str, Any] = {}
    wave = _rnd(rng, 2)
    if wave == WaveType.SINE:
        wave = WaveType.NOISE
    if wave == WaveType.SQUARE:
        v["duty"] = _frnd(rng, 0.6)
    v["wave_type"] = wave
    v["base_freq"] = 0.2 + _frnd(rng, 0.6)
    v["freq_ramp"] = -0.3 - _frnd(rng, 0.4)
    v["env_attack"] = 0.0
    v["env_sustain"] = _frnd(rng, 0.1)
    v["env_decay"] = 0.1 + _frnd(rng, 0.2)
    if _rnd(rng, 1):
        v["hpf_freq"] = _frnd(rng, 0.3)
    return _build(v)


def jump(rng: np.random.Generator) -> ParameterSet:
    v: dict[str, Any] = {"wave_type": WaveType.SQUARE}
    v["duty"] = _frnd(rng, 0.6)
    v["base_freq"] = 0.3 + _frnd(rng, 0.3)
    v["freq_ramp"] = 0.1 + _frnd(rng, 0.2)
    v["env_attack"] = 0.0
    v["env_sustain"] = 0.1 + _frnd(rng, 0.3)
    v["env_decay"] = 0.1 + _frnd(rng, 0.2)
    if _rnd(rng, 1):
        v["hpf_freq"] = _frnd(rng, 0.3)
    if _rnd(rng, 1):
        v["lpf_freq"] = 1.0 - _frnd(rng, 0.6)
    return _build(v)


def blip_select(rng: np.random.Generator) -> ParameterSet:
    v: dict[str, Any] = {}
    wave = _rnd(rng, 1)
    if wave == WaveType.SQUARE:
        v["duty"] = _frnd(rng, 0.6)
    v["wave_type"] = wave
    v["base_freq"] = 0.2 + _frnd(rng, 0.4)
    v["env_attack"] = 0.0
    v["env_sustain"] = 0.1 + _frnd(rng, 0.1)
    v["env_decay"] = _frnd(rng, 0.2)
    v["hpf_freq"] = 0.1
    return _build(v)


def randomize(rng: np.random.Generator) -> ParameterSet:
    """Fully random sound, biased towards audible results."""

    def signed() -> float:
        return _frnd(rng, 2.0) - 1.0

    v: dict[str, Any] = {"wave_type": WaveType(_rnd(rng, len(WaveType) - 1))}
    v["base_freq"] = signed() ** 2
    if _rnd(rng, 1):
        v["base_freq"] = signed() ** 3 + 0.5
    v["freq_limit"] = 0.0
    v["freq_ramp"] = signed() ** 5
    if v["base_freq"] > 0.7 and v["freq_ramp"] > 0.2:
        v["freq_ramp"] = -v["freq_ramp"]
    if v["base_freq"] < 0.2 and v["freq_ramp"] < -0.05:
        v["freq_ramp"] = -v["freq_ramp"]
    v["freq_dramp"] = signed() ** 3
    v["duty"] = signed()
    v["duty_ramp"] = signed() ** 3
    v["vib_strength"] = signed() ** 3
    v["vib_speed"] = signed()
    v["vib_delay"] = signed()
    v["env_attack"] = signed() ** 3
    v["env_sustain"] = signed() ** 2
    v["env_decay"] = signed()
    v["env_punch"] = _frnd(rng, 0.8) ** 2
    if v["env_attack"] + v["env_sustain"] + v["env_decay"] < 0.2:
        v["env_sustain"] += 0.2 + _frnd(rng, 0.3)
        v["env_decay"] += 0.2 + _frnd(rng, 0.3)
    v["lpf_resonance"] = signed()
    v["lpf_freq"] = 1.0 - _frnd(rng, 1.0) ** 3
    v["lpf_ramp"] = signed() ** 3
    if v["lpf_freq"] < 0.1 and v["lpf_ramp"] < -0.05:
        v["lpf_ramp"] = -v["lpf_ramp"]
    v["hpf_freq"] = _frnd(rng, 1.0) ** 5
    v["hpf_ramp"] = signed() ** 5
    v["pha_offset"] = signed() ** 3
    v["pha_ramp"] = signed() ** 3
    v["repeat_speed"] = signed()
    v["arp_speed"] = signed()
    v["arp_mod"] = signed()
    return _build(v)


def mutate(params: ParameterSet, rng: np.random.Generator) -> ParameterSet:
    """Nudge roughly half of the tunable fields by up to +/-0.05."""

    changes: dict[str, float] = {}
    for name in ParameterSet.model_fields:
        if name in _FIXED_FIELDS:
            continue
        if not _rnd(rng, 1):
            continue
        low, high = field_range(name)
        value = getattr(params, name) + _frnd(rng, 0.1) - 0.05
        changes[name] = min(max(value, low), high)
    return ParameterSet.model_validate({**params.model_dump(), **changes})


PRESETS: Mapping[str, PresetFn] = MappingProxyType(
    {
        "pickup_coin": pickup_coin,
        "laser_shoot": laser_shoot,
        "explosion": explosion,
        "powerup": powerup,
        "hit_hurt": hit_hurt,
        "jump": jump,
        "blip_select": blip_select,
        "randomize": randomize,
    }
)


def generate_preset(name: str, rng: np.random.Generator | None = None) -> ParameterSet:
    try:
        preset = PRESETS[name]
    except KeyError as exc:
        raise InvalidConfigError(
            f"Unknown preset: {name}. Valid: {sorted(PRESETS)}"
        ) from exc
    params = preset(rng if rng is not None else np.random.default_rng())
    _LOGGER.debug("Generated %s preset: wave=%s", name, params.wave_type.name)
    return params
