from __future__ import annotations

import logging

import numpy as np

from .config import BASE_SAMPLE_RATE, DEFAULT_MASTER_VOLUME, MAX_SEED
from .errors import InvalidConfigError
from .params import ParameterSet

_LOGGER = logging.getLogger("chipsfx.state")

OVERSAMPLING = 8
FLANGER_SIZE = 1024
NOISE_SIZE = 32
ENVELOPE_STAGES = 3

# Running values are single precision; every literal they meet is too.
f32 = np.float32
ZERO = f32(0.0)
ONE = f32(1.0)
HALF = f32(0.5)


def _entropy_seed() -> int:
    return int(np.random.SeedSequence().generate_state(1, dtype=np.uint64)[0])


def refill_noise(noise: list[np.float32], rng: np.random.Generator) -> None:
    """Redraw the noise table in place with values in [-1, 1)."""

    drawn = (rng.random(NOISE_SIZE) * 2.0 - 1.0).astype(np.float32)
    noise[:] = list(drawn)


def _cube(value: float) -> np.float32:
    v = f32(value)
    return v * v * v


def _square(value: float) -> np.float32:
    v = f32(value)
    return v * v


def _signed_square(value: float) -> np.float32:
    squared = _square(value)
    return -squared if value < 0.0 else squared


def _timer_limit(speed: float) -> int:
    remaining = ONE - f32(speed)
    return int(remaining * remaining * f32(20000.0) + f32(32.0))


def _stage_length(value: float) -> int:
    return int(_square(value) * f32(100000.0))


class PlaybackState:
    """Mutable synthesis state for one sound.

    Created from a ParameterSet and advanced one frame at a time by
    :mod:`chipsfx.generator`. Every running value is an ``np.float32`` so the
    arithmetic rounds the way a single-precision engine does. Not
    thread-safe: one owner at a time. Every random draw goes through
    ``self.rng``, so states never share entropy.
    """

    def __init__(
        self,
        params: ParameterSet,
        *,
        sample_rate: int = BASE_SAMPLE_RATE,
        seed: int | None = None,
        master_volume: float = DEFAULT_MASTER_VOLUME,
    ) -> None:
        if sample_rate <= 0:
            raise InvalidConfigError(f"sample_rate must be positive, got {sample_rate}")
        if seed is not None and not 0 <= seed < MAX_SEED:
            raise InvalidConfigError(f"seed must fit in 64 bits, got {seed}")
        if master_volume < 0:
            raise InvalidConfigError(f"master_volume must be >= 0, got {master_volume}")

        self.params = params.model_copy()
        self.sample_rate = sample_rate
        self.seed = _entropy_seed() if seed is None else seed
        self.master_volume = master_volume
        self.resample_ratio = BASE_SAMPLE_RATE / sample_rate
        self.gain = f32(master_volume) * f32(2.0) * f32(params.sound_vol) / f32(OVERSAMPLING)
        self.env_punch = f32(params.env_punch)

        self.flanger_buffer: list[np.float32] = [ZERO] * FLANGER_SIZE
        self.noise_buffer: list[np.float32] = [ZERO] * NOISE_SIZE
        self.env_length: list[int] = [0, 0, 0]
        self.restart()

    def reset_pitch(self) -> None:
        """Re-derive the pitch, duty and arpeggio trajectories.

        Used both at start-up and by the repeat timer; envelope, filters and
        the flanger keep running across a repeat.
        """

        p = self.params
        self.fperiod = f32(100.0) / (_square(p.base_freq) + f32(0.001))
        self.period = int(self.fperiod)
        self.fmaxperiod = f32(100.0) / (_square(p.freq_limit) + f32(0.001))
        self.fslide = ONE - _cube(p.freq_ramp) * f32(0.01)
        self.fdslide = -_cube(p.freq_dramp) * f32(0.000001)
        self.square_duty = HALF - f32(p.duty) * HALF
        self.square_slide = -f32(p.duty_ramp) * f32(0.00005)
        if p.arp_mod >= 0.0:
            self.arp_mod = ONE - _square(p.arp_mod) * f32(0.9)
        else:
            self.arp_mod = ONE + _square(p.arp_mod) * f32(10.0)
        self.arp_time = 0
        self.arp_limit = 0 if p.arp_speed == 1.0 else _timer_limit(p.arp_speed)

    def restart(self) -> None:
        """Return every running variable to its construction-time value."""

        p = self.params
        self.rng = np.random.default_rng(self.seed)
        self.phase = 0
        self.reset_pitch()

        self.fltp = ZERO
        self.fltdp = ZERO
        self.fltw = _cube(p.lpf_freq) * f32(0.1)
        self.fltw_d = ONE + f32(p.lpf_ramp) * f32(0.0001)
        damping = f32(5.0) / (ONE + _square(p.lpf_resonance) * f32(20.0)) * (f32(0.01) + self.fltw)
        self.fltdmp = min(damping, f32(0.8))
        self.fltphp = ZERO
        self.flthp = _square(p.hpf_freq) * f32(0.1)
        self.flthp_d = ONE + f32(p.hpf_ramp) * f32(0.0003)

        self.vib_phase = ZERO
        self.vib_speed = _square(p.vib_speed) * f32(0.01)
        self.vib_amp = f32(p.vib_strength) * HALF

        self.env_vol = ZERO
        self.env_stage = 0
        self.env_time = 0
        self.env_length[:] = [
            _stage_length(p.env_attack),
            _stage_length(p.env_sustain),
            _stage_length(p.env_decay),
        ]

        self.fphase = _signed_square(p.pha_offset) * f32(1020.0)
        self.fdphase = _signed_square(p.pha_ramp)
        self.iphase = min(abs(int(self.fphase)), FLANGER_SIZE - 1)
        self.ipp = 0
        self.flanger_buffer[:] = [ZERO] * FLANGER_SIZE

        refill_noise(self.noise_buffer, self.rng)

        self.rep_time = 0
        self.rep_limit = 0 if p.repeat_speed == 0.0 else _timer_limit(p.repeat_speed)

        self.resample_acc = 0.0
        self.resample_sum = ZERO
        self.resample_count = 0
        self.held_sample = ZERO
        self.cursor = 0
        self.playing = True
        _LOGGER.debug(
            "Playback state ready: wave=%s envelope=%s rate=%d seed=%d",
            p.wave_type.name,
            self.env_length,
            self.sample_rate,
            self.seed,
        )

    @property
    def finished(self) -> bool:
        return not self.playing

    @property
    def envelope_frames(self) -> int:
        """Upper bound on internal frames this sound can produce."""

        return sum(self.env_length)

    @property
    def output_frames_estimate(self) -> int:
        return int(np.ceil(self.envelope_frames / self.resample_ratio)) + 1


def init_playback_state(
    params: ParameterSet,
    sample_rate: int = BASE_SAMPLE_RATE,
    seed: int | None = None,
    *,
    master_volume: float = DEFAULT_MASTER_VOLUME,
) -> PlaybackState:
    return PlaybackState(
        params,
        sample_rate=sample_rate,
        seed=seed,
        master_volume=master_volume,
    )
