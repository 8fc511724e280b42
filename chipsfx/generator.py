# pyright: reportUnknownMemberType=false

"""
Per-sample synthesis.

Every frame runs at the 44.1 kHz reference rate with 8x oversampling:

1. Pitch: repeat timer, one-shot arpeggio, slide, vibrato
2. Envelope: attack / sustain (with punch) / decay
3. Sub-samples: oscillator -> low-pass -> high-pass -> flanger
4. Resampling to the requested output rate and gain

All running values live on the PlaybackState as ``np.float32``, so the
rounding matches a single-precision engine sample for sample, and
generation can stop after any output sample and resume later with
identical results.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator, Sequence

import numpy as np
from numpy.typing import DTypeLike, NDArray

from .audio import check_dtype, quantize
from .errors import AllocationError, InternalError, InvalidConfigError
from .logging_utils import log_exception
from .params import WaveType
from .state import (
    ENVELOPE_STAGES,
    FLANGER_SIZE,
    HALF,
    NOISE_SIZE,
    ONE,
    OVERSAMPLING,
    ZERO,
    PlaybackState,
    f32,
    refill_noise,
)

_LOGGER = logging.getLogger("chipsfx.generator")

MIN_PERIOD = 8
_FLANGER_MASK = FLANGER_SIZE - 1
_TWO = f32(2.0)
_PI = f32(math.pi)
_TWO_PI = f32(2.0 * math.pi)
_LPF_MAX = f32(0.1)
_HPF_MIN = f32(0.00001)
_HPF_MAX = f32(0.1)

__all__ = [
    "FLANGER_SIZE",
    "MIN_PERIOD",
    "NOISE_SIZE",
    "OVERSAMPLING",
    "fill",
    "iter_chunks",
    "next_sample",
    "oscillator",
    "render",
]


def _sin(value: np.float32) -> np.float32:
    return f32(math.sin(value))


def oscillator(
    wave: WaveType,
    phase: int,
    period: int,
    duty: float,
    noise: Sequence[float],
) -> np.float32:
    """Base waveform value at ``phase`` within a cycle of ``period`` sub-samples."""

    fp = f32(phase) / f32(period)
    d = f32(duty)
    match wave:
        case WaveType.SQUARE:
            return HALF if fp < d else -HALF
        case WaveType.SAWTOOTH:
            if fp < d:
                return -ONE + _TWO * fp / d
            return ONE - _TWO * (fp - d) / (ONE - d)
        case WaveType.SINE:
            return _sin(fp * _TWO_PI)
        case WaveType.EASE:
            if fp < d:
                rise = _sin(_PI * fp / d)
                return rise * rise
            fall = _sin(_PI * (fp - d) / (ONE - d))
            return -(fall * fall)
        case WaveType.NOISE:
            return f32(noise[phase * NOISE_SIZE // period])
        case WaveType.NOISE_METALLIC:
            return HALF if noise[phase * NOISE_SIZE // period] >= 0.0 else -HALF
    raise InternalError(f"Unknown wave type: {wave!r}")


def _finish(state: PlaybackState, reason: str) -> None:
    state.playing = False
    _LOGGER.debug("Sound finished (%s) after %d output samples", reason, state.cursor)


def _advance_envelope(state: PlaybackState) -> bool:
    """Step the envelope cursor; False once the decay stage has run out."""

    state.env_time += 1
    lengths = state.env_length
    while state.env_time >= lengths[state.env_stage]:
        state.env_time = 0
        state.env_stage += 1
        if state.env_stage == ENVELOPE_STAGES:
            return False

    progress = f32(state.env_time) / f32(lengths[state.env_stage])
    if state.env_stage == 0:
        state.env_vol = progress
    elif state.env_stage == 1:
        state.env_vol = ONE + (ONE - progress) * _TWO * state.env_punch
    else:
        state.env_vol = ONE - progress
    return True


def _synth_frame(state: PlaybackState) -> np.float32 | None:
    """One 44.1 kHz frame: the sum of its oversampled sub-samples, or None at the end."""

    p = state.params

    state.rep_time += 1
    if state.rep_limit != 0 and state.rep_time >= state.rep_limit:
        state.rep_time = 0
        state.reset_pitch()

    state.arp_time += 1
    if state.arp_limit != 0 and state.arp_time >= state.arp_limit:
        state.arp_limit = 0
        state.fperiod *= state.arp_mod

    state.fslide += state.fdslide
    state.fperiod *= state.fslide
    if state.fperiod > state.fmaxperiod:
        state.fperiod = state.fmaxperiod
        if p.freq_limit > 0.0:
            _finish(state, "frequency cutoff")
            return None

    rfperiod = state.fperiod
    if state.vib_amp > ZERO:
        state.vib_phase += state.vib_speed
        rfperiod = state.fperiod * (ONE + _sin(state.vib_phase) * state.vib_amp)
    period = max(int(rfperiod), MIN_PERIOD)
    state.period = period

    state.square_duty = min(max(state.square_duty + state.square_slide, ZERO), HALF)

    if not _advance_envelope(state):
        _finish(state, "envelope")
        return None

    state.fphase += state.fdphase
    state.iphase = min(abs(int(state.fphase)), _FLANGER_MASK)

    if state.flthp_d != ZERO:
        state.flthp = min(max(state.flthp * state.flthp_d, _HPF_MIN), _HPF_MAX)

    wave = p.wave_type
    refresh_noise = wave.is_noise
    lpf_active = p.lpf_freq != 1.0
    noise = state.noise_buffer
    flanger = state.flanger_buffer
    duty = state.square_duty
    env_vol = state.env_vol

    total = ZERO
    for _ in range(OVERSAMPLING):
        state.phase += 1
        if state.phase >= period:
            state.phase %= period
            if refresh_noise:
                refill_noise(noise, state.rng)
        sample = oscillator(wave, state.phase, period, duty, noise)

        # low-pass
        previous = state.fltp
        state.fltw = min(max(state.fltw * state.fltw_d, ZERO), _LPF_MAX)
        if lpf_active:
            state.fltdp += (sample - state.fltp) * state.fltw
            state.fltdp -= state.fltdp * state.fltdmp
        else:
            state.fltp = sample
            state.fltdp = ZERO
        state.fltp += state.fltdp

        # high-pass
        state.fltphp += state.fltp - previous
        state.fltphp -= state.fltphp * state.flthp
        sample = state.fltphp

        # flanger
        flanger[state.ipp] = sample
        sample += flanger[(state.ipp - state.iphase) & _FLANGER_MASK]
        state.ipp = (state.ipp + 1) & _FLANGER_MASK

        total += sample * env_vol
    return total


def next_sample(state: PlaybackState) -> float | None:
    """Advance by exactly one output sample; None once the sound has ended."""

    if not state.playing:
        return None
    while state.resample_acc < state.resample_ratio:
        frame = _synth_frame(state)
        if frame is None:
            return None
        state.resample_sum += frame
        state.resample_count += 1
        state.resample_acc += 1.0
    if state.resample_count:
        state.held_sample = state.resample_sum / f32(state.resample_count) * state.gain
        state.resample_sum = ZERO
        state.resample_count = 0
    state.resample_acc -= state.resample_ratio
    state.cursor += 1
    return float(state.held_sample)


def fill(state: PlaybackState, buffer: NDArray[np.generic]) -> int:
    """Fill ``buffer`` from the front and return how many samples were written.

    A short count means the sound ended during this call.
    """

    if buffer.ndim != 1:
        raise InvalidConfigError(f"Expected a 1-D buffer, got shape {buffer.shape}")
    check_dtype(buffer.dtype)
    samples: list[float] = []
    for _ in range(buffer.shape[0]):
        value = next_sample(state)
        if value is None:
            break
        samples.append(value)
    if samples:
        buffer[: len(samples)] = quantize(np.asarray(samples, dtype=np.float64), buffer.dtype)
    return len(samples)


def _allocate(size: int, dtype: DTypeLike) -> NDArray[np.generic]:
    try:
        return np.empty(size, dtype=dtype)
    except MemoryError as exc:
        _LOGGER.warning("Could not allocate %d output samples", size)
        log_exception("render", exc)
        raise AllocationError(f"Could not allocate {size} output samples") from exc


def render(state: PlaybackState, dtype: DTypeLike = np.float32) -> NDArray[np.generic]:
    """Generate everything that is left of the sound."""

    check_dtype(np.dtype(dtype))
    out = _allocate(max(state.output_frames_estimate, 1), dtype)
    written = 0
    while not state.finished:
        if written == out.shape[0]:
            grown = _allocate(out.shape[0] * 2, dtype)
            grown[:written] = out
            out = grown
        written += fill(state, out[written:])
    return out[:written].copy()


def iter_chunks(
    state: PlaybackState,
    chunk_size: int,
    dtype: DTypeLike = np.float32,
) -> Iterator[NDArray[np.generic]]:
    """Yield successive chunks of at most ``chunk_size`` samples until the end."""

    if chunk_size <= 0:
        raise InvalidConfigError(f"chunk_size must be positive, got {chunk_size}")
    check_dtype(np.dtype(dtype))
    while not state.finished:
        chunk = _allocate(chunk_size, dtype)
        written = fill(state, chunk)
        if written:
            yield chunk[:written]
        if written < chunk_size:
            return
