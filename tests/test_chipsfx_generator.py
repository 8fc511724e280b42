from __future__ import annotations

import itertools
from pathlib import Path

import numpy as np
import pytest

from chipsfx.errors import AllocationError, InvalidConfigError
from chipsfx.generator import fill, iter_chunks, next_sample, oscillator, render
from chipsfx.params import ParameterSet, WaveType
from chipsfx.state import PlaybackState, init_playback_state

# attack/sustain/decay of 0.1/0.2/0.3 give stage lengths of 1000/4000/9000 frames.
SCENARIO = ParameterSet(
    wave_type=WaveType.SQUARE,
    base_freq=0.3,
    duty=0.5,
    env_attack=0.1,
    env_sustain=0.2,
    env_decay=0.3,
    filter_on=False,
)
SCENARIO_FRAMES = 999 + 4000 + 9000


def _render(params: ParameterSet, **kwargs: object) -> np.ndarray:
    state = init_playback_state(params, **kwargs)  # type: ignore[arg-type]
    return render(state)


def test_scenario_terminates_with_expected_length() -> None:
    state = init_playback_state(SCENARIO, seed=42)
    out = render(state)

    assert state.env_length == [1000, 4000, 9000]
    assert out.shape == (SCENARIO_FRAMES,)
    assert out.dtype == np.float32
    assert state.finished
    assert state.env_stage == 3
    assert np.any(out != 0.0)


def test_scenario_is_bit_identical_across_runs() -> None:
    first = _render(SCENARIO, seed=42)
    second = _render(SCENARIO, seed=42)
    assert first.tobytes() == second.tobytes()


def test_noise_is_determined_by_seed() -> None:
    noise = SCENARIO.model_copy(update={"wave_type": WaveType.NOISE})
    assert np.array_equal(_render(noise, seed=7), _render(noise, seed=7))
    assert not np.array_equal(_render(noise, seed=7), _render(noise, seed=8))


def test_output_never_exceeds_envelope_frames() -> None:
    params = ParameterSet(env_attack=0.05, env_sustain=0.1, env_decay=0.12, env_punch=0.6)
    state = init_playback_state(params, seed=1)
    out = render(state)
    assert 0 < out.shape[0] <= state.envelope_frames


def test_zero_length_envelope_produces_nothing() -> None:
    params = ParameterSet(env_attack=0.0, env_sustain=0.0, env_decay=0.0)
    state = init_playback_state(params, seed=1)
    assert render(state).shape == (0,)
    assert state.finished


def test_frequency_cutoff_ends_sound_early() -> None:
    params = SCENARIO.model_copy(update={"freq_limit": 0.2, "freq_ramp": -0.5})
    state = init_playback_state(params, seed=3)
    out = render(state)
    assert 0 < out.shape[0] < SCENARIO_FRAMES
    assert state.finished
    assert state.env_stage < 3


def test_repeat_changes_pitch_but_not_length() -> None:
    sliding = SCENARIO.model_copy(update={"freq_ramp": 0.3})
    repeating = sliding.model_copy(update={"repeat_speed": 0.5})

    plain = _render(sliding, seed=5)
    repeated = _render(repeating, seed=5)

    assert plain.shape == repeated.shape == (SCENARIO_FRAMES,)
    assert not np.array_equal(plain, repeated)


def test_repeat_leaves_envelope_running() -> None:
    params = SCENARIO.model_copy(update={"freq_ramp": 0.3, "repeat_speed": 0.9})
    state = init_playback_state(params, seed=5)
    for _ in range(2000):
        assert next_sample(state) is not None
    stage, elapsed = state.env_stage, state.env_time
    state.reset_pitch()
    assert (state.env_stage, state.env_time) == (stage, elapsed)
    assert state.fperiod == pytest.approx(100.0 / (params.base_freq**2 + 0.001))


@pytest.mark.parametrize("sample_rate", [44_100, 22_050, 48_000])
def test_chunked_generation_matches_single_call(sample_rate: int) -> None:
    params = SCENARIO.model_copy(update={"vib_strength": 0.3, "vib_speed": 0.4, "pha_ramp": 0.2})
    total = 3000

    whole = np.zeros(total, dtype=np.float32)
    assert fill(init_playback_state(params, sample_rate, seed=11), whole) == total

    state = init_playback_state(params, sample_rate, seed=11)
    parts: list[np.ndarray] = []
    remaining = total
    for size in itertools.cycle([1, 7, 64, 2, 500]):
        if remaining == 0:
            break
        size = min(size, remaining)
        chunk = np.zeros(size, dtype=np.float32)
        assert fill(state, chunk) == size
        parts.append(chunk)
        remaining -= size

    assert np.array_equal(np.concatenate(parts), whole)


def test_single_sample_calls_match_render() -> None:
    state = init_playback_state(SCENARIO, seed=9)
    samples: list[float] = []
    while (value := next_sample(state)) is not None:
        samples.append(value)
    expected = _render(SCENARIO, seed=9)
    assert np.array_equal(np.asarray(samples, dtype=np.float32), expected)


def test_fill_reports_short_count_at_end() -> None:
    state = init_playback_state(SCENARIO, seed=2)
    buffer = np.zeros(SCENARIO_FRAMES + 100, dtype=np.float32)
    assert fill(state, buffer) == SCENARIO_FRAMES
    assert np.all(buffer[SCENARIO_FRAMES:] == 0.0)
    assert fill(state, buffer) == 0
    assert next_sample(state) is None


def test_resampling_halves_output_at_half_rate() -> None:
    out = _render(SCENARIO, sample_rate=22_050, seed=42)
    assert out.shape == (SCENARIO_FRAMES // 2,)


def test_resampling_upsamples_above_reference_rate() -> None:
    out = _render(SCENARIO, sample_rate=88_200, seed=42)
    assert out.shape == (SCENARIO_FRAMES * 2,)


def test_restart_replays_identically() -> None:
    params = SCENARIO.model_copy(update={"wave_type": WaveType.NOISE, "lpf_freq": 0.6})
    state = init_playback_state(params)
    first = render(state)
    state.restart()
    assert state.cursor == 0
    assert state.env_stage == 0
    second = render(state)
    assert np.array_equal(first, second)


def test_sound_volume_scales_output() -> None:
    silent = SCENARIO.model_copy(update={"sound_vol": 0.0})
    assert np.all(_render(silent, seed=1) == 0.0)


def test_master_volume_scales_output() -> None:
    quiet = _render(SCENARIO, seed=1, master_volume=0.05)
    loud = _render(SCENARIO, seed=1, master_volume=0.1)
    assert np.allclose(loud, quiet * 2.0, rtol=1e-5, atol=1e-7)


@pytest.mark.parametrize("wave", list(WaveType))
def test_every_waveform_renders_finite_samples(wave: WaveType) -> None:
    params = SCENARIO.model_copy(
        update={"wave_type": wave, "duty": 0.3, "env_sustain": 0.05, "env_decay": 0.05}
    )
    out = _render(params, seed=4)
    assert out.shape[0] > 0
    assert np.all(np.isfinite(out))
    assert np.all(np.abs(out) <= 1.0)


@pytest.mark.parametrize(
    "dtype", ["uint8", "int8", "int16", "uint16", "int32", "uint32", "float32", "float64"]
)
def test_render_respects_numeric_range(dtype: str) -> None:
    loud = SCENARIO.model_copy(update={"sound_vol": 1.0, "env_punch": 1.0})
    state = init_playback_state(loud, seed=6, master_volume=20.0)
    out = render(state, dtype=dtype)
    assert out.dtype == np.dtype(dtype)
    assert out.shape == (SCENARIO_FRAMES,)
    if out.dtype.kind == "f":
        # Floats are not rescaled, so a loud sound leaves the nominal range.
        assert np.all(np.isfinite(out))
        assert out.min() < -1.0 and out.max() > 1.0
    else:
        info = np.iinfo(out.dtype)
        assert out.min() >= info.min and out.max() <= info.max
        # Clipped square wave reaches both rails.
        assert out.min() == info.min and out.max() == info.max


def test_iter_chunks_concatenates_to_render() -> None:
    chunks = list(iter_chunks(init_playback_state(SCENARIO, seed=8), 4096))
    assert [chunk.shape[0] for chunk in chunks[:-1]] == [4096] * (len(chunks) - 1)
    assert np.array_equal(np.concatenate(chunks), _render(SCENARIO, seed=8))


def test_iter_chunks_rejects_bad_size() -> None:
    with pytest.raises(InvalidConfigError):
        list(iter_chunks(init_playback_state(SCENARIO, seed=8), 0))


def test_fill_rejects_unsupported_buffers() -> None:
    state = init_playback_state(SCENARIO, seed=8)
    with pytest.raises(InvalidConfigError):
        fill(state, np.zeros(8, dtype=np.complex64))
    with pytest.raises(InvalidConfigError):
        fill(state, np.zeros((2, 4), dtype=np.float32))
    assert state.cursor == 0


def test_render_reports_allocation_failure(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _no_memory(*args: object, **kwargs: object) -> np.ndarray:
        raise MemoryError("out of memory")

    state = init_playback_state(SCENARIO, seed=8)
    monkeypatch.setattr(np, "empty", _no_memory)
    monkeypatch.setenv("CHIPSFX_LOG_DIR", str(tmp_path))
    with pytest.raises(AllocationError):
        render(state)
    assert "render failed: MemoryError" in (tmp_path / "chipsfx.log").read_text(encoding="utf-8")


class TestOscillator:
    NOISE = [float(i) / 32.0 - 0.5 for i in range(32)]

    def test_square_splits_at_duty(self) -> None:
        assert oscillator(WaveType.SQUARE, 10, 100, 0.25, self.NOISE) == 0.5
        assert oscillator(WaveType.SQUARE, 30, 100, 0.25, self.NOISE) == -0.5

    def test_sawtooth_is_triangle_at_half_duty(self) -> None:
        assert oscillator(WaveType.SAWTOOTH, 0, 100, 0.5, self.NOISE) == -1.0
        assert oscillator(WaveType.SAWTOOTH, 25, 100, 0.5, self.NOISE) == pytest.approx(0.0)
        assert oscillator(WaveType.SAWTOOTH, 50, 100, 0.5, self.NOISE) == 1.0
        assert oscillator(WaveType.SAWTOOTH, 75, 100, 0.5, self.NOISE) == pytest.approx(0.0)

    def test_sawtooth_falls_at_zero_duty(self) -> None:
        assert oscillator(WaveType.SAWTOOTH, 0, 100, 0.0, self.NOISE) == 1.0
        assert oscillator(WaveType.SAWTOOTH, 25, 100, 0.0, self.NOISE) == pytest.approx(0.5)

    def test_sine(self) -> None:
        assert oscillator(WaveType.SINE, 25, 100, 0.5, self.NOISE) == pytest.approx(1.0)
        assert oscillator(WaveType.SINE, 75, 100, 0.5, self.NOISE) == pytest.approx(-1.0)

    def test_ease_signs_follow_duty(self) -> None:
        assert oscillator(WaveType.EASE, 25, 100, 0.5, self.NOISE) == pytest.approx(1.0)
        assert oscillator(WaveType.EASE, 75, 100, 0.5, self.NOISE) == pytest.approx(-1.0)

    def test_noise_reads_table_by_phase(self) -> None:
        assert oscillator(WaveType.NOISE, 50, 100, 0.5, self.NOISE) == self.NOISE[16]
        assert oscillator(WaveType.NOISE_METALLIC, 0, 100, 0.5, self.NOISE) == -0.5
        assert oscillator(WaveType.NOISE_METALLIC, 99, 100, 0.5, self.NOISE) == 0.5


class TestPlaybackState:
    def test_coefficients(self) -> None:
        params = ParameterSet(
            base_freq=0.3,
            freq_limit=0.1,
            freq_ramp=0.5,
            duty=0.2,
            lpf_freq=0.5,
            hpf_freq=0.2,
            arp_speed=1.0,
            pha_offset=-0.5,
            repeat_speed=0.0,
        )
        state = PlaybackState(params, sample_rate=22_050, seed=0)

        assert state.fperiod == pytest.approx(100.0 / (0.09 + 0.001), rel=1e-6)
        assert state.fmaxperiod == pytest.approx(100.0 / (0.01 + 0.001), rel=1e-6)
        assert state.fslide == pytest.approx(1.0 - 0.125 * 0.01)
        assert state.square_duty == pytest.approx(0.4)
        assert state.fltw == pytest.approx(0.0125)
        assert state.flthp == pytest.approx(0.004)
        assert state.arp_limit == 0
        assert state.rep_limit == 0
        assert state.fphase == pytest.approx(-255.0)
        assert state.resample_ratio == 2.0
        assert len(state.noise_buffer) == 32
        assert all(-1.0 <= value < 1.0 for value in state.noise_buffer)

    def test_coefficients_use_single_precision(self) -> None:
        params = ParameterSet(base_freq=0.3, freq_limit=0.1, freq_ramp=0.5, lpf_freq=0.5)
        state = PlaybackState(params, seed=0)
        f32 = np.float32

        base = f32(params.base_freq)
        assert isinstance(state.fperiod, np.float32)
        assert state.fperiod == f32(100.0) / (base * base + f32(0.001))
        assert state.fperiod == np.float32(1098.9010009765625)
        limit = f32(params.freq_limit)
        assert state.fmaxperiod == f32(100.0) / (limit * limit + f32(0.001))
        ramp = f32(params.freq_ramp)
        assert state.fslide == f32(1.0) - ramp * ramp * ramp * f32(0.01)
        cutoff = f32(params.lpf_freq)
        assert state.fltw == cutoff * cutoff * cutoff * f32(0.1)

    def test_running_values_stay_single_precision(self) -> None:
        params = SCENARIO.model_copy(update={"vib_strength": 0.3, "vib_speed": 0.4})
        state = init_playback_state(params, seed=0)
        for _ in range(500):
            next_sample(state)
        for name in ("fperiod", "fslide", "env_vol", "fltp", "fltphp", "vib_phase", "held_sample"):
            assert isinstance(getattr(state, name), np.float32), name

    def test_slide_acceleration_is_additive(self) -> None:
        params = ParameterSet(freq_ramp=0.1, freq_dramp=0.5)
        state = PlaybackState(params, seed=0)
        expected = state.fslide
        for _ in range(10):
            next_sample(state)
            expected = expected + state.fdslide
        assert state.fdslide != 0.0
        assert state.fslide == expected

    def test_engine_keeps_its_own_params(self) -> None:
        state = PlaybackState(SCENARIO, seed=0)
        assert state.params == SCENARIO
        assert state.params is not SCENARIO

    def test_seed_is_drawn_when_missing(self) -> None:
        state = PlaybackState(SCENARIO)
        assert 0 <= state.seed < 2**64

    def test_rejects_invalid_settings(self) -> None:
        with pytest.raises(InvalidConfigError):
            PlaybackState(SCENARIO, sample_rate=0)
        with pytest.raises(InvalidConfigError):
            PlaybackState(SCENARIO, seed=2**64)
        with pytest.raises(InvalidConfigError):
            PlaybackState(SCENARIO, master_volume=-1.0)

    def test_states_do_not_share_randomness(self) -> None:
        first = PlaybackState(SCENARIO, seed=1)
        second = PlaybackState(SCENARIO, seed=1)
        first.rng.random(100)
        assert first.rng is not second.rng
        assert first.noise_buffer == second.noise_buffer
