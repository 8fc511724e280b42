from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Literal, Protocol, runtime_checkable

import numpy as np
from numpy.typing import DTypeLike, NDArray
from pydantic import BaseModel, ConfigDict, model_validator

from .audio import SAMPLE_RATE, FloatArray, quantize, write_wav
from .config import SettingsInput, coerce_settings
from .errors import InvalidConfigError, UnsupportedOperationError
from .generator import fill, iter_chunks
from .generator import (
    render as render_state,
)
from .params import ParameterSet
from .state import PlaybackState

_LOGGER = logging.getLogger("chipsfx.source")


class AudioFormat(BaseModel):
    channels: Literal[1] = 1
    sample_format: Literal["f32"] = "f32"
    sample_rate: int = SAMPLE_RATE

    model_config = ConfigDict(frozen=True, extra="forbid")


@runtime_checkable
class PullSource(Protocol):
    """What a host sink needs to pull audio from a generator."""

    def read(self, frames: NDArray[np.float32]) -> int: ...

    def seek(self, position: int) -> None: ...

    def get_format(self) -> AudioFormat: ...

    def get_cursor(self) -> int: ...

    def get_length(self) -> int: ...


class Audio(BaseModel):
    samples: FloatArray
    sample_rate: int = SAMPLE_RATE

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )

    @model_validator(mode="after")
    def _normalize(self) -> "Audio":
        normalized = quantize(self.samples, np.float32).reshape(-1)
        object.__setattr__(self, "samples", normalized)
        return self

    @property
    def duration(self) -> float:
        return self.samples.shape[0] / self.sample_rate

    def to_numpy(self) -> FloatArray:
        return self.samples

    def __array__(self, dtype: DTypeLike | None = None) -> NDArray[np.generic]:
        return np.asarray(self.samples, dtype=dtype)

    def save(self, path: str | Path) -> Path:
        return write_wav(path, self.samples, sample_rate=self.sample_rate)


class SfxrSource:
    """Pull-based adapter that owns one PlaybackState.

    Only a restart (seek to 0) is supported, and the total length is unknown
    until the sound has actually been generated. Not thread-safe.
    """

    def __init__(self, params: ParameterSet, settings: SettingsInput = None) -> None:
        self.settings = coerce_settings(settings)
        self._state = PlaybackState(
            params,
            sample_rate=self.settings.sample_rate,
            seed=self.settings.seed,
            master_volume=self.settings.master_volume,
        )

    @property
    def params(self) -> ParameterSet:
        return self._state.params

    @property
    def finished(self) -> bool:
        return self._state.finished

    def read(self, frames: NDArray[np.float32]) -> int:
        if frames.dtype != np.float32:
            raise InvalidConfigError(f"read() expects a float32 buffer, got {frames.dtype}")
        return fill(self._state, frames)

    def seek(self, position: int) -> None:
        if position != 0:
            raise UnsupportedOperationError(
                f"Only seeking to 0 is supported, got position {position}"
            )
        _LOGGER.debug("Restarting source at sample %d", self._state.cursor)
        self._state.restart()

    def get_format(self) -> AudioFormat:
        return AudioFormat(sample_rate=self._state.sample_rate)

    def get_cursor(self) -> int:
        return self._state.cursor

    def get_length(self) -> int:
        raise UnsupportedOperationError("Sound length is only known after generation")

    def stream(self, chunk_frames: int = 1024) -> Iterator[FloatArray]:
        for chunk in iter_chunks(self._state, chunk_frames, np.float32):
            yield chunk.astype(np.float32, copy=False)

    def collect(self) -> Audio:
        samples = render_state(self._state, np.float32)
        return Audio(
            samples=samples.astype(np.float32, copy=False),
            sample_rate=self._state.sample_rate,
        )


def render(params: ParameterSet, settings: SettingsInput = None) -> Audio:
    """Generate a whole sound in one call."""

    return SfxrSource(params, settings).collect()
