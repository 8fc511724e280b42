from __future__ import annotations

from .audio import SAMPLE_RATE, quantize, write_wav
from .codec import (
    FORMAT_VERSION,
    MIN_FORMAT_VERSION,
    binary_size,
    decode_binary,
    decode_json,
    encode_binary,
    encode_binary_into,
    encode_json,
)
from .config import SynthSettings
from .errors import (
    AllocationError,
    BufferTooSmallError,
    ChipSfxError,
    InternalError,
    InvalidConfigError,
    InvalidDataError,
    UnsupportedFormatVersionError,
    UnsupportedOperationError,
)
from .generator import fill, iter_chunks, next_sample
from .generator import (
    render as render_state,
)
from .logging_utils import configure_logging as _configure_logging
from .params import ParameterSet, WaveType
from .presets import PRESETS, generate_preset, mutate
from .source import Audio, AudioFormat, PullSource, SfxrSource, render
from .state import PlaybackState, init_playback_state

__all__ = [
    "FORMAT_VERSION",
    "MIN_FORMAT_VERSION",
    "PRESETS",
    "SAMPLE_RATE",
    "AllocationError",
    "Audio",
    "AudioFormat",
    "BufferTooSmallError",
    "ChipSfxError",
    "InternalError",
    "InvalidConfigError",
    "InvalidDataError",
    "ParameterSet",
    "PlaybackState",
    "PullSource",
    "SfxrSource",
    "SynthSettings",
    "UnsupportedFormatVersionError",
    "UnsupportedOperationError",
    "WaveType",
    "binary_size",
    "decode_binary",
    "decode_json",
    "encode_binary",
    "encode_binary_into",
    "encode_json",
    "fill",
    "generate_preset",
    "init_playback_state",
    "iter_chunks",
    "mutate",
    "next_sample",
    "quantize",
    "render",
    "render_state",
    "write_wav",
]

__version__ = "0.1.0"

_configure_logging()
del _configure_logging
