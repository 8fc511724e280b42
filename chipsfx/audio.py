from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any, Callable, cast

import numpy as np
import soundfile as sf  # type: ignore[import]
from numpy.typing import DTypeLike, NDArray

from .config import BASE_SAMPLE_RATE
from .errors import InvalidConfigError

FloatArray = NDArray[np.float32]
AudioNumbers = NDArray[np.floating[Any]] | Sequence[float] | FloatArray

SAMPLE_RATE = BASE_SAMPLE_RATE

SUPPORTED_DTYPES: frozenset[np.dtype[Any]] = frozenset(
    np.dtype(name)
    for name in ("float32", "float64", "int8", "int16", "int32", "uint8", "uint16", "uint32")
)


def check_dtype(dtype: np.dtype[Any]) -> None:
    if dtype not in SUPPORTED_DTYPES:
        supported = sorted(str(item) for item in SUPPORTED_DTYPES)
        raise InvalidConfigError(f"Unsupported sample dtype {dtype}; expected one of {supported}")


def quantize(samples: AudioNumbers, dtype: DTypeLike) -> NDArray[np.generic]:
    """Convert nominal [-1, 1] float samples to the target numeric width.

    Unsigned widths are centered on their midpoint and signed widths use
    their full range; both clamp nominal input to [-1, 1] first. Floats pass
    through unscaled. Every result is clamped to the representable range of
    the target, never wrapped, and NaN becomes silence.
    """

    target = np.dtype(dtype)
    check_dtype(target)
    values = np.asarray(samples, dtype=np.float64)
    if target.kind == "f":
        limits = np.finfo(target)
        finite = np.nan_to_num(values, nan=0.0, posinf=limits.max, neginf=limits.min)
        return np.clip(finite, limits.min, limits.max).astype(target)
    clipped = np.clip(np.nan_to_num(values), -1.0, 1.0)
    info = np.iinfo(target)
    if target.kind == "u":
        midpoint = (float(info.max) + 1.0) / 2.0
        scaled = np.floor(clipped * midpoint + midpoint)
    else:
        scaled = np.floor(clipped * (float(info.max) + 1.0))
    return np.clip(scaled, info.min, info.max).astype(target)


def write_wav(
    path: str | Path,
    samples: AudioNumbers,
    *,
    sample_rate: int = SAMPLE_RATE,
) -> Path:
    """Write mono float samples to a wav file."""

    if sample_rate <= 0:
        raise InvalidConfigError(f"sample_rate must be positive, got {sample_rate}")
    target = Path(path)
    write_fn = getattr(sf, "write", None)
    assert callable(write_fn)
    write_audio = cast(Callable[..., None], write_fn)
    mono = cast(FloatArray, quantize(samples, np.float32))
    # soundfile stubs are incomplete; cast is intentional for type safety.
    write_audio(target, mono, sample_rate, subtype="FLOAT")  # type: ignore[reportUnknownMemberType]
    return target
