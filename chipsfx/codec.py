"""Binary and JSON (de)serialization of a ParameterSet.

The binary layout is ``<i32 version>`` followed by every field in declaration
order, little-endian, with no padding (the ``filter_on`` flag is a single byte
and the next float starts right after it). A field introduced in a later
format version is simply absent from older payloads.

The JSON reader understands the web editor naming (``p_base_freq`` ...); the
JSON writer emits the internal field names. The two are not symmetric.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import BufferTooSmallError, InvalidDataError, UnsupportedFormatVersionError
from .logging_utils import log_exception
from .params import ParameterSet, WaveType

_LOGGER = logging.getLogger("chipsfx.codec")

FORMAT_VERSION = 102
MIN_FORMAT_VERSION = 100

_VERSION = struct.Struct("<i")


@dataclass(frozen=True, slots=True)
class FieldSpec:
    name: str
    code: str
    since: int = MIN_FORMAT_VERSION

    @property
    def packer(self) -> struct.Struct:
        return _PACKERS[self.code]

    @property
    def size(self) -> int:
        return self.packer.size


_PACKERS: Mapping[str, struct.Struct] = MappingProxyType(
    {
        "i": struct.Struct("<i"),
        "f": struct.Struct("<f"),
        "?": struct.Struct("<?"),
    }
)

FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("wave_type", "i"),
    FieldSpec("sound_vol", "f", since=102),
    FieldSpec("base_freq", "f"),
    FieldSpec("freq_limit", "f"),
    FieldSpec("freq_ramp", "f"),
    FieldSpec("freq_dramp", "f", since=101),
    FieldSpec("duty", "f"),
    FieldSpec("duty_ramp", "f"),
    FieldSpec("vib_strength", "f"),
    FieldSpec("vib_speed", "f"),
    FieldSpec("vib_delay", "f"),
    FieldSpec("env_attack", "f"),
    FieldSpec("env_sustain", "f"),
    FieldSpec("env_decay", "f"),
    FieldSpec("env_punch", "f"),
    FieldSpec("filter_on", "?"),
    FieldSpec("lpf_resonance", "f"),
    FieldSpec("lpf_freq", "f"),
    FieldSpec("lpf_ramp", "f"),
    FieldSpec("hpf_freq", "f"),
    FieldSpec("hpf_ramp", "f"),
    FieldSpec("pha_offset", "f"),
    FieldSpec("pha_ramp", "f"),
    FieldSpec("repeat_speed", "f"),
    FieldSpec("arp_speed", "f", since=101),
    FieldSpec("arp_mod", "f", since=101),
)


def fields_for_version(version: int) -> tuple[FieldSpec, ...]:
    return tuple(spec for spec in FIELDS if spec.since <= version)


def binary_size(version: int = FORMAT_VERSION) -> int:
    """Byte length of a binary payload of the given format version."""

    _check_version(version)
    return _VERSION.size + sum(spec.size for spec in fields_for_version(version))


def _check_version(version: int) -> None:
    if not MIN_FORMAT_VERSION <= version <= FORMAT_VERSION:
        raise UnsupportedFormatVersionError(
            f"Unsupported format version {version}; "
            f"expected {MIN_FORMAT_VERSION}..{FORMAT_VERSION}"
        )


def decode_binary(data: bytes | bytearray | memoryview) -> ParameterSet:
    view = memoryview(data)
    if len(view) < _VERSION.size:
        raise InvalidDataError(f"Payload too short for a format version ({len(view)} bytes)")
    (version,) = _VERSION.unpack_from(view, 0)
    try:
        _check_version(version)
    except UnsupportedFormatVersionError as exc:
        _LOGGER.warning("Rejected binary payload: %s", exc)
        log_exception("decode_binary", exc)
        raise

    values: dict[str, Any] = {}
    offset = _VERSION.size
    for spec in FIELDS:
        if spec.since > version:
            continue
        end = offset + spec.size
        if end > len(view):
            raise InvalidDataError(
                f"Payload truncated at field {spec.name!r}: "
                f"need {end} bytes, have {len(view)} (version {version})"
            )
        (values[spec.name],) = spec.packer.unpack_from(view, offset)
        offset = end

    if offset < len(view):
        _LOGGER.debug(
            "Ignoring %d trailing bytes after version %d payload", len(view) - offset, version
        )

    wave_code = values["wave_type"]
    try:
        values["wave_type"] = WaveType(wave_code)
    except ValueError as exc:
        log_exception("decode_binary", exc)
        raise InvalidDataError(f"Unknown wave type code {wave_code}") from exc

    try:
        return ParameterSet.model_validate(values)
    except ValidationError as exc:
        _LOGGER.warning("Decoded binary payload failed validation: %s", exc)
        log_exception("decode_binary", exc)
        raise InvalidDataError(f"Invalid field value in version {version} payload: {exc}") from exc


def encode_binary_into(
    params: ParameterSet,
    buffer: bytearray | memoryview,
    offset: int = 0,
) -> int:
    """Write the current-version encoding into ``buffer`` and return the byte count."""

    size = binary_size()
    if offset < 0 or len(buffer) - offset < size:
        raise BufferTooSmallError(
            f"Need {size} bytes at offset {offset}, buffer holds {len(buffer)}"
        )
    _VERSION.pack_into(buffer, offset, FORMAT_VERSION)
    cursor = offset + _VERSION.size
    for spec in FIELDS:
        value = getattr(params, spec.name)
        if spec.code == "i":
            value = int(value)
        spec.packer.pack_into(buffer, cursor, value)
        cursor += spec.size
    return cursor - offset


def encode_binary(params: ParameterSet) -> bytes:
    buffer = bytearray(binary_size())
    encode_binary_into(params, buffer)
    return bytes(buffer)


def _json_key(name: str) -> str:
    if name in ("wave_type", "sound_vol"):
        return name
    return f"p_{name}"


class _JsonParameters(BaseModel):
    """Web editor JSON shape; ``filter_on`` and ``vib_delay`` have no keys."""

    wave_type: WaveType = WaveType.SQUARE
    sound_vol: float = 0.5
    base_freq: float = Field(default=0.3, alias=_json_key("base_freq"))
    freq_limit: float = Field(default=0.0, alias=_json_key("freq_limit"))
    freq_ramp: float = Field(default=0.0, alias=_json_key("freq_ramp"))
    freq_dramp: float = Field(default=0.0, alias=_json_key("freq_dramp"))
    duty: float = Field(default=0.0, alias=_json_key("duty"))
    duty_ramp: float = Field(default=0.0, alias=_json_key("duty_ramp"))
    vib_strength: float = Field(default=0.0, alias=_json_key("vib_strength"))
    vib_speed: float = Field(default=0.0, alias=_json_key("vib_speed"))
    env_attack: float = Field(default=0.0, alias=_json_key("env_attack"))
    env_sustain: float = Field(default=0.3, alias=_json_key("env_sustain"))
    env_decay: float = Field(default=0.4, alias=_json_key("env_decay"))
    env_punch: float = Field(default=0.0, alias=_json_key("env_punch"))
    lpf_resonance: float = Field(default=0.0, alias=_json_key("lpf_resonance"))
    lpf_freq: float = Field(default=1.0, alias=_json_key("lpf_freq"))
    lpf_ramp: float = Field(default=0.0, alias=_json_key("lpf_ramp"))
    hpf_freq: float = Field(default=0.0, alias=_json_key("hpf_freq"))
    hpf_ramp: float = Field(default=0.0, alias=_json_key("hpf_ramp"))
    pha_offset: float = Field(default=0.0, alias=_json_key("pha_offset"))
    pha_ramp: float = Field(default=0.0, alias=_json_key("pha_ramp"))
    repeat_speed: float = Field(default=0.0, alias=_json_key("repeat_speed"))
    arp_speed: float = Field(default=0.0, alias=_json_key("arp_speed"))
    arp_mod: float = Field(default=0.0, alias=_json_key("arp_mod"))

    model_config = ConfigDict(extra="ignore")

    def to_params(self) -> ParameterSet:
        values = self.model_dump()
        params = ParameterSet.model_validate(values)
        return params.model_copy(update={"filter_on": params.lpf_freq != 1.0})


def decode_json(data: str | bytes | bytearray) -> ParameterSet:
    try:
        return _JsonParameters.model_validate_json(data).to_params()
    except ValidationError as exc:
        _LOGGER.warning("Failed to parse parameter JSON: %s", exc)
        log_exception("decode_json", exc)
        raise InvalidDataError(str(exc)) from exc


def encode_json(params: ParameterSet) -> bytes:
    return params.model_dump_json().encode("utf-8")
