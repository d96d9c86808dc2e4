"""
Primitive codecs for the compact track binary format.

All multi-byte integers are big-endian:

- fat time: 5 bytes of whole-second Unix time (the low 40 bits of a u64)
  followed by a u16 UTC offset in minutes
- coordinates: degrees quantized to u32
- strings: u8 byte length followed by at most 255 bytes of UTF-8
"""

import struct
from datetime import datetime, timedelta, timezone
from typing import BinaryIO

from tracklog.models.errors import TrackFormatError


U32_MAX = 0xFFFFFFFF
FAT_TIME_SIZE = 7
MAX_STRING_BYTES = 255
MAX_EPOCH_SECONDS = (1 << 40) - 1
MAX_OFFSET_MINUTES = 0xFFFF

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_U16 = struct.Struct(">H")
_U32 = struct.Struct(">I")
_U64 = struct.Struct(">Q")
_F32 = struct.Struct(">f")

_QUANT_SCALE = U32_MAX / 360.0
_QUANT_OFFSET = U32_MAX / 2.0


# ============================================================================
# Reading
# ============================================================================

def read_exact(source: BinaryIO, size: int) -> bytes:
    """
    Read exactly `size` bytes.

    Raises:
        TrackFormatError: if the source ends first
    """
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = source.read(remaining)
        if not chunk:
            got = size - remaining
            raise TrackFormatError(f"Truncated record: expected {size} bytes, got {got}")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_u8(source: BinaryIO) -> int:
    return read_exact(source, 1)[0]


def read_u16(source: BinaryIO) -> int:
    return _U16.unpack(read_exact(source, 2))[0]


def read_u32(source: BinaryIO) -> int:
    return _U32.unpack(read_exact(source, 4))[0]


def read_f32(source: BinaryIO) -> float:
    return _F32.unpack(read_exact(source, 4))[0]


# ============================================================================
# Fat time
# ============================================================================

def epoch_seconds(time: datetime) -> int:
    """Whole seconds since the Unix epoch, sub-second part dropped."""
    if time.tzinfo is None or time.utcoffset() is None:
        raise ValueError(f"Timestamp must be timezone-aware: {time!r}")
    return (time - EPOCH) // timedelta(seconds=1)


def offset_minutes(time: datetime) -> int:
    if time.tzinfo is None or time.utcoffset() is None:
        raise ValueError(f"Timestamp must be timezone-aware: {time!r}")
    offset = time.utcoffset()
    minutes, rest = divmod(offset, timedelta(minutes=1))
    if rest:
        raise ValueError(f"UTC offset is not a whole number of minutes: {offset}")
    return minutes


def encode_fat_time(time: datetime) -> bytes:
    """
    Encode an aware datetime as 7 bytes.

    Raises:
        ValueError: naive datetime, pre-1970 or 40-bit overflowing time, or an
            offset west of UTC (the offset field is unsigned)
    """
    seconds = epoch_seconds(time)
    if not 0 <= seconds <= MAX_EPOCH_SECONDS:
        raise ValueError(f"Timestamp outside the 40-bit epoch range: {time.isoformat()}")

    minutes = offset_minutes(time)
    if not 0 <= minutes <= MAX_OFFSET_MINUTES:
        raise ValueError(f"UTC offset not representable as unsigned minutes: {minutes}")

    return _U64.pack(seconds)[3:] + _U16.pack(minutes)


def decode_fat_time(data: bytes) -> datetime:
    if len(data) != FAT_TIME_SIZE:
        raise TrackFormatError(f"Fat time needs {FAT_TIME_SIZE} bytes, got {len(data)}")

    seconds = _U64.unpack(b"\x00\x00\x00" + data[:5])[0]
    minutes = _U16.unpack(data[5:])[0]

    try:
        tz = timezone(timedelta(minutes=minutes))
        return (EPOCH + timedelta(seconds=seconds)).astimezone(tz)
    except (ValueError, OverflowError) as e:
        raise TrackFormatError(
            f"Fat time not representable: {seconds}s with offset {minutes}min ({e})"
        ) from e


def read_fat_time(source: BinaryIO) -> datetime:
    return decode_fat_time(read_exact(source, FAT_TIME_SIZE))


def truncate_to_second(time: datetime) -> datetime:
    return time.replace(microsecond=0)


# ============================================================================
# Coordinates
# ============================================================================

def quantize_degrees(value: float) -> int:
    """Map a degree value in [-180, 180] onto the full u32 range."""
    if not -180.0 <= value <= 180.0:
        raise ValueError(f"Coordinate outside [-180, 180]: {value}")
    return int(round(value * _QUANT_SCALE + _QUANT_OFFSET))


def dequantize_degrees(encoded: int) -> float:
    return (encoded - _QUANT_OFFSET) / _QUANT_SCALE


# ============================================================================
# Strings and scalars
# ============================================================================

def encode_string(text: str) -> bytes:
    """
    Length-prefixed UTF-8, cropped to 255 bytes.

    Cropping can split a multi-byte character; decode_string replaces the
    broken tail instead of failing.
    """
    raw = text.encode("utf-8")[:MAX_STRING_BYTES]
    return bytes((len(raw),)) + raw


def read_string(source: BinaryIO) -> str:
    length = read_u8(source)
    return read_exact(source, length).decode("utf-8", errors="replace")


def encode_u16(value: int) -> bytes:
    return _U16.pack(value)


def encode_u32(value: int) -> bytes:
    return _U32.pack(value)


def encode_f32(value: float) -> bytes:
    return _F32.pack(value)
