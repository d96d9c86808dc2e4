"""
Tests for the primitive binary codecs and enum byte mapping.
"""

import io
from datetime import datetime, timedelta, timezone

import pytest

from tracklog.models import errors
from tracklog.models.activity import ActivityType, DataPoint, DynamicDataType
from tracklog.services.binary import (
    TrackFormatError,
    U32_MAX,
    decode_fat_time,
    dequantize_degrees,
    encode_fat_time,
    encode_string,
    quantize_degrees,
    read_exact,
    read_fat_time,
    read_string,
)


def tz(minutes: int) -> timezone:
    return timezone(timedelta(minutes=minutes))


class TestEnumBytes:
    """Tests for ordinal byte mapping of the wire enums."""

    @pytest.mark.parametrize("byte", range(256))
    def test_activity_type_decodes_only_known_bytes(self, byte):
        """Exactly bytes 0..11 decode; everything else is a format error."""
        if byte <= 11:
            assert ActivityType.from_byte(byte).value == byte
        else:
            with pytest.raises(TrackFormatError, match=f"byte {byte} into ActivityType"):
                ActivityType.from_byte(byte)

    def test_sentinels_are_regular_variants(self):
        assert ActivityType.from_byte(10) is ActivityType.COMBINATION
        assert ActivityType.from_byte(11) is ActivityType.UNKNOWN
        assert ActivityType.UNKNOWN.to_byte() == b"\x0b"

    def test_data_point_markers(self):
        assert [m.to_byte() for m in DataPoint] == [b"\x00", b"\x01", b"\x02", b"\x03"]
        with pytest.raises(TrackFormatError, match="DataPoint"):
            DataPoint.from_byte(4)

    def test_channel_masks(self):
        assert len(DynamicDataType) == 9
        assert DynamicDataType.ALTITUDE.mask == 0b1
        assert DynamicDataType.HEART_RATE.mask == 0b1000
        assert DynamicDataType.RPM.mask == 1 << 8
        assert DynamicDataType.SPEED.unit == "km/h"

    def test_all_channels_fit_presence_mask(self):
        assert all(data_type.mask <= 0xFFFF for data_type in DynamicDataType)

    def test_format_error_shared_by_models_and_codec(self):
        with pytest.raises(errors.TrackFormatError) as excinfo:
            ActivityType.from_byte(200)

        assert errors.TrackFormatError is TrackFormatError
        assert isinstance(excinfo.value, ValueError)
        assert excinfo.value.offset is None

    def test_format_error_offset_in_message(self):
        error = errors.TrackFormatError("Bad marker", offset=42)
        assert error.offset == 42
        assert str(error) == "Bad marker (at byte 42)"


class TestFatTime:
    """Tests for the 7-byte timestamp + offset encoding."""

    def test_layout(self):
        """5 bytes of epoch seconds followed by 2 bytes of offset minutes."""
        time = datetime(2024, 1, 1, 12, 0, tzinfo=tz(120))
        data = encode_fat_time(time)

        assert len(data) == 7
        assert int.from_bytes(data[:5], "big") == int(time.timestamp())
        assert int.from_bytes(data[5:], "big") == 120

    @pytest.mark.parametrize("minutes", [0, 60, 330, 600, 1439])
    def test_round_trip(self, minutes):
        time = datetime(2023, 7, 14, 6, 45, 12, tzinfo=tz(minutes))

        decoded = decode_fat_time(encode_fat_time(time))

        assert decoded == time
        assert decoded.utcoffset() == timedelta(minutes=minutes)

    def test_sub_second_dropped(self):
        time = datetime(2023, 7, 14, 6, 45, 12, 500000, tzinfo=timezone.utc)

        decoded = decode_fat_time(encode_fat_time(time))

        assert decoded == time.replace(microsecond=0)

    def test_epoch(self):
        time = datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert encode_fat_time(time) == b"\x00" * 7
        assert decode_fat_time(b"\x00" * 7) == time

    def test_naive_rejected(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            encode_fat_time(datetime(2024, 1, 1))

    def test_negative_offset_rejected(self):
        """Offsets west of UTC cannot be stored in the unsigned field."""
        with pytest.raises(ValueError, match="unsigned"):
            encode_fat_time(datetime(2024, 1, 1, tzinfo=tz(-300)))

    def test_before_epoch_rejected(self):
        with pytest.raises(ValueError, match="40-bit"):
            encode_fat_time(datetime(1969, 12, 31, 23, 59, tzinfo=timezone.utc))

    def test_unrepresentable_offset_is_format_error(self):
        """Offsets of a day or more decode as a format error."""
        data = b"\x00\x00\x00\x00\x00" + (1440).to_bytes(2, "big")
        with pytest.raises(TrackFormatError):
            decode_fat_time(data)

    def test_truncated_read(self):
        with pytest.raises(TrackFormatError, match="expected 7 bytes, got 3"):
            read_fat_time(io.BytesIO(b"\x00\x00\x00"))


class TestQuantization:
    """Tests for degree quantization to u32."""

    def test_bounds(self):
        assert quantize_degrees(-180.0) == 0
        assert quantize_degrees(180.0) == U32_MAX
        assert quantize_degrees(0.0) == round(U32_MAX / 2)

    @pytest.mark.parametrize(
        "value", [-180.0, -89.999999, -12.3456789, 0.0, 0.0000001, 10.7522, 59.9139, 179.9999999, 180.0]
    )
    def test_round_trip_tolerance(self, value):
        recovered = dequantize_degrees(quantize_degrees(value))
        assert abs(recovered - value) <= 360 / U32_MAX

    def test_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            quantize_degrees(180.5)


class TestStrings:
    """Tests for length-prefixed strings."""

    def test_short_string(self):
        assert encode_string("abc") == b"\x03abc"
        assert encode_string("") == b"\x00"

    def test_truncation_to_255_bytes(self):
        title = "x" * 300
        data = encode_string(title)

        assert data[0] == 255
        assert data[1:] == b"x" * 255
        assert read_string(io.BytesIO(data)) == "x" * 255

    def test_split_multibyte_character_replaced(self):
        """A character cut by the 255-byte limit decodes as U+FFFD."""
        title = "a" * 254 + "é"  # é is two bytes in UTF-8
        data = encode_string(title)

        assert data[0] == 255
        assert read_string(io.BytesIO(data)) == "a" * 254 + "�"

    def test_utf8_round_trip(self):
        assert read_string(io.BytesIO(encode_string("Løp på Bygdøy"))) == "Løp på Bygdøy"


class TestReadExact:
    """Tests for exact reads over short-reading sources."""

    def test_short_reads_are_joined(self):
        class Trickle(io.RawIOBase):
            def __init__(self, data):
                self._data = data

            def readable(self):
                return True

            def read(self, size=-1):
                chunk, self._data = self._data[:1], self._data[1:]
                return chunk

        assert read_exact(Trickle(b"abcd"), 4) == b"abcd"

    def test_eof(self):
        with pytest.raises(TrackFormatError):
            read_exact(io.BytesIO(b"ab"), 4)
