"""
Compact track binary encoder.

A stream is one header followed by any sequence of segment, point and
time-sync records, each prefixed by a DataPoint marker byte. Points store
their time as a one-byte delta against a rolling reference time; a
TIME_SYNC record moves the reference when a delta would not fit.
"""

import logging
from datetime import datetime
from typing import BinaryIO, Optional

from tracklog.models.activity import DataPoint, DynamicDataType
from tracklog.models.session import Header, Segment, TrackPoint, TrackSession
from tracklog.services.binary import (
    encode_f32,
    encode_fat_time,
    encode_string,
    encode_u16,
    encode_u32,
    epoch_seconds,
    quantize_degrees,
    truncate_to_second,
)


logger = logging.getLogger(__name__)

MAX_THIN_DELTA = 0xFF


class TrackWriter:
    """
    Stateful writer for one track stream.

    Holds the reference time that point deltas are computed against, so one
    instance serves exactly one stream and must not be shared between threads.
    Every write method returns the number of bytes it wrote.
    """

    def __init__(self, reference_time: datetime):
        self.reference_time = truncate_to_second(reference_time)

    @classmethod
    def start(
        cls,
        time: Optional[datetime],
        header: Header,
        sink: BinaryIO,
    ) -> tuple["TrackWriter", int]:
        """
        Write the stream header and return a writer positioned after it.

        `time` is written in the header's time slot and becomes the first
        reference time. Pass None to use header.time.
        """
        if time is None:
            time = header.time

        data = (
            encode_fat_time(time)
            + header.activity_type.to_byte()
            + encode_string(header.title)
            + encode_string(header.description)
            + encode_string(header.device)
        )
        written = sink.write(data)
        return cls(time), written

    def write_segment(self, segment: Segment, sink: BinaryIO) -> int:
        written = sink.write(
            DataPoint.START_SEGMENT.to_byte()
            + encode_fat_time(segment.start_time)
            + segment.activity_type.to_byte()
        )
        self.reference_time = truncate_to_second(segment.start_time)

        for point in segment.points:
            written += self.write_track_point(point, sink)

        # The end record repeats the start time; existing readers expect it
        written += sink.write(DataPoint.END_SEGMENT.to_byte() + encode_fat_time(segment.start_time))

        logger.debug(
            f"Wrote segment {segment.activity_type.name} at {segment.start_time.isoformat()}: "
            f"{len(segment.points)} points, {written} bytes"
        )
        return written

    def write_time_sync(self, time: datetime, sink: BinaryIO) -> int:
        written = sink.write(DataPoint.TIME_SYNC.to_byte() + encode_fat_time(time))
        self.reference_time = truncate_to_second(time)
        return written

    def write_track_point(self, point: TrackPoint, sink: BinaryIO) -> int:
        written = 0
        position = encode_u32(quantize_degrees(point.longitude)) + encode_u32(quantize_degrees(point.latitude))

        delta = epoch_seconds(point.timestamp) - epoch_seconds(self.reference_time)
        if delta > MAX_THIN_DELTA or delta < 0:
            logger.debug(f"Time sync at {point.timestamp.isoformat()} (delta {delta}s)")
            written += self.write_time_sync(point.timestamp, sink)
            delta = 0

        record = [
            DataPoint.TRACK_POINT.to_byte(),
            position,
            bytes((delta,)),
            encode_u16(point.dynamic_data_mask),
        ]
        for data_type in DynamicDataType:
            value = point.get(data_type)
            if value is not None:
                record.append(encode_f32(value))

        written += sink.write(b"".join(record))
        return written


def write_session(session: TrackSession, sink: BinaryIO) -> int:
    """Write a whole session (header and every segment). Returns bytes written."""
    writer, written = TrackWriter.start(session.time, session.header(), sink)
    for segment in session.segments:
        written += writer.write_segment(segment, sink)
    logger.debug(f"Wrote session {session.id}: {len(session.segments)} segments, {written} bytes")
    return written
