"""
Compact track binary decoder.

Mirrors tracklog.services.writer: reads the header, then one marker byte at a
time until the stream ends. A missing marker byte is a normal end of stream;
a marker followed by a short record is a TrackFormatError.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import BinaryIO, Iterator, Optional, Union

from tracklog.models.activity import ActivityType, DataPoint, DynamicDataType, SessionStatus
from tracklog.models.session import Header, Segment, TrackPoint, TrackSession
from tracklog.services.binary import (
    TrackFormatError,
    dequantize_degrees,
    read_f32,
    read_fat_time,
    read_string,
    read_u16,
    read_u32,
    read_u8,
)


logger = logging.getLogger(__name__)


@dataclass
class SegmentStart:
    start_time: datetime
    activity_type: ActivityType


@dataclass
class SegmentEnd:
    time: datetime  # writers put the segment start time here


@dataclass
class TimeSync:
    time: datetime


Record = Union[TrackPoint, SegmentStart, SegmentEnd, TimeSync]


class TrackReader:
    """
    Stateful reader for one track stream.

    Tracks the reference time that point deltas are relative to. One instance
    serves exactly one stream and must not be shared between threads.
    """

    def __init__(self, reference_time: datetime):
        self.reference_time = reference_time

    @classmethod
    def start_reading(cls, source: BinaryIO) -> tuple["TrackReader", Header]:
        """Read the stream header and return a reader positioned after it."""
        time = read_fat_time(source)
        activity_type = ActivityType.from_byte(read_u8(source))
        title = read_string(source)
        description = read_string(source)
        device = read_string(source)

        header = Header(
            time=time,
            activity_type=activity_type,
            title=title,
            description=description,
            device=device,
        )
        return cls(time), header

    def read_record(self, source: BinaryIO) -> Optional[Record]:
        """
        Read the next record, or return None at the end of the stream.

        TIME_SYNC and START_SEGMENT records move the reference time.
        """
        marker = source.read(1)
        if not marker:
            return None

        data_point = DataPoint.from_byte(marker[0])

        if data_point is DataPoint.TRACK_POINT:
            return self._read_track_point(source)

        if data_point is DataPoint.START_SEGMENT:
            start_time = read_fat_time(source)
            activity_type = ActivityType.from_byte(read_u8(source))
            self.reference_time = start_time
            return SegmentStart(start_time, activity_type)

        if data_point is DataPoint.END_SEGMENT:
            return SegmentEnd(read_fat_time(source))

        time = read_fat_time(source)
        self.reference_time = time
        return TimeSync(time)

    def _read_track_point(self, source: BinaryIO) -> TrackPoint:
        longitude = dequantize_degrees(read_u32(source))
        latitude = dequantize_degrees(read_u32(source))
        delta = read_u8(source)
        mask = read_u16(source)
        if mask >> len(DynamicDataType):
            raise TrackFormatError(f"Unknown channel bits in mask {mask:#06x}", offset=_tell(source))

        try:
            timestamp = self.reference_time + timedelta(seconds=delta)
        except OverflowError:
            raise TrackFormatError(
                f"Point time out of range: {self.reference_time.isoformat()} + {delta}s",
                offset=_tell(source),
            ) from None

        point = TrackPoint(longitude, latitude, timestamp)
        for data_type in DynamicDataType:
            if mask & data_type.mask:
                point.with_data(data_type, read_f32(source))
        return point

    def records(self, source: BinaryIO) -> Iterator[Record]:
        while True:
            record = self.read_record(source)
            if record is None:
                return
            yield record

    def read_segments(
        self,
        source: BinaryIO,
        default_activity: ActivityType = ActivityType.UNKNOWN,
    ) -> tuple[list[Segment], bool]:
        """
        Rebuild segments from the remaining records.

        Points that arrive outside any segment are collected into an implicit
        segment of `default_activity`, opened at the reference time.

        Returns:
            Tuple of (segments, complete) where complete is False when the
            stream ended inside a segment opened by a START_SEGMENT record
        """
        segments: list[Segment] = []
        current: Optional[Segment] = None
        explicit = False

        def close(segment: Segment) -> None:
            if segment.points:
                segment.end_time = segment.points[-1].timestamp
            segments.append(segment)

        for record in self.records(source):
            if isinstance(record, TrackPoint):
                if current is None:
                    current = Segment(default_activity, self.reference_time, self.reference_time)
                    explicit = False
                current.points.append(record)

            elif isinstance(record, SegmentStart):
                if current is not None and explicit:
                    raise TrackFormatError(
                        f"Segment started at {record.start_time.isoformat()} "
                        f"inside open segment from {current.start_time.isoformat()}",
                        offset=_tell(source),
                    )
                if current is not None:
                    close(current)
                current = Segment(record.activity_type, record.start_time, record.start_time)
                explicit = True

            elif isinstance(record, SegmentEnd):
                if current is None or not explicit:
                    raise TrackFormatError("Segment end without a segment start", offset=_tell(source))
                close(current)
                current = None

            else:
                logger.debug(f"Time sync to {record.time.isoformat()}")

        complete = True
        if current is not None:
            complete = not explicit
            close(current)
        return segments, complete


def _tell(source: BinaryIO) -> Optional[int]:
    try:
        return source.tell()
    except (AttributeError, OSError):
        return None


def read_session(source: BinaryIO, session_id: int = 0) -> TrackSession:
    """
    Decode a whole stream into a TrackSession.

    The status is FINISHED when the last segment was closed and UNKNOWN when
    the stream stopped inside a segment.
    """
    reader, header = TrackReader.start_reading(source)
    segments, complete = reader.read_segments(source, default_activity=header.activity_type)
    status = SessionStatus.FINISHED if complete else SessionStatus.UNKNOWN
    return TrackSession.from_header(header, session_id=session_id, session_status=status, segments=segments)
