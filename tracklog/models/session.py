"""
Track session data model.

A session is an ordered list of segments; a segment is an ordered list of
track points. Every timestamp is a timezone-aware datetime with a fixed
UTC offset.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from tracklog.models.activity import ActivityType, DynamicDataType, SessionStatus
from tracklog.utils.coordinates import bounding_box, path_distance


CHANNEL_COUNT = len(DynamicDataType)


@dataclass
class Header:
    """Per-stream metadata written once at the start of a track stream."""

    time: datetime
    activity_type: ActivityType
    title: str = ""
    description: str = ""
    device: str = ""


class TrackPoint:
    """
    A single geo-tagged sample.

    Sensor channels live in a fixed float32 slot array indexed by
    DynamicDataType value. Bit i of the presence mask is set iff slot i
    holds a value.
    """

    __slots__ = ("longitude", "latitude", "timestamp", "_mask", "_values")

    def __init__(self, longitude: float, latitude: float, timestamp: datetime):
        self.longitude = float(longitude)
        self.latitude = float(latitude)
        self.timestamp = timestamp
        self._mask = 0
        self._values: NDArray[np.float32] = np.zeros(CHANNEL_COUNT, dtype=np.float32)

    @property
    def dynamic_data_mask(self) -> int:
        return self._mask

    def with_data(self, data_type: DynamicDataType, value: float) -> "TrackPoint":
        self._mask |= data_type.mask
        self._values[data_type] = value
        return self

    def get(self, data_type: DynamicDataType) -> Optional[float]:
        if not self._mask & data_type.mask:
            return None
        return float(self._values[data_type])

    def clear(self, data_type: DynamicDataType) -> None:
        self._mask &= ~data_type.mask

    def channels(self) -> dict[DynamicDataType, float]:
        """Set channels in ascending channel order."""
        return {
            data_type: float(self._values[data_type])
            for data_type in DynamicDataType
            if self._mask & data_type.mask
        }

    def __eq__(self, other):
        if not isinstance(other, TrackPoint):
            return NotImplemented
        return (
            self.longitude == other.longitude
            and self.latitude == other.latitude
            and self.timestamp == other.timestamp
            and self._mask == other._mask
            and self.channels() == other.channels()
        )

    def __repr__(self):
        channels = ", ".join(f"{k.name.lower()}={v:g}" for k, v in self.channels().items())
        return (
            f"TrackPoint(lon={self.longitude:.7f}, lat={self.latitude:.7f}, "
            f"time={self.timestamp.isoformat()}{', ' + channels if channels else ''})"
        )


@dataclass
class Segment:
    """A contiguous span of points sharing one activity type."""

    activity_type: ActivityType
    start_time: datetime
    end_time: datetime
    points: list[TrackPoint] = field(default_factory=list)

    @property
    def duration_s(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    @property
    def distance_m(self) -> float:
        if len(self.points) < 2:
            return 0.0
        lat = np.array([p.latitude for p in self.points])
        lon = np.array([p.longitude for p in self.points])
        return path_distance(lat, lon)


@dataclass
class TrackSession:
    """A complete recording: header fields, status and segments."""

    id: int
    time: datetime
    activity_type: ActivityType
    title: str = ""
    description: str = ""
    device: str = ""
    session_status: SessionStatus = SessionStatus.UNKNOWN
    segments: list[Segment] = field(default_factory=list)

    @classmethod
    def from_header(
        cls,
        header: Header,
        session_id: int = 0,
        session_status: SessionStatus = SessionStatus.UNKNOWN,
        segments: Optional[list[Segment]] = None,
    ) -> "TrackSession":
        return cls(
            id=session_id,
            time=header.time,
            activity_type=header.activity_type,
            title=header.title,
            description=header.description,
            device=header.device,
            session_status=session_status,
            segments=segments if segments is not None else [],
        )

    def header(self) -> Header:
        return Header(
            time=self.time,
            activity_type=self.activity_type,
            title=self.title,
            description=self.description,
            device=self.device,
        )

    @property
    def point_count(self) -> int:
        return sum(len(s.points) for s in self.segments)

    @property
    def duration_s(self) -> float:
        """Sum of segment durations (pauses between segments excluded)."""
        return sum(s.duration_s for s in self.segments)

    @property
    def distance_m(self) -> float:
        return sum(s.distance_m for s in self.segments)

    def get_time_range(self) -> tuple[datetime, datetime]:
        if not self.segments:
            return (self.time, self.time)
        return (self.segments[0].start_time, self.segments[-1].end_time)

    def get_bounding_box(self) -> tuple[float, float, float, float]:
        """(min_lon, min_lat, max_lon, max_lat), zeros when there are no points."""
        points = [p for s in self.segments for p in s.points]
        lat = np.array([p.latitude for p in points], dtype=np.float64)
        lon = np.array([p.longitude for p in points], dtype=np.float64)
        return bounding_box(lat, lon)


@dataclass
class SessionSummary:
    """Lightweight summary of a session for listing."""

    id: int
    title: str
    activity_type: str
    session_status: str
    recorded_at: str
    device: str
    segment_count: int
    point_count: int
    duration_s: float
    distance_m: float

    @classmethod
    def from_session(cls, session: TrackSession) -> "SessionSummary":
        return cls(
            id=session.id,
            title=session.title,
            activity_type=session.activity_type.name,
            session_status=session.session_status.value,
            recorded_at=session.time.isoformat(),
            device=session.device,
            segment_count=len(session.segments),
            point_count=session.point_count,
            duration_s=session.duration_s,
            distance_m=session.distance_m,
        )
