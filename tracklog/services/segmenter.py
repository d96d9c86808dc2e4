"""
Segmenter for raw tracks.

Turns a RawTrack into a TrackSession: drops samples without a fix, splits
segments on lap changes and long recording gaps, and attaches the finite
channel values to each point.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from tracklog.models.activity import ActivityType, SessionStatus
from tracklog.models.raw import RawTrack
from tracklog.models.session import Segment, TrackPoint, TrackSession


logger = logging.getLogger(__name__)

SEGMENT_GAP_S = float(os.getenv("TRACKLOG_SEGMENT_GAP_S", "300"))


def build_session(
    raw: RawTrack,
    recorded_at: datetime,
    activity_type: ActivityType = ActivityType.UNKNOWN,
    session_id: int = 0,
    title: str = "",
    description: str = "",
    device: str = "",
    gap_s: Optional[float] = None,
) -> TrackSession:
    """
    Build a finished TrackSession from raw samples.

    Args:
        raw: Samples with timestamps in seconds from `recorded_at`
        recorded_at: Aware datetime of the first sample
        gap_s: Split segments where consecutive fixes are further apart
            than this (defaults to TRACKLOG_SEGMENT_GAP_S)
    """
    if recorded_at.tzinfo is None:
        raise ValueError("recorded_at must be timezone-aware")
    if gap_s is None:
        gap_s = SEGMENT_GAP_S

    valid = _valid_fix(raw.latitude, raw.longitude)
    indices = np.flatnonzero(valid)
    dropped = raw.sample_count - len(indices)
    if dropped:
        logger.info(f"{raw.name}: dropped {dropped} samples without a valid fix")

    segments = [
        _build_segment(raw, recorded_at, activity_type, chunk)
        for chunk in _split_indices(indices, raw.timestamps, raw.lap_number, gap_s)
    ]

    return TrackSession(
        id=session_id,
        time=recorded_at,
        activity_type=activity_type,
        title=title,
        description=description,
        device=device,
        session_status=SessionStatus.FINISHED,
        segments=segments,
    )


def _valid_fix(lat: NDArray[np.float64], lon: NDArray[np.float64]) -> NDArray[np.bool_]:
    return (
        np.isfinite(lat)
        & np.isfinite(lon)
        & (np.abs(lat) <= 90.0)
        & (np.abs(lon) <= 180.0)
    )


def _split_indices(
    indices: NDArray[np.intp],
    timestamps: NDArray[np.float64],
    lap_number: Optional[NDArray[np.int32]],
    gap_s: float,
) -> list[NDArray[np.intp]]:
    """Split sample indices where the lap changes or time jumps past gap_s."""
    if len(indices) == 0:
        return []

    breaks = np.diff(timestamps[indices]) > gap_s
    if lap_number is not None:
        breaks |= np.diff(lap_number[indices]) != 0

    return np.split(indices, np.flatnonzero(breaks) + 1)


def _build_segment(
    raw: RawTrack,
    recorded_at: datetime,
    activity_type: ActivityType,
    chunk: NDArray[np.intp],
) -> Segment:
    points = []
    for i in chunk:
        point = TrackPoint(
            raw.longitude[i],
            raw.latitude[i],
            recorded_at + timedelta(seconds=float(raw.timestamps[i])),
        )
        for data_type, values in raw.channels.items():
            value = values[i]
            if np.isfinite(value):
                point.with_data(data_type, float(value))
        points.append(point)

    return Segment(
        activity_type=activity_type,
        start_time=points[0].timestamp,
        end_time=points[-1].timestamp,
        points=points,
    )
