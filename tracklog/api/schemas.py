"""
API schemas (Pydantic models) for request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


# ============================================================================
# Session Schemas
# ============================================================================

class SessionSummaryResponse(BaseModel):
    """Summary of a session for listing."""
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


class SegmentResponse(BaseModel):
    """Segment metadata (points are served separately)."""
    index: int
    activity_type: str
    start_time: str
    end_time: str
    point_count: int
    duration_s: float
    distance_m: float


class SessionMetadataResponse(BaseModel):
    """Full metadata for a session."""
    id: int
    title: str
    description: str
    device: str
    activity_type: str
    session_status: str
    recorded_at: str
    point_count: int
    duration_s: float
    distance_m: float
    bounding_box: tuple[float, float, float, float]  # (min_lon, min_lat, max_lon, max_lat)
    time_range: tuple[str, str]
    segments: list[SegmentResponse]


class TrackPointResponse(BaseModel):
    """Single track point with its set channels."""
    segment: int
    time: str
    lon: float
    lat: float
    channels: dict[str, float]


class SessionPointsResponse(BaseModel):
    """Track points of a session or one of its segments."""
    session_id: int
    point_count: int
    units: dict[str, str]
    points: list[TrackPointResponse]


class ImportSessionRequest(BaseModel):
    """Request to import a CSV track into the data folder."""
    path: str
    activity_type: str = "UNKNOWN"  # ActivityType name
    recorded_at: Optional[datetime] = None
    title: Optional[str] = None
    device: str = ""


# ============================================================================
# Folder Management Schemas
# ============================================================================

class SetFolderRequest(BaseModel):
    """Request to set the data folder."""
    path: str


class FolderInfoResponse(BaseModel):
    """Information about the current data folder."""
    path: Optional[str]
    session_count: int


# ============================================================================
# Error Schemas
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
    code: Optional[str] = None
