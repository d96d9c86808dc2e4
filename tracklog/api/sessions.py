"""
API routes for track sessions.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Response

from tracklog.api.schemas import (
    SessionSummaryResponse,
    SessionMetadataResponse,
    SegmentResponse,
    SessionPointsResponse,
    TrackPointResponse,
    ImportSessionRequest,
    SetFolderRequest,
    FolderInfoResponse,
)
from tracklog.models.activity import ActivityType, DynamicDataType
from tracklog.models.session import SessionSummary, TrackSession
from tracklog.services.repository import get_repository


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _get_session_or_404(session_id: int) -> TrackSession:
    session = get_repository().get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return session


def _build_metadata_response(session: TrackSession) -> SessionMetadataResponse:
    """Build metadata response from TrackSession."""
    start, end = session.get_time_range()
    return SessionMetadataResponse(
        id=session.id,
        title=session.title,
        description=session.description,
        device=session.device,
        activity_type=session.activity_type.name,
        session_status=session.session_status.value,
        recorded_at=session.time.isoformat(),
        point_count=session.point_count,
        duration_s=session.duration_s,
        distance_m=session.distance_m,
        bounding_box=session.get_bounding_box(),
        time_range=(start.isoformat(), end.isoformat()),
        segments=[
            SegmentResponse(
                index=i,
                activity_type=segment.activity_type.name,
                start_time=segment.start_time.isoformat(),
                end_time=segment.end_time.isoformat(),
                point_count=len(segment.points),
                duration_s=segment.duration_s,
                distance_m=segment.distance_m,
            )
            for i, segment in enumerate(session.segments)
        ],
    )


def _build_summary_response(summary: SessionSummary) -> SessionSummaryResponse:
    return SessionSummaryResponse(
        id=summary.id,
        title=summary.title,
        activity_type=summary.activity_type,
        session_status=summary.session_status,
        recorded_at=summary.recorded_at,
        device=summary.device,
        segment_count=summary.segment_count,
        point_count=summary.point_count,
        duration_s=summary.duration_s,
        distance_m=summary.distance_m,
    )


@router.get("", response_model=list[SessionSummaryResponse])
def list_sessions():
    """
    List all stored sessions.

    Returns summaries sorted by recording date (newest first).
    """
    return [_build_summary_response(s) for s in get_repository().list_sessions()]


@router.post("/import", response_model=SessionMetadataResponse)
def import_session(request: ImportSessionRequest):
    """
    Import a CSV track into the data folder as a compact binary session.
    """
    repo = get_repository()
    if repo.data_folder is None:
        raise HTTPException(status_code=400, detail="No data folder set")

    path = Path(request.path)
    if not path.is_file():
        raise HTTPException(status_code=400, detail=f"File does not exist: {request.path}")

    try:
        activity_type = ActivityType[request.activity_type.upper()]
    except KeyError:
        raise HTTPException(status_code=400, detail=f"Unknown activity type: {request.activity_type}")

    try:
        session = repo.import_csv(
            path,
            activity_type=activity_type,
            recorded_at=request.recorded_at,
            title=request.title,
            device=request.device,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Failed to import {path.name}: {e}")

    if session is None:
        raise HTTPException(status_code=500, detail="Imported session could not be read back")

    logger.info(f"Imported {path.name} as session {session.id}")
    return _build_metadata_response(session)


@router.get("/{session_id}", response_model=SessionMetadataResponse)
def get_session_metadata(session_id: int):
    """
    Get metadata and segment list for a session.
    """
    return _build_metadata_response(_get_session_or_404(session_id))


@router.get("/{session_id}/points", response_model=SessionPointsResponse)
def get_session_points(
    session_id: int,
    segment: Optional[int] = Query(None, ge=0, description="Only points of this segment index"),
):
    """
    Get track points, optionally limited to one segment.

    Channels without a value on a point are omitted from its `channels`.
    """
    session = _get_session_or_404(session_id)

    if segment is None:
        selected = list(enumerate(session.segments))
    elif segment < len(session.segments):
        selected = [(segment, session.segments[segment])]
    else:
        raise HTTPException(status_code=404, detail=f"Segment not found: {segment}")

    points = [
        TrackPointResponse(
            segment=index,
            time=point.timestamp.isoformat(),
            lon=point.longitude,
            lat=point.latitude,
            channels={k.name.lower(): v for k, v in point.channels().items()},
        )
        for index, seg in selected
        for point in seg.points
    ]

    return SessionPointsResponse(
        session_id=session_id,
        point_count=len(points),
        units={data_type.name.lower(): data_type.unit for data_type in DynamicDataType},
        points=points,
    )


@router.get("/{session_id}/raw")
def get_session_raw(session_id: int):
    """
    Download the encoded session stream.
    """
    data = get_repository().read_raw(session_id)
    if data is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")

    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{session_id}.ctb"'},
    )


@router.delete("/{session_id}", status_code=204)
def delete_session(session_id: int):
    """
    Delete a stored session.
    """
    if not get_repository().delete_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return Response(status_code=204)


# ============================================================================
# Folder Management Routes
# ============================================================================

folder_router = APIRouter(prefix="/folder", tags=["folder"])


@folder_router.get("", response_model=FolderInfoResponse)
def get_folder_info():
    """Get information about the current data folder."""
    repo = get_repository()

    return FolderInfoResponse(
        path=str(repo.data_folder) if repo.data_folder else None,
        session_count=repo.session_count,
    )


@folder_router.post("", response_model=FolderInfoResponse)
def set_folder(request: SetFolderRequest):
    """
    Set the data folder to scan for session files.

    This will clear the current cache and re-scan.
    """
    repo = get_repository()

    path = Path(request.path)
    if not path.exists():
        raise HTTPException(status_code=400, detail=f"Folder does not exist: {request.path}")
    if not path.is_dir():
        raise HTTPException(status_code=400, detail=f"Path is not a directory: {request.path}")

    count = repo.set_data_folder(path)

    return FolderInfoResponse(
        path=str(path),
        session_count=count,
    )


@folder_router.post("/rescan", response_model=FolderInfoResponse)
def rescan_folder():
    """
    Rescan the current data folder for new session files.
    """
    repo = get_repository()

    if repo.data_folder is None:
        raise HTTPException(status_code=400, detail="No data folder set")

    repo.clear_cache()
    count = repo.scan_folder(repo.data_folder)

    return FolderInfoResponse(
        path=str(repo.data_folder),
        session_count=count,
    )
