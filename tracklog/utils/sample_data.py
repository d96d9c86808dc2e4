"""
Sample data generator for testing.

Generates realistic-looking activity sessions, either as TrackSession
objects, as encoded .ctb files or as CSV exports for the importer.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import numpy as np

from tracklog.models.activity import ActivityType, DynamicDataType, SessionStatus
from tracklog.models.session import Segment, TrackPoint, TrackSession
from tracklog.services.writer import write_session


DEFAULT_START = datetime(2024, 5, 4, 9, 30, tzinfo=timezone(timedelta(hours=2)))


def _loop_coordinates(
    n_samples: int,
    center_lat: float,
    center_lon: float,
    radius_m: float,
    rng: np.random.Generator,
) -> tuple[np.ndarray, np.ndarray]:
    """Noisy circular loop around a center point."""
    t_param = np.linspace(0, 2 * np.pi, n_samples)
    x_local = radius_m * np.cos(t_param) + rng.normal(0, 1.0, n_samples)
    y_local = radius_m * np.sin(t_param) + rng.normal(0, 1.0, n_samples)

    # Approximate conversion at this latitude
    meters_per_deg_lat = 111000
    meters_per_deg_lon = 111000 * np.cos(np.radians(center_lat))

    return center_lat + y_local / meters_per_deg_lat, center_lon + x_local / meters_per_deg_lon


def generate_run_session(
    session_id: int = 1,
    start: datetime = DEFAULT_START,
    duration_s: int = 1800,
    sample_interval_s: int = 5,
    pause_s: int = 0,
    center_lat: float = 59.9139,
    center_lon: float = 10.7522,
    loop_radius_m: float = 400.0,
    seed: Optional[int] = 0,
) -> TrackSession:
    """
    Generate a running session with altitude, speed, heart rate and cadence.

    With `pause_s` > 0 the run is split into two segments separated by a
    pause, so the second segment starts with a time sync.
    """
    rng = np.random.default_rng(seed)
    n_samples = duration_s // sample_interval_s
    lat, lon = _loop_coordinates(n_samples, center_lat, center_lon, loop_radius_m, rng)

    altitude = 20 + 5 * np.sin(np.linspace(0, 4 * np.pi, n_samples))
    speed = np.clip(rng.normal(11.0, 0.8, n_samples), 6.0, 16.0)
    heart_rate = np.clip(120 + np.linspace(0, 40, n_samples) + rng.normal(0, 3, n_samples), 60, 200)
    cadence = np.clip(rng.normal(170, 4, n_samples), 140, 200)

    half = n_samples // 2 if pause_s > 0 else n_samples
    segments = []
    for chunk in (range(0, half), range(half, n_samples)):
        if len(chunk) == 0:
            continue
        offset = pause_s if chunk.start >= half and pause_s > 0 else 0
        points = []
        for i in chunk:
            timestamp = start + timedelta(seconds=i * sample_interval_s + offset)
            points.append(
                TrackPoint(lon[i], lat[i], timestamp)
                .with_data(DynamicDataType.ALTITUDE, altitude[i])
                .with_data(DynamicDataType.SPEED, speed[i])
                .with_data(DynamicDataType.HEART_RATE, heart_rate[i])
                .with_data(DynamicDataType.CADENCE, cadence[i])
            )
        segments.append(Segment(
            activity_type=ActivityType.RUN,
            start_time=points[0].timestamp,
            end_time=points[-1].timestamp,
            points=points,
        ))

    return TrackSession(
        id=session_id,
        time=start,
        activity_type=ActivityType.RUN,
        title="Morning run",
        description="Loop around the park",
        device="sample-generator",
        session_status=SessionStatus.FINISHED,
        segments=segments,
    )


def generate_drive_session(
    session_id: int = 2,
    start: datetime = DEFAULT_START,
    duration_s: int = 3600,
    sample_interval_s: int = 10,
    center_lat: float = 59.9139,
    center_lon: float = 10.7522,
    seed: Optional[int] = 1,
) -> TrackSession:
    """Generate a car trip with speed, RPM, temperature and fuel mileage."""
    rng = np.random.default_rng(seed)
    n_samples = duration_s // sample_interval_s
    lat, lon = _loop_coordinates(n_samples, center_lat, center_lon, 8000.0, rng)

    speed = np.clip(60 + 30 * np.sin(np.linspace(0, 6 * np.pi, n_samples)), 0, 130)
    rpm = 800 + speed * 35 + rng.normal(0, 50, n_samples)
    temperature = np.full(n_samples, 18.5)
    mileage = np.clip(rng.normal(15.0, 1.5, n_samples), 5, 25)

    points = []
    for i in range(n_samples):
        points.append(
            TrackPoint(lon[i], lat[i], start + timedelta(seconds=i * sample_interval_s))
            .with_data(DynamicDataType.SPEED, speed[i])
            .with_data(DynamicDataType.TEMPERATURE, temperature[i])
            .with_data(DynamicDataType.FUEL_MILEAGE, mileage[i])
            .with_data(DynamicDataType.RPM, rpm[i])
        )

    return TrackSession(
        id=session_id,
        time=start,
        activity_type=ActivityType.CAR,
        title="Commute",
        device="sample-generator",
        session_status=SessionStatus.FINISHED,
        segments=[Segment(ActivityType.CAR, points[0].timestamp, points[-1].timestamp, points)],
    )


def generate_track_csv(
    output_path: Path,
    duration_s: float = 60.0,
    sample_rate_hz: float = 1.0,
    center_lat: float = 32.9857,
    center_lon: float = -89.7898,
    seed: Optional[int] = 0,
) -> Path:
    """
    Write a RaceRender-style CSV with speed (mph), altitude and heart rate.
    """
    rng = np.random.default_rng(seed)
    n_samples = int(duration_s * sample_rate_hz)
    timestamps = np.linspace(0, duration_s, n_samples, endpoint=False)
    lat, lon = _loop_coordinates(n_samples, center_lat, center_lon, 50.0, rng)
    speed_mph = np.clip(rng.normal(12.0, 1.0, n_samples), 0, None)
    heart_rate = np.clip(rng.normal(140, 5, n_samples), 60, 200)

    lines = ["# RaceRender Data"]
    lines.append("Time,Latitude,Longitude,Altitude,MPH,Heart Rate")
    for i in range(n_samples):
        lines.append(
            f"{timestamps[i]:.3f},"
            f"{lat[i]:.7f},"
            f"{lon[i]:.7f},"
            f"10.0,"
            f"{speed_mph[i]:.1f},"
            f"{heart_rate[i]:.0f}"
        )

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        f.write('\n'.join(lines))

    return output_path


def generate_test_data_set(output_folder: Path) -> list[Path]:
    """Encode a set of sample sessions into `output_folder`."""
    output_folder.mkdir(parents=True, exist_ok=True)

    sessions = [
        generate_run_session(session_id=1),
        generate_run_session(session_id=2, pause_s=900, start=DEFAULT_START + timedelta(days=1)),
        generate_drive_session(session_id=3, start=DEFAULT_START + timedelta(days=2)),
    ]

    files = []
    for session in sessions:
        path = output_folder / f"{session.id}.ctb"
        with open(path, "wb") as f:
            write_session(session, f)
        files.append(path)
    return files


if __name__ == "__main__":
    output = Path("./data/sessions")
    files = generate_test_data_set(output)
    print(f"Generated {len(files)} sample sessions in {output}")
    for f in files:
        print(f"  - {f.name} ({f.stat().st_size} bytes)")
