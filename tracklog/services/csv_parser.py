"""
CSV track importer.

Parses logger CSV exports (RaceRender format and plain header-first CSVs)
into RawTrack. Segmentation happens in tracklog.services.segmenter.
"""

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from tracklog.models.activity import ActivityType, DynamicDataType
from tracklog.models.raw import RawTrack
from tracklog.models.session import TrackSession
from tracklog.services.segmenter import build_session


MPH_TO_KMH = 1.609344
MS_TO_KMH = 3.6

# Column name mappings - loggers use various naming conventions
COLUMN_MAPPINGS = {
    "time": ["Time", "time", "TIME", "GPS Time", "gps_time", "Timestamp", "timestamp"],
    "latitude": ["Latitude", "latitude", "LATITUDE", "Lat", "lat", "LAT"],
    "longitude": ["Longitude", "longitude", "LONGITUDE", "Lon", "lon", "LON", "Long", "long"],
    "altitude": ["Altitude", "altitude", "ALTITUDE", "Alt", "alt", "Elevation", "elevation"],
    "speed_mph": ["MPH", "mph", "Speed (MPH)", "speed_mph"],
    "speed_kph": ["KPH", "kph", "Speed (KPH)", "speed_kph", "Speed (km/h)"],
    "speed_ms": ["Speed (m/s)", "speed_ms", "Speed", "speed"],
    "heart_rate": ["Heart Rate", "HeartRate", "heart_rate", "HR", "hr", "bpm"],
    "cadence": ["Cadence", "cadence", "Cadence (spm)", "spm"],
    "power": ["Power", "power", "Power (W)", "watts"],
    "temperature": ["Temperature", "temperature", "Temp", "temp", "Temperature (C)"],
    "rpm": ["RPM", "rpm", "Engine RPM", "engine_rpm"],
    "step_count": ["Steps", "steps", "Step Count", "step_count"],
    "fuel_mileage": ["Fuel Mileage", "fuel_mileage", "km/l", "KPL"],
    "lap": ["Lap", "lap", "LAP", "Lap Number", "lap_number"],
}

# Directly mapped channels (already in canonical units)
CHANNEL_COLUMNS = {
    DynamicDataType.ALTITUDE: "altitude",
    DynamicDataType.TEMPERATURE: "temperature",
    DynamicDataType.HEART_RATE: "heart_rate",
    DynamicDataType.CADENCE: "cadence",
    DynamicDataType.POWER: "power",
    DynamicDataType.STEP_COUNT: "step_count",
    DynamicDataType.FUEL_MILEAGE: "fuel_mileage",
    DynamicDataType.RPM: "rpm",
}


class TrackCsvParser:
    """Parser for track CSV files."""

    def parse_file(self, filepath: Path) -> RawTrack:
        df = self._read_csv(filepath)
        if df.empty:
            raise ValueError(f"No samples in CSV: {filepath}")
        col_map = self._map_columns(df.columns.tolist())

        timestamps = self._parse_time_column(df, col_map)
        n_samples = len(timestamps)

        lat = self._extract_column(df, col_map, "latitude", n_samples)
        lon = self._extract_column(df, col_map, "longitude", n_samples)
        if np.all(np.isnan(lat)) or np.all(np.isnan(lon)):
            raise ValueError(f"No latitude/longitude columns found in CSV: {filepath}")

        channels: dict[DynamicDataType, NDArray[np.float64]] = {}
        for data_type, std_name in CHANNEL_COLUMNS.items():
            values = self._extract_column(df, col_map, std_name, n_samples)
            if not np.all(np.isnan(values)):
                channels[data_type] = values

        speed = self._extract_speed(df, col_map, n_samples)
        if speed is not None:
            channels[DynamicDataType.SPEED] = speed

        return RawTrack(
            source="csv",
            source_file=filepath,
            name=filepath.stem,
            timestamps=timestamps,
            latitude=lat,
            longitude=lon,
            channels=dict(sorted(channels.items())),
            lap_number=self._extract_lap(df, col_map, n_samples),
            recorded_at=self._extract_datetime(filepath),
        )

    def _read_csv(self, filepath: Path) -> pd.DataFrame:
        with open(filepath, "r", encoding="utf-8-sig") as f:
            lines = f.read().splitlines()

        if not lines:
            return pd.DataFrame()

        # RaceRender export: header lines are comments starting with '#'
        skip_rows = 0
        for i, line in enumerate(lines):
            if not line.strip().startswith("#"):
                skip_rows = i
                break

        df = pd.read_csv(filepath, skiprows=skip_rows, encoding="utf-8-sig")
        df.columns = df.columns.str.strip()
        return df

    def _map_columns(self, columns: list[str]) -> dict[str, Optional[str]]:
        col_map: dict[str, Optional[str]] = {}
        for std_name, variants in COLUMN_MAPPINGS.items():
            col_map[std_name] = None
            for variant in variants:
                if variant in columns:
                    col_map[std_name] = variant
                    break
        return col_map

    def _parse_time_column(
        self,
        df: pd.DataFrame,
        col_map: dict[str, Optional[str]],
    ) -> NDArray[np.float64]:
        time_col = col_map.get("time")
        if time_col is None or time_col not in df.columns:
            raise ValueError("No time column found in CSV")

        times = df[time_col].values
        if isinstance(times[0], str) and ":" in times[0]:
            parsed = []
            for t in times:
                parts = t.split(":")
                if len(parts) == 3:
                    h, m, s = float(parts[0]), float(parts[1]), float(parts[2])
                    parsed.append(h * 3600 + m * 60 + s)
                elif len(parts) == 2:
                    m, s = float(parts[0]), float(parts[1])
                    parsed.append(m * 60 + s)
                else:
                    parsed.append(float(t))
            times = np.array(parsed, dtype=np.float64)
        else:
            times = times.astype(np.float64)

        col_key = time_col.lower().replace(" ", "")
        if col_key in ("gpstime", "gps_time"):
            times = times / 1000.0
        else:
            max_val = float(np.nanmax(times)) if len(times) > 0 else 0.0
            if 1.0e5 < max_val < 1.0e9:
                times = times / 1000.0

        # Normalize to start at 0
        return times - times[0]

    def _extract_speed(
        self,
        df: pd.DataFrame,
        col_map: dict[str, Optional[str]],
        n_samples: int,
    ) -> Optional[NDArray[np.float64]]:
        """Speed in km/h from whichever speed column is present."""
        for speed_type, factor in [
            ("speed_kph", 1.0),
            ("speed_ms", MS_TO_KMH),
            ("speed_mph", MPH_TO_KMH),
        ]:
            speed = self._extract_column(df, col_map, speed_type, n_samples)
            if not np.all(np.isnan(speed)):
                return speed * factor
        return None

    def _extract_lap(
        self,
        df: pd.DataFrame,
        col_map: dict[str, Optional[str]],
        n_samples: int,
    ) -> Optional[NDArray[np.int32]]:
        col = col_map.get("lap")
        if col is None or col not in df.columns:
            return None

        values = df[col].values
        result = np.zeros(n_samples, dtype=np.int32)
        current_lap = 0
        for i, v in enumerate(values):
            if pd.notna(v) and v != "":
                try:
                    current_lap = int(v)
                except (ValueError, TypeError):
                    pass
            result[i] = current_lap
        return result

    def _extract_column(
        self,
        df: pd.DataFrame,
        col_map: dict[str, Optional[str]],
        std_name: str,
        n_samples: int,
    ) -> NDArray[np.float64]:
        col = col_map.get(std_name)
        if col is None or col not in df.columns:
            return np.full(n_samples, np.nan, dtype=np.float64)
        return pd.to_numeric(df[col], errors="coerce").values.astype(np.float64)

    def _extract_datetime(self, filepath: Path) -> Optional[datetime]:
        """Recording start from the file name, taken as UTC."""
        patterns = [
            r"(\d{4})-(\d{2})-(\d{2})_(\d{2})(\d{2})(\d{2})",
            r"(\d{4})(\d{2})(\d{2})_(\d{2})(\d{2})(\d{2})",
            r"(\d{4})-(\d{2})-(\d{2})",
            r"(\d{4})(\d{2})(\d{2})",
        ]
        for pattern in patterns:
            match = re.search(pattern, filepath.stem)
            if match:
                groups = [int(g) for g in match.groups()]
                try:
                    return datetime(*groups, tzinfo=timezone.utc)
                except ValueError:
                    pass
        return None


def parse_track_csv(
    filepath: Path,
    activity_type: ActivityType = ActivityType.UNKNOWN,
    recorded_at: Optional[datetime] = None,
    session_id: int = 0,
    title: Optional[str] = None,
    device: str = "",
) -> TrackSession:
    """
    Parse a track CSV and return a segmented TrackSession.

    The start time is `recorded_at`, else a date in the file name, else the
    file's modification time (UTC).
    """
    raw = TrackCsvParser().parse_file(filepath)
    if recorded_at is None:
        recorded_at = raw.recorded_at
    if recorded_at is None:
        recorded_at = datetime.fromtimestamp(int(filepath.stat().st_mtime), tz=timezone.utc)
    return build_session(
        raw,
        recorded_at,
        activity_type=activity_type,
        session_id=session_id,
        title=title if title is not None else raw.name,
        device=device,
    )
