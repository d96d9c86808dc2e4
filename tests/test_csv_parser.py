"""
Tests for the CSV track importer and segmenter.
"""

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest
from numpy.testing import assert_allclose

from tracklog.models.activity import ActivityType, DynamicDataType, SessionStatus
from tracklog.services.csv_parser import TrackCsvParser, parse_track_csv
from tracklog.services.segmenter import build_session


START = datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_csv_content():
    """Standard RaceRender format CSV content."""
    return """# RaceRender Data
Time,Latitude,Longitude,Altitude,MPH,Heart Rate,GPS_Update
0.000,32.9857000,-89.7898000,10.0,0.0,120,1
1.000,32.9857100,-89.7897900,10.5,15.5,125,1
2.000,32.9857200,-89.7897800,11.0,25.3,,1
3.000,32.9857300,-89.7897700,11.5,30.1,131,1
4.000,32.9857400,-89.7897600,12.0,32.5,133,1
"""


@pytest.fixture
def sample_csv_file(sample_csv_content, tmp_path):
    """Create a temporary CSV file."""
    csv_file = tmp_path / "test_run.csv"
    csv_file.write_text(sample_csv_content)
    return csv_file


@pytest.fixture
def simple_csv_file(tmp_path):
    """Simple CSV without RaceRender header."""
    csv_file = tmp_path / "simple_run.csv"
    csv_file.write_text("""Time,Latitude,Longitude,KPH,Cadence,Power
0.0,32.9857,-89.7898,10.0,85,200
1.0,32.9858,-89.7897,20.0,88,210
2.0,32.9859,-89.7896,25.0,90,
""")
    return csv_file


class TestTrackCsvParser:
    """Tests for TrackCsvParser."""

    def test_parse_standard_format(self, sample_csv_file):
        """Parser should handle standard RaceRender format."""
        raw = TrackCsvParser().parse_file(sample_csv_file)

        assert raw.sample_count == 5
        assert raw.name == "test_run"
        assert not np.any(np.isnan(raw.latitude))
        assert list(raw.channels) == [
            DynamicDataType.ALTITUDE,
            DynamicDataType.SPEED,
            DynamicDataType.HEART_RATE,
        ]

    def test_speed_converted_to_kmh(self, sample_csv_file):
        raw = TrackCsvParser().parse_file(sample_csv_file)

        assert_allclose(raw.channels[DynamicDataType.SPEED][1], 15.5 * 1.609344)

    def test_parse_simple_format(self, simple_csv_file):
        """Parser should handle CSV without RaceRender header."""
        raw = TrackCsvParser().parse_file(simple_csv_file)

        assert raw.sample_count == 3
        assert_allclose(raw.channels[DynamicDataType.SPEED], [10.0, 20.0, 25.0])
        assert DynamicDataType.CADENCE in raw.channels
        assert np.isnan(raw.channels[DynamicDataType.POWER][2])
        assert DynamicDataType.ALTITUDE not in raw.channels

    def test_timestamps_normalized(self, tmp_path):
        csv_file = tmp_path / "offset.csv"
        csv_file.write_text("""Time,Latitude,Longitude
100.0,32.9857,-89.7898
101.5,32.9858,-89.7897
""")
        raw = TrackCsvParser().parse_file(csv_file)

        assert raw.timestamps[0] == 0.0
        assert raw.timestamps[1] == 1.5

    def test_hms_time_format(self, tmp_path):
        """Parser should handle hh:mm:ss.nn time format."""
        csv_file = tmp_path / "hms_time.csv"
        csv_file.write_text("""Time,Latitude,Longitude,MPH
00:00:00.00,32.9857,-89.7898,0.0
00:00:01.00,32.9858,-89.7897,20.0
00:01:30.50,32.9859,-89.7896,25.0
""")
        raw = TrackCsvParser().parse_file(csv_file)

        assert raw.timestamps[0] == 0.0
        assert raw.timestamps[1] == 1.0
        assert raw.timestamps[2] == 90.5

    def test_milliseconds_time_format(self, tmp_path):
        """Parser should handle raw millisecond times."""
        csv_file = tmp_path / "ms_time.csv"
        csv_file.write_text("""GPS Time,Latitude,Longitude,MPH
0,32.9857,-89.7898,0.0
1000,32.9858,-89.7897,20.0
2500,32.9859,-89.7896,25.0
""")
        raw = TrackCsvParser().parse_file(csv_file)

        assert raw.timestamps[1] == 1.0
        assert raw.timestamps[2] == 2.5

    def test_date_from_filename(self, tmp_path):
        csv_file = tmp_path / "ride_2024-05-04_093000.csv"
        csv_file.write_text("Time,Latitude,Longitude\n0,1,2\n")

        raw = TrackCsvParser().parse_file(csv_file)

        assert raw.recorded_at == datetime(2024, 5, 4, 9, 30, tzinfo=timezone.utc)

    def test_missing_time_column(self, tmp_path):
        csv_file = tmp_path / "no_time.csv"
        csv_file.write_text("Latitude,Longitude\n1,2\n")

        with pytest.raises(ValueError, match="No time column"):
            TrackCsvParser().parse_file(csv_file)

    def test_missing_position_columns(self, tmp_path):
        csv_file = tmp_path / "no_gps.csv"
        csv_file.write_text("Time,MPH\n0,1\n1,2\n")

        with pytest.raises(ValueError, match="latitude/longitude"):
            TrackCsvParser().parse_file(csv_file)


class TestParseTrackCsv:
    """Tests for the CSV to session convenience function."""

    def test_builds_session(self, sample_csv_file):
        session = parse_track_csv(
            sample_csv_file,
            activity_type=ActivityType.RUN,
            recorded_at=START,
            session_id=9,
        )

        assert session.id == 9
        assert session.title == "test_run"
        assert session.activity_type is ActivityType.RUN
        assert session.session_status is SessionStatus.FINISHED
        assert len(session.segments) == 1
        segment = session.segments[0]
        assert len(segment.points) == 5
        assert segment.start_time == START
        assert segment.end_time == START + timedelta(seconds=4)

    def test_missing_values_leave_channel_unset(self, sample_csv_file):
        session = parse_track_csv(sample_csv_file, recorded_at=START)

        point = session.segments[0].points[2]
        assert point.get(DynamicDataType.HEART_RATE) is None
        assert point.get(DynamicDataType.ALTITUDE) == 11.0

    def test_falls_back_to_file_mtime(self, sample_csv_file):
        session = parse_track_csv(sample_csv_file)

        assert session.time.tzinfo is not None
        assert session.time.microsecond == 0


class TestSegmenter:
    """Tests for segment splitting."""

    def _raw(self, tmp_path, body):
        csv_file = tmp_path / "track.csv"
        csv_file.write_text(body)
        return TrackCsvParser().parse_file(csv_file)

    def test_split_on_gap(self, tmp_path):
        raw = self._raw(tmp_path, """Time,Latitude,Longitude
0,10.0,20.0
5,10.0,20.0
1000,10.1,20.1
1005,10.1,20.1
""")
        session = build_session(raw, START, gap_s=300)

        assert [len(s.points) for s in session.segments] == [2, 2]
        assert session.segments[1].start_time == START + timedelta(seconds=1000)

    def test_split_on_lap(self, tmp_path):
        raw = self._raw(tmp_path, """Time,Latitude,Longitude,Lap
0,10.0,20.0,1
1,10.0,20.0,1
2,10.0,20.0,2
3,10.0,20.0,
""")
        session = build_session(raw, START)

        assert [len(s.points) for s in session.segments] == [2, 2]

    def test_invalid_fixes_dropped(self, tmp_path):
        raw = self._raw(tmp_path, """Time,Latitude,Longitude
0,10.0,20.0
1,,20.0
2,95.0,20.0
3,10.0,20.0
""")
        session = build_session(raw, START)

        assert session.point_count == 2

    def test_naive_start_rejected(self, tmp_path):
        raw = self._raw(tmp_path, "Time,Latitude,Longitude\n0,1,2\n")

        with pytest.raises(ValueError, match="timezone-aware"):
            build_session(raw, datetime(2024, 1, 1))
