"""
Tests for the session data model.
"""

from datetime import datetime, timedelta, timezone

import pytest
from numpy.testing import assert_allclose

from tracklog.models.activity import ActivityType, DynamicDataType, SessionStatus
from tracklog.models.session import Header, Segment, SessionSummary, TrackPoint, TrackSession


T0 = datetime(2024, 3, 10, 8, 0, tzinfo=timezone.utc)


class TestTrackPoint:
    """Tests for presence mask and channel slots."""

    def test_mask_for_altitude_and_heart_rate(self):
        point = (
            TrackPoint(10.0, 59.0, T0)
            .with_data(DynamicDataType.ALTITUDE, 123.5)
            .with_data(DynamicDataType.HEART_RATE, 142.0)
        )

        assert point.dynamic_data_mask == 0x9
        assert point.get(DynamicDataType.ALTITUDE) == 123.5
        assert point.get(DynamicDataType.HEART_RATE) == 142.0
        for data_type in DynamicDataType:
            if data_type not in (DynamicDataType.ALTITUDE, DynamicDataType.HEART_RATE):
                assert point.get(data_type) is None

    def test_cleared_channel_hides_leftover_value(self):
        """A slot with data but a clear bit reads as absent."""
        point = TrackPoint(0.0, 0.0, T0).with_data(DynamicDataType.POWER, 250.0)
        point.clear(DynamicDataType.POWER)

        assert point.dynamic_data_mask == 0
        assert point.get(DynamicDataType.POWER) is None
        assert point.channels() == {}

    def test_values_stored_as_float32(self):
        point = TrackPoint(0.0, 0.0, T0).with_data(DynamicDataType.SPEED, 0.1)

        assert point.get(DynamicDataType.SPEED) != 0.1
        assert_allclose(point.get(DynamicDataType.SPEED), 0.1, rtol=1e-6)

    def test_channels_in_ascending_order(self):
        point = (
            TrackPoint(0.0, 0.0, T0)
            .with_data(DynamicDataType.RPM, 3000)
            .with_data(DynamicDataType.SPEED, 50)
        )

        assert list(point.channels()) == [DynamicDataType.SPEED, DynamicDataType.RPM]

    def test_equality_ignores_unset_slots(self):
        a = TrackPoint(1.0, 2.0, T0).with_data(DynamicDataType.CADENCE, 90)
        b = TrackPoint(1.0, 2.0, T0).with_data(DynamicDataType.CADENCE, 90)
        b.with_data(DynamicDataType.POWER, 300)
        b.clear(DynamicDataType.POWER)

        assert a == b
        assert a != TrackPoint(1.0, 2.0, T0)


class TestTrackSession:
    """Tests for session helpers."""

    @pytest.fixture
    def session(self):
        points = [
            TrackPoint(10.0, 59.0, T0),
            TrackPoint(10.0, 59.01, T0 + timedelta(seconds=60)),
        ]
        segment = Segment(ActivityType.WALK, T0, T0 + timedelta(seconds=60), points)
        return TrackSession(
            id=7,
            time=T0,
            activity_type=ActivityType.WALK,
            title="Walk",
            session_status=SessionStatus.FINISHED,
            segments=[segment],
        )

    def test_header_round_trip(self, session):
        header = session.header()

        assert header == Header(T0, ActivityType.WALK, "Walk", "", "")

        rebuilt = TrackSession.from_header(header, session_id=7, segments=session.segments)
        assert rebuilt.id == 7
        assert rebuilt.session_status is SessionStatus.UNKNOWN
        assert rebuilt.segments == session.segments

    def test_derived_values(self, session):
        assert session.point_count == 2
        assert session.duration_s == 60.0
        assert_allclose(session.distance_m, 1112, rtol=0.01)
        assert session.get_bounding_box() == (10.0, 59.0, 10.0, 59.01)
        assert session.get_time_range() == (T0, T0 + timedelta(seconds=60))

    def test_empty_session(self):
        session = TrackSession(id=1, time=T0, activity_type=ActivityType.UNKNOWN)

        assert session.point_count == 0
        assert session.distance_m == 0.0
        assert session.get_bounding_box() == (0.0, 0.0, 0.0, 0.0)
        assert session.get_time_range() == (T0, T0)

    def test_summary(self, session):
        summary = SessionSummary.from_session(session)

        assert summary.id == 7
        assert summary.activity_type == "WALK"
        assert summary.session_status == "finished"
        assert summary.segment_count == 1
        assert summary.point_count == 2
