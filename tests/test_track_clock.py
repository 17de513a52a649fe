"""Unit tests for TrackClock."""

import pytest
from tests.helpers import FakeClock

from track_clock import TrackClock


@pytest.fixture
def clock():
    return FakeClock(start=50.0)


@pytest.fixture
def track(clock):
    return TrackClock(1000, clock=clock)


class TestTrackClock:
    def test_initially_stopped_at_zero(self, track):
        assert not track.is_running
        assert track.current_time == 0.0
        assert track.length == 1000.0

    def test_start_runs_in_milliseconds(self, track, clock):
        track.start()
        clock.advance(0.25)
        assert track.is_running
        assert track.current_time == pytest.approx(250.0)
        assert track.progress == pytest.approx(25.0)

    def test_stops_at_length(self, track, clock):
        track.start()
        clock.advance(5.0)
        assert not track.is_running
        assert track.current_time == 1000.0
        assert track.progress == 100.0

    def test_start_while_running_is_noop(self, track, clock):
        track.start()
        clock.advance(0.1)
        track.start()
        assert track.current_time == pytest.approx(100.0)

    def test_reset_rewinds_and_stops(self, track, clock):
        track.start()
        clock.advance(0.3)
        track.reset()
        assert not track.is_running
        assert track.current_time == 0.0
        clock.advance(0.3)
        assert track.current_time == 0.0

    def test_restart_after_reset_starts_from_zero(self, track, clock):
        track.start()
        clock.advance(0.3)
        track.reset()
        track.start()
        clock.advance(0.1)
        assert track.current_time == pytest.approx(100.0)

    def test_start_at_end_stays_at_end(self, track, clock):
        track.start()
        clock.advance(2.0)
        track.start()
        clock.advance(0.5)
        assert track.current_time == 1000.0
        assert not track.is_running

    @pytest.mark.parametrize("length", [0, -10])
    def test_rejects_non_positive_length(self, length):
        with pytest.raises(ValueError):
            TrackClock(length)
