"""Shared test fixtures for certifier tests."""

import os
import sys

# Add project root to path so tests can import measurement_session, server, etc.
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from measurement_session import MeasurementSession
from tests.helpers import FakeClock, make_config
from track_clock import TrackClock


@pytest.fixture
def config():
    """Scaled-down config so timer-driven runs finish in well under a second."""
    return make_config()


@pytest.fixture
def fake_clock():
    return FakeClock(start=100.0)


@pytest.fixture
def sess(config):
    """MeasurementSession on a real (monotonic) track clock."""
    return MeasurementSession(config)


@pytest.fixture
def fake_sess(config, fake_clock):
    """MeasurementSession whose track time only moves when the test advances it."""
    return MeasurementSession(config, clock=TrackClock(config.track_length_ms, clock=fake_clock))
