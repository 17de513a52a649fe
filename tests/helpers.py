"""Shared test helpers for certifier tests."""

from certifier_config import CertifierConfig


def make_config(**overrides):
    """Factory for a scaled-down config: 40 ms track, checks within ~60 ms."""
    values = {
        "track_length_ms": 40,
        "pulse_frequency_hz": 4.0,
        "minimum_samples": 5,
        "early_check_ms": 10,
        "final_grace_ms": 20,
        "cooldown_ms": 10,
        "side_bins": 100,
    }
    values.update(overrides)
    return CertifierConfig(**values)


def on_beat_timestamps(count, frequency_hz=4.0, latency=0.0):
    """Timestamps that land exactly ``latency`` after each expected cue.

    Mirrors the cumulative expected-time formula, so compute_latencies()
    returns ``latency`` for every entry.
    """
    period = 1 / frequency_hz
    expected = 0.0
    out = []
    for i in range(count):
        expected += i * period
        out.append(expected + latency)
    return out


class FakeClock:
    """Fake monotonic clock (seconds) for driving TrackClock in tests.

    Pass as ``TrackClock(length_ms, clock=fake)``.
    Advance by calling ``clock.advance(seconds)``.
    """

    def __init__(self, start=0.0):
        self._now = start

    def __call__(self):
        return self._now

    def advance(self, seconds):
        self._now += seconds
