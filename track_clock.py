"""
TrackClock: a virtual playback track that the measurement runs against.

Time is reported in milliseconds from the start of the track. The track
stops by itself once it reaches its length, and current_time saturates
there, the same way a silent audio track would behave.
"""

import time


class TrackClock:
    def __init__(self, length_ms, clock=time.monotonic):
        if length_ms <= 0:
            raise ValueError("length_ms must be > 0")
        self.length = float(length_ms)
        self._clock = clock  # seconds, monotonic
        self._started_at = None
        self._position = 0.0

    def _elapsed(self):
        if self._started_at is None:
            return self._position
        return self._position + (self._clock() - self._started_at) * 1000

    @property
    def current_time(self):
        return min(self._elapsed(), self.length)

    @property
    def is_running(self):
        return self._started_at is not None and self._elapsed() < self.length

    @property
    def progress(self):
        """Percentage of the track played so far."""
        return self.current_time / self.length * 100

    def start(self):
        """Start (or resume) playback from the current position. No-op if running."""
        if self.is_running:
            return
        if self._started_at is not None:
            self._position = self.current_time
        self._started_at = self._clock()

    def reset(self):
        """Stop playback and rewind to 0."""
        self._started_at = None
        self._position = 0.0
