"""
MeasurementSession: owns one latency-certification run at a time.

Lifecycle: IDLE -> MEASURING -> EVALUATING -> SUCCESS
                           \\-> ERROR -> (cooldown) -> IDLE

Two deferred checks are scheduled when a run starts: an early check that
aborts if nobody tapped at all, and a final check after the track ends that
either evaluates the taps or fails for too few of them. Every deferred action
carries the run id it was scheduled for and is dropped if a newer run has
started, so a stale check can never touch the current run.

This module has NO dependencies on server.py or FastAPI.
The on_update callback is passed in by the caller.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum, IntEnum

from certifier_config import CertifierConfig
from latency_analysis import LatencyStatistics, compute_latencies, summarize_latencies
from timing_histogram import TimingHistogram
from track_clock import TrackClock

log = logging.getLogger("certifier")


class SessionState(str, Enum):
    IDLE = "idle"
    MEASURING = "measuring"
    EVALUATING = "evaluating"
    SUCCESS = "success"
    ERROR = "error"


class ErrorCause(IntEnum):
    NO_INPUT = 0
    INSUFFICIENT_SAMPLES = 1

    @property
    def message(self):
        return f"Error {self.value}"


TERMINAL_STATES = (SessionState.SUCCESS, SessionState.ERROR)


@dataclass
class SessionResult:
    histogram: TimingHistogram
    statistics: LatencyStatistics
    latencies: list[float]

    def to_dict(self):
        return {
            "statistics": self.statistics.to_dict(),
            "sample_count": len(self.latencies),
            "bin_width": self.histogram.bin_width,
            "binned_count": self.histogram.total_count,
            "dropped_count": self.histogram.dropped_count,
        }


class MeasurementSession:
    """Runs latency measurements against a TrackClock.

    Invariant: timestamps only grow while MEASURING.
    All runs begin through start().
    """

    def __init__(self, config=None, clock=None, on_update=None):
        self.config = config or CertifierConfig()
        self.clock = clock or TrackClock(self.config.track_length_ms)
        self.on_update = on_update  # async callback(dict)
        self.state = SessionState.IDLE
        self.run_id = 0
        self.started_at = 0.0
        self.error = None
        self.result = None
        self._timestamps = []
        self._tasks = set()
        self._finished = asyncio.Event()

    @property
    def timestamps(self):
        return list(self._timestamps)

    @property
    def sample_count(self):
        return len(self._timestamps)

    @property
    def progress(self):
        if not self.clock.is_running:
            return None
        return self.clock.progress

    @property
    def progress_text(self):
        if self.state == SessionState.ERROR and self.error is not None:
            return self.error.message
        progress = self.progress
        if progress is None:
            return ""
        return f"Progress: {progress:.1f}%"

    async def start(self):
        """Begin a new run, discarding everything from the previous one."""
        if self.state == SessionState.MEASURING:
            log.info(f"Restarting measurement (abandoning run {self.run_id})")
        self._cancel_tasks()
        self.run_id += 1
        self._timestamps = []
        self.error = None
        self.result = None
        self._finished = asyncio.Event()
        self.started_at = time.monotonic()
        self.clock.reset()
        self.clock.start()
        self.state = SessionState.MEASURING
        self._schedule(self.config.early_check_ms, self._early_check)
        self._schedule(self.config.final_check_ms, self._final_check)
        log.info(
            f"Measurement run {self.run_id} started "
            f"({self.config.track_length_ms:.0f} ms, {self.config.pulse_frequency_hz} Hz)"
        )
        await self._broadcast()

    def capture(self):
        """Record an input event at the clock's current time.

        Returns False (and records nothing) unless a run is measuring.
        """
        if self.state != SessionState.MEASURING:
            log.debug(f"Ignoring input while {self.state.value}")
            return False
        self._timestamps.append(self.clock.current_time)
        return True

    async def reset(self):
        """Full reset: cancel pending checks, stop the clock, back to IDLE."""
        self._cancel_tasks()
        self.clock.reset()
        self.state = SessionState.IDLE
        self.started_at = 0.0
        self.error = None
        self.result = None
        self._timestamps = []
        self._finished = asyncio.Event()
        log.info("Session reset")
        await self._broadcast()

    async def wait_finished(self, timeout=None):
        """Wait until the current run reaches SUCCESS or ERROR."""
        await asyncio.wait_for(self._finished.wait(), timeout)

    def evaluate(self):
        """Run the analysis pipeline over the captured timestamps."""
        latencies = compute_latencies(self._timestamps, self.config.pulse_frequency_hz)
        histogram = TimingHistogram.from_latencies(latencies, self.config.side_bins)
        statistics = summarize_latencies(latencies)
        return SessionResult(histogram=histogram, statistics=statistics, latencies=latencies)

    async def _early_check(self):
        if self.state != SessionState.MEASURING:
            return
        if not self._timestamps:
            await self._fail(ErrorCause.NO_INPUT)

    async def _final_check(self):
        if self.state != SessionState.MEASURING:
            return
        if len(self._timestamps) < self.config.minimum_samples:
            await self._fail(ErrorCause.INSUFFICIENT_SAMPLES)
            return
        self.state = SessionState.EVALUATING
        self.clock.reset()
        await self._broadcast()
        self.result = self.evaluate()
        self.state = SessionState.SUCCESS
        self._finished.set()
        stats = self.result.statistics
        log.info(
            f"Run {self.run_id} succeeded: {self.sample_count} samples, "
            f"mean {stats.mean:.2f} ms, deviation {stats.mean_deviation:.2f} ms"
        )
        await self._broadcast()

    async def _fail(self, cause):
        self.clock.reset()
        self.state = SessionState.ERROR
        self.error = cause
        self._finished.set()
        log.warning(f"Run {self.run_id} failed: {cause.name} ({self.sample_count} samples)")
        self._schedule(self.config.cooldown_ms, self._return_to_idle)
        await self._broadcast()

    async def _return_to_idle(self):
        if self.state != SessionState.ERROR:
            return
        # error cause stays readable until the next start() or reset()
        self.state = SessionState.IDLE
        await self._broadcast()

    def _schedule(self, delay_ms, action):
        task = asyncio.create_task(self._deferred(self.run_id, delay_ms, action))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deferred(self, run_id, delay_ms, action):
        try:
            await asyncio.sleep(delay_ms / 1000)
            if run_id != self.run_id:
                log.debug(f"Dropping stale {action.__name__} from run {run_id}")
                return
            await action()
        except asyncio.CancelledError:
            pass

    def _cancel_tasks(self):
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    async def _broadcast(self):
        if self.on_update:
            await self.on_update(self.to_dict())

    def to_dict(self):
        """Build session state dict for WebSocket broadcast."""
        d = {
            "type": "session",
            "state": self.state.value,
            "run_id": self.run_id,
            "progress": self.progress,
            "progress_text": self.progress_text,
            "samples": self.sample_count,
            "minimum_samples": self.config.minimum_samples,
            "error": self.error.name.lower() if self.error is not None else None,
            "error_code": int(self.error) if self.error is not None else None,
        }
        if self.result is not None:
            d["result"] = self.result.to_dict()
        return d
