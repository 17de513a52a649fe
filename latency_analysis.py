"""
Latency analysis: turn captured tap timestamps into latency deltas and
reduce them to summary statistics.

Both functions are pure. They run after a measurement has passed its
sample-count gate, so empty input here means the caller skipped that gate.
"""

import logging
from dataclasses import asdict, dataclass

log = logging.getLogger("analysis")


class EmptyInputError(ValueError):
    """Analysis was asked to work on zero latencies."""


@dataclass(frozen=True)
class LatencyStatistics:
    min: float
    max: float
    mean: float
    mean_deviation: float

    def to_dict(self):
        return asdict(self)


def compute_latencies(timestamps, frequency_hz) -> list[float]:
    """Convert tap timestamps into signed latencies against the pulse train.

    The expected cue time accumulates ``i * period`` for the i-th tap, so the
    expected times grow superlinearly (0, p, 3p, 6p, ...). Results keep the
    input order; nothing is smoothed or rejected.
    """
    if frequency_hz <= 0:
        raise ValueError(f"frequency_hz must be > 0, got {frequency_hz}")
    period = 1 / frequency_hz
    expected = 0.0
    latencies = []
    for i, ts in enumerate(timestamps):
        expected += i * period
        latencies.append(ts - expected)
    return latencies


def summarize_latencies(latencies) -> LatencyStatistics:
    """Min, max, mean and mean absolute deviation of a latency sequence."""
    values = list(latencies)
    if not values:
        raise EmptyInputError("cannot summarize an empty latency sequence")
    mean = sum(values) / len(values)
    deviation = sum(abs(v - mean) for v in values) / len(values)
    stats = LatencyStatistics(min=min(values), max=max(values), mean=mean, mean_deviation=deviation)
    log.debug(f"Summarized {len(values)} latencies: mean={mean:.2f} dev={deviation:.2f}")
    return stats
