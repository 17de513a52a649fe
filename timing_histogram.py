"""
TimingHistogram: fixed-size, zero-centred histogram of latency deltas.

There are SIDE_BINS bins on the positive side plus the centre bin at index 0.
Each bin keeps a bag of the exact latencies that landed in it (value ->
occurrences) so a graph can stack them by value.

Midpoint values are spread between the two neighbouring bins by flipping the
rounding direction on every tie, instead of always rounding the same way.
Latencies whose index falls outside 0..SIDE_BINS are dropped. That includes
any negative latency that rounds below the centre bin.

An offset can be applied after the fact. It is stored, and each bin's
adjustment total is recomputed against its original total; bin membership
itself never changes.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass, field

from latency_analysis import EmptyInputError

log = logging.getLogger("analysis")

SIDE_BINS = 100
CENTRE_BIN_INDEX = 0


@dataclass
class Bin:
    index: int
    values: Counter = field(default_factory=Counter)

    @property
    def total(self):
        return sum(self.values.values())

    def sorted_values(self):
        """(latency, occurrences) pairs in ascending latency order."""
        return sorted(self.values.items())


def bin_width_for(latencies, side_bins=SIDE_BINS):
    """Smallest whole bin width that fits the largest latency, at least 1."""
    peak = max((abs(v) for v in latencies), default=0.0)
    return max(1, math.ceil(peak / side_bins))


def _round_half_away(x):
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


class TimingHistogram:
    def __init__(self, latencies, side_bins=SIDE_BINS):
        if side_bins < 1:
            raise ValueError("side_bins must be >= 1")
        self.latencies = list(latencies)
        self.side_bins = side_bins
        self.bins = [Bin(CENTRE_BIN_INDEX + i) for i in range(side_bins + 1)]
        self.bin_width = bin_width_for(self.latencies, side_bins)
        self.offset = 0.0
        self.dropped_count = 0
        self._assign()
        self.original_totals = [b.total for b in self.bins]
        self.adjustments = list(self.original_totals)

    @classmethod
    def from_latencies(cls, latencies, side_bins=SIDE_BINS):
        """Build a histogram, refusing an empty latency set."""
        latencies = list(latencies)
        if not latencies:
            raise EmptyInputError("cannot bin an empty latency sequence")
        return cls(latencies, side_bins)

    @property
    def centre_bin(self):
        return self.bins[CENTRE_BIN_INDEX]

    @property
    def total_count(self):
        return sum(b.total for b in self.bins)

    @property
    def max_count(self):
        return max(b.total for b in self.bins)

    def bin_index_for(self, latency, round_up=True):
        """Bin index for one latency and the alternation flag to use next."""
        raw = latency / self.bin_width
        whole = math.trunc(raw)
        if abs(raw - whole) == 0.5:
            rounded = whole + int(math.copysign(1, raw)) * (1 if round_up else 0)
            round_up = not round_up
        else:
            rounded = _round_half_away(raw)
        return CENTRE_BIN_INDEX + rounded, round_up

    def _assign(self):
        for b in self.bins:
            b.values.clear()
        self.dropped_count = 0
        round_up = True
        for latency in self.latencies:
            index, round_up = self.bin_index_for(latency, round_up)
            if 0 <= index < len(self.bins):
                self.bins[index].values[latency] += 1
            else:
                self.dropped_count += 1
        if self.dropped_count:
            log.debug(f"Dropped {self.dropped_count} out-of-range latencies (bin width {self.bin_width})")

    def apply_offset(self, offset, adjustments=None):
        """Store a post-hoc offset and recompute per-bin adjustment totals.

        Without ``adjustments`` the totals come from current bin occupancy.
        A caller may instead supply one total per bin.
        """
        if adjustments is None:
            adjustments = [b.total for b in self.bins]
        else:
            adjustments = [float(a) for a in adjustments]
            if len(adjustments) != len(self.bins):
                raise ValueError(f"expected {len(self.bins)} adjustments, got {len(adjustments)}")
            if not all(math.isfinite(a) for a in adjustments):
                raise ValueError("adjustments must be finite")
        if not math.isfinite(offset):
            raise ValueError("offset must be finite")
        self.offset = float(offset)
        self.adjustments = adjustments

    def has_adjustment(self, position):
        return self.adjustments[position] != self.original_totals[position]

    def to_dict(self):
        return {
            "bin_width": self.bin_width,
            "offset": self.offset,
            "total_count": self.total_count,
            "dropped_count": self.dropped_count,
            "bins": [
                {
                    "index": b.index,
                    "total": b.total,
                    "adjustment": self.adjustments[i],
                    "has_adjustment": self.has_adjustment(i),
                    "values": [[v, n] for v, n in b.sorted_values()],
                }
                for i, b in enumerate(self.bins)
            ],
        }
