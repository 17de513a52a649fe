"""
Graph projection of a TimingHistogram.

Turns bins into plain bar/axis records (relative heights in 0..1, colours,
labels) that any front end can draw. Nothing here holds state.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum

from timing_histogram import CENTRE_BIN_INDEX

MINIMUM_HEIGHT = 0.02
AXIS_POINTS = 10

WHITE = "#ffffff"
GREY = "#808080"
ADJUSTMENT_COLOUR = "#ffff00"


class TimingGrade(Enum):
    EXCELLENT = "#66ccff"
    GREAT = "#b3d944"
    GOOD = "#88b300"
    FAIR = "#ffcc22"
    POOR = "#ed1121"

    @property
    def colour(self):
        return self.value


# (upper bound in ms, grade), checked in order
GRADE_THRESHOLDS = [
    (10, TimingGrade.EXCELLENT),
    (25, TimingGrade.GREAT),
    (50, TimingGrade.GOOD),
    (80, TimingGrade.FAIR),
]


def grade_latency(latency_ms):
    for limit, grade in GRADE_THRESHOLDS:
        if latency_ms < limit:
            return grade
    return TimingGrade.POOR


@dataclass
class Segment:
    latency: float
    count: int
    colour: str
    bottom: float
    height: float


@dataclass
class Bar:
    index: int
    is_centre: bool
    total: int
    segments: list[Segment] = field(default_factory=list)
    adjustment_height: float = 0.0
    adjustment_visible: bool = False

    def to_dict(self):
        return asdict(self)


@dataclass
class AxisLabel:
    value: float
    position: float
    alpha: float
    text: str


def _scaled(value, max_count):
    if max_count <= 0:
        return 0.0
    return (1 - MINIMUM_HEIGHT) * value / max_count


def _height(value, max_count):
    return MINIMUM_HEIGHT + _scaled(value, max_count)


def build_bars(histogram):
    """One Bar per bin, segments stacked bottom-up in ascending latency order."""
    max_count = histogram.max_count
    bars = []
    for position, b in enumerate(histogram.bins):
        is_centre = b.index == CENTRE_BIN_INDEX
        bar = Bar(index=b.index, is_centre=is_centre, total=b.total)
        values = b.sorted_values()
        if values:
            stacked = 0
            for i, (latency, count) in enumerate(values):
                colour = WHITE if is_centre and i == 0 else grade_latency(latency).colour
                bar.segments.append(
                    Segment(
                        latency=latency,
                        count=count,
                        colour=colour,
                        bottom=_scaled(stacked, max_count),
                        height=_height(count, max_count),
                    )
                )
                stacked += count
        else:
            # empty bins still draw a dot so the baseline stays visible
            bar.segments.append(
                Segment(latency=0.0, count=0, colour=WHITE if is_centre else GREY, bottom=0.0, height=MINIMUM_HEIGHT)
            )
        if histogram.has_adjustment(position):
            bar.adjustment_visible = True
            bar.adjustment_height = _height(histogram.adjustments[position], max_count)
        bars.append(bar)
    return bars


def axis_labels(histogram, points=AXIS_POINTS):
    """Centre "0" label plus ``points`` labels spread over the positive side."""
    max_value = histogram.side_bins * histogram.bin_width
    step = max_value / points
    labels = [AxisLabel(value=0.0, position=0.0, alpha=1.0, text="0")]
    for i in range(1, points + 1):
        value = i * step
        position = value / max_value
        labels.append(AxisLabel(value=value, position=position, alpha=1 - position * 0.8, text=f"{value:.0f}"))
    return labels


def graph_payload(histogram):
    """Bars, axis and histogram metadata as a JSON-ready dict."""
    return {
        "type": "histogram",
        "bin_width": histogram.bin_width,
        "offset": histogram.offset,
        "total_count": histogram.total_count,
        "dropped_count": histogram.dropped_count,
        "max_count": histogram.max_count,
        "bars": [bar.to_dict() for bar in build_bars(histogram)],
        "axis": [asdict(label) for label in axis_labels(histogram)],
    }
