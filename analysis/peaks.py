from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, List, NamedTuple, Optional, Sequence

import numpy as np

from pose.smoothing import moving_average
from .utils import (
    DEFAULT_MIN_PEAK_DISTANCE,
    DETECTION_SMOOTHING_WINDOW,
    MIN_PEAK_HEIGHT,
    RELATIVE_PEAK_HEIGHT,
)


class ExtremumKind(str, Enum):
    PEAK = "peak"
    VALLEY = "valley"


@dataclass(frozen=True)
class ExtremumEvent:
    index: int
    kind: ExtremumKind


class Extrema(NamedTuple):
    peaks: List[int]
    valleys: List[int]


def detect_peaks_and_valleys(
    values: Sequence[float],
    min_distance: int = DEFAULT_MIN_PEAK_DISTANCE,
    min_height: float = MIN_PEAK_HEIGHT,
    *,
    smoothing_window: int = DETECTION_SMOOTHING_WINDOW,
) -> Extrema:
    """
    Local maxima/minima of the smoothed series with adaptive amplitude and spacing rules.

    - A sample is a candidate when it is strictly above (peak) or below (valley)
      both immediate neighbours
    - Amplitude: a peak must exceed min + threshold, a valley must sit below
      max - threshold, with threshold = max(min_height, 10% of the series range)
    - Spacing: a candidate is dropped if the last accepted extremum of the same
      kind is fewer than min_distance samples behind it
    - Fewer than 3 samples yields no extrema

    Returned indices refer to positions in `values`.
    """
    peaks: List[int] = []
    valleys: List[int] = []
    if len(values) < 3:
        return Extrema(peaks, valleys)

    smoothed = moving_average(values, smoothing_window)
    lo = float(np.min(smoothed))
    hi = float(np.max(smoothed))
    threshold = max(float(min_height), (hi - lo) * RELATIVE_PEAK_HEIGHT)

    for i in range(1, len(smoothed) - 1):
        prev, curr, nxt = smoothed[i - 1], smoothed[i], smoothed[i + 1]

        if curr > prev and curr > nxt and curr - lo > threshold:
            if not peaks or i - peaks[-1] >= min_distance:
                peaks.append(i)

        if curr < prev and curr < nxt and hi - curr > threshold:
            if not valleys or i - valleys[-1] >= min_distance:
                valleys.append(i)

    return Extrema(peaks, valleys)


def merge_extrema(extrema: Extrema) -> List[ExtremumEvent]:
    """Peaks and valleys as one chronologically ordered event list."""
    events = [ExtremumEvent(i, ExtremumKind.PEAK) for i in extrema.peaks]
    events.extend(ExtremumEvent(i, ExtremumKind.VALLEY) for i in extrema.valleys)
    events.sort(key=lambda ev: ev.index)
    return events


def alternate(events: Iterable[ExtremumEvent]) -> Iterator[ExtremumEvent]:
    """
    Yield only events whose kind differs from the previously kept event.

    A run of same-kind events collapses to its first member.
    """
    last_kind: Optional[ExtremumKind] = None
    for ev in events:
        if last_kind is not None and ev.kind == last_kind:
            continue
        last_kind = ev.kind
        yield ev
