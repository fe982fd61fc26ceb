from __future__ import annotations

from analysis.peaks import (
    Extrema,
    ExtremumEvent,
    ExtremumKind,
    alternate,
    detect_peaks_and_valleys,
    merge_extrema,
)


P, V = ExtremumKind.PEAK, ExtremumKind.VALLEY

ONE_CYCLE = [0.5, 0.4, 0.3, 0.2, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.6, 0.5, 0.4, 0.3]


def test_detects_single_valley_then_peak():
    ex = detect_peaks_and_valleys(ONE_CYCLE, min_distance=3)
    assert ex.valleys == [4]
    assert ex.peaks == [10]


def test_short_series_yields_nothing():
    assert detect_peaks_and_valleys([]) == Extrema([], [])
    assert detect_peaks_and_valleys([0.1, 0.9]) == Extrema([], [])


def test_low_amplitude_noise_is_rejected():
    wiggle = [0.5, 0.502, 0.5, 0.498] * 6
    ex = detect_peaks_and_valleys(wiggle, min_distance=1)
    assert ex.peaks == []
    assert ex.valleys == []


def test_spacing_is_checked_per_kind():
    series = [0.0, 1.0, 0.0, 1.0, 0.0, 1.0, 0.0]
    ex = detect_peaks_and_valleys(series, min_distance=3, smoothing_window=1)
    # Peak at 3 is too close to peak 1; valley at 2 only competes with other valleys
    assert ex.peaks == [1, 5]
    assert ex.valleys == [2]


def test_relative_threshold_drops_shallow_bumps():
    # Full swings of 1.0 with a 0.05 bump at the bottom (threshold = 0.1)
    series = [0.5, 1.0, 0.5, 0.0, 0.05, 0.02, 0.5, 1.0, 0.5]
    ex = detect_peaks_and_valleys(series, min_distance=1, smoothing_window=1)
    assert ex.peaks == [1, 7]
    assert ex.valleys == [3, 5]


def test_merge_orders_events_by_index():
    events = merge_extrema(Extrema(peaks=[1, 5], valleys=[2]))
    assert [(e.index, e.kind) for e in events] == [(1, P), (2, V), (5, P)]


def test_alternate_collapses_same_kind_runs_to_first():
    events = [
        ExtremumEvent(1, P),
        ExtremumEvent(3, P),
        ExtremumEvent(4, V),
        ExtremumEvent(6, V),
        ExtremumEvent(8, P),
    ]
    kept = list(alternate(events))
    assert [(e.index, e.kind) for e in kept] == [(1, P), (4, V), (8, P)]
    for a, b in zip(kept, kept[1:]):
        assert a.kind != b.kind


def test_alternate_is_lazy():
    it = alternate(iter([ExtremumEvent(0, V), ExtremumEvent(2, P)]))
    assert next(it).index == 0
    assert next(it).index == 2
