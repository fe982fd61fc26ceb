from __future__ import annotations

import pytest

from analysis.fsm_reps import RepFSM, RepPhase
from analysis.peaks import ExtremumEvent, ExtremumKind


P, V = ExtremumKind.PEAK, ExtremumKind.VALLEY


def _events(*pairs):
    return [ExtremumEvent(i, k) for i, k in pairs]


def test_down_fsm_counts_valley_to_peak():
    fsm = RepFSM("down")
    assert fsm.state.phase is RepPhase.AWAITING_DOWN

    assert fsm.process_event(ExtremumEvent(2, V)) is None
    assert fsm.state.phase is RepPhase.AWAITING_UP

    tr = fsm.process_event(ExtremumEvent(9, P))
    assert tr is not None
    assert (tr.rep_number, tr.start_index, tr.end_index) == (1, 2, 9)
    assert fsm.state.phase is RepPhase.AWAITING_DOWN
    assert fsm.state.reps == 1


def test_up_fsm_counts_peak_to_valley():
    fsm = RepFSM("up")
    assert fsm.state.phase is RepPhase.AWAITING_UP
    reps = fsm.run(_events((1, P), (6, V), (12, P), (18, V)))
    assert [(r.start_index, r.end_index) for r in reps] == [(1, 6), (12, 18)]
    assert fsm.state.reps == 2


def test_return_half_of_cycle_does_not_count():
    # For a "down" exercise, peak -> valley is the return movement
    fsm = RepFSM("down")
    reps = fsm.run(_events((0, P), (5, V)))
    assert reps == []
    assert fsm.state.reps == 0
    assert fsm.state.phase is RepPhase.AWAITING_UP


def test_same_kind_run_keeps_first_opening_event():
    fsm = RepFSM("down")
    reps = fsm.run(_events((3, V), (7, V), (11, P)))
    assert len(reps) == 1
    assert reps[0].start_index == 3


def test_reset_restores_opening_phase():
    fsm = RepFSM("up")
    fsm.run(_events((1, P), (4, V), (8, P)))
    assert fsm.state.reps == 1
    fsm.reset()
    assert fsm.state.reps == 0
    assert fsm.state.phase is RepPhase.AWAITING_UP
    assert fsm.state.start_index is None


def test_rejects_unknown_direction():
    with pytest.raises(ValueError):
        RepFSM("sideways")
