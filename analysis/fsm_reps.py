from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from .peaks import ExtremumEvent, ExtremumKind


class RepPhase(str, Enum):
    AWAITING_DOWN = "awaiting_down"  # waiting for a valley
    AWAITING_UP = "awaiting_up"      # waiting for a peak


_WANTED = {
    RepPhase.AWAITING_DOWN: ExtremumKind.VALLEY,
    RepPhase.AWAITING_UP: ExtremumKind.PEAK,
}


@dataclass
class RepState:
    phase: RepPhase
    reps: int = 0
    start_index: Optional[int] = None


@dataclass(frozen=True)
class RepTransition:
    rep_number: int
    start_index: int
    end_index: int


class RepFSM:
    """
    Rep counter over alternating peak/valley events.

    - initial_direction="down": a valley opens a rep, the next peak completes it
    - initial_direction="up": a peak opens a rep, the next valley completes it
    - Events of the kind the current phase is not waiting for are ignored, so the
      return half of a cycle never counts and same-kind runs keep their first event
    """

    def __init__(self, initial_direction: str = "up") -> None:
        if initial_direction not in ("up", "down"):
            raise ValueError("initial_direction must be 'up' or 'down'")
        self.initial_direction = initial_direction
        self._opening_phase = RepPhase.AWAITING_DOWN if initial_direction == "down" else RepPhase.AWAITING_UP
        self._closing_phase = RepPhase.AWAITING_UP if initial_direction == "down" else RepPhase.AWAITING_DOWN
        self.state = RepState(phase=self._opening_phase)

    def reset(self) -> None:
        self.state = RepState(phase=self._opening_phase)

    def process_event(self, event: ExtremumEvent) -> Optional[RepTransition]:
        """Advance on one extremum; returns the completed rep, if any."""
        if event.kind != _WANTED[self.state.phase]:
            return None

        if self.state.phase is self._opening_phase:
            self.state.start_index = int(event.index)
            self.state.phase = self._closing_phase
            return None

        start = self.state.start_index
        self.state.reps += 1
        self.state.start_index = None
        self.state.phase = self._opening_phase
        return RepTransition(
            rep_number=self.state.reps,
            start_index=int(start) if start is not None else int(event.index),
            end_index=int(event.index),
        )

    def run(self, events: Iterable[ExtremumEvent]) -> List[RepTransition]:
        transitions: List[RepTransition] = []
        for ev in events:
            tr = self.process_event(ev)
            if tr is not None:
                transitions.append(tr)
        return transitions
