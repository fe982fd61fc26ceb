from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Protocol, Tuple

from pose.landmarks import LANDMARK_NAMES, PoseHistory
from .exercises import ExerciseConfig
from .features import AngleData, angle_series, extract_signal
from .fsm_reps import RepFSM
from .peaks import ExtremumKind, alternate, detect_peaks_and_valleys, merge_extrema
from .utils import FRAME_DURATION_MS, MIN_HISTORY_FRAMES


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepSegment:
    """One completed repetition: frame range, angle trajectory, approximate duration."""
    rep_number: int
    exercise_name: str
    start_frame_index: int
    end_frame_index: int
    angles: Tuple[AngleData, ...]
    # (end - start) * 33.33: a 30 fps approximation, not measured wall-clock time
    duration_ms: float


@dataclass(frozen=True)
class SegmentationResult:
    rep_count: int
    new_rep_segments: List[RepSegment] = field(default_factory=list)
    stage: Optional[str] = None


@dataclass(frozen=True)
class RepetitionState:
    """
    Caller-held running tally between segment_reps calls.

    stage is UI state ("up" | "down"); the counting algorithm never reads it.
    """
    rep_count: int = 0
    stage: str = "up"
    feedback: Optional[str] = None

    def advance(self, result: SegmentationResult) -> "RepetitionState":
        return replace(
            self,
            rep_count=int(result.rep_count),
            stage=result.stage or self.stage,
        )


class Dispatcher(Protocol):
    def submit(self, segment: RepSegment) -> None:
        ...


def _dispatch(dispatcher: Dispatcher, segment: RepSegment) -> None:
    try:
        dispatcher.submit(segment)
    except Exception:
        logger.exception("Failed to dispatch rep segment #%d", segment.rep_number)


def segment_reps(
    pose_history: PoseHistory,
    exercise_config: ExerciseConfig,
    last_processed_rep_count: int = 0,
    *,
    dispatcher: Optional[Dispatcher] = None,
) -> SegmentationResult:
    """
    Count repetitions over the full pose history and cut out the new ones.

    - The primary joint (joints[0]) drives peak/valley detection
    - rep_count is recomputed from scratch on every call; last_processed_rep_count
      only filters which segments are returned
    - Segments carry original frame numbers even when frames were skipped
    - Each returned segment is handed to `dispatcher` (if any) without waiting;
      dispatch failures are logged and never affect the result
    """
    zero = SegmentationResult(rep_count=0, new_rep_segments=[], stage=exercise_config.initial_direction)
    if not pose_history or len(pose_history) < MIN_HISTORY_FRAMES:
        return zero

    primary = exercise_config.primary_joint
    values, frame_indices = extract_signal(pose_history, primary)
    if len(values) < MIN_HISTORY_FRAMES:
        logger.debug(
            "%s: only %d/%d frames carry %s",
            exercise_config.name, len(values), len(pose_history), LANDMARK_NAMES[primary.joint],
        )
        return zero

    angles: List[AngleData] = []
    if primary.angle_points is not None:
        angles = angle_series(pose_history, primary.angle_points)

    extrema = detect_peaks_and_valleys(values, exercise_config.min_peak_distance)
    valid_sequence = list(alternate(merge_extrema(extrema)))

    fsm = RepFSM(exercise_config.initial_direction)
    transitions = fsm.run(valid_sequence)

    new_segments: List[RepSegment] = []
    for tr in transitions:
        if tr.rep_number <= last_processed_rep_count:
            continue
        start_frame = frame_indices[tr.start_index]
        end_frame = frame_indices[tr.end_index]
        rep_angles = tuple(a for a in angles if start_frame <= a.frame_index <= end_frame)
        if not rep_angles:
            # Still counted in rep_count, but there is nothing to analyze
            continue
        segment = RepSegment(
            rep_number=tr.rep_number,
            exercise_name=exercise_config.name,
            start_frame_index=start_frame,
            end_frame_index=end_frame,
            angles=rep_angles,
            duration_ms=(end_frame - start_frame) * FRAME_DURATION_MS,
        )
        new_segments.append(segment)
        if dispatcher is not None:
            _dispatch(dispatcher, segment)

    if valid_sequence:
        stage = "down" if valid_sequence[-1].kind == ExtremumKind.VALLEY else "up"
    else:
        stage = exercise_config.initial_direction

    if new_segments:
        logger.info(
            "%s: %d reps total, %d new segments (frames %d-%d)",
            exercise_config.name, fsm.state.reps, len(new_segments),
            new_segments[0].start_frame_index, new_segments[-1].end_frame_index,
        )

    return SegmentationResult(rep_count=fsm.state.reps, new_rep_segments=new_segments, stage=stage)
