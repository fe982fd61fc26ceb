from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from .segmenter import RepSegment


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepAnalysis:
    exercise_name: str
    rep_number: int
    duration: int
    angle_min: float
    angle_max: float
    average_angle: float
    range_of_motion: float

    def to_payload(self) -> Dict[str, object]:
        """Record handed to the feedback service (its wire field names)."""
        return {
            "exerciseName": self.exercise_name,
            "repNumber": self.rep_number,
            "duration": self.duration,
            "angleRange": {"min": self.angle_min, "max": self.angle_max},
            "averageAngle": self.average_angle,
            "rangeOfMotion": self.range_of_motion,
        }


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with exact halves going up (1666.5 -> 1667, 90.25 -> 90.3), not to even."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def display_name(exercise_name: str) -> str:
    # "bicep_curl" -> "bicep curl"
    return exercise_name.replace("_", " ", 1)


def analyze_rep(segment: RepSegment) -> Optional[RepAnalysis]:
    """
    Summarize a rep's angle trajectory: min, max, mean and range of motion (degrees).

    Angles are rounded half up to one decimal and duration to whole milliseconds.
    Returns None when the segment has no angle samples.
    """
    if not segment.angles:
        logger.info("Rep #%d - No angle data available", segment.rep_number)
        return None

    values = np.array([a.angle_degrees for a in segment.angles], dtype=np.float64)
    lo = float(np.min(values))
    hi = float(np.max(values))
    mean = float(np.mean(values))

    return RepAnalysis(
        exercise_name=display_name(segment.exercise_name),
        rep_number=int(segment.rep_number),
        duration=int(round_half_up(segment.duration_ms)),
        angle_min=round_half_up(lo, 1),
        angle_max=round_half_up(hi, 1),
        average_angle=round_half_up(mean, 1),
        range_of_motion=round_half_up(hi - lo, 1),
    )
