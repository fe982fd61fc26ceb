from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple, Union

from pose.landmarks import (
    LEFT_ANKLE,
    LEFT_ELBOW,
    LEFT_HIP,
    LEFT_KNEE,
    LEFT_SHOULDER,
    LEFT_WRIST,
    NUM_LANDMARKS,
)


DIRECTIONS = ("up", "down")


class ExerciseName(str, Enum):
    BICEP_CURL = "bicep_curl"
    SQUAT = "squat"
    PUSH_UP = "push_up"


class UnknownExerciseError(KeyError):
    """Raised when a name is not part of the exercise registry."""


def _check_index(idx: int, what: str) -> None:
    if not (0 <= int(idx) < NUM_LANDMARKS):
        raise ValueError(f"{what} must be a landmark index in [0, {NUM_LANDMARKS})")


@dataclass(frozen=True)
class JointConfig:
    """
    Which landmark drives the movement signal and how.

    - value per frame = y (if track_y) + x (if track_x), negated when inverted
    - angle_points = (point1, vertex, point3) for the joint angle at vertex
    """
    joint: int
    track_y: bool = True
    track_x: bool = False
    inverted: bool = False
    angle_points: Optional[Tuple[int, int, int]] = None

    def __post_init__(self) -> None:
        _check_index(self.joint, "joint")
        if self.angle_points is not None:
            points = tuple(int(p) for p in self.angle_points)
            if len(points) != 3:
                raise ValueError("angle_points must hold exactly three landmark indices")
            for p in points:
                _check_index(p, "angle_points entry")
            object.__setattr__(self, "angle_points", points)


@dataclass(frozen=True)
class ExerciseConfig:
    name: str
    joints: Tuple[JointConfig, ...]
    min_peak_distance: int
    initial_direction: str = "up"

    def __post_init__(self) -> None:
        joints = tuple(self.joints)
        if not joints:
            raise ValueError("joints must not be empty")
        if int(self.min_peak_distance) < 1:
            raise ValueError("min_peak_distance must be >= 1")
        if self.initial_direction not in DIRECTIONS:
            raise ValueError("initial_direction must be 'up' or 'down'")
        object.__setattr__(self, "joints", joints)
        object.__setattr__(self, "name", str(getattr(self.name, "value", self.name)))

    @property
    def primary_joint(self) -> JointConfig:
        return self.joints[0]


_REGISTRY: Dict[ExerciseName, ExerciseConfig] = {
    ExerciseName.BICEP_CURL: ExerciseConfig(
        name=ExerciseName.BICEP_CURL.value,
        initial_direction="down",
        min_peak_distance=8,
        joints=(
            # Wrist height; screen down = exercise up
            JointConfig(
                joint=LEFT_WRIST,
                track_y=True,
                inverted=True,
                angle_points=(LEFT_SHOULDER, LEFT_ELBOW, LEFT_WRIST),
            ),
        ),
    ),
    ExerciseName.SQUAT: ExerciseConfig(
        name=ExerciseName.SQUAT.value,
        initial_direction="up",
        min_peak_distance=12,
        joints=(
            JointConfig(
                joint=LEFT_HIP,
                track_y=True,
                inverted=False,
                angle_points=(LEFT_HIP, LEFT_KNEE, LEFT_ANKLE),
            ),
        ),
    ),
    ExerciseName.PUSH_UP: ExerciseConfig(
        name=ExerciseName.PUSH_UP.value,
        initial_direction="up",
        min_peak_distance=10,
        joints=(
            JointConfig(
                joint=LEFT_SHOULDER,
                track_y=True,
                inverted=False,
                angle_points=(LEFT_SHOULDER, LEFT_ELBOW, LEFT_WRIST),
            ),
        ),
    ),
}

# Read-only view; the set of exercises only grows by adding ExerciseName members
EXERCISE_CONFIGS: Mapping[ExerciseName, ExerciseConfig] = MappingProxyType(_REGISTRY)


def get_exercise_config(name: Union[str, ExerciseName]) -> ExerciseConfig:
    try:
        key = ExerciseName(name)
    except ValueError:
        raise UnknownExerciseError(f"unknown exercise: {name!r}") from None
    return EXERCISE_CONFIGS[key]
