from __future__ import annotations

import pytest

from analysis.exercises import (
    EXERCISE_CONFIGS,
    ExerciseConfig,
    ExerciseName,
    JointConfig,
    UnknownExerciseError,
    get_exercise_config,
)
from pose.landmarks import LANDMARK_NAMES, LEFT_HIP, LEFT_WRIST, NUM_LANDMARKS


def test_registry_presets():
    curl = get_exercise_config("bicep_curl")
    assert curl.name == "bicep_curl"
    assert curl.initial_direction == "down"
    assert curl.min_peak_distance == 8
    assert curl.primary_joint.joint == LEFT_WRIST
    assert curl.primary_joint.inverted
    assert curl.primary_joint.angle_points == (11, 13, 15)

    squat = get_exercise_config(ExerciseName.SQUAT)
    assert squat.primary_joint.joint == LEFT_HIP
    assert squat.min_peak_distance == 12
    assert get_exercise_config("push_up").min_peak_distance == 10


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        EXERCISE_CONFIGS[ExerciseName.SQUAT] = get_exercise_config("push_up")  # type: ignore[index]


def test_unknown_exercise_is_a_key_error():
    with pytest.raises(UnknownExerciseError):
        get_exercise_config("deadlift")
    with pytest.raises(KeyError):
        get_exercise_config("")


def test_joint_config_validation():
    assert JointConfig(joint=LEFT_HIP, angle_points=[23, 25, 27]).angle_points == (23, 25, 27)
    with pytest.raises(ValueError):
        JointConfig(joint=33)
    with pytest.raises(ValueError):
        JointConfig(joint=LEFT_HIP, angle_points=(23, 25))
    with pytest.raises(ValueError):
        JointConfig(joint=LEFT_HIP, angle_points=(23, 25, -1))


def test_exercise_config_validation():
    joint = JointConfig(joint=LEFT_HIP)
    cfg = ExerciseConfig(name=ExerciseName.SQUAT, joints=[joint], min_peak_distance=4)
    assert cfg.name == "squat"
    assert cfg.joints == (joint,)
    with pytest.raises(ValueError):
        ExerciseConfig(name="x", joints=(), min_peak_distance=4)
    with pytest.raises(ValueError):
        ExerciseConfig(name="x", joints=(joint,), min_peak_distance=0)
    with pytest.raises(ValueError):
        ExerciseConfig(name="x", joints=(joint,), min_peak_distance=4, initial_direction="sideways")


def test_landmark_names_line_up_with_indices():
    assert len(LANDMARK_NAMES) == NUM_LANDMARKS
    assert LANDMARK_NAMES[LEFT_HIP] == "LEFT_HIP"
    assert LANDMARK_NAMES[LEFT_WRIST] == "LEFT_WRIST"
    assert len(set(LANDMARK_NAMES)) == NUM_LANDMARKS
