from __future__ import annotations

from dataclasses import dataclass
from math import acos, degrees, isfinite
from typing import List, Optional, Sequence, Tuple

import numpy as np

from pose.landmarks import Landmark, PoseHistory, get_landmark
from .exercises import JointConfig
from .utils import MIN_VECTOR_NORM


@dataclass(frozen=True)
class AngleData:
    frame_index: int
    angle_degrees: float
    positions: Tuple[Landmark, Landmark, Landmark]


def calculate_angle(
    point1: Optional[Landmark], vertex: Optional[Landmark], point3: Optional[Landmark]
) -> float:
    """
    Returns the angle at `vertex` (in degrees, [0, 180]) between vertex->point1 and vertex->point3.

    Only x/y (image plane) are used.
    - If any point is None or has non-finite coordinates, returns nan
    - If either arm has (near) zero length, returns nan
    """
    if point1 is None or vertex is None or point3 is None:
        return float("nan")
    coords = np.array(
        [[point1.x, point1.y], [vertex.x, vertex.y], [point3.x, point3.y]], dtype=np.float64
    )
    if not np.all(np.isfinite(coords)):
        return float("nan")

    arm1 = coords[0] - coords[1]
    arm2 = coords[2] - coords[1]
    len1 = float(np.linalg.norm(arm1))
    len2 = float(np.linalg.norm(arm2))
    if len1 <= MIN_VECTOR_NORM or len2 <= MIN_VECTOR_NORM:
        return float("nan")

    cos_theta = float(np.clip(np.dot(arm1, arm2) / (len1 * len2), -1.0, 1.0))
    return float(degrees(acos(cos_theta)))


def joint_value(lm: Landmark, joint: JointConfig) -> float:
    value = 0.0
    if joint.track_y:
        value += float(lm.y)
    if joint.track_x:
        value += float(lm.x)
    # Screen coordinates grow downwards; inverted joints flip the signal
    return -value if joint.inverted else value


def extract_signal(history: PoseHistory, joint: JointConfig) -> Tuple[List[float], List[int]]:
    """
    Project a pose history onto one scalar per frame for `joint`.

    Frames without a pose or without the joint landmark are skipped, not
    zero-filled. Returns (values, frame_indices) where frame_indices[k] is the
    original frame number of values[k].
    """
    values: List[float] = []
    frame_indices: List[int] = []
    for frame_idx, pose in enumerate(history):
        lm = get_landmark(pose, joint.joint)
        if lm is None:
            continue
        values.append(joint_value(lm, joint))
        frame_indices.append(frame_idx)
    return values, frame_indices


def angle_series(history: PoseHistory, angle_points: Sequence[int]) -> List[AngleData]:
    """
    Per-frame joint angle wherever all three angle points are present.

    frame_index is the original frame number, so samples line up with the
    frame_indices returned by extract_signal even when frames were skipped.
    """
    a_idx, b_idx, c_idx = angle_points
    out: List[AngleData] = []
    for frame_idx, pose in enumerate(history):
        a = get_landmark(pose, a_idx)
        b = get_landmark(pose, b_idx)
        c = get_landmark(pose, c_idx)
        if a is None or b is None or c is None:
            continue
        theta = calculate_angle(a, b, c)
        if not isfinite(theta):
            continue
        out.append(AngleData(frame_index=frame_idx, angle_degrees=theta, positions=(a, b, c)))
    return out
