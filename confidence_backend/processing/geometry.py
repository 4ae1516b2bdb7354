"""
Landmark geometry for confidence scoring.

Reads a fixed subset of the MediaPipe face mesh (468 points, 478 with iris
refinement) and derives the quantities the scorers need. Landmarks can be
MediaPipe ``NormalizedLandmark`` objects, pydantic ``Landmark`` models, dicts
with ``x``/``y``/``z`` keys, or rows of an (N, 3) array.

Every reading returns ``None`` when a landmark it needs is missing. A face
turned away or a dark frame produces this routinely, so it is not an error.
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import numpy as np

from confidence_backend.config import (
    NOSE_TIP, LEFT_EYE_OUTER, RIGHT_EYE_OUTER, FACE_CENTER,
    UPPER_LIP, LOWER_LIP, MOUTH_LEFT, MOUTH_RIGHT,
    LEFT_EYE_TOP, LEFT_EYE_BOTTOM, RIGHT_EYE_TOP, RIGHT_EYE_BOTTOM,
)


@dataclass(frozen=True)
class Point:
    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class MouthGeometry:
    width: float
    height: float
    corner_lift: float


def has_face(landmarks) -> bool:
    """True when a non-empty landmark set was supplied."""
    if landmarks is None:
        return False
    _check_landmark_set(landmarks)
    return len(landmarks) > 0


def _check_landmark_set(landmarks):
    if isinstance(landmarks, np.ndarray):
        return
    if isinstance(landmarks, (str, bytes, Mapping)) or not isinstance(landmarks, Sequence):
        raise TypeError(
            f"landmark set must be a sequence of points, got {type(landmarks).__name__}"
        )


def _to_point(raw) -> Point | None:
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        x, y, z = raw.get("x"), raw.get("y"), raw.get("z")
    elif hasattr(raw, "x") and hasattr(raw, "y"):
        x, y, z = raw.x, raw.y, getattr(raw, "z", None)
    else:
        values = list(raw)
        if len(values) < 2:
            return None
        x, y = values[0], values[1]
        z = values[2] if len(values) > 2 else None
    if x is None or y is None:
        return None
    return Point(float(x), float(y), float(z or 0.0))


def get_points(landmarks, *indices: int) -> tuple[Point, ...] | None:
    """Resolve landmark indices to points, or None if any of them is unavailable."""
    if landmarks is None:
        return None
    _check_landmark_set(landmarks)
    points = []
    for index in indices:
        if index >= len(landmarks):
            return None
        point = _to_point(landmarks[index])
        if point is None:
            return None
        points.append(point)
    return tuple(points)


def horizontal_deviation(landmarks) -> float | None:
    points = get_points(landmarks, NOSE_TIP, LEFT_EYE_OUTER, RIGHT_EYE_OUTER)
    if points is None:
        return None
    nose, left_eye, right_eye = points
    return abs(nose.x - (left_eye.x + right_eye.x) / 2)


def vertical_deviation(landmarks) -> float | None:
    points = get_points(landmarks, NOSE_TIP, FACE_CENTER)
    if points is None:
        return None
    nose, face_center = points
    return abs(nose.y - face_center.y)


def depth_deviation(landmarks) -> float | None:
    points = get_points(landmarks, NOSE_TIP)
    if points is None:
        return None
    return abs(points[0].z)


def nose_movement(current, previous) -> float | None:
    """Euclidean distance travelled by the nose tip between two frames."""
    curr = get_points(current, NOSE_TIP)
    prev = get_points(previous, NOSE_TIP)
    if curr is None or prev is None:
        return None
    a, b = curr[0], prev[0]
    return math.sqrt((a.x - b.x) ** 2 + (a.y - b.y) ** 2 + (a.z - b.z) ** 2)


def mouth_geometry(landmarks) -> MouthGeometry | None:
    points = get_points(landmarks, UPPER_LIP, LOWER_LIP, MOUTH_LEFT, MOUTH_RIGHT)
    if points is None:
        return None
    upper, lower, left, right = points
    lips_center_y = (upper.y + lower.y) / 2
    corners_avg_y = (left.y + right.y) / 2
    return MouthGeometry(
        width=abs(right.x - left.x),
        height=abs(lower.y - upper.y),
        corner_lift=lips_center_y - corners_avg_y,
    )


def eye_aspect_ratio(landmarks) -> float | None:
    """Vertical eyelid gap averaged over both eyes."""
    points = get_points(
        landmarks, LEFT_EYE_TOP, LEFT_EYE_BOTTOM, RIGHT_EYE_TOP, RIGHT_EYE_BOTTOM,
    )
    if points is None:
        return None
    left_top, left_bottom, right_top, right_bottom = points
    left = abs(left_top.y - left_bottom.y)
    right = abs(right_top.y - right_bottom.y)
    return (left + right) / 2
