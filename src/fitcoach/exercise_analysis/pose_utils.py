"""
pose_utils.py - Landmark normalisation, visibility checks and geometry helpers.
"""
import math
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

# MediaPipe 33-point index scheme. Index -> name is fixed across the package.
LANDMARK_NAMES = [
    "nose", "left_eye_inner", "left_eye", "left_eye_outer",
    "right_eye_inner", "right_eye", "right_eye_outer", "left_ear",
    "right_ear", "mouth_left", "mouth_right", "left_shoulder",
    "right_shoulder", "left_elbow", "right_elbow", "left_wrist",
    "right_wrist", "left_pinky", "right_pinky", "left_index",
    "right_index", "left_thumb", "right_thumb", "left_hip",
    "right_hip", "left_knee", "right_knee", "left_ankle",
    "right_ankle", "left_heel", "right_heel", "left_foot_index",
    "right_foot_index"
]
LANDMARK_INDEX = {name: idx for idx, name in enumerate(LANDMARK_NAMES)}

DEFAULT_MIN_VISIBILITY = 0.5


# --- Frame normalisation ---
def _coerce_landmark(entry: Any) -> Optional[List[float]]:
    """Turn one landmark entry into [x, y, z, visibility], or None if unusable."""
    if entry is None:
        return None
    try:
        if isinstance(entry, Mapping):
            x, y = entry["x"], entry["y"]
            z = entry.get("z", 0.0)
            visibility = entry.get("visibility")
        elif hasattr(entry, "x") and hasattr(entry, "y"):
            x, y = entry.x, entry.y
            z = getattr(entry, "z", 0.0)
            visibility = getattr(entry, "visibility", None)
        else:
            values = list(entry)
            if len(values) < 2:
                return None
            x, y = values[0], values[1]
            z = values[2] if len(values) > 2 else 0.0
            visibility = values[3] if len(values) > 3 else None
        point = [float(x), float(y), float(z if z is not None else 0.0)]
        # No reported confidence means the source vouches for the point.
        point.append(1.0 if visibility is None else float(visibility))
    except (KeyError, TypeError, ValueError):
        return None
    if not all(math.isfinite(v) for v in point):
        return None
    return point


def normalize_frame(frame: Any) -> Dict[str, List[float]]:
    """
    Convert a landmark frame to a dict of name -> [x, y, z, visibility].

    Accepts an ordered sequence in the MediaPipe index scheme or a mapping
    keyed by landmark name. Missing, None and non-finite entries are left out,
    so they read as unknown. Anything malformed yields an empty dict.

    Args:
        frame: Landmark frame from the pose source

    Returns:
        Dictionary of usable landmarks
    """
    landmarks: Dict[str, List[float]] = {}
    if frame is None:
        return landmarks
    if isinstance(frame, Mapping):
        items = [(name, entry) for name, entry in frame.items() if name in LANDMARK_INDEX]
    else:
        try:
            entries = list(frame)
        except TypeError:
            return landmarks
        items = list(zip(LANDMARK_NAMES, entries))
    for name, entry in items:
        point = _coerce_landmark(entry)
        if point is not None:
            landmarks[name] = point
    return landmarks


def check_landmark_visibility(landmarks: Dict[str, List[float]], names: Sequence[str], min_visibility: float = DEFAULT_MIN_VISIBILITY) -> bool:
    """Check if all named landmarks are present and visible at or above threshold."""
    return all(
        name in landmarks and len(landmarks[name]) > 3 and landmarks[name][3] >= min_visibility
        for name in names
    )


# --- Math & Geometry Utilities ---
def calculate_angle(a: List[float], b: List[float], c: List[float]) -> float:
    """
    Angle at vertex b between vectors b->a and b->c, in degrees (0-180).

    Uses atan2 of the cross and dot products, which stays accurate near
    0 and 180 degrees. Only x and y are used; depth from the pose model is
    too noisy for joint angles.

    Args:
        a: First point [x, y, ...]
        b: Vertex point [x, y, ...]
        c: Last point [x, y, ...]

    Returns:
        Angle in degrees, or NaN if a vector is degenerate
    """
    ba = np.array([a[0] - b[0], a[1] - b[1]], dtype=float)
    bc = np.array([c[0] - b[0], c[1] - b[1]], dtype=float)
    if np.linalg.norm(ba) < 1e-6 or np.linalg.norm(bc) < 1e-6:
        return np.nan
    cross = ba[0] * bc[1] - ba[1] * bc[0]
    dot = float(np.dot(ba, bc))
    return float(np.degrees(np.arctan2(abs(cross), dot)))


def calculate_line_angle(a: List[float], b: List[float], c: List[float], d: List[float]) -> float:
    """Unsigned angle in degrees (0-90) between line a-b and line c-d."""
    v1 = np.array([b[0] - a[0], b[1] - a[1]], dtype=float)
    v2 = np.array([d[0] - c[0], d[1] - c[1]], dtype=float)
    if np.linalg.norm(v1) < 1e-6 or np.linalg.norm(v2) < 1e-6:
        return np.nan
    angle = abs(np.degrees(np.arctan2(v1[1], v1[0]) - np.arctan2(v2[1], v2[0]))) % 180.0
    return float(min(angle, 180.0 - angle))


def calculate_length(a: List[float], b: List[float]) -> float:
    """Calculate Euclidean distance between two points."""
    return float(np.linalg.norm(np.array(a[:2]) - np.array(b[:2])))


def midpoint(a: List[float], b: List[float]) -> List[float]:
    return [(a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0]


def is_valid_angle(angle: Optional[float]) -> bool:
    return angle is not None and not np.isnan(angle)


def calculate_body_line_deviation(landmarks: Dict[str, List[float]]) -> Optional[float]:
    """
    How far the shoulder-hip-ankle line bends away from straight, in degrees.

    Positive when the hips sit below the shoulder-ankle line (sagging), negative
    when above it (piking). Uses whichever side has the better visibility.
    """
    best = None
    for side in ("left", "right"):
        names = [f"{side}_shoulder", f"{side}_hip", f"{side}_ankle"]
        if not all(name in landmarks for name in names):
            continue
        visibility = np.mean([landmarks[name][3] for name in names])
        if best is None or visibility > best[0]:
            best = (visibility, side)
    if best is None:
        return None
    side = best[1]
    shoulder = landmarks[f"{side}_shoulder"]
    hip = landmarks[f"{side}_hip"]
    ankle = landmarks[f"{side}_ankle"]
    angle = calculate_angle(shoulder, hip, ankle)
    if np.isnan(angle):
        return None
    deviation = 180.0 - angle
    # Image y grows downward, so a hip below the line has a larger y.
    dx = ankle[0] - shoulder[0]
    dy = ankle[1] - shoulder[1]
    side_of_line = dx * (hip[1] - shoulder[1]) - dy * (hip[0] - shoulder[0])
    if dx < 0:
        side_of_line = -side_of_line
    return deviation if side_of_line >= 0 else -deviation
