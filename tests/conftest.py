"""
Synthetic landmark frames for the analyzer tests.

Every builder returns a 33-entry list of [x, y, z, visibility] in the
MediaPipe index order, posed so the joint angle of interest is exact.
"""
import math
from typing import Dict, List, Optional

import numpy as np
import pytest

from fitcoach.exercise_analysis.pose_utils import LANDMARK_INDEX, LANDMARK_NAMES

VISIBLE = 0.99


# ============================================================================
# Geometry helpers
# ============================================================================

def _rotate(vec, degrees):
    rad = math.radians(degrees)
    return np.array([
        vec[0] * math.cos(rad) - vec[1] * math.sin(rad),
        vec[0] * math.sin(rad) + vec[1] * math.cos(rad),
    ])


def _limb_point(vertex, ref, angle, length, sign):
    """Point at ``length`` from ``vertex`` making ``angle`` degrees with vertex->ref."""
    vertex = np.array(vertex[:2], dtype=float)
    direction = np.array(ref[:2], dtype=float) - vertex
    direction /= np.linalg.norm(direction)
    return list(vertex + _rotate(direction, sign * angle) * length)


def _blank_frame(visibility=VISIBLE) -> List[List[float]]:
    return [[0.5, 0.5, 0.0, visibility] for _ in LANDMARK_NAMES]


def _set(frame, name, xy, visibility=VISIBLE):
    frame[LANDMARK_INDEX[name]] = [float(xy[0]), float(xy[1]), 0.0, visibility]


def _add_arms(frame, shoulders, hips, left_angle, right_angle):
    for side, angle, sign in (("left", left_angle, -1), ("right", right_angle, 1)):
        shoulder, hip = shoulders[side], hips[side]
        _set(frame, f"{side}_elbow", _limb_point(shoulder, hip, angle, 0.15, sign))
        _set(frame, f"{side}_wrist", _limb_point(shoulder, hip, angle, 0.30, sign))


STANDING = {
    "left_shoulder": (0.6, 0.35), "right_shoulder": (0.4, 0.35),
    "left_hip": (0.57, 0.6), "right_hip": (0.43, 0.6),
    "left_knee": (0.57, 0.78), "right_knee": (0.43, 0.78),
    "left_ankle": (0.57, 0.95), "right_ankle": (0.43, 0.95),
}


# ============================================================================
# Frame builders
# ============================================================================

def arm_frame(left_arm: float, right_arm: Optional[float] = None, visibility: float = VISIBLE) -> List[List[float]]:
    """Standing pose with arm elevation (hip-shoulder-elbow) set per side."""
    right_arm = left_arm if right_arm is None else right_arm
    frame = _blank_frame(visibility)
    _set(frame, "nose", (0.5, 0.2), visibility)
    for name, xy in STANDING.items():
        _set(frame, name, xy, visibility)
    shoulders = {"left": STANDING["left_shoulder"], "right": STANDING["right_shoulder"]}
    hips = {"left": STANDING["left_hip"], "right": STANDING["right_hip"]}
    for side, angle, sign in (("left", left_arm, -1), ("right", right_arm, 1)):
        shoulder, hip = shoulders[side], hips[side]
        _set(frame, f"{side}_elbow", _limb_point(shoulder, hip, angle, 0.15, sign), visibility)
        _set(frame, f"{side}_wrist", _limb_point(shoulder, hip, angle, 0.30, sign), visibility)
    return frame


def knee_frame(left_flex: float = 175.0, right_flex: float = 175.0) -> List[List[float]]:
    """Standing pose with hip flexion (shoulder-hip-knee) set per leg."""
    frame = arm_frame(20.0)
    for side, flex, sign in (("left", left_flex, -1), ("right", right_flex, 1)):
        hip = STANDING[f"{side}_hip"]
        knee = _limb_point(hip, STANDING[f"{side}_shoulder"], flex, 0.18, sign)
        _set(frame, f"{side}_knee", knee)
        _set(frame, f"{side}_ankle", (knee[0], knee[1] + 0.17))
    return frame


def squat_frame(knee_angle: float, arm_angle: float) -> List[List[float]]:
    """Front view squat with the knee angle (hip-knee-ankle) and arm elevation set."""
    frame = _blank_frame()
    _set(frame, "nose", (0.5, 0.2))
    shoulders, hips = {}, {}
    for side, sign, shoulder_dx in (("left", -1, 0.03), ("right", 1, -0.03)):
        knee = STANDING[f"{side}_knee"]
        ankle = STANDING[f"{side}_ankle"]
        hip = _limb_point(knee, ankle, knee_angle, 0.18, sign)
        shoulder = (hip[0] + shoulder_dx, hip[1] - 0.25)
        _set(frame, f"{side}_knee", knee)
        _set(frame, f"{side}_ankle", ankle)
        _set(frame, f"{side}_hip", hip)
        _set(frame, f"{side}_shoulder", shoulder)
        shoulders[side], hips[side] = shoulder, hip
    _add_arms(frame, shoulders, hips, arm_angle, arm_angle)
    return frame


def twist_frame(twist: float = 0.0, offset: float = 0.0) -> List[List[float]]:
    """Shoulder line rotated ``twist`` degrees from the hip line, midpoint shifted by ``offset``."""
    frame = arm_frame(20.0)
    center = np.array([0.5 + offset, 0.35])
    half = np.array([math.cos(math.radians(twist)), math.sin(math.radians(twist))]) * 0.1
    _set(frame, "left_shoulder", center + half)
    _set(frame, "right_shoulder", center - half)
    _set(frame, "left_hip", (0.55, 0.6))
    _set(frame, "right_hip", (0.45, 0.6))
    return frame


def pushup_frame(elbow_angle: float, hip_offset: float = 0.0) -> List[List[float]]:
    """Side view push-up; both sides overlap. ``hip_offset`` > 0 sags the hips."""
    frame = _blank_frame()
    shoulder = (0.3, 0.45)
    elbow = (0.32, 0.57)
    wrist = _limb_point(elbow, shoulder, elbow_angle, 0.12, 1)
    for side in ("left", "right"):
        _set(frame, f"{side}_shoulder", shoulder)
        _set(frame, f"{side}_elbow", elbow)
        _set(frame, f"{side}_wrist", wrist)
        _set(frame, f"{side}_hip", (0.55, 0.47 + hip_offset))
        _set(frame, f"{side}_knee", (0.68, 0.48))
        _set(frame, f"{side}_ankle", (0.8, 0.49))
    return frame


def plank_frame(hip_offset: float = 0.0) -> List[List[float]]:
    return pushup_frame(90.0, hip_offset)


def lunge_frame(front_knee: float, back_knee: float) -> List[List[float]]:
    """Front view lunge with the left leg leading; knee angles (hip-knee-ankle) set per leg."""
    frame = arm_frame(20.0)
    for side, angle, sign in (("left", front_knee, -1), ("right", back_knee, 1)):
        knee = STANDING[f"{side}_knee"]
        _set(frame, f"{side}_hip", _limb_point(knee, STANDING[f"{side}_ankle"], angle, 0.18, sign))
    return frame


def jump_frame(knee_angle: float, lift: float = 0.0) -> List[List[float]]:
    """Squat frame with every landmark raised by ``lift`` (image units)."""
    frame = squat_frame(knee_angle, 20.0)
    for entry in frame:
        entry[1] -= lift
    return frame


def climber_frame(left_flex: float, right_flex: float, hip_offset: float = 0.0) -> List[List[float]]:
    """Side view plank with hip flexion (shoulder-hip-knee) set per leg. ``hip_offset`` < 0 raises the hips."""
    frame = _blank_frame()
    shoulder = (0.3, 0.45)
    hip = (0.55, 0.47 + hip_offset)
    for side, flex in (("left", left_flex), ("right", right_flex)):
        _set(frame, f"{side}_shoulder", shoulder)
        _set(frame, f"{side}_hip", hip)
        _set(frame, f"{side}_knee", _limb_point(hip, shoulder, flex, 0.15, 1))
    return frame


def pistol_frame(standing_knee: float, extended_knee: float = 170.0,
                 standing: str = "left", shift: float = 0.0) -> List[List[float]]:
    """
    Front view single-leg squat.

    The standing foot stays on the floor with its hip held at a fixed x; the
    other leg reaches sideways from the opposite hip with its knee angle set
    by ``extended_knee`` and the foot raised. ``shift`` moves the whole body
    sideways.
    """
    frame = arm_frame(20.0)
    free = "right" if standing == "left" else "left"
    outward = -1 if standing == "left" else 1
    sign = -1 if standing == "left" else 1

    knee = STANDING[f"{standing}_knee"]
    ankle = STANDING[f"{standing}_ankle"]
    hip = _limb_point(knee, ankle, standing_knee, 0.18, sign)
    dx = STANDING[f"{standing}_hip"][0] - hip[0]
    hip = (hip[0] + dx, hip[1])
    _set(frame, f"{standing}_hip", (hip[0] + shift, hip[1]))
    _set(frame, f"{standing}_knee", (knee[0] + dx + shift, knee[1]))
    _set(frame, f"{standing}_ankle", (ankle[0] + dx + shift, ankle[1]))

    free_hip = (hip[0] + outward * 0.14, hip[1])
    free_knee = (free_hip[0] + outward * 0.15, free_hip[1])
    free_ankle = _limb_point(free_knee, free_hip, extended_knee, 0.17, sign)
    _set(frame, f"{free}_hip", (free_hip[0] + shift, free_hip[1]))
    _set(frame, f"{free}_knee", (free_knee[0] + shift, free_knee[1]))
    _set(frame, f"{free}_ankle", (free_ankle[0] + shift, free_ankle[1]))
    return frame


def tap_frame(left_elbow: float, right_elbow: float, hip_tilt: float = 0.0) -> List[List[float]]:
    """Front view push-up with elbow angles set per arm. ``hip_tilt`` drops the left hip."""
    frame = _blank_frame()
    shoulders = {"left": (0.6, 0.45), "right": (0.4, 0.45)}
    _set(frame, "left_hip", (0.58, 0.5 + hip_tilt))
    _set(frame, "right_hip", (0.42, 0.5))
    for side, angle, sign in (("left", left_elbow, -1), ("right", right_elbow, 1)):
        shoulder = shoulders[side]
        elbow = (shoulder[0], shoulder[1] + 0.12)
        _set(frame, f"{side}_shoulder", shoulder)
        _set(frame, f"{side}_elbow", elbow)
        _set(frame, f"{side}_wrist", _limb_point(elbow, shoulder, angle, 0.12, sign))
    return frame


def with_visibility(frame: List[List[float]], names: Dict[str, float]) -> List[List[float]]:
    frame = [list(entry) for entry in frame]
    for name, visibility in names.items():
        frame[LANDMARK_INDEX[name]][3] = visibility
    return frame


def ramp(start: float, stop: float, step: float) -> List[float]:
    """Values from start to stop inclusive in steps of ``step`` (sign inferred)."""
    step = abs(step) if stop >= start else -abs(step)
    values = list(np.arange(start, stop, step))
    return [float(v) for v in values] + [float(stop)]


def arm_raise_cycle() -> List[float]:
    """Arm angles for one clean rep: rest, raise to 170, hold, lower to 30, rest."""
    return [30.0] * 3 + ramp(30, 170, 20) + [170.0] * 3 + ramp(170, 30, 20)[1:] + [30.0] * 3


def feed(analyzer, frames, start: float = 0.0, dt: float = 0.1):
    """Run frames through an analyzer with evenly spaced timestamps."""
    return [analyzer.analyze(frame, now=start + i * dt) for i, frame in enumerate(frames)]


@pytest.fixture
def arm_cycle_frames():
    return [arm_frame(angle) for angle in arm_raise_cycle()]
