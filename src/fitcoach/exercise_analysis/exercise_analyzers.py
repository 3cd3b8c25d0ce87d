"""
exercise_analyzers.py - One analyzer per exercise type, plus the registry/factory.
"""
from abc import abstractmethod
from collections import deque
from typing import Any, Dict, List, Optional, Union

import numpy as np

from .base_analyzer import BaseExerciseAnalyzer, FormIssue, StageHysteresis, logger
from .corrections import get_target_stage
from .exercise_types import (
    DifficultyLevel,
    ExerciseStage,
    ExerciseType,
    resolve_difficulty,
    resolve_exercise_type,
)
from .pose_utils import calculate_angle, calculate_body_line_deviation, calculate_line_angle, midpoint

# --- Analyzer Registry ---
EXERCISE_ANALYZER_REGISTRY = {}


def register_exercise_analyzer(exercise_type: ExerciseType):
    def decorator(cls):
        EXERCISE_ANALYZER_REGISTRY[exercise_type] = cls
        return cls
    return decorator


def create_exercise_analyzer(
    exercise_type: Union[str, ExerciseType],
    difficulty: Union[str, DifficultyLevel] = DifficultyLevel.BEGINNER,
    thresholds: Optional[Dict[str, Any]] = None,
    config: Optional[Dict[str, Any]] = None
) -> BaseExerciseAnalyzer:
    """
    Build the analyzer for an exercise type.

    Args:
        exercise_type: Exercise to analyze
        difficulty: Difficulty level
        thresholds: Optional threshold overrides for the exercise
        config: Optional full exercise config

    Returns:
        A fresh analyzer instance

    Raises:
        ValueError: If the exercise type, difficulty or a threshold key is unknown
    """
    exercise_type = resolve_exercise_type(exercise_type)
    difficulty = resolve_difficulty(difficulty)
    analyzer_cls = EXERCISE_ANALYZER_REGISTRY.get(exercise_type)
    if analyzer_cls is None:
        raise ValueError(f"Unsupported exercise type: {exercise_type.value}")
    return analyzer_cls(difficulty=difficulty, thresholds=thresholds, config=config)


# --- Arm Raise ---
@register_exercise_analyzer(ExerciseType.ARM_RAISE)
class ArmRaiseAnalyzer(BaseExerciseAnalyzer):
    """Both arms raised overhead and lowered; counted when the arms come back down."""

    EXERCISE_TYPE = ExerciseType.ARM_RAISE
    REQUIRED_LANDMARKS = [
        "left_shoulder", "right_shoulder",
        "left_elbow", "right_elbow",
        "left_wrist", "right_wrist",
        "left_hip", "right_hip"
    ]
    MOTION_LANDMARK = "left_wrist"

    def _reset_state(self) -> None:
        self._switch = StageHysteresis(self.thresholds["up_angle"], self.thresholds["down_angle"], rising=True)
        self._raised: Optional[bool] = None
        self._up_since: Optional[float] = None
        self._peak_angle = 0.0
        self._last_rep_peak: Optional[float] = None

    def _compute_angles(self, points: Dict[str, List[float]]) -> Dict[str, float]:
        return {
            "left_arm": calculate_angle(points["left_hip"], points["left_shoulder"], points["left_elbow"]),
            "right_arm": calculate_angle(points["right_hip"], points["right_shoulder"], points["right_elbow"]),
        }

    def _update_stage(self, angles: Dict[str, float], points: Dict[str, List[float]], now: float) -> bool:
        avg = (angles["left_arm"] + angles["right_arm"]) / 2.0
        angles["arm_avg"] = avg
        self._raised = self._switch.update(avg, self._raised)

        if self._raised is True:
            if self._stage != ExerciseStage.UP:
                self._stage = ExerciseStage.UP
                self._up_since = now
                self._peak_angle = avg
            self._peak_angle = max(self._peak_angle, avg)
            return False

        if self._raised is False:
            was_up = self._stage == ExerciseStage.UP
            self._stage = ExerciseStage.DOWN
            if was_up:
                held = now - self._up_since if self._up_since is not None else 0.0
                if held < self.thresholds.get("hold_seconds", 0.0):
                    logger.debug(f"arm_raise: arms lowered after {held:.2f}s, hold not reached")
                    return False
                if self._count_rep(now):
                    self._last_rep_peak = self._peak_angle
                    return True
        return False

    def _check_form(self, angles, points, now, rep_completed) -> List[FormIssue]:
        issues = []
        if abs(angles["left_arm"] - angles["right_arm"]) > self.thresholds["symmetry_diff"]:
            issues.append(("asymmetric_arms", "raise_both_arms_evenly"))
        if abs(points["left_shoulder"][1] - points["right_shoulder"][1]) > self.thresholds["shoulder_height_diff"]:
            issues.append(("uneven_shoulders", "level_your_shoulders"))
        if rep_completed and self._last_rep_peak is not None and self._last_rep_peak < self.thresholds["full_range_angle"]:
            issues.append(("incomplete_range", "raise_arms_higher"))
        if self._angular_speed("arm_avg", angles["arm_avg"], now) > self.thresholds["max_angular_velocity"]:
            issues.append(("moving_too_fast", "slow_down"))
        return issues


# --- Torso Twist ---
@register_exercise_analyzer(ExerciseType.TORSO_TWIST)
class TorsoTwistAnalyzer(BaseExerciseAnalyzer):
    """
    Alternating torso twists.

    The twist angle is the angle between the shoulder line and the hip line.
    The side comes from where the shoulder midpoint sits relative to the hip
    midpoint. A rep completes when the torso returns to center from a side,
    and with alternation on, from the opposite side to the previous rep.
    """

    EXERCISE_TYPE = ExerciseType.TORSO_TWIST
    STAGES = (ExerciseStage.CENTER, ExerciseStage.LEFT, ExerciseStage.RIGHT)
    REST_STAGE = ExerciseStage.CENTER
    REQUIRED_LANDMARKS = ["left_shoulder", "right_shoulder", "left_hip", "right_hip"]
    MOTION_LANDMARK = "left_shoulder"

    def _reset_state(self) -> None:
        self._switch = StageHysteresis(
            self.thresholds["twist_enter_angle"], self.thresholds["twist_exit_angle"], rising=True
        )
        self._twisting: Optional[bool] = None
        self._last_side: Optional[ExerciseStage] = None

    @property
    def last_side(self) -> Optional[ExerciseStage]:
        return self._last_side

    def target_stage(self) -> ExerciseStage:
        return get_target_stage(self.EXERCISE_TYPE, self._stage, self._last_side)

    def _compute_angles(self, points: Dict[str, List[float]]) -> Dict[str, float]:
        return {
            "twist": calculate_line_angle(
                points["right_shoulder"], points["left_shoulder"],
                points["right_hip"], points["left_hip"]
            )
        }

    def _side_from_offset(self, points: Dict[str, List[float]]) -> Optional[ExerciseStage]:
        shoulder_mid = midpoint(points["left_shoulder"], points["right_shoulder"])
        hip_mid = midpoint(points["left_hip"], points["right_hip"])
        offset = shoulder_mid[0] - hip_mid[0]
        threshold = self.thresholds["direction_offset"]
        # The performer's left shoulder appears at the larger image x.
        if offset > threshold:
            return ExerciseStage.LEFT
        if offset < -threshold:
            return ExerciseStage.RIGHT
        return None

    def _update_stage(self, angles, points, now) -> bool:
        self._twisting = self._switch.update(angles["twist"], self._twisting)
        sides = (ExerciseStage.LEFT, ExerciseStage.RIGHT)

        if self._twisting is True:
            if self._stage not in sides:
                side = self._side_from_offset(points)
                if side is not None:
                    self._stage = side
            return False

        if self._twisting is False:
            side = self._stage if self._stage in sides else None
            self._stage = ExerciseStage.CENTER
            if side is None:
                return False
            if self.thresholds.get("require_alternation", True) and side == self._last_side:
                logger.debug(f"torso_twist: repeated {side.value} twist not counted")
                return False
            if self._count_rep(now):
                self._last_side = side
                return True
        return False

    def _check_form(self, angles, points, now, rep_completed) -> List[FormIssue]:
        issues = []
        if abs(points["left_hip"][0] - points["right_hip"][0]) < self.thresholds["min_hip_width"]:
            issues.append(("hips_rotating", "keep_hips_facing_forward"))
        if angles["twist"] > self.thresholds["max_twist_angle"]:
            issues.append(("over_twisting", "twist_within_comfort"))
        if abs(points["left_shoulder"][1] - points["right_shoulder"][1]) > self.thresholds["shoulder_drop"]:
            issues.append(("shoulder_drop", "keep_shoulders_level"))
        return issues


# --- Knee Raise ---
@register_exercise_analyzer(ExerciseType.KNEE_RAISE)
class KneeRaiseAnalyzer(BaseExerciseAnalyzer):
    """Alternating knee raises; each leg has its own hysteresis switch."""

    EXERCISE_TYPE = ExerciseType.KNEE_RAISE
    REQUIRED_LANDMARKS = [
        "left_shoulder", "right_shoulder",
        "left_hip", "right_hip",
        "left_knee", "right_knee"
    ]
    MOTION_LANDMARK = "left_knee"

    def _reset_state(self) -> None:
        # Hip flexion shrinks as the knee rises.
        self._switch = StageHysteresis(self.thresholds["up_angle"], self.thresholds["down_angle"], rising=False)
        self._legs: Dict[str, Optional[bool]] = {"left": None, "right": None}
        self._last_leg: Optional[str] = None

    def target_side(self) -> Optional[str]:
        """The leg to raise next: the one that did not count the last rep."""
        return "right" if self._last_leg == "left" else "left"

    def _compute_angles(self, points: Dict[str, List[float]]) -> Dict[str, float]:
        return {
            "left_hip": calculate_angle(points["left_shoulder"], points["left_hip"], points["left_knee"]),
            "right_hip": calculate_angle(points["right_shoulder"], points["right_hip"], points["right_knee"]),
        }

    def _update_stage(self, angles, points, now) -> bool:
        rep_completed = False
        for leg in ("left", "right"):
            was_raised = self._legs[leg]
            self._legs[leg] = self._switch.update(angles[f"{leg}_hip"], was_raised)
            if was_raised is True and self._legs[leg] is False and not rep_completed:
                if self.thresholds.get("require_alternation", True) and leg == self._last_leg:
                    logger.debug(f"knee_raise: repeated {leg} knee not counted")
                elif self._count_rep(now):
                    self._last_leg = leg
                    rep_completed = True

        states = self._legs.values()
        if any(state is True for state in states):
            self._stage = ExerciseStage.UP
        elif any(state is False for state in states):
            self._stage = ExerciseStage.DOWN
        return rep_completed

    def _check_form(self, angles, points, now, rep_completed) -> List[FormIssue]:
        issues = []
        shoulder_mid = midpoint(points["left_shoulder"], points["right_shoulder"])
        hip_mid = midpoint(points["left_hip"], points["right_hip"])
        if abs(shoulder_mid[0] - hip_mid[0]) > self.thresholds["lean_offset"]:
            issues.append(("leaning", "keep_torso_upright"))
        flexion = min(angles["left_hip"], angles["right_hip"])
        if self._angular_speed("hip_flexion", flexion, now) > self.thresholds["max_angular_velocity"]:
            issues.append(("moving_too_fast", "slow_down"))
        return issues


# --- Squat with Arm Raise ---
@register_exercise_analyzer(ExerciseType.SQUAT_ARM_RAISE)
class SquatArmRaiseAnalyzer(BaseExerciseAnalyzer):
    """Squat with both arms overhead; counted when the performer stands back up."""

    EXERCISE_TYPE = ExerciseType.SQUAT_ARM_RAISE
    REST_STAGE = ExerciseStage.UP
    REQUIRED_LANDMARKS = [
        "left_shoulder", "right_shoulder",
        "left_elbow", "right_elbow",
        "left_hip", "right_hip",
        "left_knee", "right_knee",
        "left_ankle", "right_ankle"
    ]
    MOTION_LANDMARK = "left_hip"

    def _reset_state(self) -> None:
        self._switch = StageHysteresis(
            self.thresholds["knee_down_angle"], self.thresholds["knee_up_angle"], rising=False
        )
        self._squatting: Optional[bool] = None
        self._deepest = 180.0
        self._last_rep_depth: Optional[float] = None

    def _compute_angles(self, points: Dict[str, List[float]]) -> Dict[str, float]:
        return {
            "left_knee": calculate_angle(points["left_hip"], points["left_knee"], points["left_ankle"]),
            "right_knee": calculate_angle(points["right_hip"], points["right_knee"], points["right_ankle"]),
            "left_arm": calculate_angle(points["left_hip"], points["left_shoulder"], points["left_elbow"]),
            "right_arm": calculate_angle(points["right_hip"], points["right_shoulder"], points["right_elbow"]),
        }

    def _update_stage(self, angles, points, now) -> bool:
        knee = (angles["left_knee"] + angles["right_knee"]) / 2.0
        arms = (angles["left_arm"] + angles["right_arm"]) / 2.0
        angles["knee_avg"] = knee
        angles["arm_avg"] = arms

        squatting = self._switch.update(knee, self._squatting)
        # Going down only counts with the arms already overhead.
        if squatting is True and self._squatting is not True and arms < self.thresholds["arm_up_angle"]:
            squatting = self._squatting
        self._squatting = squatting

        if self._squatting is True:
            if self._stage != ExerciseStage.DOWN:
                self._stage = ExerciseStage.DOWN
                self._deepest = knee
            self._deepest = min(self._deepest, knee)
            return False

        if self._squatting is False:
            was_down = self._stage == ExerciseStage.DOWN
            self._stage = ExerciseStage.UP
            if was_down and self._count_rep(now):
                self._last_rep_depth = self._deepest
                return True
        return False

    def _check_form(self, angles, points, now, rep_completed) -> List[FormIssue]:
        issues = []
        if self._stage == ExerciseStage.DOWN:
            if angles["arm_avg"] < self.thresholds["arm_up_angle"]:
                issues.append(("arms_low", "keep_arms_overhead"))
            if abs(angles["left_knee"] - angles["right_knee"]) > self.thresholds["knee_symmetry_diff"]:
                issues.append(("uneven_knees", "bend_both_knees_evenly"))
        if rep_completed and self._last_rep_depth is not None and self._last_rep_depth > self.thresholds["deep_angle"]:
            issues.append(("shallow_squat", "squat_deeper"))
        return issues


# --- Push-up ---
@register_exercise_analyzer(ExerciseType.PUSH_UP)
class PushUpAnalyzer(BaseExerciseAnalyzer):
    """
    Push-ups, usually filmed from the side.

    Only one side of the body has to be visible. Elbow asymmetry is checked
    when both arms can be seen.
    """

    EXERCISE_TYPE = ExerciseType.PUSH_UP
    REST_STAGE = ExerciseStage.UP
    SIDE_PARTS = ["shoulder", "elbow", "wrist", "hip", "ankle"]
    MOTION_LANDMARK = "left_shoulder"

    def _reset_state(self) -> None:
        self._switch = StageHysteresis(self.thresholds["down_angle"], self.thresholds["up_angle"], rising=False)
        self._lowered: Optional[bool] = None

    def _is_visible(self, points: Dict[str, List[float]]) -> bool:
        return self._visible_side(points, self.SIDE_PARTS) is not None

    def _compute_angles(self, points: Dict[str, List[float]]) -> Dict[str, float]:
        angles = {}
        for side in ("left", "right"):
            names = [f"{side}_{part}" for part in ("shoulder", "elbow", "wrist")]
            if all(name in points and points[name][3] >= self.min_visibility for name in names):
                angles[f"{side}_elbow"] = calculate_angle(*(points[name] for name in names))
        deviation = calculate_body_line_deviation(
            {name: point for name, point in points.items() if point[3] >= self.min_visibility}
        )
        angles["body_line"] = np.nan if deviation is None else deviation
        return angles

    def _update_stage(self, angles, points, now) -> bool:
        elbows = [angles[key] for key in ("left_elbow", "right_elbow") if key in angles]
        elbow = float(np.mean(elbows))
        angles["elbow_avg"] = elbow
        self._lowered = self._switch.update(elbow, self._lowered)

        if self._lowered is True:
            self._stage = ExerciseStage.DOWN
            return False
        if self._lowered is False:
            was_down = self._stage == ExerciseStage.DOWN
            self._stage = ExerciseStage.UP
            if was_down:
                return self._count_rep(now)
        return False

    def _check_form(self, angles, points, now, rep_completed) -> List[FormIssue]:
        issues = []
        tolerance = self.thresholds["body_line_tolerance"]
        if angles["body_line"] > tolerance:
            issues.append(("hips_sagging", "tighten_core"))
        elif angles["body_line"] < -tolerance:
            issues.append(("hips_piking", "lower_hips"))
        if "left_elbow" in angles and "right_elbow" in angles:
            if abs(angles["left_elbow"] - angles["right_elbow"]) > self.thresholds["elbow_symmetry_diff"]:
                issues.append(("uneven_arms", "push_evenly"))
        return issues


# --- Timed holds ---
class HoldExerciseAnalyzer(BaseExerciseAnalyzer):
    """
    Base for timed holds. Reps stay at zero; hold_time accumulates while the
    pose stays within tolerance.

    Subclasses return how far the pose is from the ideal in ``_hold_deviation``;
    ``hold_tolerance`` starts the hold and ``break_tolerance`` ends it.
    """

    STAGES = (ExerciseStage.HOLD,)
    REST_STAGE = ExerciseStage.IDLE

    _MAX_FRAME_GAP = 1.0

    def _reset_state(self) -> None:
        self._switch = StageHysteresis(
            self.thresholds["hold_tolerance"], self.thresholds["break_tolerance"], rising=False
        )
        self._holding: Optional[bool] = None
        self._last_frame_time: Optional[float] = None

    @abstractmethod
    def _hold_deviation(self, angles: Dict[str, float], points: Dict[str, List[float]]) -> float:
        """Non-negative distance from the ideal hold position."""
        pass

    def _update_stage(self, angles, points, now) -> bool:
        was_holding = self._stage == ExerciseStage.HOLD
        self._holding = self._switch.update(self._hold_deviation(angles, points), self._holding)
        if was_holding and self._last_frame_time is not None:
            # A stalled source does not earn hold time.
            self._hold_time += min(max(now - self._last_frame_time, 0.0), self._MAX_FRAME_GAP)
        self._last_frame_time = now
        if self._holding is True:
            self._stage = ExerciseStage.HOLD
        elif self._holding is False:
            self._stage = ExerciseStage.IDLE
        return False


# --- Plank Hold ---
@register_exercise_analyzer(ExerciseType.PLANK_HOLD)
class PlankHoldAnalyzer(HoldExerciseAnalyzer):
    """Timed plank, held while the shoulder-hip-ankle line stays straight."""

    EXERCISE_TYPE = ExerciseType.PLANK_HOLD
    SIDE_PARTS = ["shoulder", "hip", "ankle"]
    MOTION_LANDMARK = "left_hip"

    def _is_visible(self, points: Dict[str, List[float]]) -> bool:
        return self._visible_side(points, self.SIDE_PARTS) is not None

    def _compute_angles(self, points: Dict[str, List[float]]) -> Dict[str, float]:
        deviation = calculate_body_line_deviation(
            {name: point for name, point in points.items() if point[3] >= self.min_visibility}
        )
        return {"body_line": np.nan if deviation is None else deviation}

    def _hold_deviation(self, angles, points) -> float:
        return abs(angles["body_line"])

    def _check_form(self, angles, points, now, rep_completed) -> List[FormIssue]:
        tolerance = self.thresholds["hold_tolerance"]
        if angles["body_line"] > tolerance:
            return [("hips_sagging", "tighten_core")]
        if angles["body_line"] < -tolerance:
            return [("hips_piking", "lower_hips")]
        return []


# --- Static Lunge ---
@register_exercise_analyzer(ExerciseType.STATIC_LUNGE)
class StaticLungeAnalyzer(HoldExerciseAnalyzer):
    """
    Timed lunge hold. Either leg may lead; the front leg is the one whose knee
    is bent closest to ``front_knee_angle``.
    """

    EXERCISE_TYPE = ExerciseType.STATIC_LUNGE
    REQUIRED_LANDMARKS = [
        "left_hip", "right_hip",
        "left_knee", "right_knee",
        "left_ankle", "right_ankle"
    ]
    MOTION_LANDMARK = "left_hip"

    def _compute_angles(self, points: Dict[str, List[float]]) -> Dict[str, float]:
        return {
            "left_knee": calculate_angle(points["left_hip"], points["left_knee"], points["left_ankle"]),
            "right_knee": calculate_angle(points["right_hip"], points["right_knee"], points["right_ankle"]),
        }

    def _hold_deviation(self, angles, points) -> float:
        target = self.thresholds["front_knee_angle"]
        front = min(("left", "right"), key=lambda side: abs(angles[f"{side}_knee"] - target))
        angles["front_knee"] = angles[f"{front}_knee"]
        return abs(angles["front_knee"] - target)

    def _check_form(self, angles, points, now, rep_completed) -> List[FormIssue]:
        if self._stage != ExerciseStage.HOLD:
            return [("not_in_lunge", "step_into_lunge")]
        return []


# --- Jump Squat ---
@register_exercise_analyzer(ExerciseType.JUMP_SQUAT)
class JumpSquatAnalyzer(BaseExerciseAnalyzer):
    """
    Squat, jump, land. The squat comes from the knee angle, the jump and the
    landing from the vertical movement of the averaged hip height. A rep
    counts on landing after a jump that followed a squat.
    """

    EXERCISE_TYPE = ExerciseType.JUMP_SQUAT
    REQUIRED_LANDMARKS = [
        "left_hip", "right_hip",
        "left_knee", "right_knee",
        "left_ankle", "right_ankle"
    ]
    MOTION_LANDMARK = "left_hip"

    def _reset_state(self) -> None:
        self._switch = StageHysteresis(
            self.thresholds["knee_squat_angle"], self.thresholds["knee_exit_angle"], rising=False
        )
        self._squatting: Optional[bool] = None
        self._squatted = False
        self._airborne = False
        self._rising_frames = 0
        self._hip_history = deque(maxlen=int(self.thresholds["hip_history"]))
        self._previous_hip_y: Optional[float] = None

    def _compute_angles(self, points: Dict[str, List[float]]) -> Dict[str, float]:
        return {
            "left_knee": calculate_angle(points["left_hip"], points["left_knee"], points["left_ankle"]),
            "right_knee": calculate_angle(points["right_hip"], points["right_knee"], points["right_ankle"]),
        }

    def _hip_rise(self, points: Dict[str, List[float]]) -> float:
        """Upward movement of the averaged hip height since the last frame."""
        self._hip_history.append(midpoint(points["left_hip"], points["right_hip"])[1])
        hip_y = float(np.mean(self._hip_history))
        # Image y grows downward.
        rise = 0.0 if self._previous_hip_y is None else self._previous_hip_y - hip_y
        self._previous_hip_y = hip_y
        return rise

    def _update_stage(self, angles, points, now) -> bool:
        knee = (angles["left_knee"] + angles["right_knee"]) / 2.0
        rise = self._hip_rise(points)
        angles["knee_avg"] = knee
        angles["hip_rise"] = rise

        self._squatting = self._switch.update(knee, self._squatting)
        if self._squatting is True:
            self._stage = ExerciseStage.DOWN
            self._squatted = True
            self._airborne = False
            self._rising_frames = 0
            return False

        if self._squatted and not self._airborne:
            self._rising_frames = self._rising_frames + 1 if rise > self.thresholds["jump_rise"] else 0
            if self._rising_frames >= self.thresholds["jump_confirm_frames"]:
                self._airborne = True
                self._stage = ExerciseStage.UP
            return False

        if self._airborne and rise < -self.thresholds["land_drop"] and self._count_rep(now):
            self._airborne = False
            self._squatted = False
            self._rising_frames = 0
            self._stage = ExerciseStage.DOWN
            return True
        return False

    def _check_form(self, angles, points, now, rep_completed) -> List[FormIssue]:
        depth_limit = self.thresholds["knee_squat_angle"] + self.thresholds["shallow_margin"]
        if self._squatting is True and angles["knee_avg"] > depth_limit:
            return [("shallow_squat", "squat_deeper")]
        return []


# --- Mountain Climber ---
@register_exercise_analyzer(ExerciseType.MOUNTAIN_CLIMBER)
class MountainClimberAnalyzer(BaseExerciseAnalyzer):
    """Knees driven toward the chest from a plank; every knee drive counts, either leg."""

    EXERCISE_TYPE = ExerciseType.MOUNTAIN_CLIMBER
    STAGES = (ExerciseStage.DOWN, ExerciseStage.LEFT, ExerciseStage.RIGHT)
    REQUIRED_LANDMARKS = [
        "left_shoulder", "right_shoulder",
        "left_hip", "right_hip",
        "left_knee", "right_knee"
    ]
    MOTION_LANDMARK = "left_knee"

    def _reset_state(self) -> None:
        self._switch = StageHysteresis(
            self.thresholds["knee_up_angle"], self.thresholds["knee_down_angle"], rising=False
        )
        self._legs: Dict[str, Optional[bool]] = {"left": None, "right": None}
        self._last_side: Optional[ExerciseStage] = None

    @property
    def last_side(self) -> Optional[ExerciseStage]:
        return self._last_side

    def target_stage(self) -> ExerciseStage:
        return get_target_stage(self.EXERCISE_TYPE, self._stage, self._last_side)

    def _compute_angles(self, points: Dict[str, List[float]]) -> Dict[str, float]:
        return {
            "left_hip": calculate_angle(points["left_shoulder"], points["left_hip"], points["left_knee"]),
            "right_hip": calculate_angle(points["right_shoulder"], points["right_hip"], points["right_knee"]),
        }

    def _update_stage(self, angles, points, now) -> bool:
        rep_completed = False
        for leg, side in (("left", ExerciseStage.LEFT), ("right", ExerciseStage.RIGHT)):
            was_up = self._legs[leg]
            self._legs[leg] = self._switch.update(angles[f"{leg}_hip"], was_up)
            if was_up is True and self._legs[leg] is False and not rep_completed and self._count_rep(now):
                self._last_side = side
                rep_completed = True

        if self._legs["left"] is True:
            self._stage = ExerciseStage.LEFT
        elif self._legs["right"] is True:
            self._stage = ExerciseStage.RIGHT
        elif self._legs["left"] is False or self._legs["right"] is False:
            self._stage = ExerciseStage.DOWN
        return rep_completed

    def _check_form(self, angles, points, now, rep_completed) -> List[FormIssue]:
        shoulder_y = midpoint(points["left_shoulder"], points["right_shoulder"])[1]
        hip_y = midpoint(points["left_hip"], points["right_hip"])[1]
        if shoulder_y - hip_y > self.thresholds["hip_rise"]:
            return [("hips_piking", "lower_hips")]
        return []


# --- Pistol Squat ---
@register_exercise_analyzer(ExerciseType.PISTOL_SQUAT)
class PistolSquatAnalyzer(BaseExerciseAnalyzer):
    """
    Single-leg squat. The standing leg is the one with the lower ankle on
    screen; the other leg has to stay straight for the squat to count.
    Standing legs alternate between reps (configurable).
    """

    EXERCISE_TYPE = ExerciseType.PISTOL_SQUAT
    REST_STAGE = ExerciseStage.UP
    REQUIRED_LANDMARKS = [
        "left_hip", "right_hip",
        "left_knee", "right_knee",
        "left_ankle", "right_ankle"
    ]
    MOTION_LANDMARK = "left_hip"

    def _reset_state(self) -> None:
        self._switch = StageHysteresis(
            self.thresholds["knee_down_angle"], self.thresholds["knee_up_angle"], rising=False
        )
        self._down: Optional[bool] = None
        self._down_leg: Optional[str] = None
        self._last_leg: Optional[str] = None
        self._hip_x_history = deque(maxlen=int(self.thresholds["balance_history"]))

    def _compute_angles(self, points: Dict[str, List[float]]) -> Dict[str, float]:
        return {
            "left_knee": calculate_angle(points["left_hip"], points["left_knee"], points["left_ankle"]),
            "right_knee": calculate_angle(points["right_hip"], points["right_knee"], points["right_ankle"]),
        }

    def _update_stage(self, angles, points, now) -> bool:
        standing = "left" if points["left_ankle"][1] >= points["right_ankle"][1] else "right"
        extended = "right" if standing == "left" else "left"
        angles["standing_knee"] = angles[f"{standing}_knee"]
        angles["extended_knee"] = angles[f"{extended}_knee"]
        self._hip_x_history.append(midpoint(points["left_hip"], points["right_hip"])[0])

        down = self._switch.update(angles["standing_knee"], self._down)
        # Sinking with the free leg bent is an ordinary squat.
        if down is True and self._down is not True and angles["extended_knee"] < self.thresholds["extended_leg_angle"]:
            down = self._down
        self._down = down

        if self._down is True:
            if self._stage != ExerciseStage.DOWN:
                self._stage = ExerciseStage.DOWN
                self._down_leg = standing
            return False

        if self._down is False:
            was_down = self._stage == ExerciseStage.DOWN
            self._stage = ExerciseStage.UP
            if not was_down:
                return False
            if self.thresholds.get("require_alternation", True) and self._down_leg == self._last_leg:
                logger.debug(f"pistol_squat: repeated {self._down_leg} leg not counted")
                return False
            if self._count_rep(now):
                self._last_leg = self._down_leg
                return True
        return False

    def _check_form(self, angles, points, now, rep_completed) -> List[FormIssue]:
        issues = []
        if self._stage == ExerciseStage.DOWN:
            if angles["extended_knee"] < self.thresholds["extended_leg_angle"]:
                issues.append(("extended_leg_bent", "straighten_extended_leg"))
            if max(self._hip_x_history) - min(self._hip_x_history) > self.thresholds["balance_threshold"]:
                issues.append(("losing_balance", "steady_your_balance"))
        return issues


# --- Push-up with Shoulder Tap ---
@register_exercise_analyzer(ExerciseType.PUSHUP_SHOULDER_TAP)
class PushupShoulderTapAnalyzer(BaseExerciseAnalyzer):
    """
    Push-up followed by a shoulder tap at the top, filmed from the front.

    The cycle is down, up, tap. A tap shows up as one elbow bending while the
    other arm stays straight, and the rep counts on the tap.
    """

    EXERCISE_TYPE = ExerciseType.PUSHUP_SHOULDER_TAP
    STAGES = (ExerciseStage.DOWN, ExerciseStage.UP, ExerciseStage.TAP)
    REST_STAGE = ExerciseStage.UP
    REQUIRED_LANDMARKS = [
        "left_shoulder", "right_shoulder",
        "left_elbow", "right_elbow",
        "left_wrist", "right_wrist",
        "left_hip", "right_hip"
    ]
    MOTION_LANDMARK = "left_shoulder"

    def _reset_state(self) -> None:
        self._switch = StageHysteresis(self.thresholds["down_angle"], self.thresholds["up_angle"], rising=False)
        self._lowered: Optional[bool] = None
        self._went_down = False

    def _compute_angles(self, points: Dict[str, List[float]]) -> Dict[str, float]:
        return {
            "left_elbow": calculate_angle(points["left_shoulder"], points["left_elbow"], points["left_wrist"]),
            "right_elbow": calculate_angle(points["right_shoulder"], points["right_elbow"], points["right_wrist"]),
        }

    def _update_stage(self, angles, points, now) -> bool:
        elbow = (angles["left_elbow"] + angles["right_elbow"]) / 2.0
        diff = abs(angles["left_elbow"] - angles["right_elbow"])
        angles["elbow_avg"] = elbow
        angles["elbow_diff"] = diff
        self._lowered = self._switch.update(elbow, self._lowered)

        if self._lowered is True:
            self._stage = ExerciseStage.DOWN
            self._went_down = True
            return False
        if self._lowered is not False:
            return False

        if self._stage == ExerciseStage.TAP:
            if diff < self.thresholds["tap_release_diff"]:
                self._stage = ExerciseStage.UP
            return False
        self._stage = ExerciseStage.UP
        if self._went_down and diff >= self.thresholds["tap_angle_diff"] and self._count_rep(now):
            self._stage = ExerciseStage.TAP
            self._went_down = False
            return True
        return False

    def _check_form(self, angles, points, now, rep_completed) -> List[FormIssue]:
        tilt = self.thresholds["tilt_threshold"]
        shoulder_tilt = abs(points["left_shoulder"][1] - points["right_shoulder"][1])
        hip_tilt = abs(points["left_hip"][1] - points["right_hip"][1])
        if shoulder_tilt > tilt or hip_tilt > tilt:
            return [("body_tilting", "keep_hips_square")]
        return []


# --- Burpee ---
@register_exercise_analyzer(ExerciseType.BURPEE)
class BurpeeAnalyzer(BaseExerciseAnalyzer):
    """
    Burpees: down into a squat or plank, then back up to standing.

    Down is a deep knee bend or a flat torso (shoulders level with the hips).
    Standing needs straight knees and an upright torso. In between the stage
    holds, and a rep counts when the performer stands up after going down.
    """

    EXERCISE_TYPE = ExerciseType.BURPEE
    REST_STAGE = ExerciseStage.UP
    REQUIRED_LANDMARKS = [
        "left_shoulder", "right_shoulder",
        "left_hip", "right_hip",
        "left_knee", "right_knee",
        "left_ankle", "right_ankle"
    ]
    MOTION_LANDMARK = "left_hip"

    def _reset_state(self) -> None:
        self._went_down = False

    def _compute_angles(self, points: Dict[str, List[float]]) -> Dict[str, float]:
        return {
            "left_knee": calculate_angle(points["left_hip"], points["left_knee"], points["left_ankle"]),
            "right_knee": calculate_angle(points["right_hip"], points["right_knee"], points["right_ankle"]),
        }

    def _update_stage(self, angles, points, now) -> bool:
        knee = (angles["left_knee"] + angles["right_knee"]) / 2.0
        shoulder_y = midpoint(points["left_shoulder"], points["right_shoulder"])[1]
        hip_y = midpoint(points["left_hip"], points["right_hip"])[1]
        # How far the shoulders sit above the hips; near zero in a plank.
        torso_rise = hip_y - shoulder_y
        angles["knee_avg"] = knee
        angles["torso_rise"] = torso_rise

        if knee <= self.thresholds["squat_knee_angle"] or torso_rise < self.thresholds["plank_torso_rise"]:
            self._stage = ExerciseStage.DOWN
            self._went_down = True
            return False
        if knee >= self.thresholds["standing_knee_angle"] and torso_rise >= self.thresholds["standing_torso_rise"]:
            self._stage = ExerciseStage.UP
            if self._went_down and self._count_rep(now):
                self._went_down = False
                return True
        return False

    def _check_form(self, angles, points, now, rep_completed) -> List[FormIssue]:
        return []
