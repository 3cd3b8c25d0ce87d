"""
corrections.py - Joint-level corrections toward a target pose for visual guidance.

Everything here is stateless: the same inputs always give the same output and
nothing is remembered between calls.
"""
import math
from typing import Any, Dict, List, Optional, Sequence, Union

from .config_utils import get_shared_config
from .exercise_types import (
    ExerciseStage,
    ExerciseType,
    JointCorrection,
    resolve_exercise_type,
)
from .pose_utils import DEFAULT_MIN_VISIBILITY, check_landmark_visibility, normalize_frame

# Stages an exercise moves through, starting from the first one to aim for.
STAGE_CYCLES = {
    ExerciseType.ARM_RAISE: (ExerciseStage.UP, ExerciseStage.DOWN),
    ExerciseType.KNEE_RAISE: (ExerciseStage.UP, ExerciseStage.DOWN),
    ExerciseType.SQUAT_ARM_RAISE: (ExerciseStage.DOWN, ExerciseStage.UP),
    ExerciseType.PUSH_UP: (ExerciseStage.DOWN, ExerciseStage.UP),
    ExerciseType.PLANK_HOLD: (ExerciseStage.HOLD,),
    ExerciseType.STATIC_LUNGE: (ExerciseStage.HOLD,),
    ExerciseType.JUMP_SQUAT: (ExerciseStage.DOWN, ExerciseStage.UP),
    ExerciseType.PISTOL_SQUAT: (ExerciseStage.DOWN, ExerciseStage.UP),
    ExerciseType.PUSHUP_SHOULDER_TAP: (ExerciseStage.DOWN, ExerciseStage.UP, ExerciseStage.TAP),
    ExerciseType.BURPEE: (ExerciseStage.DOWN, ExerciseStage.UP),
}

# Exercises that alternate between a left and a right stage, with their rest stage.
SIDE_REST_STAGES = {
    ExerciseType.TORSO_TWIST: ExerciseStage.CENTER,
    ExerciseType.MOUNTAIN_CLIMBER: ExerciseStage.DOWN,
}


def get_target_stage(
    exercise_type: Union[str, ExerciseType],
    stage: ExerciseStage,
    last_side: Optional[ExerciseStage] = None
) -> ExerciseStage:
    """
    Pick the stage the performer should move toward next.

    Args:
        exercise_type: Exercise being performed
        stage: Current stage reported by the analyzer
        last_side: For side-alternating exercises, the side of the last counted rep

    Returns:
        The next target stage
    """
    exercise_type = resolve_exercise_type(exercise_type)
    rest = SIDE_REST_STAGES.get(exercise_type)
    if rest is not None:
        if stage in (rest, ExerciseStage.IDLE):
            return ExerciseStage.RIGHT if last_side == ExerciseStage.LEFT else ExerciseStage.LEFT
        return rest
    cycle = STAGE_CYCLES[exercise_type]
    if stage not in cycle:
        return cycle[0]
    return cycle[(cycle.index(stage) + 1) % len(cycle)]


def _direction_tags(dx: float, dy: float, threshold: float) -> List[str]:
    tags = []
    if dx > threshold:
        tags.append("move_right")
    elif dx < -threshold:
        tags.append("move_left")
    # Image y grows downward.
    if dy > threshold:
        tags.append("move_down")
    elif dy < -threshold:
        tags.append("move_up")
    return tags


def _required_landmarks(exercise_type: ExerciseType) -> Sequence[str]:
    # Imported here because the analyzers depend on this module.
    from .exercise_analyzers import EXERCISE_ANALYZER_REGISTRY
    analyzer_cls = EXERCISE_ANALYZER_REGISTRY.get(exercise_type)
    return analyzer_cls.REQUIRED_LANDMARKS if analyzer_cls is not None else []


def _stage_key(target_stage: Union[str, ExerciseStage]) -> str:
    if isinstance(target_stage, ExerciseStage):
        return target_stage.value
    return str(target_stage)


def calculate_corrections(
    landmarks: Any,
    exercise_type: Union[str, ExerciseType],
    target_stage: Union[str, ExerciseStage],
    config: Optional[Dict[str, Any]] = None,
    min_visibility: float = DEFAULT_MIN_VISIBILITY,
    required_landmarks: Optional[Sequence[str]] = None,
    side: Optional[str] = None
) -> List[JointCorrection]:
    """
    Compute corrective vectors from the current pose to the target stage pose.

    Nothing is returned while any landmark the exercise requires is hidden,
    or when fewer than half of the target joints are visible. Otherwise a
    joint is reported only when it is visible and sits further from its
    target than the warn threshold.

    Args:
        landmarks: Landmark frame (sequence or name mapping)
        exercise_type: Exercise being performed
        target_stage: Stage whose reference pose to compare against
        config: Exercise config, defaults to the packaged one
        min_visibility: Visibility below which a joint is ignored
        required_landmarks: Landmarks that must be visible, defaults to the
            exercise analyzer's own set
        side: "left" or "right" to pick a one-sided pose such as ``up_left``

    Returns:
        Corrections sorted by magnitude, largest first
    """
    return corrections_from_points(
        normalize_frame(landmarks), exercise_type, target_stage,
        config, min_visibility, required_landmarks, side
    )


def corrections_from_points(
    points: Dict[str, List[float]],
    exercise_type: Union[str, ExerciseType],
    target_stage: Union[str, ExerciseStage],
    config: Optional[Dict[str, Any]] = None,
    min_visibility: float = DEFAULT_MIN_VISIBILITY,
    required_landmarks: Optional[Sequence[str]] = None,
    side: Optional[str] = None
) -> List[JointCorrection]:
    """Same as calculate_corrections, for a frame already run through normalize_frame."""
    exercise_type = resolve_exercise_type(exercise_type)
    stage_key = _stage_key(target_stage)
    config = config or get_shared_config()
    poses = config.get("target_poses", {}).get(exercise_type.value, {})
    target_pose = poses.get(f"{stage_key}_{side}") if side else None
    target_pose = target_pose or poses.get(stage_key)
    if not target_pose:
        return []

    if required_landmarks is None:
        required_landmarks = _required_landmarks(exercise_type)
    if not check_landmark_visibility(points, required_landmarks, min_visibility):
        return []

    guide = config.get("visual_guide", {})
    warn_threshold = guide.get("warn_threshold", 0.05)
    error_threshold = guide.get("error_threshold", 0.08)
    direction_threshold = guide.get("direction_threshold", 0.03)

    visible = [name for name in target_pose if name in points and points[name][3] >= min_visibility]
    if len(visible) * 2 < len(target_pose):
        return []

    corrections = []
    for joint_name in visible:
        current = points[joint_name]
        target = target_pose[joint_name]
        dx = target[0] - current[0]
        dy = target[1] - current[1]
        magnitude = math.hypot(dx, dy)
        if magnitude <= warn_threshold:
            continue
        corrections.append(JointCorrection(
            joint_name=joint_name,
            current=[current[0], current[1]],
            target=[float(target[0]), float(target[1])],
            dx=dx,
            dy=dy,
            magnitude=magnitude,
            directions=_direction_tags(dx, dy, direction_threshold),
            severity="error" if magnitude > error_threshold else "warn",
        ))
    corrections.sort(key=lambda c: c.magnitude, reverse=True)
    return corrections
