"""
Tests for target-stage selection and joint corrections.
"""
import pytest

from fitcoach.exercise_analysis import (
    ExerciseStage,
    ExerciseType,
    calculate_corrections,
    create_exercise_analyzer,
    get_target_stage,
)
from fitcoach.exercise_analysis import config_utils
from fitcoach.exercise_analysis.config_utils import get_default_config, get_shared_config

from conftest import STANDING, arm_frame, knee_frame, with_visibility


def _pose(stage: str, exercise: str = "arm_raise", visibility: float = 0.9):
    landmarks = {name: [xy[0], xy[1], 0.0, visibility] for name, xy in STANDING.items()}
    target = get_default_config()["target_poses"][exercise][stage]
    landmarks.update({name: [xy[0], xy[1], 0.0, visibility] for name, xy in target.items()})
    return landmarks


# ============================================================================
# Corrections
# ============================================================================

class TestCalculateCorrections:

    def test_matching_pose_needs_no_correction(self):
        assert calculate_corrections(_pose("up"), "arm_raise", ExerciseStage.UP) == []

    def test_arms_down_toward_up_target(self):
        corrections = calculate_corrections(_pose("down"), ExerciseType.ARM_RAISE, ExerciseStage.UP)
        names = [c.joint_name for c in corrections]

        assert set(names) == {"left_elbow", "right_elbow", "left_wrist", "right_wrist"}
        assert names[0].endswith("wrist")
        assert all(c.severity == "error" for c in corrections)
        magnitudes = [c.magnitude for c in corrections]
        assert magnitudes == sorted(magnitudes, reverse=True)

        left_elbow = corrections[names.index("left_elbow")]
        assert left_elbow.dx == pytest.approx(0.05)
        assert left_elbow.dy == pytest.approx(-0.3)
        assert left_elbow.directions == ["move_right", "move_up"]

    def test_small_offset_is_a_warning(self):
        landmarks = _pose("up")
        landmarks["left_wrist"][1] += 0.06
        corrections = calculate_corrections(landmarks, "arm_raise", "up")
        assert len(corrections) == 1
        assert corrections[0].joint_name == "left_wrist"
        assert corrections[0].severity == "warn"
        assert corrections[0].directions == ["move_up"]

    def test_offsets_within_tolerance_ignored(self):
        landmarks = _pose("up")
        landmarks["left_wrist"][0] += 0.04
        assert calculate_corrections(landmarks, "arm_raise", "up") == []

    def test_mostly_hidden_pose_gives_nothing(self):
        landmarks = _pose("down")
        for name in ("left_elbow", "right_elbow", "left_wrist", "right_wrist"):
            landmarks[name][3] = 0.2
        assert calculate_corrections(landmarks, "arm_raise", "up") == []

    def test_hidden_required_landmarks_give_nothing(self):
        frame = with_visibility(arm_frame(30), {"left_wrist": 0.2, "right_wrist": 0.2})
        assert calculate_corrections(frame, "arm_raise", "up") == []

        analyzer = create_exercise_analyzer("arm_raise")
        assert analyzer.calculate_corrections(frame, ExerciseStage.UP) == []
        assert analyzer.calculate_corrections(arm_frame(30), ExerciseStage.UP)

    def test_hidden_optional_joints_are_skipped(self):
        frame = with_visibility(knee_frame(), {"left_ankle": 0.1})
        corrections = calculate_corrections(frame, "knee_raise", "up", side="left")
        assert {c.joint_name for c in corrections} == {"left_knee", "left_hip", "right_hip"}

    def test_side_picks_one_sided_pose(self):
        left = {c.joint_name for c in calculate_corrections(knee_frame(), "knee_raise", "up", side="left")}
        right = {c.joint_name for c in calculate_corrections(knee_frame(), "knee_raise", "up", side="right")}
        assert "left_knee" in left and "right_knee" not in left
        assert "right_knee" in right and "left_knee" not in right

    def test_exercise_without_reference_pose(self):
        assert calculate_corrections(_pose("down"), "push_up", ExerciseStage.DOWN) == []

    def test_empty_frame(self):
        assert calculate_corrections(None, "arm_raise", "up") == []

    def test_packaged_config_is_not_copied_per_call(self, monkeypatch):
        def no_copy(*args, **kwargs):
            raise AssertionError("config copied on the frame path")

        landmarks = _pose("down")
        assert get_shared_config() is get_shared_config()
        monkeypatch.setattr(config_utils.copy, "deepcopy", no_copy)
        assert calculate_corrections(landmarks, "arm_raise", "up")

    def test_correction_serialises(self):
        correction = calculate_corrections(_pose("down"), "arm_raise", "up")[0]
        data = correction.to_dict()
        assert data["joint_name"] == correction.joint_name
        assert data["severity"] == "error"


# ============================================================================
# Target stage
# ============================================================================

class TestTargetStage:

    @pytest.mark.parametrize("exercise, stage, expected", [
        ("arm_raise", ExerciseStage.IDLE, ExerciseStage.UP),
        ("arm_raise", ExerciseStage.DOWN, ExerciseStage.UP),
        ("arm_raise", ExerciseStage.UP, ExerciseStage.DOWN),
        ("knee_raise", ExerciseStage.UP, ExerciseStage.DOWN),
        ("squat_arm_raise", ExerciseStage.UP, ExerciseStage.DOWN),
        ("squat_arm_raise", ExerciseStage.DOWN, ExerciseStage.UP),
        ("push_up", ExerciseStage.IDLE, ExerciseStage.DOWN),
        ("plank_hold", ExerciseStage.IDLE, ExerciseStage.HOLD),
        ("static_lunge", ExerciseStage.IDLE, ExerciseStage.HOLD),
        ("jump_squat", ExerciseStage.UP, ExerciseStage.DOWN),
        ("pistol_squat", ExerciseStage.DOWN, ExerciseStage.UP),
        ("burpee", ExerciseStage.UP, ExerciseStage.DOWN),
        ("pushup_shoulder_tap", ExerciseStage.DOWN, ExerciseStage.UP),
        ("pushup_shoulder_tap", ExerciseStage.UP, ExerciseStage.TAP),
        ("pushup_shoulder_tap", ExerciseStage.TAP, ExerciseStage.DOWN),
    ])
    def test_next_stage(self, exercise, stage, expected):
        assert get_target_stage(exercise, stage) == expected

    def test_twist_alternates_sides(self):
        assert get_target_stage("torso_twist", ExerciseStage.CENTER) == ExerciseStage.LEFT
        assert get_target_stage("torso_twist", ExerciseStage.CENTER, ExerciseStage.LEFT) == ExerciseStage.RIGHT
        assert get_target_stage("torso_twist", ExerciseStage.CENTER, ExerciseStage.RIGHT) == ExerciseStage.LEFT
        assert get_target_stage("torso_twist", ExerciseStage.RIGHT) == ExerciseStage.CENTER

    def test_climber_alternates_legs(self):
        assert get_target_stage("mountain_climber", ExerciseStage.IDLE) == ExerciseStage.LEFT
        assert get_target_stage("mountain_climber", ExerciseStage.DOWN, ExerciseStage.LEFT) == ExerciseStage.RIGHT
        assert get_target_stage("mountain_climber", ExerciseStage.LEFT) == ExerciseStage.DOWN

    def test_unknown_exercise(self):
        with pytest.raises(ValueError):
            get_target_stage("jumping_jacks", ExerciseStage.IDLE)
