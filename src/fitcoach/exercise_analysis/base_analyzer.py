import time
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config_utils import get_default_config, get_logger, merge_thresholds
from .corrections import corrections_from_points, get_target_stage
from .exercise_types import (
    DifficultyLevel,
    DifficultySettings,
    ExerciseAnalysisResult,
    ExerciseStage,
    ExerciseType,
    FormFeedback,
    FormQuality,
    JointCorrection,
    resolve_difficulty,
)
from .pose_utils import DEFAULT_MIN_VISIBILITY, check_landmark_visibility, is_valid_angle, normalize_frame

logger = get_logger("ExerciseAnalyzer")

# (issue tag, suggestion tag)
FormIssue = Tuple[str, str]


class AngleSmoother:
    """Weighted moving average; newer samples weigh more."""

    def __init__(self, window: int = 3):
        self.values = deque(maxlen=max(1, int(window)))

    def update(self, value: float) -> float:
        self.values.append(value)
        weights = np.arange(1, len(self.values) + 1, dtype=float)
        return float(np.average(np.array(self.values, dtype=float), weights=weights))

    def reset(self) -> None:
        self.values.clear()


class StageHysteresis:
    """
    Two-threshold switch.

    With ``rising=True`` the switch turns on once the value reaches ``enter`` and
    only turns off again once it falls to ``exit``. With ``rising=False`` the
    comparisons are mirrored (on at or below ``enter``, off at or above ``exit``).
    A state of None means not yet known.
    """

    def __init__(self, enter: float, exit: float, rising: bool = True):
        if rising and exit >= enter:
            raise ValueError(f"Exit threshold {exit} must be below enter threshold {enter}")
        if not rising and exit <= enter:
            raise ValueError(f"Exit threshold {exit} must be above enter threshold {enter}")
        self.enter = enter
        self.exit = exit
        self.rising = rising

    def _past_enter(self, value: float) -> bool:
        return value >= self.enter if self.rising else value <= self.enter

    def _past_exit(self, value: float) -> bool:
        return value <= self.exit if self.rising else value >= self.exit

    def update(self, value: float, state: Optional[bool]) -> Optional[bool]:
        if state is not True and self._past_enter(value):
            return True
        if state is not False and self._past_exit(value):
            return False
        return state


class BaseExerciseAnalyzer(ABC):
    """
    Base class for exercise analysis implementations.

    Subclasses describe one exercise: which landmarks it needs, which angles
    it measures, how the stage moves and which form issues it looks for. The
    base class handles visibility gating, smoothing, rep cooldowns and scoring.
    """

    EXERCISE_TYPE: ExerciseType = None
    STAGES: Tuple[ExerciseStage, ...] = (ExerciseStage.UP, ExerciseStage.DOWN)
    REST_STAGE: ExerciseStage = ExerciseStage.DOWN
    REQUIRED_LANDMARKS: List[str] = []
    MOTION_LANDMARK: str = "left_wrist"

    def __init__(
        self,
        difficulty: Union[str, DifficultyLevel] = DifficultyLevel.BEGINNER,
        thresholds: Optional[Dict[str, Any]] = None,
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the analyzer with configuration parameters.

        Args:
            difficulty: Difficulty level, as enum or string
            thresholds: Overrides for this exercise's configured thresholds
            config: Full exercise config, defaults to the packaged JSON

        Raises:
            ValueError: On an unknown difficulty or threshold key
        """
        self.config = config or get_default_config()
        self.difficulty = resolve_difficulty(difficulty)
        self.settings = DifficultySettings.from_config(self.difficulty, self.config)
        exercise_config = self.config["exercises"][self.EXERCISE_TYPE.value]
        self.name = exercise_config["name"]
        self.description = exercise_config.get("description", "")
        self.thresholds = merge_thresholds(exercise_config["thresholds"], thresholds, self.EXERCISE_TYPE.value)
        self.penalties = dict(exercise_config.get("penalties", {}))
        self.min_visibility = self.config.get("min_visibility", DEFAULT_MIN_VISIBILITY)
        self.quality_bands = self.config.get("form_quality_bands", {"good": 80, "warn": 50})
        self.reset()

    # --- Lifecycle ---
    def reset(self) -> None:
        """Clear rep counter, stage and all smoothing buffers."""
        self._stage = ExerciseStage.IDLE
        self._reps = 0
        self._last_rep_time: Optional[float] = None
        self._smoothers: Dict[str, AngleSmoother] = {}
        self._last_samples: Dict[str, Tuple[float, float]] = {}
        self._form = FormFeedback()
        self._hold_time = 0.0
        self._reset_state()

    def _reset_state(self) -> None:
        """Hook for subclass specific state."""

    @property
    def stage(self) -> ExerciseStage:
        return self._stage

    @property
    def reps(self) -> int:
        return self._reps

    # --- Main entry point ---
    def analyze(self, landmarks: Any, now: Optional[float] = None) -> ExerciseAnalysisResult:
        """
        Analyze a single frame of exercise performance.

        Args:
            landmarks: Landmark frame, ordered list or name mapping
            now: Frame timestamp in seconds, defaults to time.time()

        Returns:
            ExerciseAnalysisResult for this frame
        """
        return self.analyze_points(normalize_frame(landmarks), now)

    def analyze_points(self, points: Dict[str, List[float]], now: Optional[float] = None) -> ExerciseAnalysisResult:
        """Analyze a frame that has already been through normalize_frame."""
        now = time.time() if now is None else now
        if not self._is_visible(points):
            return self._not_visible_result()

        raw_angles = self._compute_angles(points)
        if not raw_angles or not all(is_valid_angle(v) for v in raw_angles.values()):
            return self._not_visible_result()
        angles = {name: self._smooth(name, value) for name, value in raw_angles.items()}

        previous_stage = self._stage
        rep_completed = self._update_stage(angles, points, now)
        if self._stage != previous_stage:
            logger.debug(f"{self.EXERCISE_TYPE.value}: stage {previous_stage.value} -> {self._stage.value}")

        issues = self._check_form(angles, points, now, rep_completed)
        self._form = self._score_form(issues)
        return ExerciseAnalysisResult(
            stage=self._stage,
            reps=self._reps,
            rep_completed=rep_completed,
            form_feedback=self._form,
            angles=angles,
            is_visible=True,
            hold_time=self._hold_time,
        )

    def calculate_corrections(self, landmarks: Any, target_stage: Optional[ExerciseStage] = None) -> List[JointCorrection]:
        """Corrections toward ``target_stage``, or toward the next stage if omitted."""
        return self.corrections_from_points(normalize_frame(landmarks), target_stage)

    def corrections_from_points(
        self,
        points: Dict[str, List[float]],
        target_stage: Optional[ExerciseStage] = None
    ) -> List[JointCorrection]:
        if target_stage is None:
            target_stage = self.target_stage()
        return corrections_from_points(
            points, self.EXERCISE_TYPE, target_stage, self.config,
            self.min_visibility, self.REQUIRED_LANDMARKS, self.target_side()
        )

    def target_stage(self) -> ExerciseStage:
        return get_target_stage(self.EXERCISE_TYPE, self._stage)

    def target_side(self) -> Optional[str]:
        """Body side the next target pose is for, when the exercise works one side at a time."""
        return None

    # --- Subclass hooks ---
    @abstractmethod
    def _compute_angles(self, points: Dict[str, List[float]]) -> Dict[str, float]:
        """
        Measure the raw joint angles this exercise needs.

        Args:
            points: Normalised landmarks that passed the visibility gate

        Returns:
            Dictionary of angle name -> degrees (NaN marks an unusable angle)
        """
        pass

    @abstractmethod
    def _update_stage(self, angles: Dict[str, float], points: Dict[str, List[float]], now: float) -> bool:
        """Advance the stage machine; return True on the frame a rep completes."""
        pass

    @abstractmethod
    def _check_form(
        self,
        angles: Dict[str, float],
        points: Dict[str, List[float]],
        now: float,
        rep_completed: bool
    ) -> List[FormIssue]:
        """Return the (issue, suggestion) pairs detected in this frame."""
        pass

    def _is_visible(self, points: Dict[str, List[float]]) -> bool:
        return check_landmark_visibility(points, self.REQUIRED_LANDMARKS, self.min_visibility)

    # --- Shared helpers ---
    def _visible_side(self, points: Dict[str, List[float]], parts: Sequence[str]) -> Optional[str]:
        """The body side with all ``parts`` visible, preferring the more confident one."""
        candidates = []
        for side in ("left", "right"):
            names = [f"{side}_{part}" for part in parts]
            if check_landmark_visibility(points, names, self.min_visibility):
                candidates.append((np.mean([points[name][3] for name in names]), side))
        if not candidates:
            return None
        return max(candidates)[1]

    def _smooth(self, name: str, value: float) -> float:
        smoother = self._smoothers.get(name)
        if smoother is None:
            smoother = AngleSmoother(self.thresholds.get("smoothing_window", 3))
            self._smoothers[name] = smoother
        return smoother.update(value)

    def _angular_speed(self, name: str, value: float, now: float) -> float:
        """Degrees per second since the previous sample of ``name``."""
        previous = self._last_samples.get(name)
        self._last_samples[name] = (value, now)
        if previous is None or now <= previous[1]:
            return 0.0
        return abs(value - previous[0]) / (now - previous[1])

    def _count_rep(self, now: float) -> bool:
        cooldown = self.thresholds.get("rep_cooldown", 0.0)
        if self._last_rep_time is not None and now - self._last_rep_time < cooldown:
            logger.debug(f"{self.EXERCISE_TYPE.value}: rep ignored, {now - self._last_rep_time:.2f}s since last rep")
            return False
        self._reps += 1
        self._last_rep_time = now
        logger.info(f"{self.EXERCISE_TYPE.value}: rep {self._reps} completed")
        return True

    def _score_form(self, issues: List[FormIssue]) -> FormFeedback:
        score = 100
        for issue, _ in issues:
            score -= self.penalties.get(issue, 0)
        score = max(0, score)
        return FormFeedback(
            quality=FormQuality.from_score(score, self.quality_bands),
            score=score,
            issues=[issue for issue, _ in issues],
            suggestions=[suggestion for _, suggestion in issues],
        )

    def _not_visible_result(self) -> ExerciseAnalysisResult:
        feedback = FormFeedback(
            quality=FormQuality.from_score(0, self.quality_bands),
            score=0,
            issues=["body_not_visible"],
            suggestions=["step_into_frame"],
        )
        return ExerciseAnalysisResult(
            stage=self._stage,
            reps=self._reps,
            rep_completed=False,
            form_feedback=feedback,
            angles={},
            is_visible=False,
            hold_time=self._hold_time,
        )
