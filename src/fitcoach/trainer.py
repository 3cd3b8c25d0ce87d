import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from .exercise_analysis.base_analyzer import BaseExerciseAnalyzer
from .exercise_analysis.config_utils import get_default_config, get_logger
from .exercise_analysis.exercise_analyzers import create_exercise_analyzer
from .exercise_analysis.exercise_types import (
    DifficultyLevel,
    ExerciseAnalysisResult,
    ExerciseStage,
    ExerciseType,
    FormQuality,
    JointCorrection,
    resolve_difficulty,
    resolve_exercise_type,
)
from .exercise_analysis.motion_analyzer import MotionAnalyzer, MotionQuality
from .exercise_analysis.pose_utils import normalize_frame
from .exercise_analysis.tempo_analyzer import TempoAnalysis, TempoAnalyzer
from .feedback.coach_messages import CoachEvent, CoachEventType

logger = get_logger("ExerciseSession")


@dataclass
class SessionUpdate:
    """Everything the UI and coaching layer need after one frame."""
    exercise_type: ExerciseType
    analysis: Optional[ExerciseAnalysisResult]
    tempo: TempoAnalysis
    motion: MotionQuality
    corrections: List[JointCorrection] = field(default_factory=list)
    events: List[CoachEvent] = field(default_factory=list)
    target_stage: ExerciseStage = ExerciseStage.IDLE
    time_left: float = 0.0
    paused: bool = False
    resting: bool = False
    rest_left: float = 0.0
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exercise_type": self.exercise_type.value,
            "analysis": self.analysis.to_dict() if self.analysis is not None else None,
            "tempo": self.tempo.to_dict(),
            "motion": self.motion.to_dict(),
            "corrections": [c.to_dict() for c in self.corrections],
            "events": [e.to_dict() for e in self.events],
            "target_stage": self.target_stage.value,
            "time_left": self.time_left,
            "paused": self.paused,
            "resting": self.resting,
            "rest_left": self.rest_left,
            "completed": self.completed,
        }


class ExerciseSession:
    """
    Owns the analyzers for the active exercise and turns their output into
    coaching events.

    The exercise analyzer, tempo analyzer and motion analyzer are rebuilt
    together whenever the exercise, the difficulty or the session is reset,
    so no stage or history survives an identity change. The countdown runs on
    wall-clock time and keeps going when frames stop arriving.
    """

    def __init__(
        self,
        exercise_type: Union[str, ExerciseType] = ExerciseType.ARM_RAISE,
        difficulty: Union[str, DifficultyLevel] = DifficultyLevel.BEGINNER,
        thresholds: Optional[Dict[Union[str, ExerciseType], Dict[str, Any]]] = None,
        config: Optional[Dict[str, Any]] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the session.

        Args:
            exercise_type: Exercise to start with
            difficulty: Difficulty level
            thresholds: Per-exercise threshold overrides, keyed by exercise type or its value
            config: Full exercise config, defaults to the packaged JSON
            clock: Time source used when no timestamp is passed in

        Raises:
            ValueError: On an unknown exercise type, difficulty or threshold key
        """
        self.config = config or get_default_config()
        self.clock = clock
        self.thresholds: Dict[ExerciseType, Dict[str, Any]] = {
            resolve_exercise_type(key): dict(values) for key, values in (thresholds or {}).items()
        }
        order = self.config.get("workout_order") or [t.value for t in ExerciseType]
        self.workout_order = [resolve_exercise_type(name) for name in order]
        self._build(resolve_exercise_type(exercise_type), resolve_difficulty(difficulty), self.clock())

    def _build(self, exercise_type: ExerciseType, difficulty: DifficultyLevel, now: float, rest: float = 0.0) -> None:
        # Construct everything first so a bad key leaves the old session intact.
        analyzer = create_exercise_analyzer(
            exercise_type, difficulty, self.thresholds.get(exercise_type), self.config
        )
        tempo_analyzer = TempoAnalyzer(difficulty, rest_stages=(analyzer.REST_STAGE,), config=self.config)
        motion_analyzer = MotionAnalyzer(config=self.config)

        self.exercise_type = exercise_type
        self.difficulty = difficulty
        self.analyzer: BaseExerciseAnalyzer = analyzer
        self.tempo_analyzer = tempo_analyzer
        self.motion_analyzer = motion_analyzer
        self.settings = analyzer.settings

        # The countdown starts once the rest is over.
        self._started_at = now + rest
        self._paused_at: Optional[float] = None
        self._paused_total = 0.0
        self._last_analysis: Optional[ExerciseAnalysisResult] = None
        self._announced_start = False
        self._announced_target = False
        self._announced_halfway = False
        self._completed = False
        self._last_form_quality = FormQuality.GOOD
        self._last_motion_tag: Optional[str] = None
        logger.info(f"Session ready: {exercise_type.value} at {difficulty.value} "
                    f"({self.settings.duration_seconds:g}s, target {self.settings.min_reps} reps)")
        if rest > 0:
            logger.info(f"Resting {rest:g}s before {exercise_type.value}")

    # --- Controls ---
    def switch_exercise(self, exercise_type: Union[str, ExerciseType], now: Optional[float] = None) -> None:
        """Replace all analyzers with fresh ones for another exercise."""
        now = self.clock() if now is None else now
        self._build(resolve_exercise_type(exercise_type), self.difficulty, now)

    def set_difficulty(self, difficulty: Union[str, DifficultyLevel], now: Optional[float] = None) -> None:
        """Replace all analyzers with fresh ones at another difficulty."""
        now = self.clock() if now is None else now
        self._build(self.exercise_type, resolve_difficulty(difficulty), now)

    def reset(self, now: Optional[float] = None) -> None:
        """Restart the current exercise from zero."""
        now = self.clock() if now is None else now
        self._build(self.exercise_type, self.difficulty, now)

    def next_exercise(self, now: Optional[float] = None, rest: bool = False) -> Optional[ExerciseType]:
        """
        Move to the next exercise in the workout order.

        Args:
            now: Current time in seconds, defaults to the session clock
            rest: Hold the new countdown for the difficulty's rest_seconds,
                as between exercises of a workout

        Returns:
            The new exercise type, or None when already at the end
        """
        index = self._order_index()
        if index + 1 >= len(self.workout_order):
            return None
        now = self.clock() if now is None else now
        rest_seconds = self.settings.rest_seconds if rest else 0.0
        self._build(self.workout_order[index + 1], self.difficulty, now, rest_seconds)
        return self.exercise_type

    def previous_exercise(self, now: Optional[float] = None) -> Optional[ExerciseType]:
        """Move to the previous exercise in the workout order; None when already at the start."""
        index = self._order_index()
        if index <= 0:
            return None
        self.switch_exercise(self.workout_order[index - 1], now)
        return self.exercise_type

    def _order_index(self) -> int:
        try:
            return self.workout_order.index(self.exercise_type)
        except ValueError:
            return -1

    def pause(self, now: Optional[float] = None) -> None:
        if self._paused_at is None:
            self._paused_at = self.clock() if now is None else now
            logger.info("Session paused")

    def resume(self, now: Optional[float] = None) -> None:
        if self._paused_at is not None:
            now = self.clock() if now is None else now
            self._paused_total += now - self._paused_at
            self._paused_at = None
            logger.info("Session resumed")

    @property
    def paused(self) -> bool:
        return self._paused_at is not None

    @property
    def completed(self) -> bool:
        return self._completed

    # --- Countdown ---
    def elapsed(self, now: Optional[float] = None) -> float:
        now = self.clock() if now is None else now
        end = self._paused_at if self._paused_at is not None else now
        return max(0.0, end - self._started_at - self._paused_total)

    def time_left(self, now: Optional[float] = None) -> float:
        return max(0.0, self.settings.duration_seconds - self.elapsed(now))

    def rest_left(self, now: Optional[float] = None) -> float:
        """Seconds until the countdown starts; pausing holds the rest as well."""
        now = self.clock() if now is None else now
        end = self._paused_at if self._paused_at is not None else now
        return max(0.0, self._started_at + self._paused_total - end)

    def resting(self, now: Optional[float] = None) -> bool:
        return self.rest_left(now) > 0.0

    def tick(self, now: Optional[float] = None) -> List[CoachEvent]:
        """
        Advance time-based events without a frame.

        Args:
            now: Current time in seconds, defaults to the session clock

        Returns:
            Halfway and completion events that became due
        """
        now = self.clock() if now is None else now
        events = []
        if self._completed or self.paused:
            return events
        elapsed = self.elapsed(now)
        duration = self.settings.duration_seconds
        if not self._announced_halfway and elapsed >= duration / 2.0:
            self._announced_halfway = True
            events.append(CoachEvent(CoachEventType.HALFWAY, {"time_left": duration - elapsed}, now))
        if elapsed >= duration:
            self._completed = True
            events.append(CoachEvent(
                CoachEventType.EXERCISE_COMPLETE,
                {"exercise": self.exercise_type.value, "reps": self.analyzer.reps,
                 "hold_time": self._last_analysis.hold_time if self._last_analysis else 0.0},
                now,
            ))
            logger.info(f"{self.exercise_type.value} complete with {self.analyzer.reps} reps")
        return events

    # --- Frame processing ---
    def process_frame(self, landmarks: Any, now: Optional[float] = None) -> SessionUpdate:
        """
        Run one landmark frame through the analyzers.

        Args:
            landmarks: Landmark frame from the pose source
            now: Frame timestamp in seconds, defaults to the session clock

        Returns:
            SessionUpdate with the merged analyzer output and any new events
        """
        now = self.clock() if now is None else now
        events: List[CoachEvent] = []
        corrections: List[JointCorrection] = []

        resting = self.resting(now)

        if not (self.paused or self._completed or resting):
            points = normalize_frame(landmarks)
            analysis = self.analyzer.analyze_points(points, now)
            self._last_analysis = analysis
            if analysis.is_visible:
                events.extend(self._track_frame(points, analysis, now))
                corrections = self.analyzer.corrections_from_points(points)
            events.extend(self.tick(now))

        return SessionUpdate(
            exercise_type=self.exercise_type,
            analysis=self._last_analysis,
            tempo=self.tempo_analyzer.analyze(now),
            motion=self.motion_analyzer.analyze(),
            corrections=corrections,
            events=events,
            target_stage=self.analyzer.target_stage(),
            time_left=self.time_left(now),
            paused=self.paused,
            resting=resting,
            rest_left=self.rest_left(now),
            completed=self._completed,
        )

    def _track_frame(self, points: Dict[str, List[float]], analysis: ExerciseAnalysisResult, now: float) -> List[CoachEvent]:
        events = []
        if not self._announced_start:
            self._announced_start = True
            events.append(CoachEvent(
                CoachEventType.EXERCISE_START,
                {"exercise": self.exercise_type.value, "name": self.analyzer.name},
                now,
            ))

        self.tempo_analyzer.update_phase(analysis.stage, now)
        point = points.get(self.analyzer.MOTION_LANDMARK)
        if point is not None and point[3] >= self.analyzer.min_visibility:
            self.motion_analyzer.update(point[0], point[1], now)

        if analysis.rep_completed:
            events.append(CoachEvent(CoachEventType.REP_COMPLETED, {"count": analysis.reps}, now))
            if not self._announced_target and analysis.reps >= self.settings.min_reps:
                self._announced_target = True
                events.append(CoachEvent(CoachEventType.TARGET_REACHED, {"count": analysis.reps}, now))

        quality = analysis.form_feedback.quality
        if quality != self._last_form_quality and quality != FormQuality.GOOD:
            events.append(CoachEvent(
                CoachEventType.FORM_FEEDBACK,
                {"quality": quality.value,
                 "issues": list(analysis.form_feedback.issues),
                 "suggestions": list(analysis.form_feedback.suggestions)},
                now,
            ))
        self._last_form_quality = quality

        if self.tempo_analyzer.should_give_feedback(now):
            tempo = self.tempo_analyzer.analyze(now)
            events.append(CoachEvent(
                CoachEventType.TEMPO_FEEDBACK,
                {"quality": tempo.tempo_quality.value, "text": tempo.feedback},
                now,
            ))

        tag = self.motion_analyzer.analyze().feedback
        if tag is not None and tag != self._last_motion_tag:
            events.append(CoachEvent(CoachEventType.MOTION_FEEDBACK, {"tag": tag}, now))
        self._last_motion_tag = tag
        return events
