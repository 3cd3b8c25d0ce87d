"""
tempo_analyzer.py - Rates repetition cadence against the difficulty's target tempo.
"""
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np

from .config_utils import get_default_config, get_logger
from .exercise_types import DifficultyLevel, DifficultySettings, ExerciseStage, resolve_difficulty

logger = get_logger("TempoAnalyzer")


class TempoPhase(Enum):
    IDLE = "idle"
    UP = "up"
    DOWN = "down"


class TempoQuality(Enum):
    TOO_FAST = "too_fast"
    GOOD = "good"
    TOO_SLOW = "too_slow"


# --- Feedback Templates ---
class TempoFeedback:
    @staticmethod
    def too_fast(tempo):
        return f"Too fast! Slow down and count a {tempo} tempo."

    @staticmethod
    def slightly_fast():
        return "Try going a little slower."

    @staticmethod
    def too_slow():
        return "Too slow, pick up the pace a bit."

    @staticmethod
    def slightly_slow():
        return "Try going a little faster."

    @staticmethod
    def inconsistent():
        return "Try to keep a steady rhythm."

    @staticmethod
    def rushed_return():
        return "Lower as slowly as you lift."

    @staticmethod
    def rushed_lift():
        return "Lift as smoothly as you lower."

    @staticmethod
    def perfect():
        return "Perfect tempo! Excellent!"

    @staticmethod
    def good():
        return "Good rhythm, keep going!"


@dataclass
class TempoAnalysis:
    current_phase: TempoPhase = TempoPhase.IDLE
    phase_duration: float = 0.0
    avg_rep_duration: float = 0.0
    avg_up_duration: float = 0.0
    avg_down_duration: float = 0.0
    tempo_quality: TempoQuality = TempoQuality.GOOD
    consistency_score: float = 1.0
    recommended_tempo: str = ""
    feedback: str = ""
    beat_count: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_phase": self.current_phase.value,
            "phase_duration": self.phase_duration,
            "avg_rep_duration": self.avg_rep_duration,
            "avg_up_duration": self.avg_up_duration,
            "avg_down_duration": self.avg_down_duration,
            "tempo_quality": self.tempo_quality.value,
            "consistency_score": self.consistency_score,
            "recommended_tempo": self.recommended_tempo,
            "feedback": self.feedback,
            "beat_count": self.beat_count,
        }


class TempoAnalyzer:
    """
    Tracks how long each stage lasts and compares the cadence to a target tempo.

    Stages in ``rest_stages`` are recorded as the "down" (return) phase, every
    other stage except idle as the "up" (effort) phase.
    """

    def __init__(
        self,
        difficulty: Union[str, DifficultyLevel] = DifficultyLevel.BEGINNER,
        rest_stages: Iterable[ExerciseStage] = (ExerciseStage.DOWN, ExerciseStage.CENTER),
        config: Optional[Dict[str, Any]] = None
    ):
        self.config = config or get_default_config()
        self.tempo_config = dict(self.config["tempo"])
        self.rest_stages = frozenset(rest_stages)
        self._history: deque = deque(maxlen=int(self.tempo_config.get("history_size", 10)))
        self.set_difficulty(difficulty)
        self.reset()

    def set_difficulty(self, difficulty: Union[str, DifficultyLevel]) -> None:
        """Change the target tempo; recorded phases are kept."""
        self.difficulty = resolve_difficulty(difficulty)
        self.settings = DifficultySettings.from_config(self.difficulty, self.config)
        logger.debug(f"Tempo target set to {self.settings.recommended_tempo} ({self.difficulty.value})")

    def reset(self) -> None:
        self._history.clear()
        self._current_stage: Optional[ExerciseStage] = None
        self._phase_start: Optional[float] = None
        self._beat_start: Optional[float] = None
        self._last_feedback_time: Optional[float] = None

    @property
    def history(self) -> List[Tuple[TempoPhase, float]]:
        return list(self._history)

    def _phase_for(self, stage: Optional[ExerciseStage]) -> TempoPhase:
        if stage is None or stage == ExerciseStage.IDLE:
            return TempoPhase.IDLE
        return TempoPhase.DOWN if stage in self.rest_stages else TempoPhase.UP

    def _target_for(self, phase: TempoPhase) -> float:
        return self.settings.up_seconds if phase == TempoPhase.UP else self.settings.down_seconds

    def update_phase(self, stage: Union[str, ExerciseStage], now: Optional[float] = None) -> None:
        """
        Feed the analyzer's current stage for this frame.

        Args:
            stage: Current exercise stage
            now: Frame timestamp in seconds, defaults to time.time()
        """
        now = time.time() if now is None else now
        stage = ExerciseStage(stage)
        if self._beat_start is None:
            self._beat_start = now
        if stage == self._current_stage:
            return

        ended = self._phase_for(self._current_stage)
        if ended != TempoPhase.IDLE and self._phase_start is not None:
            duration = now - self._phase_start
            low = self.tempo_config.get("min_phase_duration", 0.1)
            high = self.tempo_config.get("max_phase_duration", 10.0)
            if low <= duration <= high:
                self._history.append((ended, duration))
                logger.debug(f"Recorded {ended.value} phase of {duration:.2f}s")
            else:
                logger.debug(f"Discarded {ended.value} phase of {duration:.2f}s")
        self._current_stage = stage
        self._phase_start = now

    def _consistency(self) -> float:
        if len(self._history) < 3:
            return 1.0
        relative = np.array([duration / self._target_for(phase) for phase, duration in self._history])
        return float(max(0.0, 1.0 - np.std(relative)))

    def analyze(self, now: Optional[float] = None) -> TempoAnalysis:
        """
        Build the tempo report from the recorded phases.

        Args:
            now: Current time in seconds, defaults to time.time()

        Returns:
            TempoAnalysis for the current state
        """
        now = time.time() if now is None else now
        ups = [duration for phase, duration in self._history if phase == TempoPhase.UP]
        downs = [duration for phase, duration in self._history if phase == TempoPhase.DOWN]
        avg_up = float(np.mean(ups)) if ups else 0.0
        avg_down = float(np.mean(downs)) if downs else 0.0
        consistency = self._consistency()

        beat_count = 1
        if self._beat_start is not None:
            beats = int((now - self._beat_start) / self.tempo_config.get("beat_interval", 0.5))
            beat_count = beats % 4 + 1

        analysis = TempoAnalysis(
            current_phase=self._phase_for(self._current_stage),
            phase_duration=now - self._phase_start if self._phase_start is not None else 0.0,
            avg_rep_duration=avg_up + avg_down if ups and downs else 0.0,
            avg_up_duration=avg_up,
            avg_down_duration=avg_down,
            consistency_score=consistency,
            recommended_tempo=self.settings.recommended_tempo,
            beat_count=beat_count,
        )
        # Need one full lift and one full return before judging.
        if not (ups and downs):
            return analysis

        tolerance = self.tempo_config.get("tolerance", 0.25)
        ratio = analysis.avg_rep_duration / self.settings.target_rep_duration
        if ratio < 1.0 - tolerance:
            analysis.tempo_quality = TempoQuality.TOO_FAST
            analysis.feedback = (TempoFeedback.too_fast(self.settings.recommended_tempo)
                                 if ratio < 0.5 else TempoFeedback.slightly_fast())
        elif ratio > 1.0 + tolerance:
            analysis.tempo_quality = TempoQuality.TOO_SLOW
            analysis.feedback = TempoFeedback.too_slow() if ratio > 1.5 else TempoFeedback.slightly_slow()
        else:
            analysis.feedback = self._good_tempo_feedback(ratio, consistency, avg_up, avg_down)
        return analysis

    def _good_tempo_feedback(self, ratio: float, consistency: float, avg_up: float, avg_down: float) -> str:
        if consistency < self.tempo_config.get("inconsistent_below", 0.6):
            return TempoFeedback.inconsistent()
        balance = self.tempo_config.get("balance_ratio", 1.5)
        up_rate = avg_up / self.settings.up_seconds
        down_rate = avg_down / self.settings.down_seconds
        if down_rate > 0 and up_rate / down_rate > balance:
            return TempoFeedback.rushed_return()
        if up_rate > 0 and down_rate / up_rate > balance:
            return TempoFeedback.rushed_lift()
        if (abs(ratio - 1.0) <= self.tempo_config.get("perfect_tolerance", 0.1)
                and consistency > self.tempo_config.get("perfect_consistency", 0.85)):
            return TempoFeedback.perfect()
        return TempoFeedback.good()

    def should_give_feedback(self, now: Optional[float] = None) -> bool:
        """True at most once per cooldown, and only while the tempo is off target."""
        now = time.time() if now is None else now
        if self.analyze(now).tempo_quality == TempoQuality.GOOD:
            return False
        cooldown = self.tempo_config.get("feedback_cooldown", 5.0)
        if self._last_feedback_time is not None and now - self._last_feedback_time < cooldown:
            return False
        self._last_feedback_time = now
        return True
