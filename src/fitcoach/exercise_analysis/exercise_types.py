from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class ExerciseType(Enum):
    """Exercises the coach can analyze."""
    ARM_RAISE = "arm_raise"
    TORSO_TWIST = "torso_twist"
    KNEE_RAISE = "knee_raise"
    SQUAT_ARM_RAISE = "squat_arm_raise"
    PUSH_UP = "push_up"
    PLANK_HOLD = "plank_hold"
    STATIC_LUNGE = "static_lunge"
    JUMP_SQUAT = "jump_squat"
    MOUNTAIN_CLIMBER = "mountain_climber"
    PISTOL_SQUAT = "pistol_squat"
    PUSHUP_SHOULDER_TAP = "pushup_shoulder_tap"
    BURPEE = "burpee"


class ExerciseStage(Enum):
    IDLE = "idle"
    UP = "up"
    DOWN = "down"
    CENTER = "center"
    LEFT = "left"
    RIGHT = "right"
    HOLD = "hold"
    TAP = "tap"


class DifficultyLevel(Enum):
    """Enum representing the workout difficulty tiers."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class FormQuality(Enum):
    GOOD = "good"
    WARN = "warn"
    BAD = "bad"

    @classmethod
    def from_score(cls, score: float, bands: Optional[Dict[str, float]] = None) -> "FormQuality":
        """Map a 0-100 form score onto a quality band."""
        bands = bands or {"good": 80, "warn": 50}
        if score >= bands["good"]:
            return cls.GOOD
        if score >= bands["warn"]:
            return cls.WARN
        return cls.BAD


def _resolve_enum(enum_cls, value: Any, label: str):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        for member in enum_cls:
            if member.value == key:
                return member
    valid = ", ".join(member.value for member in enum_cls)
    raise ValueError(f"Unsupported {label}: {value!r}. Expected one of: {valid}")


def resolve_exercise_type(value: Union[str, ExerciseType]) -> ExerciseType:
    """Accept an ExerciseType or its string value; raise ValueError otherwise."""
    return _resolve_enum(ExerciseType, value, "exercise type")


def resolve_difficulty(value: Union[str, DifficultyLevel]) -> DifficultyLevel:
    """Accept a DifficultyLevel or its string value; raise ValueError otherwise."""
    return _resolve_enum(DifficultyLevel, value, "difficulty level")


@dataclass(frozen=True)
class DifficultySettings:
    """Per-difficulty workout targets."""
    duration_seconds: float  # Countdown length for one exercise
    min_reps: int  # Rep target for the exercise
    up_seconds: float  # Target time in the effort phase
    down_seconds: float  # Target time in the return phase
    rest_seconds: float  # Break before the next exercise in a workout

    @property
    def target_rep_duration(self) -> float:
        return self.up_seconds + self.down_seconds

    @property
    def recommended_tempo(self) -> str:
        return f"{self.up_seconds:g}-{self.down_seconds:g}"

    @classmethod
    def from_config(cls, level: DifficultyLevel, config: Dict[str, Any]) -> "DifficultySettings":
        try:
            values = config["difficulty_levels"][level.value]
        except KeyError:
            raise ValueError(f"No settings configured for difficulty level: {level.value}")
        return cls(
            duration_seconds=float(values["duration_seconds"]),
            min_reps=int(values["min_reps"]),
            up_seconds=float(values["up_seconds"]),
            down_seconds=float(values["down_seconds"]),
            rest_seconds=float(values["rest_seconds"]),
        )


@dataclass
class FormFeedback:
    quality: FormQuality = FormQuality.GOOD
    score: int = 100
    issues: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quality": self.quality.value,
            "score": self.score,
            "issues": list(self.issues),
            "suggestions": list(self.suggestions),
        }


@dataclass
class ExerciseAnalysisResult:
    """Per-frame output of an exercise analyzer."""
    stage: ExerciseStage
    reps: int
    rep_completed: bool
    form_feedback: FormFeedback
    angles: Dict[str, float]
    is_visible: bool
    hold_time: float = 0.0  # Seconds spent holding, only used by hold exercises

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "reps": self.reps,
            "rep_completed": self.rep_completed,
            "form_feedback": self.form_feedback.to_dict(),
            "angles": dict(self.angles),
            "is_visible": self.is_visible,
            "hold_time": self.hold_time,
        }


@dataclass
class JointCorrection:
    """Which joint to move, where to, and how far."""
    joint_name: str
    current: List[float]
    target: List[float]
    dx: float
    dy: float
    magnitude: float
    directions: List[str] = field(default_factory=list)
    severity: str = "warn"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
