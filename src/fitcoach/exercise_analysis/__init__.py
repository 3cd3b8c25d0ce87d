"""
Exercise analysis package: rep counting, form scoring, tempo and motion analysis.
"""

from .base_analyzer import BaseExerciseAnalyzer, StageHysteresis, AngleSmoother
from .corrections import calculate_corrections, corrections_from_points, get_target_stage
from .exercise_analyzers import (
    EXERCISE_ANALYZER_REGISTRY,
    ArmRaiseAnalyzer,
    BurpeeAnalyzer,
    HoldExerciseAnalyzer,
    JumpSquatAnalyzer,
    KneeRaiseAnalyzer,
    MountainClimberAnalyzer,
    PistolSquatAnalyzer,
    PlankHoldAnalyzer,
    PushUpAnalyzer,
    PushupShoulderTapAnalyzer,
    SquatArmRaiseAnalyzer,
    StaticLungeAnalyzer,
    TorsoTwistAnalyzer,
    create_exercise_analyzer,
)
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
    resolve_exercise_type,
)
from .motion_analyzer import MotionAnalyzer, MotionQuality, MotionSpeed, Smoothness
from .tempo_analyzer import TempoAnalysis, TempoAnalyzer, TempoPhase, TempoQuality

__all__ = [
    'BaseExerciseAnalyzer',
    'StageHysteresis',
    'AngleSmoother',
    'calculate_corrections',
    'corrections_from_points',
    'get_target_stage',
    'EXERCISE_ANALYZER_REGISTRY',
    'ArmRaiseAnalyzer',
    'BurpeeAnalyzer',
    'HoldExerciseAnalyzer',
    'JumpSquatAnalyzer',
    'KneeRaiseAnalyzer',
    'MountainClimberAnalyzer',
    'PistolSquatAnalyzer',
    'PlankHoldAnalyzer',
    'PushUpAnalyzer',
    'PushupShoulderTapAnalyzer',
    'SquatArmRaiseAnalyzer',
    'StaticLungeAnalyzer',
    'TorsoTwistAnalyzer',
    'create_exercise_analyzer',
    'DifficultyLevel',
    'DifficultySettings',
    'ExerciseAnalysisResult',
    'ExerciseStage',
    'ExerciseType',
    'FormFeedback',
    'FormQuality',
    'JointCorrection',
    'resolve_difficulty',
    'resolve_exercise_type',
    'MotionAnalyzer',
    'MotionQuality',
    'MotionSpeed',
    'Smoothness',
    'TempoAnalysis',
    'TempoAnalyzer',
    'TempoPhase',
    'TempoQuality',
]
