"""
fitcoach - turns a stream of pose landmarks into reps, form scores and coaching cues.
"""

from .exercise_analysis import (
    DifficultyLevel,
    ExerciseStage,
    ExerciseType,
    create_exercise_analyzer,
)
from .feedback import CoachEvent, CoachEventType, CoachMessageSelector
from .trainer import ExerciseSession, SessionUpdate

__version__ = "0.1.0"

__all__ = [
    'DifficultyLevel',
    'ExerciseStage',
    'ExerciseType',
    'create_exercise_analyzer',
    'CoachEvent',
    'CoachEventType',
    'CoachMessageSelector',
    'ExerciseSession',
    'SessionUpdate',
]
