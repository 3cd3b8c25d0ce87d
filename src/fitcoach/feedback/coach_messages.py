import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..exercise_analysis.config_utils import get_logger

logger = get_logger("CoachMessages")


class CoachEventType(Enum):
    EXERCISE_START = "exercise_start"
    REP_COMPLETED = "rep_completed"
    TARGET_REACHED = "target_reached"
    FORM_FEEDBACK = "form_feedback"
    TEMPO_FEEDBACK = "tempo_feedback"
    MOTION_FEEDBACK = "motion_feedback"
    HALFWAY = "halfway"
    EXERCISE_COMPLETE = "exercise_complete"


@dataclass
class CoachEvent:
    """Discrete trigger for the coaching layer."""
    type: CoachEventType
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "payload": dict(self.payload), "timestamp": self.timestamp}


class CoachMessageSelector:
    """Turns coaching events into short spoken-style messages without nagging."""

    # Always delivered; everything else is subject to the cooldown.
    PRIORITY_EVENTS = {
        CoachEventType.EXERCISE_START,
        CoachEventType.REP_COMPLETED,
        CoachEventType.TARGET_REACHED,
        CoachEventType.HALFWAY,
        CoachEventType.EXERCISE_COMPLETE,
    }

    def __init__(self, cooldown: float = 4.0):
        """
        Initialize the message selector.

        Args:
            cooldown: Minimum seconds between two non-priority messages
        """
        self.cooldown = cooldown
        self._last_feedback_time: Optional[float] = None
        self._last_message: Optional[str] = None

        # Messages keyed by suggestion tag
        self.suggestion_messages = {
            # Arm raise
            "raise_both_arms_evenly": "Raise both arms evenly",
            "level_your_shoulders": "Keep your shoulders level",
            "raise_arms_higher": "Reach all the way up",
            # Torso twist
            "keep_hips_facing_forward": "Keep your hips facing forward",
            "twist_within_comfort": "Don't over-rotate, twist within a comfortable range",
            "keep_shoulders_level": "Keep your shoulders level as you twist",
            # Knee raise
            "keep_torso_upright": "Keep your torso upright",
            # Squat with arm raise
            "keep_arms_overhead": "Keep your arms overhead",
            "bend_both_knees_evenly": "Bend both knees evenly",
            "squat_deeper": "Sit a little deeper",
            # Push-up / plank
            "tighten_core": "Tighten your core, don't let your hips sag",
            "lower_hips": "Lower your hips into a straight line",
            "push_evenly": "Push evenly with both arms",
            "keep_hips_square": "Keep your hips and shoulders square as you tap",
            # Lunge / pistol squat
            "step_into_lunge": "Step forward and bend your front knee",
            "straighten_extended_leg": "Keep your extended leg straight",
            "steady_your_balance": "Find your balance before going lower",
            # General
            "slow_down": "Slow down and control the movement",
            "step_into_frame": "Step back so your whole body is visible",
        }
        self.motion_messages = {
            "too_fast": "Too fast! Control the movement",
            "too_slow": "Try moving a little faster",
            "jerky": "Try to move more smoothly",
            "no_motion": "Start moving whenever you're ready!",
        }

    def _compose(self, event: CoachEvent) -> Optional[str]:
        payload = event.payload
        if event.type == CoachEventType.EXERCISE_START:
            return f"Let's start {payload.get('name', 'the exercise')}!"
        if event.type == CoachEventType.REP_COMPLETED:
            return f"{payload.get('count', 0)}!"
        if event.type == CoachEventType.TARGET_REACHED:
            return f"Target reached: {payload.get('count', 0)} reps! Great job!"
        if event.type == CoachEventType.HALFWAY:
            return "Halfway there! Keep going!"
        if event.type == CoachEventType.EXERCISE_COMPLETE:
            if payload.get("hold_time"):
                return f"Great work! You held for {payload['hold_time']:.0f} seconds!"
            return f"Great work! You did {payload.get('reps', 0)} reps!"
        if event.type == CoachEventType.FORM_FEEDBACK:
            suggestions = payload.get("suggestions") or []
            if suggestions:
                return self.suggestion_messages.get(suggestions[0], suggestions[0])
            if payload.get("quality") == "bad":
                return "Stop for a moment and reset your form"
            return "Watch your form"
        if event.type == CoachEventType.TEMPO_FEEDBACK:
            return payload.get("text") or None
        if event.type == CoachEventType.MOTION_FEEDBACK:
            tag = payload.get("tag")
            return self.motion_messages.get(tag) if tag else None
        return None

    def select(self, event: CoachEvent, now: Optional[float] = None) -> Optional[str]:
        """
        Pick the message for an event, or None if it should stay silent.

        Args:
            event: Coaching event from the session
            now: Current time in seconds, defaults to time.time()

        Returns:
            Message text, or None
        """
        now = time.time() if now is None else now
        message = self._compose(event)
        if message is None:
            return None

        if event.type not in self.PRIORITY_EVENTS:
            # Avoid feedback spam
            if self._last_feedback_time is not None and now - self._last_feedback_time < self.cooldown:
                return None
            if message == self._last_message:
                return None
            self._last_feedback_time = now

        self._last_message = message
        logger.debug(f"Coach message for {event.type.value}: {message}")
        return message
