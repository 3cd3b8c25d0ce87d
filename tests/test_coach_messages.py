"""
Tests for coaching message selection.
"""
from fitcoach.feedback import CoachEvent, CoachEventType, CoachMessageSelector


def form_event(suggestions, quality="warn"):
    return CoachEvent(CoachEventType.FORM_FEEDBACK, {"quality": quality, "suggestions": suggestions})


class TestCoachMessageSelector:

    def test_priority_events_always_pass(self):
        selector = CoachMessageSelector(cooldown=10.0)
        assert selector.select(CoachEvent(CoachEventType.REP_COMPLETED, {"count": 1}), now=0.0) == "1!"
        assert selector.select(CoachEvent(CoachEventType.REP_COMPLETED, {"count": 2}), now=0.1) == "2!"
        assert selector.select(CoachEvent(CoachEventType.HALFWAY), now=0.2) == "Halfway there! Keep going!"

    def test_start_and_complete_messages(self):
        selector = CoachMessageSelector()
        start = CoachEvent(CoachEventType.EXERCISE_START, {"name": "Arm Raise"})
        assert selector.select(start, now=0.0) == "Let's start Arm Raise!"
        reps = CoachEvent(CoachEventType.EXERCISE_COMPLETE, {"reps": 12, "hold_time": 0.0})
        assert selector.select(reps, now=1.0) == "Great work! You did 12 reps!"
        hold = CoachEvent(CoachEventType.EXERCISE_COMPLETE, {"reps": 0, "hold_time": 42.4})
        assert selector.select(hold, now=2.0) == "Great work! You held for 42 seconds!"

    def test_form_message_uses_first_suggestion(self):
        selector = CoachMessageSelector()
        message = selector.select(form_event(["tighten_core", "push_evenly"]), now=0.0)
        assert message == "Tighten your core, don't let your hips sag"

    def test_form_message_without_suggestion(self):
        selector = CoachMessageSelector(cooldown=0.0)
        assert selector.select(form_event([], quality="bad"), now=0.0) == "Stop for a moment and reset your form"
        assert selector.select(form_event([]), now=1.0) == "Watch your form"

    def test_cooldown_between_feedback(self):
        selector = CoachMessageSelector(cooldown=4.0)
        assert selector.select(form_event(["slow_down"]), now=0.0)
        assert selector.select(form_event(["tighten_core"]), now=2.0) is None
        assert selector.select(form_event(["tighten_core"]), now=4.5) is not None

    def test_repeated_message_suppressed(self):
        selector = CoachMessageSelector(cooldown=1.0)
        assert selector.select(form_event(["slow_down"]), now=0.0)
        assert selector.select(form_event(["slow_down"]), now=5.0) is None

    def test_priority_message_breaks_repeat(self):
        selector = CoachMessageSelector(cooldown=1.0)
        assert selector.select(form_event(["slow_down"]), now=0.0)
        selector.select(CoachEvent(CoachEventType.REP_COMPLETED, {"count": 3}), now=1.0)
        assert selector.select(form_event(["slow_down"]), now=5.0) == "Slow down and control the movement"

    def test_motion_and_tempo_messages(self):
        selector = CoachMessageSelector(cooldown=0.0)
        motion = CoachEvent(CoachEventType.MOTION_FEEDBACK, {"tag": "jerky"})
        assert selector.select(motion, now=0.0) == "Try to move more smoothly"
        tempo = CoachEvent(CoachEventType.TEMPO_FEEDBACK, {"quality": "too_slow", "text": "Too slow"})
        assert selector.select(tempo, now=1.0) == "Too slow"

    def test_empty_payloads_stay_silent(self):
        selector = CoachMessageSelector()
        assert selector.select(CoachEvent(CoachEventType.TEMPO_FEEDBACK, {"text": ""}), now=0.0) is None
        assert selector.select(CoachEvent(CoachEventType.MOTION_FEEDBACK, {}), now=0.0) is None

    def test_event_serialises(self):
        event = CoachEvent(CoachEventType.REP_COMPLETED, {"count": 4}, 1.5)
        assert event.to_dict() == {"type": "rep_completed", "payload": {"count": 4}, "timestamp": 1.5}
