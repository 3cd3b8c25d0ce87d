from .coach_messages import CoachEvent, CoachEventType, CoachMessageSelector

__all__ = ['CoachEvent', 'CoachEventType', 'CoachMessageSelector']
