"""
Tests for rep cadence tracking.
"""
import pytest

from fitcoach.exercise_analysis import ExerciseStage, TempoAnalyzer, TempoPhase, TempoQuality
from fitcoach.exercise_analysis.tempo_analyzer import TempoFeedback


def drive(tempo, phases, start=0.0, effort=ExerciseStage.UP, rest=ExerciseStage.DOWN):
    """Feed (rest_seconds, effort_seconds) pairs as stage changes; returns the end time."""
    t = start
    tempo.update_phase(rest, t)
    for rest_seconds, effort_seconds in phases:
        t += rest_seconds
        tempo.update_phase(effort, t)
        t += effort_seconds
        tempo.update_phase(rest, t)
    return t


# ============================================================================
# Quality rating
# ============================================================================

class TestTempoQuality:

    def test_on_target_is_good_and_consistent(self):
        tempo = TempoAnalyzer("intermediate")
        end = drive(tempo, [(2.0, 2.0)] * 3)
        analysis = tempo.analyze(end)
        assert analysis.tempo_quality == TempoQuality.GOOD
        assert analysis.consistency_score == pytest.approx(1.0)
        assert analysis.avg_rep_duration == pytest.approx(4.0)
        assert analysis.recommended_tempo == "2-2"
        assert analysis.feedback == TempoFeedback.perfect()

    def test_double_duration_is_too_slow(self):
        tempo = TempoAnalyzer("intermediate")
        analysis = tempo.analyze(drive(tempo, [(4.0, 4.0)] * 3))
        assert analysis.tempo_quality == TempoQuality.TOO_SLOW
        assert analysis.feedback == TempoFeedback.too_slow()

    def test_rushing_is_too_fast(self):
        tempo = TempoAnalyzer("intermediate")
        analysis = tempo.analyze(drive(tempo, [(0.8, 0.8)] * 3))
        assert analysis.tempo_quality == TempoQuality.TOO_FAST
        assert "2-2" in analysis.feedback

    def test_no_verdict_before_a_full_rep(self):
        tempo = TempoAnalyzer("intermediate")
        tempo.update_phase(ExerciseStage.DOWN, 0.0)
        tempo.update_phase(ExerciseStage.UP, 0.3)
        analysis = tempo.analyze(1.0)
        assert analysis.tempo_quality == TempoQuality.GOOD
        assert analysis.feedback == ""
        assert analysis.avg_rep_duration == 0.0
        assert analysis.current_phase == TempoPhase.UP
        assert analysis.phase_duration == pytest.approx(0.7)

    def test_irregular_rhythm_lowers_consistency(self):
        tempo = TempoAnalyzer("intermediate")
        end = drive(tempo, [(2.0, 0.5), (2.0, 3.5)] * 2)
        analysis = tempo.analyze(end)
        assert analysis.tempo_quality == TempoQuality.GOOD
        assert analysis.consistency_score < 0.6
        assert analysis.feedback == TempoFeedback.inconsistent()

    def test_unbalanced_phases(self):
        tempo = TempoAnalyzer("intermediate")
        analysis = tempo.analyze(drive(tempo, [(1.4, 2.6)] * 3))
        assert analysis.tempo_quality == TempoQuality.GOOD
        assert analysis.feedback == TempoFeedback.rushed_return()


# ============================================================================
# Phase recording
# ============================================================================

class TestPhaseRecording:

    def test_out_of_range_phases_are_discarded(self):
        tempo = TempoAnalyzer()
        drive(tempo, [(0.05, 12.0)])
        assert tempo.history == []

    def test_repeated_stage_does_not_split_phase(self):
        tempo = TempoAnalyzer()
        for t in (0.0, 0.5, 1.0):
            tempo.update_phase(ExerciseStage.DOWN, t)
        tempo.update_phase(ExerciseStage.UP, 1.5)
        assert tempo.history == [(TempoPhase.DOWN, 1.5)]

    def test_idle_phases_are_not_recorded(self):
        tempo = TempoAnalyzer()
        tempo.update_phase(ExerciseStage.IDLE, 0.0)
        tempo.update_phase(ExerciseStage.UP, 2.0)
        assert tempo.history == []

    def test_custom_rest_stage(self):
        tempo = TempoAnalyzer(rest_stages=(ExerciseStage.UP,))
        drive(tempo, [(2.0, 1.5)], effort=ExerciseStage.DOWN, rest=ExerciseStage.UP)
        assert tempo.history == [(TempoPhase.DOWN, 2.0), (TempoPhase.UP, 1.5)]

    def test_difficulty_change_keeps_history(self):
        tempo = TempoAnalyzer("intermediate")
        end = drive(tempo, [(2.0, 2.0)] * 3)
        tempo.set_difficulty("advanced")
        assert len(tempo.history) == 6
        analysis = tempo.analyze(end)
        assert analysis.recommended_tempo == "1.5-1.5"
        assert analysis.tempo_quality == TempoQuality.TOO_SLOW

    def test_reset_clears_history(self):
        tempo = TempoAnalyzer()
        drive(tempo, [(2.0, 2.0)] * 2)
        tempo.reset()
        assert tempo.history == []
        assert tempo.analyze(100.0).current_phase == TempoPhase.IDLE

    def test_history_is_bounded(self):
        tempo = TempoAnalyzer()
        drive(tempo, [(2.0, 2.0)] * 8)
        assert len(tempo.history) == 10


# ============================================================================
# Beats and feedback pacing
# ============================================================================

class TestBeatsAndFeedback:

    @pytest.mark.parametrize("now, beat", [(0.0, 1), (0.5, 2), (1.9, 4), (2.0, 1), (2.6, 2)])
    def test_beat_count_cycles(self, now, beat):
        tempo = TempoAnalyzer()
        tempo.update_phase(ExerciseStage.DOWN, 0.0)
        assert tempo.analyze(now).beat_count == beat

    def test_feedback_cooldown(self):
        tempo = TempoAnalyzer("intermediate")
        end = drive(tempo, [(4.0, 4.0)] * 3)
        assert tempo.should_give_feedback(end)
        assert not tempo.should_give_feedback(end + 1.0)
        assert tempo.should_give_feedback(end + 5.0)

    def test_no_feedback_when_on_target(self):
        tempo = TempoAnalyzer("intermediate")
        end = drive(tempo, [(2.0, 2.0)] * 3)
        assert not tempo.should_give_feedback(end)

    def test_analysis_serialises(self):
        tempo = TempoAnalyzer("intermediate")
        data = tempo.analyze(drive(tempo, [(4.0, 4.0)] * 3)).to_dict()
        assert data["tempo_quality"] == "too_slow"
        assert data["current_phase"] == "down"
