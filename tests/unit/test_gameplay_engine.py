"""
Unit tests for the gameplay engine.
"""

import pytest

from rhythmchart.chart.models import BonusKind
from rhythmchart.gameplay.engine import GameplayEngine
from rhythmchart.gameplay.models import (
    JudgmentCategory, PlayerInputEvent, ScoreReport, SessionStatus,
)
from rhythmchart.utils.exceptions import GameplayError

from conftest import make_chart


def started(chart, settings):
    engine = GameplayEngine(chart, settings)
    engine.start()
    return engine


def press(engine, timestamp_ms, lane):
    return engine.handle_input(PlayerInputEvent(timestamp_ms=timestamp_ms, lane=lane))


class TestTimingWindows:
    """Test cases for tempo-scaled windows."""

    def test_reference_tempo(self, settings):
        """Test windows at the reference tempo."""
        windows = GameplayEngine(make_chart([], bpm=120.0), settings).timing_windows()

        assert windows.perfect_ms == pytest.approx(45.0)
        assert windows.good_ms == pytest.approx(110.0)

    def test_double_tempo_halves_windows(self, settings):
        """Test that 240 BPM halves the perfect window."""
        windows = GameplayEngine(make_chart([], bpm=240.0), settings).timing_windows()

        assert windows.perfect_ms == pytest.approx(22.5)
        assert windows.good_ms == pytest.approx(55.0)

    def test_scaling_exponent(self, settings):
        """Test a softened scaling curve."""
        settings.gameplay.window_scaling_exponent = 0.5
        windows = GameplayEngine(make_chart([], bpm=480.0), settings).timing_windows()

        assert windows.perfect_ms == pytest.approx(22.5)

    @pytest.mark.parametrize("bpm", [0.0, float('nan'), float('inf')])
    def test_unusable_tempo_uses_reference(self, settings, bpm):
        """Test that a chart with an unusable tempo still times out its notes."""
        engine = started(make_chart([(1000, 0, None)], bpm=bpm), settings)

        assert engine.timing_windows().good_ms == pytest.approx(110.0)
        assert [j.category for j in engine.update(10_000)] == [JudgmentCategory.MISS]
        assert engine.state.status is SessionStatus.FINISHED

    def test_classify(self, settings):
        """Test the window boundaries."""
        windows = GameplayEngine(make_chart([]), settings).timing_windows()

        assert windows.classify(-45.0) is JudgmentCategory.PERFECT
        assert windows.classify(45.1) is JudgmentCategory.GOOD
        assert windows.classify(110.0) is JudgmentCategory.GOOD
        assert windows.classify(110.1) is None


class TestJudging:
    """Test cases for hit judgment."""

    def test_perfect_and_good(self, settings):
        """Test hit categories and base points."""
        engine = started(make_chart([(1000, 0, None), (2000, 1, None)]), settings)

        perfect = press(engine, 1020, 0)
        good = press(engine, 1920, 1)

        assert perfect.category is JudgmentCategory.PERFECT
        assert perfect.delta_ms == pytest.approx(20.0)
        assert good.category is JudgmentCategory.GOOD
        assert good.delta_ms == pytest.approx(-80.0)
        assert engine.state.score == 100
        assert engine.state.combo == 2

    def test_press_without_note(self, settings):
        """Test presses with no note in range."""
        engine = started(make_chart([(1000, 0, None)]), settings)

        assert press(engine, 850, 0) is None
        assert press(engine, 1000, 1) is None
        assert engine.state.notes_hit == 0
        assert engine.state.combo == 0

    def test_nearest_note_wins(self, settings):
        """Test that a press judges the closest pending note in its lane."""
        engine = started(make_chart([(1000, 2, None), (1100, 2, None)]), settings)

        judgment = press(engine, 1080, 2)

        assert judgment.note_id == 1

    def test_out_of_range_lane_is_ignored(self, settings):
        """Test that invalid lanes neither raise nor change state."""
        engine = started(make_chart([(1000, 0, None)]), settings)

        assert press(engine, 1000, 7) is None
        assert press(engine, 1000, -1) is None
        assert engine.state.notes_hit == 0

    def test_timeout_is_strict(self, settings):
        """Test that a note is missed only once the good window has passed."""
        engine = started(make_chart([(1000, 0, None)]), settings)

        assert engine.update(1110) == []
        missed = engine.update(1111)

        assert [j.category for j in missed] == [JudgmentCategory.MISS]
        assert engine.state.missed_notes == 1

    def test_single_resolution(self, settings):
        """Test that a resolved note is never judged again."""
        engine = started(make_chart([(1000, 0, None), (5000, 0, None)]), settings)

        assert press(engine, 1000, 0) is not None
        assert press(engine, 1010, 0) is None
        engine.update(1500)

        assert [j.note_id for j in engine.judgments] == [0]

    def test_input_resolves_overdue_notes_first(self, settings):
        """Test that a late press cannot hit a note already past its window."""
        engine = started(make_chart([(1000, 0, None), (1300, 0, None)]), settings)

        judgment = press(engine, 1250, 0)

        assert judgment.note_id == 1
        assert [j.category for j in engine.judgments] == [JudgmentCategory.MISS, JudgmentCategory.GOOD]


class TestScoring:
    """Test cases for combo, multiplier and bonus scoring."""

    def test_multiplier_reaches_four(self, settings):
        """Test that 30 consecutive hits give a 4x multiplier."""
        chart = make_chart([(1000 + 500 * i, i % 5, None) for i in range(31)])
        engine = started(chart, settings)

        for note in chart.notes[:30]:
            press(engine, note.timestamp_ms, note.lane)

        state = engine.state
        assert state.combo == 30
        assert state.multiplier == 4
        assert state.effective_multiplier == 4
        assert state.score == 50 * (10 * 1 + 10 * 2 + 10 * 3)

    def test_double_points_stacks(self, debug_settings):
        """Test that Double Points doubles the combo multiplier to 8x."""
        chart = make_chart([(100 + 100 * i, i % 5, None) for i in range(30)] + [(9000, 0, None)])
        engine = started(chart, debug_settings)
        engine.force_activate_bonus(BonusKind.DOUBLE_POINTS)

        for note in chart.notes[:30]:
            press(engine, note.timestamp_ms, note.lane)

        state = engine.state
        assert state.multiplier == 4
        assert state.effective_multiplier == 8
        assert state.max_multiplier == 8

    def test_miss_resets_combo(self, settings):
        """Test a miss without shield charges."""
        engine = started(make_chart([(1000, 0, None), (2000, 1, None), (3000, 2, None)]), settings)
        press(engine, 1000, 0)

        engine.update(2200)

        assert engine.state.combo == 0
        assert engine.state.multiplier == 1

    def test_shield_absorbs_misses(self, settings):
        """Test that shield charges preserve combo."""
        chart = make_chart([
            (1000, 0, BonusKind.SHIELD),
            (2000, 1, None),
            (3000, 2, None),
            (4000, 3, None),
            (9000, 4, None),
        ])
        engine = started(chart, settings)
        press(engine, 1000, 0)
        assert engine.state.shield_charges == 2

        engine.update(3200)
        assert engine.state.combo == 1
        assert engine.state.shield_charges == 0
        assert engine.state.missed_notes == 2

        engine.update(4200)
        assert engine.state.combo == 0

    def test_missed_bonus_keeps_combo(self, settings):
        """Test that missing a bonus note neither breaks combo nor uses a shield."""
        chart = make_chart([(1000, 0, None), (2000, 1, BonusKind.DOUBLE_POINTS), (5000, 2, None)])
        engine = started(chart, settings)
        press(engine, 1000, 0)

        missed = engine.update(2500)

        assert [j.category for j in missed] == [JudgmentCategory.MISS]
        assert engine.state.combo == 1
        assert engine.state.missed_notes == 1

    def test_multiplier_boost(self, settings):
        """Test that Multiplier Boost grants 4x until the next unabsorbed miss."""
        chart = make_chart([(1000, 0, BonusKind.MULTIPLIER_BOOST), (2000, 1, None), (3000, 2, None), (9000, 3, None)])
        engine = started(chart, settings)

        press(engine, 1000, 0)
        assert engine.state.multiplier == 4
        press(engine, 2000, 1)
        assert engine.state.score == 50 + 200

        engine.update(3200)
        assert engine.state.multiplier == 1
        assert not engine.state.multiplier_boost_active

    def test_bonus_hit_counts(self, settings):
        """Test that a collected bonus activates its timed effect."""
        engine = started(make_chart([(1000, 0, BonusKind.NOTE_MAGNET), (9000, 1, None)]), settings)

        press(engine, 1000, 0)

        state = engine.state
        assert state.bonuses_collected == 1
        assert state.active_bonus is BonusKind.NOTE_MAGNET
        assert state.bonus_remaining_ms == pytest.approx(3000.0)
        assert engine.timing_windows().good_ms == pytest.approx(165.0)

        engine.update(4000)
        assert engine.state.active_bonus is None
        assert engine.timing_windows().good_ms == pytest.approx(110.0)

    def test_timed_bonus_replaces_active_one(self, debug_settings):
        """Test that a new timed bonus replaces the current one."""
        engine = started(make_chart([(9000, 0, None)]), debug_settings)

        engine.force_activate_bonus(BonusKind.DOUBLE_POINTS)
        engine.update(1000)
        engine.force_activate_bonus(BonusKind.NOTE_MAGNET)

        assert engine.state.active_bonus is BonusKind.NOTE_MAGNET
        assert engine.state.bonus_remaining_ms == pytest.approx(3000.0)

    def test_lightning_lane_auto_hits(self, debug_settings):
        """Test that Lightning Lane hits notes in its lane automatically."""
        chart = make_chart([(1000 + 10 * lane, lane, None) for lane in range(5)] + [(7000, 0, None)])
        engine = started(chart, debug_settings)
        engine.force_activate_bonus(BonusKind.LIGHTNING_LANE)
        lane = engine.state.lightning_lane
        assert lane is not None

        judgments = engine.update(1200)

        auto_hits = [j for j in judgments if j.auto]
        assert len(auto_hits) == 1
        assert auto_hits[0].lane == lane
        assert auto_hits[0].category is JudgmentCategory.PERFECT
        assert engine.state.missed_notes == 4

    def test_force_activate_requires_debug(self, settings):
        """Test that bonus shortcuts are disabled by default."""
        engine = started(make_chart([(1000, 0, None)]), settings)

        with pytest.raises(GameplayError):
            engine.force_activate_bonus(BonusKind.SHIELD)


class TestSession:
    """Test cases for the session lifecycle."""

    def test_pause_blocks_input(self, settings):
        """Test that a paused session ignores input and ticks."""
        engine = started(make_chart([(1000, 0, None)]), settings)
        engine.pause()

        assert press(engine, 1000, 0) is None
        assert engine.update(5000) == []
        assert engine.state.status is SessionStatus.PAUSED

        engine.resume()
        assert press(engine, 1000, 0).category is JudgmentCategory.PERFECT

    def test_invalid_transitions(self, settings):
        """Test lifecycle errors."""
        engine = GameplayEngine(make_chart([(1000, 0, None)]), settings)

        with pytest.raises(GameplayError):
            engine.pause()
        engine.start()
        with pytest.raises(GameplayError):
            engine.start()
        with pytest.raises(GameplayError):
            engine.resume()

    def test_finishes_after_last_note(self, settings):
        """Test automatic finish once every note is resolved."""
        engine = started(make_chart([(1000, 0, None), (2000, 1, None)]), settings)
        press(engine, 1000, 0)
        assert engine.report is None

        engine.update(3000)

        assert engine.state.status is SessionStatus.FINISHED
        assert engine.report.notes_hit == 1
        assert engine.report.accuracy_pct == pytest.approx(50.0)
        assert engine.report.grade == "F"

    def test_stop_misses_remaining_notes(self, settings):
        """Test that stopping resolves everything still pending."""
        engine = started(make_chart([(1000, 0, None), (2000, 1, None), (3000, 2, None)]), settings)
        press(engine, 1000, 0)

        report = engine.stop()

        assert report.notes_total == 3
        assert report.notes_hit == 1
        assert report.missed_notes == 2
        assert engine.stop() is report

    def test_empty_chart_report(self, settings):
        """Test that a chart without notes reports N/A accuracy."""
        engine = started(make_chart([]), settings)

        report = engine.stop()

        assert report.notes_total == 0
        assert report.accuracy_pct is None
        assert report.accuracy_display == "N/A"
        assert report.grade == "N/A"

    def test_listeners_and_upcoming_notes(self, settings):
        """Test state notifications and the look-ahead query."""
        engine = GameplayEngine(make_chart([(1000, 0, None), (2500, 1, None)]), settings)
        seen = []
        engine.add_listener(seen.append)

        engine.start()
        press(engine, 1000, 0)

        assert [s.status for s in seen] == [SessionStatus.PLAYING, SessionStatus.PLAYING]
        assert seen[-1].score == 50
        assert [n.id for n in engine.upcoming_notes(500)] == [1]
        assert [n.id for n in engine.upcoming_notes(600)] == [1]
        assert engine.upcoming_notes(400) == []

    def test_state_is_a_copy(self, settings):
        """Test that callers cannot mutate engine state."""
        engine = started(make_chart([(1000, 0, None)]), settings)

        engine.state.score = 999

        assert engine.state.score == 0

    def test_report_readable_from_listener(self, settings):
        """Test that listeners can read the final report when the session ends."""
        engine = started(make_chart([(1000, 0, None)]), settings)
        reports = []
        engine.add_listener(lambda snapshot: reports.append(engine.report))

        assert engine.report is None
        final = engine.stop()

        assert reports == [final]
        assert engine.report is final


class TestScoreReport:
    """Test cases for ScoreReport."""

    @pytest.mark.parametrize("hit,grade", [(100, "S"), (95, "S"), (92, "A"), (85, "B"), (75, "C"), (65, "D"), (10, "F")])
    def test_grades(self, hit, grade):
        """Test grade thresholds."""
        report = ScoreReport(total_score=0, max_combo=0, notes_hit=hit, notes_total=100,
                             accuracy_pct=float(hit), bonuses_collected=0)
        assert report.grade == grade
        assert report.accuracy_display == f"{hit:.1f}%"
