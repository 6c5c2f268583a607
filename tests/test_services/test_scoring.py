"""Tests for dual-streak scoring."""

import pytest

from textquiz.services.scoring import (
    next_streaks,
    play_streak_message,
    points_breakdown,
    score,
    winning_streak_message,
)


class TestScore:
    """Tests for score."""

    def test_wrong_answer_is_flat(self):
        assert score(False, 0, 0) == 10
        assert score(False, 12, 40) == 10

    def test_first_correct_answer(self):
        assert score(True, 0, 0) == 100

    def test_streak_bonuses_use_pre_answer_streaks(self):
        """100 base + 7 * 20 winning bonus + 7 play bonus."""
        assert score(True, 7, 7) == 247

    def test_play_streak_without_winning_streak(self):
        assert score(True, 0, 5) == 105


class TestNextStreaks:
    def test_correct_extends_both(self):
        assert next_streaks(True, 2, 4) == (3, 5)

    def test_wrong_resets_winning_only(self):
        assert next_streaks(False, 7, 7) == (0, 8)


class TestMilestoneMessages:
    @pytest.mark.parametrize(
        ("streak", "fragment"),
        [(2, ""), (3, "Nice"), (7, "Great"), (14, "Amazing"), (21, "Legendary"), (45, "INCREDIBLE")],
    )
    def test_play_milestones(self, streak, fragment):
        message = play_streak_message(streak)
        if fragment:
            assert fragment in message
        else:
            assert message == ""

    def test_winning_milestone(self):
        assert "on fire" in winning_streak_message(8)
        assert winning_streak_message(0) == ""


class TestPointsBreakdown:
    """Tests for points_breakdown."""

    def test_correct_with_bonus(self):
        breakdown = points_breakdown(True, 7, 7)

        assert breakdown.total_points == 247
        assert breakdown.base_points == 100
        assert breakdown.streak_bonus == 147
        assert "Score: +247 points (100 base + 147 streak bonus!)" in breakdown.message
        # Milestones come from the post-answer streaks (8 and 8)
        assert "Great winning streak" in breakdown.message
        assert "Great play streak" in breakdown.message

    def test_correct_without_bonus(self):
        breakdown = points_breakdown(True, 0, 0)
        assert breakdown.message == "Score: +100 points"
        assert breakdown.streak_bonus == 0

    def test_wrong_answer_mentions_streak_reset(self):
        breakdown = points_breakdown(False, 3, 5)

        assert breakdown.total_points == 10
        assert breakdown.streak_bonus == 0
        assert breakdown.message.startswith("Score: +10 points for trying!")
        assert "your 6-day play streak continues" in breakdown.message

    def test_wrong_answer_without_winning_streak(self):
        breakdown = points_breakdown(False, 0, 0)
        assert "reset" not in breakdown.message
