"""Tests for table definitions."""

from textquiz.models.user import User


class TestUserTable:
    """Tests for the users table."""

    def test_columns(self):
        """Every column is read or written by signup, dispatch or reconciliation."""
        assert set(User.__table__.columns.keys()) == {
            "id",
            "phone_number",
            "categories",
            "delivery_time_local",
            "timezone",
            "is_active",
            "category_cursor",
            "questions_answered",
            "correct_answers",
            "total_score",
            "play_streak",
            "winning_streak",
            "last_delivered_at",
            "last_answered_at",
            "created_at",
        }

    def test_accuracy_rate(self):
        user = User(questions_answered=8, correct_answers=6)
        assert user.accuracy_rate == 75

    def test_accuracy_rate_without_answers(self):
        assert User(questions_answered=0, correct_answers=0).accuracy_rate == 0
