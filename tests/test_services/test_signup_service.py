"""Tests for signup and the welcome question."""

from datetime import datetime

import pytest
from sqlalchemy import select

from textquiz.core.errors import UserAlreadyExists
from textquiz.models.answer import AwaitingAnswer
from textquiz.schemas.users import SignupRequest
from textquiz.services.users import get_recent_answers, get_user_by_phone, signup_user

pytestmark = pytest.mark.asyncio


class TestSignupUser:
    """Tests for signup_user."""

    async def test_creates_user_and_sends_first_question(
        self, db_session, app_config, fake_transport, selector, question_factory
    ):
        question = await question_factory(category="science")
        body = SignupRequest(
            phone_number="(415) 555-2671",
            timezone="America/Chicago",
            delivery_time_local="7:30",
            categories=["Science", " science ", "History"],
        )

        result = await signup_user(db_session, body, fake_transport, app_config, selector)

        user = result.user
        assert user.phone_number == "+14155552671"
        assert user.timezone == "America/Chicago"
        assert user.delivery_time_local == "07:30"
        assert user.categories == ["science", "history"]
        assert user.is_active is True
        assert result.welcome_sent is True
        assert result.welcome_question_sent is True

        welcome, first_question = fake_transport.bodies_to("+14155552671")
        assert "Welcome to Text4Quiz" in welcome
        assert "07:30" in welcome
        assert first_question.startswith("🧠 Question #1:")

        pending = (await db_session.execute(select(AwaitingAnswer))).scalar_one()
        assert pending.user_id == user.id
        assert pending.question_id == question.id
        assert pending.delivery_id is None
        assert pending.is_outstanding

    async def test_defaults_from_config(self, db_session, app_config, fake_transport, selector):
        result = await signup_user(
            db_session, SignupRequest(phone_number="4155552671"), fake_transport, app_config, selector
        )

        assert result.user.timezone == "America/New_York"
        assert result.user.delivery_time_local == "09:00"
        assert result.user.categories == ["general"]
        # Empty question bank: the user is still signed up
        assert result.welcome_question_sent is False
        assert await get_user_by_phone(db_session, "+14155552671") is not None

    async def test_duplicate_phone_number(
        self, db_session, app_config, fake_transport, selector, user_factory
    ):
        await user_factory(phone_number="+14155552671")

        with pytest.raises(UserAlreadyExists):
            await signup_user(
                db_session,
                SignupRequest(phone_number="+1 (415) 555-2671"),
                fake_transport,
                app_config,
                selector,
            )

    async def test_failed_welcome_sms_does_not_block_signup(
        self, db_session, app_config, make_transport, selector
    ):
        transport = make_transport(error=RuntimeError("provider down"))

        result = await signup_user(
            db_session, SignupRequest(phone_number="4155552671"), transport, app_config, selector
        )

        assert result.user.id is not None
        assert result.welcome_sent is False
        assert result.welcome_question_sent is False


async def test_get_recent_answers_newest_first(
    db_session, user_factory, question_factory, answer_factory
):
    user = await user_factory()
    older = await answer_factory(
        user, await question_factory(), delivered_at=datetime(2026, 7, 1, 9), user_answer="A"
    )
    newer = await answer_factory(
        user, await question_factory(), delivered_at=datetime(2026, 7, 2, 9), user_answer="B"
    )

    answers = await get_recent_answers(db_session, user.id)

    assert [a.id for a in answers] == [newer.id, older.id]
