"""Tests for the inbound SMS webhook."""

import pytest

from textquiz.core.security import compute_twilio_signature

pytestmark = pytest.mark.asyncio

WEBHOOK_URL = "/api/webhook/sms"


@pytest.fixture
def signed_settings(override_settings):
    """Enable signature validation for the duration of a test."""
    return override_settings(twilio_validate_signature=True)


class TestInboundWebhook:
    """Tests for POST /api/webhook/sms."""

    async def test_answer_is_scored_and_twiml_is_empty(
        self, client, db_session, fake_transport, user_factory, question_factory, answer_factory
    ):
        user = await user_factory()
        question = await question_factory(correct_answer="B")
        pending = await answer_factory(user, question)

        response = await client.post(
            WEBHOOK_URL,
            data={"From": user.phone_number, "Body": "B", "MessageSid": "SM1"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert "<Response></Response>" in response.text

        await db_session.refresh(pending)
        assert pending.user_answer == "B"
        [body] = fake_transport.bodies_to(user.phone_number)
        assert body.startswith("🎉 Correct!")

    async def test_duplicate_delivery_scored_once(
        self, client, db_session, user_factory, question_factory, answer_factory
    ):
        user = await user_factory()
        question = await question_factory(correct_answer="B")
        await answer_factory(user, question)
        form = {"From": user.phone_number, "Body": "B", "MessageSid": "SM1"}

        first = await client.post(WEBHOOK_URL, data=form)
        second = await client.post(WEBHOOK_URL, data=form)

        assert first.status_code == 200
        assert second.status_code == 200
        await db_session.refresh(user)
        assert user.total_score == 100
        assert user.questions_answered == 1

    async def test_missing_from(self, client):
        response = await client.post(WEBHOOK_URL, data={"Body": "A"})
        assert response.status_code == 400

    async def test_unknown_sender_still_gets_twiml(self, client, fake_transport):
        response = await client.post(WEBHOOK_URL, data={"From": "+14155550199", "Body": "A"})

        assert response.status_code == 200
        assert len(fake_transport.sent) == 1


class TestWebhookSignature:
    """Signature validation when enabled."""

    async def test_rejects_missing_signature(self, client, signed_settings, user_factory):
        user = await user_factory()

        response = await client.post(WEBHOOK_URL, data={"From": user.phone_number, "Body": "HELP"})

        assert response.status_code == 403

    async def test_rejects_bad_signature(self, client, signed_settings, user_factory):
        user = await user_factory()

        response = await client.post(
            WEBHOOK_URL,
            data={"From": user.phone_number, "Body": "HELP"},
            headers={"X-Twilio-Signature": "bm90IGEgc2lnbmF0dXJl"},
        )

        assert response.status_code == 403

    async def test_accepts_valid_signature(
        self, client, signed_settings, fake_transport, user_factory
    ):
        user = await user_factory()
        form = {"From": user.phone_number, "Body": "HELP"}
        signature = compute_twilio_signature(
            signed_settings.twilio_auth_token,
            f"{signed_settings.base_url}{WEBHOOK_URL}",
            form,
        )

        response = await client.post(
            WEBHOOK_URL, data=form, headers={"X-Twilio-Signature": signature}
        )

        assert response.status_code == 200
        assert len(fake_transport.bodies_to(user.phone_number)) == 1


class TestSenderRateLimit:
    async def test_sender_over_limit_is_ignored(self, client, fake_transport):
        """Each number gets 20 messages a minute; extra messages are acknowledged, not handled."""
        form = {"From": "+14155550199", "Body": "HELP"}

        for _ in range(21):
            response = await client.post(WEBHOOK_URL, data=form)
            assert response.status_code == 200

        assert len(fake_transport.bodies_to("+14155550199")) == 20

        other = await client.post(WEBHOOK_URL, data={"From": "+14155550100", "Body": "HELP"})
        assert other.status_code == 200
        assert len(fake_transport.bodies_to("+14155550100")) == 1
