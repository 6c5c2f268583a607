"""Tests for signup and user stats endpoints."""

from datetime import datetime

import pytest

pytestmark = pytest.mark.asyncio


class TestSignup:
    """Tests for POST /api/signup."""

    async def test_signup(self, client, fake_transport, question_factory):
        await question_factory(category="science")

        response = await client.post(
            "/api/signup",
            json={
                "phone_number": "(415) 555-2671",
                "timezone": "America/Chicago",
                "delivery_time_local": "7:30",
                "categories": ["Science"],
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data == {
            "ok": True,
            "phone_number": "+14155552671",
            "timezone": "America/Chicago",
            "delivery_time_local": "07:30",
            "categories": ["science"],
            "welcome_question_sent": True,
        }
        assert len(fake_transport.bodies_to("+14155552671")) == 2

    async def test_duplicate_signup_conflicts(self, client):
        body = {"phone_number": "4155552671"}

        assert (await client.post("/api/signup", json=body)).status_code == 201
        response = await client.post("/api/signup", json={"phone_number": "+1 415 555 2671"})

        assert response.status_code == 409

    @pytest.mark.parametrize(
        "body",
        [
            {"phone_number": "12345"},
            {"phone_number": "(555) 123-4567"},
            {"phone_number": "4155552671", "timezone": "Mars/Base_One"},
            {"phone_number": "4155552671", "delivery_time_local": "25:00"},
            {},
        ],
    )
    async def test_invalid_signup(self, client, body):
        response = await client.post("/api/signup", json=body)
        assert response.status_code == 422

    async def test_signup_rate_limited(self, client):
        statuses = []
        for i in range(6):
            response = await client.post("/api/signup", json={"phone_number": f"415555{i:04d}"})
            statuses.append(response.status_code)

        assert statuses[:5] == [201] * 5
        assert statuses[5] == 429


class TestUserStats:
    """Tests for GET /api/users/{phone}/stats."""

    async def test_stats(self, client, user_factory, question_factory, answer_factory):
        user = await user_factory(
            play_streak=2, winning_streak=1, total_score=210, questions_answered=2, correct_answers=1
        )
        await answer_factory(
            user, await question_factory(), delivered_at=datetime(2026, 7, 14, 13), user_answer="A"
        )
        await answer_factory(user, await question_factory(), delivered_at=datetime(2026, 7, 15, 13))

        response = await client.get(f"/api/users/{user.phone_number}/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["total_score"] == 210
        assert data["accuracy_rate"] == 50
        assert data["play_streak"] == 2
        assert [a["user_answer"] for a in data["recent_answers"]] == [None, "A"]

    async def test_unknown_user(self, client):
        response = await client.get("/api/users/4155550123/stats")
        assert response.status_code == 404

    async def test_invalid_phone(self, client):
        response = await client.get("/api/users/not-a-number/stats")
        assert response.status_code == 400
