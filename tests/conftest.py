"""
Pytest configuration and fixtures for textquiz tests.

Provides:
- Async test database with SQLite
- Test client for API testing
- Factory fixtures for users, questions, deliveries and answers
- An in-memory SMS transport
"""

import asyncio
import uuid
from collections.abc import AsyncGenerator
from datetime import date, datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from textquiz.config import AppConfig, Settings, get_config, get_settings
from textquiz.core.database import get_db
from textquiz.core.datetime_utils import utc_now
from textquiz.dependencies import get_sms_transport
from textquiz.main import app
from textquiz.models import Base
from textquiz.models.answer import AwaitingAnswer
from textquiz.models.delivery import DeliveryQueueEntry, DeliveryStatus
from textquiz.models.question import Question
from textquiz.models.user import User
from textquiz.services.dispatcher import CircuitBreaker, DispatchState
from textquiz.services.question_generator import NullQuestionGenerator
from textquiz.services.question_selector import QuestionSelector
from textquiz.services.question_store import QuestionStore
from textquiz.services.transport import Transport

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_KEY = "test-admin-key"


# Override settings for testing
class TestSettings(Settings):
    database_url: str = TEST_DATABASE_URL
    debug: bool = True
    openai_api_key: str = ""
    twilio_account_sid: str = ""
    twilio_auth_token: str = "test-auth-token"
    twilio_phone_number: str = ""
    twilio_validate_signature: bool = False
    sms_dry_run: bool = True
    admin_api_key: str = ADMIN_KEY
    base_url: str = "http://test"
    scheduler_enabled: bool = False


def make_test_config() -> AppConfig:
    return AppConfig(
        {
            "delivery": {
                "catch_up_window_hours": 24,
                "send_timeout_seconds": 0.5,
                "max_batch_size": 50,
                "abandon_after_hours": 24,
                "interrupted_claim_minutes": 30,
                "default_delivery_time_local": "09:00",
                "default_timezone": "America/New_York",
            },
            "questions": {
                "default_categories": ["general"],
                "generate_when_exhausted": False,
                "difficulty": "medium",
                "candidate_pool_size": 10,
            },
            "circuit_breaker": {"max_consecutive_failures": 5, "cooldown_seconds": 300},
            "messaging": {"brand": "Text4Quiz"},
        }
    )


class FakeTransport(Transport):
    """Records sends instead of talking to a provider."""

    name = "fake"

    def __init__(
        self,
        accept: bool = True,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.accept = accept
        self.delay = delay
        self.error = error
        self.sent: list[tuple[str, str]] = []

    async def send(self, phone_number: str, body: str) -> bool:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.sent.append((phone_number, body))
        return self.accept

    def bodies_to(self, phone_number: str) -> list[str]:
        return [body for to, body in self.sent if to == phone_number]


@pytest_asyncio.fixture
async def db_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def app_config() -> AppConfig:
    """Deterministic config, independent of config.yml."""
    return make_test_config()


@pytest.fixture
def make_transport():
    """Factory for fake transports."""

    def _make(accept: bool = True, delay: float = 0.0, error: Exception | None = None):
        return FakeTransport(accept=accept, delay=delay, error=error)

    return _make


@pytest.fixture
def fake_transport(make_transport) -> FakeTransport:
    return make_transport()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    app_config: AppConfig,
    fake_transport: FakeTransport,
) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client with database, config and transport overrides."""
    from textquiz.core.rate_limit import reset_rate_limits

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: TestSettings()
    app.dependency_overrides[get_config] = lambda: app_config
    app.dependency_overrides[get_sms_transport] = lambda: fake_transport

    # Reset rate limiter storage before each test
    reset_rate_limits()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def override_settings(client):
    """Swap the settings dependency for a single test."""

    def _override(**values) -> TestSettings:
        settings = TestSettings(**values)
        app.dependency_overrides[get_settings] = lambda: settings
        return settings

    return _override


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Key": ADMIN_KEY}


# ============================================================================
# Factory Fixtures
# ============================================================================


def random_phone_number() -> str:
    """A valid, unique North American number."""
    return f"+1202{uuid.uuid4().int % 10_000_000:07d}"


@pytest_asyncio.fixture
async def user_factory(db_session: AsyncSession):
    """Factory for creating test users."""

    async def _create_user(
        phone_number: str | None = None,
        timezone: str = "America/New_York",
        delivery_time: str = "09:00",
        categories: list[str] | None = None,
        is_active: bool = True,
        play_streak: int = 0,
        winning_streak: int = 0,
        total_score: int = 0,
        questions_answered: int = 0,
        correct_answers: int = 0,
    ) -> User:
        user = User(
            phone_number=phone_number or random_phone_number(),
            timezone=timezone,
            delivery_time_local=delivery_time,
            categories=categories if categories is not None else ["general"],
            is_active=is_active,
            category_cursor=0,
            play_streak=play_streak,
            winning_streak=winning_streak,
            total_score=total_score,
            questions_answered=questions_answered,
            correct_answers=correct_answers,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _create_user


@pytest_asyncio.fixture
async def question_factory(db_session: AsyncSession):
    """Factory for creating test questions."""

    async def _create_question(
        category: str = "general",
        correct_answer: str = "B",
        question_text: str | None = None,
        usage_count: int = 0,
    ) -> Question:
        question = Question(
            question_text=question_text or f"Test question {uuid.uuid4().hex[:6]}?",
            option_a="Mercury",
            option_b="Venus",
            option_c="Earth",
            option_d="Mars",
            correct_answer=correct_answer,
            explanation="Venus is the hottest planet because of its thick atmosphere.",
            category=category,
            difficulty="medium",
            usage_count=usage_count,
        )
        db_session.add(question)
        await db_session.flush()
        return question

    return _create_question


@pytest_asyncio.fixture
async def delivery_factory(db_session: AsyncSession):
    """Factory for creating delivery queue entries."""

    async def _create_delivery(
        user: User,
        scheduled_for: datetime,
        delivery_date: date | None = None,
        status: DeliveryStatus = DeliveryStatus.PENDING,
        question_id: int | None = None,
        claimed_at: datetime | None = None,
    ) -> DeliveryQueueEntry:
        entry = DeliveryQueueEntry(
            user_id=user.id,
            delivery_date=delivery_date or scheduled_for.date(),
            scheduled_for=scheduled_for,
            status=status,
            attempts=0,
            question_id=question_id,
            claimed_at=claimed_at,
        )
        db_session.add(entry)
        await db_session.flush()
        return entry

    return _create_delivery


@pytest_asyncio.fixture
async def answer_factory(db_session: AsyncSession):
    """Factory for creating awaiting-answer rows."""

    async def _create_answer(
        user: User,
        question: Question,
        delivered_at: datetime | None = None,
        user_answer: str | None = None,
        delivery_id: uuid.UUID | None = None,
    ) -> AwaitingAnswer:
        answer = AwaitingAnswer(
            user_id=user.id,
            question_id=question.id,
            delivery_id=delivery_id,
            delivered_at=delivered_at or utc_now(),
            user_answer=user_answer,
            answered_at=utc_now() if user_answer else None,
        )
        db_session.add(answer)
        await db_session.flush()
        return answer

    return _create_answer


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def dispatch_state() -> DispatchState:
    """Fresh dispatcher state with a breaker that opens after three failures."""
    return DispatchState(CircuitBreaker(max_consecutive_failures=3, cooldown_seconds=300))


@pytest.fixture
def question_store(db_session: AsyncSession, app_config: AppConfig) -> QuestionStore:
    return QuestionStore(db_session, generator=NullQuestionGenerator(), config=app_config.questions)


@pytest.fixture
def selector(question_store: QuestionStore, app_config: AppConfig) -> QuestionSelector:
    return QuestionSelector(question_store, app_config.questions)
