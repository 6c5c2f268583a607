"""Signup and subscriber stats."""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from textquiz.config import AppConfig, get_config
from textquiz.core.datetime_utils import utc_now
from textquiz.core.errors import UserAlreadyExists
from textquiz.core.logging import get_logger
from textquiz.core.phone import mask_phone_number
from textquiz.models.answer import AwaitingAnswer
from textquiz.models.user import User
from textquiz.schemas.users import SignupRequest
from textquiz.services.messages import format_question, format_welcome
from textquiz.services.question_selector import QuestionSelector
from textquiz.services.question_store import QuestionStore
from textquiz.services.reconciler import create_awaiting_answer
from textquiz.services.transport import Transport

logger = get_logger(__name__)


@dataclass
class SignupResult:
    user: User
    welcome_sent: bool
    welcome_question_sent: bool


async def get_user_by_phone(db: AsyncSession, phone_number: str) -> User | None:
    result = await db.execute(select(User).where(User.phone_number == phone_number))
    return result.scalar_one_or_none()


async def send_welcome_question(
    db: AsyncSession,
    user: User,
    transport: Transport,
    selector: QuestionSelector,
    config: AppConfig,
) -> bool:
    """
    Send a first question right away and record it as outstanding.

    The row has no delivery entry; it goes through the same
    one-outstanding-per-user guard as scheduled deliveries.
    """
    question = await selector.select(user)
    if question is None:
        return False

    body = format_question(question, 1, config.messaging)
    try:
        accepted = await transport.send(user.phone_number, body)
    except Exception as e:
        logger.bind(user_id=user.id, error=str(e)).error("welcome_question_send_failed")
        return False
    if not accepted:
        logger.bind(user_id=user.id).warning("welcome_question_rejected")
        return False

    now = utc_now()
    recorded = await create_awaiting_answer(
        db, user_id=user.id, question_id=question.id, delivered_at=now
    )
    user.last_delivered_at = now
    await selector.store.increment_usage(question.id)
    return recorded


async def signup_user(
    db: AsyncSession,
    body: SignupRequest,
    transport: Transport,
    config: AppConfig | None = None,
    selector: QuestionSelector | None = None,
) -> SignupResult:
    """
    Register a subscriber, send the welcome SMS and a first question.

    Raises:
        UserAlreadyExists: If the phone number is already registered
    """
    config = config or get_config()

    if await get_user_by_phone(db, body.phone_number) is not None:
        raise UserAlreadyExists(body.phone_number)

    user = User(
        phone_number=body.phone_number,
        timezone=body.timezone or config.delivery.default_timezone,
        delivery_time_local=body.delivery_time_local or config.delivery.default_delivery_time_local,
        categories=body.categories or list(config.questions.default_categories),
        is_active=True,
        category_cursor=0,
        questions_answered=0,
        correct_answers=0,
        total_score=0,
        play_streak=0,
        winning_streak=0,
    )
    db.add(user)
    await db.flush()

    logger.bind(
        user_id=user.id,
        to=mask_phone_number(user.phone_number),
        timezone=user.timezone,
        delivery_time_local=user.delivery_time_local,
    ).info("user_signed_up")

    try:
        welcome_sent = await transport.send(
            user.phone_number,
            format_welcome(user.delivery_time_local, config.messaging),
        )
    except Exception as e:
        logger.bind(user_id=user.id, error=str(e)).error("welcome_sms_failed")
        welcome_sent = False

    if selector is None:
        selector = QuestionSelector(QuestionStore(db, config=config.questions), config.questions)
    question_sent = await send_welcome_question(db, user, transport, selector, config)

    await db.commit()
    return SignupResult(user=user, welcome_sent=welcome_sent, welcome_question_sent=question_sent)


async def get_recent_answers(db: AsyncSession, user_id: int, limit: int = 10) -> list[AwaitingAnswer]:
    result = await db.execute(
        select(AwaitingAnswer)
        .where(AwaitingAnswer.user_id == user_id)
        .order_by(AwaitingAnswer.delivered_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
