from fastapi import APIRouter, HTTPException, Request, status

from textquiz.core.errors import InvalidPhoneNumber, UserAlreadyExists
from textquiz.core.logging import get_logger
from textquiz.core.phone import normalize_phone_number
from textquiz.core.rate_limit import SIGNUP_RATE_LIMIT, limiter
from textquiz.dependencies import Config, DBSession, SMSTransport
from textquiz.schemas.users import (
    RecentAnswer,
    SignupRequest,
    SignupResponse,
    UserStatsResponse,
)
from textquiz.services.users import get_recent_answers, get_user_by_phone, signup_user

logger = get_logger(__name__)

router = APIRouter()


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(SIGNUP_RATE_LIMIT)
async def signup(
    request: Request,
    body: SignupRequest,
    db: DBSession,
    config: Config,
    transport: SMSTransport,
) -> SignupResponse:
    """
    Subscribe a phone number to the daily question.

    Sends a welcome SMS and a first question immediately.
    """
    try:
        result = await signup_user(db, body, transport, config)
    except UserAlreadyExists:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Phone number is already registered",
        )

    user = result.user
    return SignupResponse(
        phone_number=user.phone_number,
        timezone=user.timezone,
        delivery_time_local=user.delivery_time_local,
        categories=user.categories,
        welcome_question_sent=result.welcome_question_sent,
    )


@router.get("/users/{phone_number}/stats", response_model=UserStatsResponse)
async def get_user_stats(phone_number: str, db: DBSession) -> UserStatsResponse:
    """Totals, streaks and the most recent answers for a subscriber."""
    try:
        normalized = normalize_phone_number(phone_number)
    except InvalidPhoneNumber as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    user = await get_user_by_phone(db, normalized)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    answers = await get_recent_answers(db, user.id)
    return UserStatsResponse(
        phone_number=user.phone_number,
        is_active=user.is_active,
        questions_answered=user.questions_answered,
        correct_answers=user.correct_answers,
        accuracy_rate=user.accuracy_rate,
        total_score=user.total_score,
        play_streak=user.play_streak,
        winning_streak=user.winning_streak,
        last_answered_at=user.last_answered_at,
        recent_answers=[
            RecentAnswer(
                question_id=a.question_id,
                user_answer=a.user_answer,
                is_correct=a.is_correct,
                points_earned=a.points_earned,
                delivered_at=a.delivered_at,
                answered_at=a.answered_at,
            )
            for a in answers
        ],
    )
