"""SMS message bodies."""

from textquiz.config import MessagingConfig, get_config
from textquiz.models.question import Question
from textquiz.models.user import User
from textquiz.services.reconciler import ReconcileOutcome
from textquiz.services.scoring import points_breakdown


def _messaging(config: MessagingConfig | None) -> MessagingConfig:
    return config or get_config().messaging


def truncate_sms(body: str, max_length: int = 1600) -> str:
    """Clip a body to the carrier limit, marking the cut with an ellipsis."""
    if len(body) <= max_length:
        return body
    return body[: max_length - 3] + "..."


def format_question(
    question: Question,
    question_number: int,
    config: MessagingConfig | None = None,
) -> str:
    """
    Daily question SMS.

    Falls back to a compact layout when the full body would span too many
    SMS segments.
    """
    cfg = _messaging(config)
    options = "\n".join(f"{letter}) {text}" for letter, text in question.options.items())
    body = (
        f"🧠 Question #{question_number}: {question.question_text}\n\n"
        f"{options}\n\n"
        "Reply with A, B, C, or D"
    )
    if len(body) <= cfg.compact_threshold:
        return body

    compact = f"Q#{question_number}: {question.question_text}\n{options}\nReply A-D"
    return truncate_sms(compact, cfg.max_sms_length)


def format_answer_feedback(outcome: ReconcileOutcome) -> str:
    """Reply to a scored answer."""
    if outcome.is_correct:
        result = "🎉 Correct!"
    else:
        result = f"❌ Incorrect. The answer was {outcome.correct_answer}."

    breakdown = points_breakdown(
        outcome.is_correct,
        outcome.previous_winning_streak,
        outcome.previous_play_streak,
    )
    streak_line = f"Streak: {outcome.play_streak} days"
    if outcome.winning_streak > 0:
        streak_line += f" 🔥 ({outcome.winning_streak} correct in a row)"

    parts = [result]
    if outcome.explanation:
        parts.append(outcome.explanation)
    parts.append(f"{streak_line}\n{breakdown.message}\nTotal: {outcome.total_score} points")
    parts.append('Text "SCORE" for stats or "HELP" for commands')
    return "\n\n".join(parts)


def format_stats(user: User, config: MessagingConfig | None = None) -> str:
    cfg = _messaging(config)
    return (
        f"📊 Your {cfg.brand} Stats\n\n"
        f"Play Streak: {user.play_streak} days 🎯\n"
        f"Winning Streak: {user.winning_streak} 🔥\n"
        f"Total Score: {user.total_score} points\n"
        f"Questions Answered: {user.questions_answered}\n"
        f"Accuracy Rate: {user.accuracy_rate}%\n\n"
        "Keep up the great work!"
    )


def format_help(config: MessagingConfig | None = None) -> str:
    cfg = _messaging(config)
    return (
        f"📱 {cfg.brand} Commands\n\n"
        "A, B, C, D - Answer today's question\n"
        "SCORE - View your stats\n"
        "HELP - Show this help message\n"
        "STOP - Unsubscribe from service\n"
        "RESTART - Resume after pause"
    )


def format_welcome(delivery_time_local: str, config: MessagingConfig | None = None) -> str:
    cfg = _messaging(config)
    return (
        f"🎉 Welcome to {cfg.brand}!\n\n"
        "Your first trivia question is being sent right now! 🧠\n"
        f"Starting tomorrow, you'll receive daily questions at {delivery_time_local}.\n\n"
        'Text "HELP" anytime for commands.\n'
        'Text "STOP" to unsubscribe.'
    )


def format_nothing_pending() -> str:
    return (
        "No question is currently pending. Your next question arrives at your "
        'usual time. Text "SCORE" for stats.'
    )


def format_unknown_command() -> str:
    return 'Sorry, I didn\'t understand that. Reply A, B, C, or D to answer, or text "HELP" for commands.'


def format_unknown_sender(config: MessagingConfig | None = None) -> str:
    cfg = _messaging(config)
    base_url = get_config().settings.base_url
    return f"This number isn't signed up for {cfg.brand} yet. Sign up at {base_url}"


def format_stopped(config: MessagingConfig | None = None) -> str:
    cfg = _messaging(config)
    return (
        f"You've been unsubscribed from {cfg.brand}. No more questions will be sent. "
        'Text "RESTART" to resume.'
    )


def format_restarted(config: MessagingConfig | None = None) -> str:
    cfg = _messaging(config)
    return f"Welcome back to {cfg.brand}! Daily questions will resume at your usual time."
