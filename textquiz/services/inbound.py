"""Inbound SMS handling."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from textquiz.config import AppConfig, get_config
from textquiz.core.errors import InvalidPhoneNumber
from textquiz.core.logging import get_logger
from textquiz.core.phone import mask_phone_number, normalize_phone_number
from textquiz.services import messages
from textquiz.services.commands import Answer, Help, Restart, Score, Stop, parse_command
from textquiz.services.reconciler import ReconcileOutcome, ReconcileStatus, reconcile_answer
from textquiz.services.transport import Transport
from textquiz.services.users import get_user_by_phone

logger = get_logger(__name__)


@dataclass
class InboundResult:
    """What was done with an inbound message."""

    command: str
    reply: str | None = None
    reply_sent: bool = False
    outcome: ReconcileOutcome | None = None


async def _reply(transport: Transport, phone_number: str, body: str) -> bool:
    try:
        return await transport.send(phone_number, body)
    except Exception as e:
        logger.bind(to=mask_phone_number(phone_number), error=str(e)).error("inbound_reply_failed")
        return False


async def handle_inbound_sms(
    db: AsyncSession,
    transport: Transport,
    from_number: str,
    body: str | None,
    *,
    message_sid: str | None = None,
    config: AppConfig | None = None,
) -> InboundResult:
    """
    Act on one inbound SMS and send the reply, if any.

    Duplicate deliveries of the same answer are scored once; the duplicate
    gets no reply.
    """
    config = config or get_config()
    try:
        phone_number = normalize_phone_number(from_number)
    except InvalidPhoneNumber:
        phone_number = from_number.strip()

    command = parse_command(body)
    command_name = type(command).__name__.lower()
    logger.bind(
        from_number=mask_phone_number(phone_number),
        message_sid=message_sid,
        command=command_name,
    ).info("inbound_sms_received")

    user = await get_user_by_phone(db, phone_number)
    if user is None:
        reply = messages.format_unknown_sender(config.messaging)
        sent = await _reply(transport, phone_number, reply)
        return InboundResult(command=command_name, reply=reply, reply_sent=sent)

    result = InboundResult(command=command_name)

    if isinstance(command, Answer):
        outcome = await reconcile_answer(db, user, command.letter)
        result.outcome = outcome
        if outcome.status == ReconcileStatus.ANSWERED:
            result.reply = messages.format_answer_feedback(outcome)
        elif outcome.status == ReconcileStatus.NOTHING_PENDING:
            result.reply = messages.format_nothing_pending()
    elif isinstance(command, Stop):
        user.is_active = False
        await db.commit()
        logger.bind(user_id=user.id).info("user_unsubscribed")
        result.reply = messages.format_stopped(config.messaging)
    elif isinstance(command, Restart):
        user.is_active = True
        await db.commit()
        logger.bind(user_id=user.id).info("user_resubscribed")
        result.reply = messages.format_restarted(config.messaging)
    elif isinstance(command, Help):
        result.reply = messages.format_help(config.messaging)
    elif isinstance(command, Score):
        result.reply = messages.format_stats(user, config.messaging)
    else:
        result.reply = messages.format_unknown_command()

    if result.reply is not None:
        result.reply_sent = await _reply(transport, user.phone_number, result.reply)
    return result
