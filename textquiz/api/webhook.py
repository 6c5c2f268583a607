"""Twilio inbound SMS webhook."""

from fastapi import APIRouter, HTTPException, Request, Response, status

from textquiz.core.logging import get_logger
from textquiz.core.phone import mask_phone_number
from textquiz.core.rate_limit import sender_within_limit
from textquiz.core.security import verify_twilio_signature
from textquiz.dependencies import AppSettings, Config, DBSession, SMSTransport
from textquiz.services.inbound import handle_inbound_sms

logger = get_logger(__name__)

router = APIRouter()

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


def _public_url(request: Request, base_url: str) -> str:
    """URL Twilio signed: the configured public base plus the request path."""
    query = f"?{request.url.query}" if request.url.query else ""
    return f"{base_url.rstrip('/')}{request.url.path}{query}"


@router.post("/webhook/sms")
async def inbound_sms(
    request: Request,
    db: DBSession,
    settings: AppSettings,
    config: Config,
    transport: SMSTransport,
) -> Response:
    """
    Receive an inbound SMS from Twilio.

    Replies go out through the SMS transport, so the TwiML response is
    always empty. Duplicate deliveries of the same message are harmless.
    Senders over the per-number rate limit are acknowledged and ignored.
    """
    form = await request.form()
    params = {key: str(value) for key, value in form.items()}

    if settings.twilio_validate_signature:
        signature = request.headers.get("X-Twilio-Signature")
        url = _public_url(request, settings.base_url)
        if not verify_twilio_signature(settings.twilio_auth_token, url, params, signature):
            logger.bind(url=url).warning("webhook_signature_invalid")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid signature",
            )

    from_number = params.get("From", "")
    if not from_number:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing From",
        )

    if not sender_within_limit(from_number.strip()):
        logger.bind(from_number=mask_phone_number(from_number.strip())).warning(
            "webhook_sender_rate_limited"
        )
        return Response(content=EMPTY_TWIML, media_type="application/xml")

    await handle_inbound_sms(
        db,
        transport,
        from_number,
        params.get("Body", ""),
        message_sid=params.get("MessageSid"),
        config=config,
    )
    return Response(content=EMPTY_TWIML, media_type="application/xml")
