import base64
import hashlib
import hmac
from collections.abc import Mapping


def compute_twilio_signature(auth_token: str, url: str, params: Mapping[str, str]) -> str:
    """
    Compute Twilio's X-Twilio-Signature for a form-encoded webhook.

    HMAC-SHA1 over the full request URL followed by each POST parameter
    name and value, sorted by name, base64 encoded.
    """
    payload = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(auth_token.encode(), payload.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


def verify_twilio_signature(
    auth_token: str, url: str, params: Mapping[str, str], signature: str | None
) -> bool:
    """Verify a webhook signature in constant time."""
    if not signature or not auth_token:
        return False
    expected = compute_twilio_signature(auth_token, url, params)
    return hmac.compare_digest(expected, signature)


def verify_admin_key(expected: str, provided: str | None) -> bool:
    """Check an admin API key. An unset key disables admin access."""
    if not expected or not provided:
        return False
    return hmac.compare_digest(expected.encode(), provided.encode())
