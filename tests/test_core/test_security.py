"""Tests for webhook signatures and admin keys."""

import base64
import hashlib
import hmac

from textquiz.core.security import (
    compute_twilio_signature,
    verify_admin_key,
    verify_twilio_signature,
)

URL = "https://quiz.example.com/api/webhook/sms"
PARAMS = {"From": "+14155552671", "Body": "B", "MessageSid": "SM123"}


class TestTwilioSignature:
    """Tests for compute/verify_twilio_signature."""

    def test_signature_sorts_params(self):
        payload = URL + "BodyB" + "From+14155552671" + "MessageSidSM123"
        expected = base64.b64encode(
            hmac.new(b"secret", payload.encode(), hashlib.sha1).digest()
        ).decode()
        assert compute_twilio_signature("secret", URL, PARAMS) == expected

    def test_verify_accepts_valid_signature(self):
        signature = compute_twilio_signature("secret", URL, PARAMS)
        assert verify_twilio_signature("secret", URL, PARAMS, signature) is True

    def test_verify_rejects_tampered_body(self):
        signature = compute_twilio_signature("secret", URL, PARAMS)
        tampered = {**PARAMS, "Body": "C"}
        assert verify_twilio_signature("secret", URL, tampered, signature) is False

    def test_verify_rejects_wrong_url(self):
        signature = compute_twilio_signature("secret", URL, PARAMS)
        assert verify_twilio_signature("secret", URL + "?x=1", PARAMS, signature) is False

    def test_verify_rejects_missing_signature_or_token(self):
        signature = compute_twilio_signature("secret", URL, PARAMS)
        assert verify_twilio_signature("secret", URL, PARAMS, None) is False
        assert verify_twilio_signature("", URL, PARAMS, signature) is False


class TestVerifyAdminKey:
    def test_matching_key(self):
        assert verify_admin_key("k3y", "k3y") is True

    def test_wrong_key(self):
        assert verify_admin_key("k3y", "nope") is False

    def test_unset_key_denies_everything(self):
        assert verify_admin_key("", "") is False
        assert verify_admin_key("", "anything") is False

    def test_missing_header(self):
        assert verify_admin_key("k3y", None) is False
