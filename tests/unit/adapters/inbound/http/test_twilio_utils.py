"""Unit tests for Twilio webhook helpers."""

import base64
import hashlib
import hmac

from practice_crm.adapters.inbound.http.twilio_utils import (
    compute_twilio_signature,
    generate_twiml_response,
    is_valid_twilio_signature,
)

URL = "https://crm.example.com/sms/webhook"
FORM = {"From": "+14045550134", "Body": "1", "MessageSid": "SM123"}


def test_signature_signs_url_and_sorted_params():
    """Test the signed payload is the URL followed by sorted name/value pairs."""
    payload = URL + "Body1From+14045550134MessageSidSM123"
    expected = base64.b64encode(
        hmac.new(b"token", payload.encode(), hashlib.sha1).digest()
    ).decode()

    assert compute_twilio_signature("token", URL, FORM) == expected


def test_valid_signature_accepted():
    """Test a correctly signed request validates."""
    signature = compute_twilio_signature("token", URL, FORM)

    assert is_valid_twilio_signature("token", URL, FORM, signature)


def test_tampered_request_rejected():
    """Test changed parameters or a missing header fail validation."""
    signature = compute_twilio_signature("token", URL, FORM)

    assert not is_valid_twilio_signature("token", URL, {**FORM, "Body": "2"}, signature)
    assert not is_valid_twilio_signature("other", URL, FORM, signature)
    assert not is_valid_twilio_signature("token", URL, FORM, "")


def test_twiml_escapes_message():
    """Test reply text is XML-escaped."""
    twiml = generate_twiml_response('1 = Yes & 2 = "No" <3')

    assert "<Message>1 = Yes &amp; 2 = &quot;No&quot; &lt;3</Message>" in twiml
    assert twiml.startswith('<?xml version="1.0" encoding="UTF-8"?><Response>')


def test_empty_twiml_has_no_message():
    """Test an empty reply produces an empty Response."""
    assert generate_twiml_response("").endswith("<Response></Response>")
