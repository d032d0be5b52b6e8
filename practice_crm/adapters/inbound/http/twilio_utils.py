"""Twilio utility functions for webhook handling."""

import base64
import hashlib
import hmac
from xml.sax.saxutils import escape


def compute_twilio_signature(auth_token: str, url: str, form_data: dict[str, str]) -> str:
    """
    Compute the X-Twilio-Signature value for a request.

    Twilio signs the full URL followed by every POST parameter name and value,
    sorted by name, with HMAC-SHA1 keyed by the auth token.

    Args:
        auth_token: Twilio auth token
        url: Full URL of the webhook endpoint
        form_data: Form parameters of the request

    Returns:
        Base64 encoded signature
    """
    payload = url + "".join(f"{key}{form_data[key]}" for key in sorted(form_data))
    digest = hmac.new(auth_token.encode("utf-8"), payload.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("utf-8")


def is_valid_twilio_signature(
    auth_token: str, url: str, form_data: dict[str, str], signature: str
) -> bool:
    """
    Check a webhook signature (constant-time comparison).

    Args:
        auth_token: Twilio auth token
        url: Full URL of the webhook endpoint
        form_data: Form parameters of the request
        signature: Value of the X-Twilio-Signature header

    Returns:
        True if the signature matches
    """
    if not signature:
        return False
    expected = compute_twilio_signature(auth_token, url, form_data)
    return hmac.compare_digest(expected, signature)


def generate_twiml_response(message: str) -> str:
    """
    Generate a TwiML XML response carrying one SMS reply.

    Args:
        message: Message text to send; empty produces an empty response

    Returns:
        TwiML XML string
    """
    if not message:
        return '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'
    escaped = escape(message, {'"': "&quot;", "'": "&apos;"})
    return f'<?xml version="1.0" encoding="UTF-8"?><Response><Message>{escaped}</Message></Response>'  # noqa: E501
