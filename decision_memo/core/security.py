"""
Request authentication and identifier utilities.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timezone
from typing import Optional

from decision_memo.core.constants import SLACK_SIGNATURE_MAX_AGE, SLACK_SIGNATURE_VERSION
from decision_memo.core.exceptions import AuthenticationError


def generate_session_id() -> str:
    """
    Generate a unique session ID.

    Returns:
        A random 16-byte hex string prefixed with 'sess_'
    """
    return f"sess_{secrets.token_hex(16)}"


def create_slack_signature(signing_secret: str, body: str, timestamp: int) -> str:
    """
    Compute the signature Slack sends in ``X-Slack-Signature``.

    Args:
        signing_secret: App signing secret
        body: Raw request body
        timestamp: Value of ``X-Slack-Request-Timestamp``

    Returns:
        Signature in the form ``v0=<hex digest>``
    """
    basestring = f"{SLACK_SIGNATURE_VERSION}:{timestamp}:{body}"
    digest = hmac.new(
        signing_secret.encode(),
        basestring.encode(),
        hashlib.sha256,
    ).hexdigest()
    return f"{SLACK_SIGNATURE_VERSION}={digest}"


def verify_slack_signature(
    signing_secret: str,
    body: str,
    signature: Optional[str],
    timestamp: Optional[str],
    max_age_seconds: int = SLACK_SIGNATURE_MAX_AGE,
    now: Optional[int] = None,
) -> bool:
    """
    Verify a Slack request signature.

    Args:
        signing_secret: App signing secret
        body: Raw request body
        signature: ``X-Slack-Signature`` header
        timestamp: ``X-Slack-Request-Timestamp`` header
        max_age_seconds: Maximum age of the request (default 5 minutes)
        now: Current unix time, for tests

    Returns:
        True if the signature is valid and fresh

    Raises:
        AuthenticationError: If headers are missing, stale or do not match
    """
    if not signing_secret:
        raise AuthenticationError("Signing secret is not configured")
    if not signature or not timestamp:
        raise AuthenticationError("Missing Slack signature headers")

    try:
        ts = int(timestamp)
    except ValueError as e:
        raise AuthenticationError("Malformed request timestamp") from e

    current_time = now if now is not None else int(datetime.now(timezone.utc).timestamp())
    if abs(current_time - ts) > max_age_seconds:
        raise AuthenticationError("Request timestamp expired")

    expected = create_slack_signature(signing_secret, body, ts)
    if not hmac.compare_digest(signature, expected):
        raise AuthenticationError("Invalid signature")

    return True
