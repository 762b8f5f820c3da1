import re
import html
import hmac
import hashlib
import logging
import time
from typing import Optional, Union
from teamspark.core.config import settings

logger = logging.getLogger(__name__)

def sanitize_input(text: str, max_length: Optional[int] = None) -> str:
    """Basic input sanitization to prevent XSS."""
    if not isinstance(text, str):
        return text
    sanitized = text.strip()
    # Remove script blocks before escaping so the tags are still recognizable
    sanitized = re.sub(r'<script.*?>.*?</script>', '', sanitized, flags=re.DOTALL | re.IGNORECASE)
    sanitized = html.escape(sanitized, quote=False)
    if max_length is not None:
        sanitized = sanitized[:max_length]
    return sanitized

def hash_user_agent(user_agent: Optional[str]) -> str:
    """Short stable digest of a User-Agent header, used in rate-limit keys."""
    return hashlib.sha256((user_agent or "unknown").encode()).hexdigest()[:16]

def compute_slack_signature(signing_secret: str, timestamp: str, body: Union[str, bytes]) -> str:
    if isinstance(body, str):
        body = body.encode("utf-8")
    base = b"v0:" + timestamp.encode("utf-8") + b":" + body
    digest = hmac.new(signing_secret.encode(), base, hashlib.sha256).hexdigest()
    return f"v0={digest}"

def verify_slack_signature(
    body: Union[str, bytes],
    timestamp: Optional[str],
    signature: Optional[str],
    signing_secret: Optional[str] = None,
    now: Optional[float] = None,
) -> bool:
    """
    Verify a Slack request signature (v0 scheme).

    The timestamp must be within the configured window of ``now`` and the
    HMAC-SHA256 of ``v0:{timestamp}:{body}`` must match ``signature``.
    """
    secret = signing_secret or settings.slack.signing_secret
    if not secret:
        logger.error("SLACK_SIGNING_SECRET is not set")
        return False

    if not timestamp or not signature:
        return False

    try:
        ts = int(timestamp)
    except ValueError:
        return False

    current = int(now if now is not None else time.time())
    if abs(current - ts) > settings.slack.max_request_age_seconds:
        logger.warning(f"Rejected stale Slack request (timestamp={timestamp})")
        return False

    expected = compute_slack_signature(secret, timestamp, body)
    # Header values are latin-1 decoded and may hold non-ASCII characters
    return hmac.compare_digest(expected.encode(), signature.encode("utf-8", "surrogateescape"))
