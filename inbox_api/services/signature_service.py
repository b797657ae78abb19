import hashlib
import hmac
from typing import Optional

from inbox_api.logging_config import get_logger

logger = get_logger("signature")

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="


def compute_signature(body: bytes, app_secret: str) -> str:
    """Build the header value Facebook sends for ``body``."""
    digest = hmac.new(app_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(body: bytes, signature_header: Optional[str], app_secret: str) -> bool:
    """Check an ``X-Hub-Signature-256`` header against the raw request body.

    Works on the bytes exactly as received, before any JSON parsing. Returns
    False for a missing header, a header without the ``sha256=`` prefix, an
    unconfigured secret or a digest mismatch; never raises.
    """
    if not signature_header:
        logger.warning("Webhook received without signature header")
        return False

    if not signature_header.startswith(SIGNATURE_PREFIX):
        logger.warning("Invalid signature format, missing sha256= prefix")
        return False

    if not app_secret:
        logger.error("Webhook signature cannot be checked: FB_APP_SECRET not configured")
        return False

    provided = signature_header[len(SIGNATURE_PREFIX) :].strip().lower()
    expected = hmac.new(app_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("HMAC signature mismatch", extra={"context": {"content_length": len(body)}})
        return False

    return True
