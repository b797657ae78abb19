"""Graph API Send client for replying to Messenger users."""

import time
from enum import Enum
from typing import Callable, Optional

import httpx

from inbox_api.logging_config import get_logger
from inbox_api.services.result import Result

logger = get_logger("facebook_client")

DEFAULT_GRAPH_URL = "https://graph.facebook.com"


class SendErrorKind(str, Enum):
    TOKEN_EXPIRED = "token_expired"
    RATE_LIMITED = "rate_limited"
    PERMISSION_DENIED = "permission_denied"
    OTHER = "other"


# Returned after a single attempt.
TERMINAL_KINDS = {
    SendErrorKind.TOKEN_EXPIRED,
    SendErrorKind.RATE_LIMITED,
    SendErrorKind.PERMISSION_DENIED,
}

TOKEN_EXPIRED_CODES = {102, 190}
RATE_LIMITED_CODES = {4, 17, 32, 613}


def classify_error_code(code: Optional[int]) -> SendErrorKind:
    """Map a Graph API error code to the kind of failure the caller reacts to."""
    if code is None:
        return SendErrorKind.OTHER
    if code in TOKEN_EXPIRED_CODES:
        return SendErrorKind.TOKEN_EXPIRED
    if code in RATE_LIMITED_CODES:
        return SendErrorKind.RATE_LIMITED
    if code == 10 or 200 <= code <= 299:
        return SendErrorKind.PERMISSION_DENIED
    return SendErrorKind.OTHER


class FacebookSendError(Exception):
    def __init__(self, message: str, kind: SendErrorKind = SendErrorKind.OTHER, code: Optional[int] = None):
        self.kind = kind
        self.code = code
        super().__init__(message)


class FacebookClient:
    """Sends text replies through ``POST /{version}/me/messages``.

    Terminal errors (expired token, rate limit, missing permission) come back
    after one attempt. Anything else is retried with a linear backoff of
    ``attempt * backoff_seconds`` up to ``max_attempts`` tries.
    """

    def __init__(
        self,
        graph_url: str = DEFAULT_GRAPH_URL,
        api_version: str = "v19.0",
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        sleep_func: Callable[[float], None] = time.sleep,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.graph_url = graph_url.rstrip("/")
        self.api_version = api_version
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep_func
        self._transport = transport

    @property
    def messages_url(self) -> str:
        return f"{self.graph_url}/{self.api_version}/me/messages"

    def send_reply(self, recipient_id: str, access_token: str, text: str) -> Result[str]:
        """Send ``text`` to a page-scoped user id; the value is the platform message id."""
        last_error: Optional[FacebookSendError] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                message_id = self._send_attempt(recipient_id, access_token, text, attempt)
                return Result.success(message_id)
            except FacebookSendError as exc:
                if exc.kind in TERMINAL_KINDS:
                    return Result.failure(str(exc), exc.kind.value)
                last_error = exc

            if attempt < self.max_attempts:
                backoff = attempt * self.backoff_seconds
                logger.warning(
                    "Retrying Facebook API call",
                    extra={
                        "context": {
                            "attempt": attempt,
                            "max_attempts": self.max_attempts,
                            "backoff_ms": int(backoff * 1000),
                            "error": str(last_error),
                        }
                    },
                )
                self._sleep(backoff)

        logger.error(
            "Facebook send failed",
            extra={"context": {"recipient_id": recipient_id, "attempts": self.max_attempts, "error": str(last_error)}},
        )
        return Result.failure(f"failed after {self.max_attempts} attempts", SendErrorKind.OTHER.value)

    def _send_attempt(self, recipient_id: str, access_token: str, text: str, attempt: int) -> str:
        body = {
            "recipient": {"id": recipient_id},
            "message": {"text": text},
            "messaging_type": "RESPONSE",
        }
        # Token goes in the query string only; never log the URL.
        logger.info(
            "Sending message to Facebook",
            extra={"context": {"recipient_id": recipient_id, "text_length": len(text), "attempt": attempt}},
        )
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = client.post(self.messages_url, params={"access_token": access_token}, json=body)
        except httpx.TimeoutException as exc:
            raise FacebookSendError(f"request timed out: {type(exc).__name__}") from exc
        except httpx.HTTPError as exc:
            raise FacebookSendError(f"request failed: {type(exc).__name__}") from exc

        if response.status_code != 200:
            raise _error_from_response(response)

        try:
            data = response.json()
        except ValueError:
            logger.warning("Failed to parse success response", extra={"context": {"attempt": attempt}})
            return ""

        message_id = data.get("message_id", "") if isinstance(data, dict) else ""
        logger.info(
            "Message sent successfully",
            extra={"context": {"recipient_id": recipient_id, "message_id": message_id, "attempt": attempt}},
        )
        return message_id


def _error_from_response(response: httpx.Response) -> FacebookSendError:
    try:
        error = response.json().get("error")
    except (ValueError, AttributeError):
        error = None

    if not isinstance(error, dict):
        logger.error(
            "Facebook API error (unparseable)",
            extra={"context": {"status_code": response.status_code, "body": response.text[:500]}},
        )
        return FacebookSendError(f"facebook api error {response.status_code}")

    code = error.get("code")
    if not isinstance(code, int):
        code = None
    logger.error(
        "Facebook API error",
        extra={
            "context": {
                "status_code": response.status_code,
                "error_code": code,
                "error_subcode": error.get("error_subcode"),
                "error_message": error.get("message"),
                "fbtrace_id": error.get("fbtrace_id"),
            }
        },
    )
    kind = classify_error_code(code)
    return FacebookSendError(f"facebook api error (code {code}): {error.get('message', '')}", kind, code)
