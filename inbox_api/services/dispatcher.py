"""Webhook dispatch pipeline.

Runs after the webhook response has been sent: audit the raw payload, parse the
envelope, then handle each messaging event on its own (filter, dedup, resolve
the conversation, persist). One bad event never aborts its siblings and no
exception ever leaves ``dispatch_safely``.
"""

from __future__ import annotations

from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import ValidationError

from inbox_api.logging_config import LoggerAdapter, get_logger
from inbox_api.models import Message, WebhookLog
from inbox_api.schemas.facebook import (
    FacebookMessaging,
    PayloadParseError,
    parse_messaging_event,
    parse_webhook_envelope,
)
from inbox_api.services.ports import (
    ConversationRepository,
    DedupRepository,
    MessageRepository,
    StoreError,
    WebhookLogRepository,
)

logger = get_logger("dispatcher")

DEFAULT_DEDUP_TTL_SECONDS = 24 * 60 * 60
ERROR_LOG_MAX_CHARS = 2000
CONTENT_PREVIEW_CHARS = 50


class EventOutcome(str, Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


class WebhookStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


@dataclass
class DispatchSummary:
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    parse_failed: bool = False
    errors: list[str] = field(default_factory=list)

    def record(self, outcome: EventOutcome, error: Optional[str] = None) -> None:
        if outcome == EventOutcome.PROCESSED:
            self.processed += 1
        elif outcome == EventOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
            if error:
                self.errors.append(error)

    @property
    def webhook_status(self) -> WebhookStatus:
        if self.parse_failed or self.failed:
            return WebhookStatus.FAILED
        return WebhookStatus.PROCESSED


class _EventFailed(Exception):
    pass


class Dispatcher:
    def __init__(
        self,
        webhook_logs: WebhookLogRepository,
        messages: MessageRepository,
        conversations: ConversationRepository,
        dedup: DedupRepository,
        *,
        default_tenant_id: int = 1,
        dedup_ttl_seconds: int = DEFAULT_DEDUP_TTL_SECONDS,
        executor: Optional[Executor] = None,
    ):
        self._webhook_logs = webhook_logs
        self._messages = messages
        self._conversations = conversations
        self._dedup = dedup
        # TODO: resolve the tenant from Page.tenant_id instead of the configured default.
        self._default_tenant_id = default_tenant_id
        self._dedup_ttl_seconds = dedup_ttl_seconds
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="dispatch")

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def dispatch_safely(self, platform: str, payload: bytes) -> Optional[DispatchSummary]:
        """Entry point for background dispatch; logs and swallows every failure."""
        try:
            return self.process_webhook(platform, payload)
        except Exception:
            logger.exception(
                "Unexpected failure in webhook dispatch",
                extra={"context": {"platform": platform, "content_length": len(payload)}},
            )
            return None

    def process_webhook(self, platform: str, payload: bytes) -> DispatchSummary:
        log = LoggerAdapter(logger, {"platform": platform})
        summary = DispatchSummary()

        # Audit insert runs independently of parsing.
        audit_future = self._spawn("save_webhook_log", self._save_webhook_log, platform, payload)

        try:
            envelope = parse_webhook_envelope(payload)
        except PayloadParseError as exc:
            log.error("Failed to parse webhook payload", context={"error": str(exc)})
            summary.parse_failed = True
            summary.errors.append(str(exc))
            self._spawn("finish_webhook_log", self._finish_webhook_log, audit_future, summary)
            return summary

        for raw_event in envelope.iter_events():
            try:
                outcome = self._handle_event(raw_event)
                summary.record(outcome)
            except _EventFailed as exc:
                summary.record(EventOutcome.FAILED, str(exc))
            except Exception as exc:
                log.exception("Unexpected failure while handling messaging event")
                summary.record(EventOutcome.FAILED, f"unexpected error: {exc}")

        log.info(
            "Webhook processing completed",
            context={"processed": summary.processed, "skipped": summary.skipped, "failed": summary.failed},
        )
        self._spawn("finish_webhook_log", self._finish_webhook_log, audit_future, summary)
        return summary

    def _handle_event(self, raw_event: Any) -> EventOutcome:
        try:
            event = parse_messaging_event(raw_event)
        except ValidationError as exc:
            logger.warning(
                "Malformed messaging event abandoned",
                extra={"context": {"errors": exc.error_count()}},
            )
            raise _EventFailed(f"malformed event: {exc.error_count()} validation error(s)") from exc

        if not event.is_user_message():
            logger.debug(
                "Skipping non-user message event",
                extra={
                    "context": {
                        "is_echo": bool(event.message and event.message.is_echo),
                        "has_delivery": event.delivery is not None,
                        "has_read": event.read is not None,
                    }
                },
            )
            return EventOutcome.SKIPPED

        message_id = event.message_id()
        if message_id:
            try:
                if self._dedup.is_duplicate(message_id):
                    logger.info("Duplicate message detected, skipping", extra={"context": {"message_id": message_id}})
                    return EventOutcome.SKIPPED
            except StoreError as exc:
                # Fail closed.
                logger.warning(
                    "Dedup check unavailable, skipping message",
                    extra={"context": {"message_id": message_id, "error": str(exc)}},
                )
                return EventOutcome.SKIPPED

        try:
            conversation_id = self._conversations.get_or_create_conversation(
                self._default_tenant_id,
                event.sender.id,
                event.recipient.id,
            )
            message = build_inbound_message(event, conversation_id)
            stored_id = self._messages.insert_message(message)
        except StoreError as exc:
            logger.error(
                "Failed to process message",
                extra={"context": {"message_id": message_id, "error": str(exc)}},
            )
            raise _EventFailed(f"message {message_id or '<no mid>'}: {exc}") from exc

        if stored_id is None:
            logger.info("Message already stored, skipping", extra={"context": {"message_id": message_id}})
            return EventOutcome.SKIPPED

        if message_id:
            try:
                self._dedup.mark_processed(message_id, self._dedup_ttl_seconds)
            except StoreError as exc:
                logger.warning(
                    "Failed to mark message in dedup cache",
                    extra={"context": {"message_id": message_id, "error": str(exc)}},
                )

        content = message.content or ""
        preview = content if len(content) <= CONTENT_PREVIEW_CHARS else content[:CONTENT_PREVIEW_CHARS] + "..."
        logger.info(
            "Message processed successfully",
            extra={
                "context": {
                    "message_id": message_id,
                    "conversation_id": conversation_id,
                    "sender_id": event.sender.id,
                    "content_preview": preview,
                }
            },
        )
        return EventOutcome.PROCESSED

    # === AUDIT LOG ===

    def _save_webhook_log(self, platform: str, payload: bytes) -> int:
        log = WebhookLog(
            platform=platform,
            payload=payload,
            status=WebhookStatus.PENDING.value,
            retry_count=0,
            created_at=datetime.now(timezone.utc),
        )
        return self._webhook_logs.save_log(log)

    def _finish_webhook_log(self, audit_future: Future, summary: DispatchSummary) -> None:
        log_id = audit_future.result()
        if log_id is None:
            return
        status = summary.webhook_status
        error_log = None
        if status == WebhookStatus.FAILED:
            error_log = "; ".join(summary.errors)[:ERROR_LOG_MAX_CHARS] or None
        self._webhook_logs.update_status(log_id, status.value, error_log)

    # === BACKGROUND UNITS ===

    def _spawn(self, name: str, func: Callable[..., Any], *args: Any) -> Future:
        return self._executor.submit(_run_guarded, name, func, *args)


def _run_guarded(name: str, func: Callable[..., Any], *args: Any) -> Any:
    try:
        return func(*args)
    except Exception:
        logger.exception("Background task failed", extra={"context": {"task": name}})
        return None


def build_inbound_message(event: FacebookMessaging, conversation_id: int) -> Message:
    """Message row for a user message; attachments default to an empty list."""
    message_id = event.message_id()
    return Message(
        conversation_id=conversation_id,
        sender_id=event.sender.id,
        sender_type="user",
        content=event.content() or None,
        attachments=event.attachments_json(),
        type=event.message_type(),
        is_synced=False,
        external_msg_id=message_id or None,
        created_at=datetime.now(timezone.utc),
    )
