"""Agent replies from the dashboard to a Messenger user.

Callers get a status code and a short message they can show as is; the
technical detail of every failure stays in the logs.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from inbox_api.logging_config import get_logger
from inbox_api.models import Message
from inbox_api.services.facebook_client import SendErrorKind
from inbox_api.services.panic_mode import PanicMode
from inbox_api.services.ports import (
    ConversationRepository,
    MessageRepository,
    PageRepository,
    ReplyGateway,
    StoreError,
)

logger = get_logger("reply_service")

AGENT_SENDER_ID = "admin"

MSG_SENT = "Message sent"
MSG_EMPTY_TEXT = "Message text must not be empty"
MSG_INVALID_CONVERSATION = "Missing or invalid conversation id"
MSG_CONVERSATION_NOT_FOUND = "Conversation not found"
MSG_LOOKUP_FAILED = "System error while loading the conversation"
MSG_PAGE_NOT_CONFIGURED = "Page is not configured, contact an administrator"
MSG_PAGE_DISCONNECTED = "Page connection has expired, please reconnect the page"
MSG_PANIC_MODE = "Sending is paused by an administrator, try again later"
MSG_RATE_LIMITED = "Facebook is limiting requests, please slow down and try again shortly"
MSG_PERMISSION_DENIED = "The page does not have permission to send this message"
MSG_SEND_FAILED = "Could not send the message, please try again later"

SEND_FAILURE_RESPONSES = {
    SendErrorKind.TOKEN_EXPIRED.value: (400, MSG_PAGE_DISCONNECTED),
    SendErrorKind.RATE_LIMITED.value: (429, MSG_RATE_LIMITED),
    SendErrorKind.PERMISSION_DENIED.value: (403, MSG_PERMISSION_DENIED),
}


@dataclass
class ReplyOutcome:
    status_code: int
    message: str
    message_id: Optional[int] = None
    platform_message_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200


def send_agent_reply(
    conversation_id: int,
    text: str,
    *,
    conversations: ConversationRepository,
    pages: PageRepository,
    messages: MessageRepository,
    gateway: ReplyGateway,
    panic_mode: PanicMode,
) -> ReplyOutcome:
    if not conversation_id or conversation_id <= 0:
        return ReplyOutcome(400, MSG_INVALID_CONVERSATION)
    if not text or not text.strip():
        return ReplyOutcome(400, MSG_EMPTY_TEXT)

    try:
        conversation = conversations.get_conversation(conversation_id)
    except StoreError as exc:
        logger.error(
            "Failed to get conversation details",
            extra={"context": {"conversation_id": conversation_id, "error": str(exc)}},
        )
        return ReplyOutcome(500, MSG_LOOKUP_FAILED)
    if conversation is None:
        return ReplyOutcome(404, MSG_CONVERSATION_NOT_FOUND)

    try:
        page = pages.get_page(conversation.page_id)
    except StoreError as exc:
        logger.error(
            "Failed to load page",
            extra={"context": {"page_id": conversation.page_id, "error": str(exc)}},
        )
        return ReplyOutcome(500, MSG_LOOKUP_FAILED)
    if page is None:
        logger.error("Page not configured", extra={"context": {"page_id": conversation.page_id}})
        return ReplyOutcome(500, MSG_PAGE_NOT_CONFIGURED)

    if not page.is_active:
        logger.warning(
            "Reply blocked, page is inactive",
            extra={"context": {"page_id": page.page_id, "conversation_id": conversation_id}},
        )
        return ReplyOutcome(400, MSG_PAGE_DISCONNECTED)

    if panic_mode.is_active():
        logger.warning("Reply blocked by panic mode", extra={"context": {"conversation_id": conversation_id}})
        return ReplyOutcome(503, MSG_PANIC_MODE)

    result = gateway.send_reply(conversation.platform_id, page.access_token, text)
    if not result.ok:
        logger.error(
            "Failed to send reply",
            extra={
                "context": {
                    "conversation_id": conversation_id,
                    "page_id": page.page_id,
                    "error": result.error,
                    "error_code": result.error_code,
                }
            },
        )
        if result.error_code == SendErrorKind.TOKEN_EXPIRED.value:
            _deactivate_page(pages, page.page_id)
        status_code, message = SEND_FAILURE_RESPONSES.get(result.error_code, (500, MSG_SEND_FAILED))
        return ReplyOutcome(status_code, message)

    outbound = Message(
        conversation_id=conversation_id,
        sender_id=AGENT_SENDER_ID,
        sender_type="agent",
        content=text,
        attachments=[],
        type="text",
        is_synced=False,
        external_msg_id=result.value or None,
        created_at=datetime.now(timezone.utc),
    )
    stored_id = None
    try:
        stored_id = messages.save_message(outbound)
    except StoreError as exc:
        # Already delivered; the reply is still reported as sent.
        logger.error(
            "Failed to save outbound message",
            extra={"context": {"conversation_id": conversation_id, "error": str(exc)}},
        )

    logger.info(
        "Agent reply sent",
        extra={"context": {"conversation_id": conversation_id, "platform_message_id": result.value}},
    )
    return ReplyOutcome(200, MSG_SENT, message_id=stored_id, platform_message_id=result.value)


def _deactivate_page(pages: PageRepository, page_id: str) -> None:
    try:
        pages.deactivate_page(page_id)
    except StoreError as exc:
        logger.error("Failed to deactivate page", extra={"context": {"page_id": page_id, "error": str(exc)}})
