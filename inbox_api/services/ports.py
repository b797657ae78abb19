"""Storage contracts used by the dispatcher and the reply flow.

Implementations live in ``inbox_api.repositories``. Every method raises
``StoreError`` when the backend is unavailable; "not found" is reported with
``None``/``False``, never with an exception.
"""

from __future__ import annotations

from typing import Optional, Protocol

from inbox_api.models import Conversation, Message, Page, WebhookLog
from inbox_api.services.result import Result


class StoreError(Exception):
    """Backend failure (database or cache) behind a repository call."""


class WebhookLogRepository(Protocol):
    def save_log(self, log: WebhookLog) -> int:
        """Persist an audit record and return its id."""
        ...

    def update_status(self, log_id: int, status: str, error_log: Optional[str] = None) -> None:
        ...


class MessageRepository(Protocol):
    def save_message(self, message: Message) -> int:
        """Insert or, for a known external_msg_id, update a message; returns its id."""
        ...

    def insert_message(self, message: Message) -> Optional[int]:
        """Insert a new message; returns None when its external_msg_id is already stored."""
        ...

    def get_message(self, message_id: int) -> Optional[Message]:
        ...

    def message_exists(self, external_msg_id: str) -> bool:
        ...

    def list_messages(self, conversation_id: int, limit: int = 200) -> list[Message]:
        ...


class ConversationRepository(Protocol):
    def get_or_create_conversation(self, tenant_id: int, platform_id: str, page_id: str) -> int:
        ...

    def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        ...

    def list_conversations(
        self,
        page_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
    ) -> list[Conversation]:
        ...

    def mark_conversation_read(self, conversation_id: int) -> None:
        ...


class PageRepository(Protocol):
    def get_page(self, page_id: str) -> Optional[Page]:
        ...

    def deactivate_page(self, page_id: str) -> None:
        ...

    def activate_page(self, page_id: str) -> bool:
        """Return False when the page is unknown."""
        ...


class DedupRepository(Protocol):
    def is_duplicate(self, event_id: str) -> bool:
        ...

    def mark_processed(self, event_id: str, ttl_seconds: int) -> None:
        ...


class ReplyGateway(Protocol):
    def send_reply(self, recipient_id: str, access_token: str, text: str) -> Result[str]:
        ...
