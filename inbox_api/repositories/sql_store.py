"""SQLAlchemy implementation of the persistence contracts in ``services.ports``."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from inbox_api.logging_config import get_logger
from inbox_api.models import Conversation, Message, Page, WebhookLog
from inbox_api.services.ports import MessageRepository, StoreError

logger = get_logger("sql_store")

SNIPPET_MAX_CHARS = 200


def build_snippet(message: Message) -> str:
    text = (message.content or "").strip()
    if not text:
        text = f"[{message.type or 'attachment'}]"
    if len(text) > SNIPPET_MAX_CHARS:
        text = text[: SNIPPET_MAX_CHARS - 3] + "..."
    return text


class SqlStore:
    """Webhook log, message, conversation and page repository over one database.

    Each call uses its own short-lived session so the store can be shared by
    concurrent dispatch threads.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError(str(exc)) from exc
        finally:
            db.close()

    # === WEBHOOK LOGS ===

    def save_log(self, log: WebhookLog) -> int:
        with self._session() as db:
            db.add(log)
            db.commit()
            logger.debug(
                "Webhook log saved",
                extra={"context": {"webhook_log_id": log.id, "platform": log.platform}},
            )
            return log.id

    def update_status(self, log_id: int, status: str, error_log: Optional[str] = None) -> None:
        with self._session() as db:
            updated = (
                db.query(WebhookLog)
                .filter(WebhookLog.id == log_id)
                .update({"status": status, "error_log": error_log}, synchronize_session=False)
            )
            db.commit()
        if not updated:
            logger.warning("No webhook log found for status update", extra={"context": {"webhook_log_id": log_id}})

    # === MESSAGES ===

    def save_message(self, message: Message) -> int:
        with self._session() as db:
            if message.external_msg_id:
                existing = _find_by_external_id(db, message.external_msg_id)
                if existing:
                    existing.content = message.content
                    db.commit()
                    return existing.id

            _touch_conversation(db, message)
            db.add(message)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                existing = _find_by_external_id(db, message.external_msg_id) if message.external_msg_id else None
                if existing is None:
                    raise
                existing.content = message.content
                db.commit()
                return existing.id

            _log_saved(message)
            return message.id

    def insert_message(self, message: Message) -> Optional[int]:
        """Insert an inbound message; None when its external_msg_id is already stored."""
        with self._session() as db:
            if message.external_msg_id and _find_by_external_id(db, message.external_msg_id):
                return None

            _touch_conversation(db, message)
            db.add(message)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                if message.external_msg_id and _find_by_external_id(db, message.external_msg_id):
                    logger.info(
                        "Message already stored by a concurrent delivery",
                        extra={"context": {"external_msg_id": message.external_msg_id}},
                    )
                    return None
                raise

            _log_saved(message)
            return message.id

    def get_message(self, message_id: int) -> Optional[Message]:
        with self._session() as db:
            return db.get(Message, message_id)

    def message_exists(self, external_msg_id: str) -> bool:
        with self._session() as db:
            return _find_by_external_id(db, external_msg_id) is not None

    def list_messages(self, conversation_id: int, limit: int = 200) -> list[Message]:
        with self._session() as db:
            return (
                db.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.asc(), Message.id.asc())
                .limit(limit)
                .all()
            )

    # === CONVERSATIONS ===

    def get_or_create_conversation(self, tenant_id: int, platform_id: str, page_id: str) -> int:
        """Return the conversation id for the triple, inserting it on first contact."""
        with self._session() as db:
            conversation_id = _find_conversation_id(db, tenant_id, platform_id, page_id)
            if conversation_id is not None:
                return conversation_id

            now = datetime.now(timezone.utc)
            conversation = Conversation(
                tenant_id=tenant_id,
                platform_id=platform_id,
                page_id=page_id,
                tags=[],
                status="unread",
                created_at=now,
                updated_at=now,
            )
            db.add(conversation)
            try:
                db.commit()
            except IntegrityError:
                # Another worker inserted the same triple first.
                db.rollback()
                conversation_id = _find_conversation_id(db, tenant_id, platform_id, page_id)
                if conversation_id is None:
                    raise
                return conversation_id

            logger.info(
                "New conversation created",
                extra={
                    "context": {
                        "conversation_id": conversation.id,
                        "tenant_id": tenant_id,
                        "platform_id": platform_id,
                        "page_id": page_id,
                    }
                },
            )
            return conversation.id

    def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        with self._session() as db:
            return db.get(Conversation, conversation_id)

    def list_conversations(
        self,
        page_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
    ) -> list[Conversation]:
        with self._session() as db:
            query = db.query(Conversation)
            if page_id:
                query = query.filter(Conversation.page_id == page_id)
            if status:
                query = query.filter(Conversation.status == status)
            return query.order_by(Conversation.updated_at.desc(), Conversation.id.desc()).limit(limit).all()

    def mark_conversation_read(self, conversation_id: int) -> None:
        with self._session() as db:
            db.query(Conversation).filter(
                Conversation.id == conversation_id,
                Conversation.status == "unread",
            ).update(
                {"status": "read", "updated_at": datetime.now(timezone.utc)},
                synchronize_session=False,
            )
            db.commit()

    # === PAGES ===

    def get_page(self, page_id: str) -> Optional[Page]:
        with self._session() as db:
            return db.query(Page).filter(Page.page_id == page_id).first()

    def deactivate_page(self, page_id: str) -> None:
        self._set_page_active(page_id, False)
        logger.warning("Page deactivated", extra={"context": {"page_id": page_id}})

    def activate_page(self, page_id: str) -> bool:
        updated = self._set_page_active(page_id, True)
        if updated:
            logger.info("Page reactivated", extra={"context": {"page_id": page_id}})
        return updated

    def _set_page_active(self, page_id: str, is_active: bool) -> bool:
        with self._session() as db:
            updated = (
                db.query(Page)
                .filter(Page.page_id == page_id)
                .update({"is_active": is_active}, synchronize_session=False)
            )
            db.commit()
            return bool(updated)

    # === SYNC STATUS ===

    def count_unsynced_messages(self) -> int:
        with self._session() as db:
            return db.query(func.count(Message.id)).filter(Message.is_synced.is_(False)).scalar() or 0

    def count_webhook_logs(self, status: str) -> int:
        with self._session() as db:
            return db.query(func.count(WebhookLog.id)).filter(WebhookLog.status == status).scalar() or 0

    def message_activity(self, since: datetime) -> tuple[int, Optional[datetime]]:
        """Message count and newest created_at for messages created at or after ``since``."""
        with self._session() as db:
            count, last_at = (
                db.query(func.count(Message.id), func.max(Message.created_at))
                .filter(Message.created_at >= since)
                .one()
            )
        if last_at is not None and last_at.tzinfo is None:
            # SQLite drops the offset; values are written in UTC.
            last_at = last_at.replace(tzinfo=timezone.utc)
        return count or 0, last_at


class MessageTableDedup:
    """Dedup backed by the messages table, used when no Redis is configured.

    The stored row is the processed marker, so ``mark_processed`` has nothing to do.
    """

    def __init__(self, messages: MessageRepository):
        self._messages = messages

    def is_duplicate(self, event_id: str) -> bool:
        return self._messages.message_exists(event_id)

    def mark_processed(self, event_id: str, ttl_seconds: int) -> None:
        return None


def _find_by_external_id(db: Session, external_msg_id: str) -> Optional[Message]:
    return db.query(Message).filter(Message.external_msg_id == external_msg_id).first()


def _find_conversation_id(db: Session, tenant_id: int, platform_id: str, page_id: str) -> Optional[int]:
    row = (
        db.query(Conversation.id)
        .filter(
            Conversation.tenant_id == tenant_id,
            Conversation.platform_id == platform_id,
            Conversation.page_id == page_id,
        )
        .first()
    )
    return row[0] if row else None


def _touch_conversation(db: Session, message: Message) -> None:
    conversation = db.get(Conversation, message.conversation_id)
    if conversation is None:
        return
    conversation.last_message_content = build_snippet(message)
    conversation.last_message_at = message.created_at
    conversation.updated_at = datetime.now(timezone.utc)
    if message.sender_type == "user":
        conversation.status = "unread"


def _log_saved(message: Message) -> None:
    logger.info(
        "Message saved",
        extra={
            "context": {
                "message_id": message.id,
                "conversation_id": message.conversation_id,
                "sender_type": message.sender_type,
            }
        },
    )
