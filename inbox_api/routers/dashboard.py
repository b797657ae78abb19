from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from inbox_api.dependencies import get_facebook_client, get_panic_mode, get_store, require_admin_token
from inbox_api.logging_config import get_logger
from inbox_api.repositories import SqlStore
from inbox_api.schemas.dashboard import (
    ApiResponse,
    ConversationOut,
    MessageOut,
    PanicModeOut,
    PanicModeRequest,
    PlatformOut,
    ReplyRequest,
    SyncStatusOut,
)
from inbox_api.services.facebook_client import FacebookClient
from inbox_api.services.panic_mode import PanicMode
from inbox_api.services.ports import StoreError
from inbox_api.services.reply_service import send_agent_reply
from inbox_api.services.sync_status import get_platforms, get_sync_status

logger = get_logger("dashboard")

router = APIRouter(prefix="/api")


def _respond(code: int, message: str, data: Any = None) -> JSONResponse:
    body = ApiResponse(code=code, message=message, data=data)
    return JSONResponse(status_code=code, content=body.model_dump(mode="json"))


# === CONVERSATIONS ===


@router.get("/conversations", response_model=ApiResponse)
def list_conversations(
    page_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=200),
    store: SqlStore = Depends(get_store),
):
    try:
        conversations = store.list_conversations(page_id=page_id, status=status, limit=limit)
    except StoreError as exc:
        logger.error(
            "Failed to get conversations",
            extra={"context": {"page_id": page_id, "error": str(exc)}},
        )
        return _respond(500, "Failed to load conversations")

    data = [ConversationOut.model_validate(c).model_dump(mode="json") for c in conversations]
    return _respond(200, "Success", data)


@router.get("/conversations/{conversation_id}/messages", response_model=ApiResponse)
def list_messages(
    conversation_id: int,
    limit: int = Query(default=200, ge=1, le=1000),
    store: SqlStore = Depends(get_store),
):
    try:
        conversation = store.get_conversation(conversation_id)
        if conversation is None:
            return _respond(404, "Conversation not found")
        messages = store.list_messages(conversation_id, limit=limit)
    except StoreError as exc:
        logger.error(
            "Failed to get messages",
            extra={"context": {"conversation_id": conversation_id, "error": str(exc)}},
        )
        return _respond(500, "Failed to load messages")

    # Opening the thread clears the unread badge.
    try:
        store.mark_conversation_read(conversation_id)
    except StoreError as exc:
        logger.warning(
            "Failed to mark conversation as read",
            extra={"context": {"conversation_id": conversation_id, "error": str(exc)}},
        )

    data = [MessageOut.model_validate(m).model_dump(mode="json") for m in messages]
    return _respond(200, "Success", data)


@router.post("/messages/reply", response_model=ApiResponse)
def reply_to_conversation(
    request: ReplyRequest,
    store: SqlStore = Depends(get_store),
    gateway: FacebookClient = Depends(get_facebook_client),
    panic_mode: PanicMode = Depends(get_panic_mode),
):
    outcome = send_agent_reply(
        request.conversation_id,
        request.text,
        conversations=store,
        pages=store,
        messages=store,
        gateway=gateway,
        panic_mode=panic_mode,
    )
    data = None
    if outcome.ok:
        data = {"message_id": outcome.message_id, "platform_message_id": outcome.platform_message_id}
    return _respond(outcome.status_code, outcome.message, data)


# === SYNC STATUS ===


@router.get("/sync/status", response_model=ApiResponse)
def sync_status(store: SqlStore = Depends(get_store)):
    try:
        status = get_sync_status(store)
    except StoreError as exc:
        logger.error("Failed to get sync status", extra={"context": {"error": str(exc)}})
        return _respond(500, "Failed to load sync status")
    return _respond(200, "Success", SyncStatusOut(**asdict(status)).model_dump(mode="json"))


@router.get("/platforms", response_model=ApiResponse)
def list_platforms(store: SqlStore = Depends(get_store)):
    try:
        platforms = get_platforms(store)
    except StoreError as exc:
        logger.error("Failed to get platforms", extra={"context": {"error": str(exc)}})
        return _respond(500, "Failed to load platforms")
    data = [PlatformOut(**asdict(p)).model_dump(mode="json") for p in platforms]
    return _respond(200, "Success", data)


# === ADMIN ===


@router.get("/panic-mode", response_model=ApiResponse, dependencies=[Depends(require_admin_token)])
def get_panic_mode_status(panic_mode: PanicMode = Depends(get_panic_mode)):
    status = panic_mode.status()
    return _respond(200, "Success", PanicModeOut(**asdict(status)).model_dump(mode="json"))


@router.post("/panic-mode", response_model=ApiResponse, dependencies=[Depends(require_admin_token)])
def set_panic_mode(request: PanicModeRequest, panic_mode: PanicMode = Depends(get_panic_mode)):
    if request.active:
        panic_mode.enable(request.reason, request.actor)
    else:
        panic_mode.disable(request.actor)
    status = panic_mode.status()
    return _respond(200, "Success", PanicModeOut(**asdict(status)).model_dump(mode="json"))


@router.post("/pages/{page_id}/activate", response_model=ApiResponse, dependencies=[Depends(require_admin_token)])
def activate_page(page_id: str, store: SqlStore = Depends(get_store)):
    try:
        updated = store.activate_page(page_id)
    except StoreError as exc:
        logger.error("Failed to activate page", extra={"context": {"page_id": page_id, "error": str(exc)}})
        return _respond(500, "Failed to activate page")
    if not updated:
        return _respond(404, "Page not found")
    return _respond(200, "Page activated", {"page_id": page_id, "is_active": True})
