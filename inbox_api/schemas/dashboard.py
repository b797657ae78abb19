from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiResponse(BaseModel):
    """Envelope for every dashboard response."""

    code: int = 200
    message: str = "Success"
    data: Optional[Any] = None


class ConversationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    platform_id: str
    page_id: str
    customer_name: Optional[str] = None
    last_message_content: Optional[str] = None
    last_message_at: Optional[datetime] = None
    tags: list[str] = Field(default_factory=list)
    assignee_id: Optional[int] = None
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    sender_id: Optional[str] = None
    sender_type: str
    content: Optional[str] = None
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    type: Optional[str] = None
    external_msg_id: Optional[str] = None
    created_at: datetime


class ReplyRequest(BaseModel):
    # Defaults let the reply flow answer missing fields with its own 400.
    conversation_id: int = 0
    text: str = ""


class PanicModeRequest(BaseModel):
    active: bool
    reason: str = ""
    actor: str = "admin"


class PanicModeOut(BaseModel):
    active: bool
    reason: str = ""
    activated_by: str = ""
    activated_at: Optional[datetime] = None


class SyncStatusOut(BaseModel):
    pending_messages: int
    pending_webhooks: int
    sync_health: str


class PlatformOut(BaseModel):
    platform: str
    name: str
    status: str
    last_activity: Optional[datetime] = None
    message_count_today: int = 0
    pending_sync: int = 0
