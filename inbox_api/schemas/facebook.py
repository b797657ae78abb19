"""Facebook Messenger webhook payloads.

Ref: https://developers.facebook.com/docs/messenger-platform/webhooks
"""

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class PayloadParseError(Exception):
    """Webhook body is not a usable Messenger envelope."""


class FacebookUser(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, str_strip_whitespace=True)

    id: str = Field(min_length=1)  # PSID or page id


class FacebookAttachmentPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: Optional[str] = None


class FacebookAttachment(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str  # image, video, audio, file, fallback
    payload: FacebookAttachmentPayload = Field(default_factory=FacebookAttachmentPayload)


class FacebookMessage(BaseModel):
    mid: str = ""
    text: Optional[str] = None
    attachments: list[FacebookAttachment] = Field(default_factory=list)
    is_echo: bool = False


class FacebookDelivery(BaseModel):
    mids: list[str] = Field(default_factory=list)
    watermark: Optional[int] = None


class FacebookRead(BaseModel):
    watermark: Optional[int] = None


class FacebookMessaging(BaseModel):
    """One messaging event: a message, an echo, or a delivery/read receipt."""

    sender: FacebookUser
    recipient: FacebookUser
    timestamp: Optional[int] = None  # unix ms
    message: Optional[FacebookMessage] = None
    delivery: Optional[FacebookDelivery] = None
    read: Optional[FacebookRead] = None

    def is_user_message(self) -> bool:
        """True only for a message a user sent to the page."""
        if self.message is None:
            return False
        if self.message.is_echo:
            return False
        if self.delivery is not None:
            return False
        if self.read is not None:
            return False
        return True

    def message_id(self) -> str:
        if self.message is None:
            return ""
        return self.message.mid

    def message_type(self) -> str:
        if self.message is None:
            return ""
        if self.message.attachments:
            return self.message.attachments[0].type
        if self.message.text:
            return "text"
        return "unknown"

    def content(self) -> str:
        """Text if present, else the first attachment URL."""
        if self.message is None:
            return ""
        if self.message.text:
            return self.message.text
        if self.message.attachments and self.message.attachments[0].payload.url:
            return self.message.attachments[0].payload.url
        return ""

    def attachments_json(self) -> list[dict[str, Any]]:
        if self.message is None:
            return []
        return [attachment.model_dump(exclude_none=True) for attachment in self.message.attachments]


class FacebookEntry(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str = ""  # page id
    time: Optional[int] = None
    # Events stay raw here and are validated one by one.
    messaging: list[Any] = Field(default_factory=list)


class FacebookWebhookRequest(BaseModel):
    object: str = ""  # "page" for Messenger
    entry: list[FacebookEntry] = Field(default_factory=list)

    def iter_events(self):
        for entry in self.entry:
            yield from entry.messaging


def parse_webhook_envelope(payload: bytes) -> FacebookWebhookRequest:
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise PayloadParseError(f"invalid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise PayloadParseError("envelope is not a JSON object")

    try:
        return FacebookWebhookRequest.model_validate(data)
    except ValidationError as exc:
        raise PayloadParseError(f"invalid envelope: {exc.error_count()} error(s)") from exc


def parse_messaging_event(raw_event: Any) -> FacebookMessaging:
    """Validate one raw messaging event; raises ``ValidationError`` when malformed."""
    return FacebookMessaging.model_validate(raw_event)
