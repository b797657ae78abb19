from inbox_api.schemas.dashboard import (
    ApiResponse,
    ConversationOut,
    MessageOut,
    PanicModeRequest,
    PlatformOut,
    ReplyRequest,
    SyncStatusOut,
)
from inbox_api.schemas.facebook import FacebookMessaging, FacebookWebhookRequest, PayloadParseError

__all__ = [
    "ApiResponse",
    "ConversationOut",
    "MessageOut",
    "PanicModeRequest",
    "PlatformOut",
    "ReplyRequest",
    "SyncStatusOut",
    "FacebookMessaging",
    "FacebookWebhookRequest",
    "PayloadParseError",
]
