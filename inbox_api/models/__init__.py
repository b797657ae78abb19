from inbox_api.models.conversation import Conversation
from inbox_api.models.message import Message
from inbox_api.models.page import Page
from inbox_api.models.webhook_log import WebhookLog

__all__ = [
    "Page",
    "Conversation",
    "Message",
    "WebhookLog",
]
