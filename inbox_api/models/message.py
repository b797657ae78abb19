from sqlalchemy import Boolean, Column, ForeignKey, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.types import JSON

from inbox_api.database import Base, BigIntId


class Message(Base):
    __tablename__ = "messages"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    conversation_id = Column(BigIntId, ForeignKey("conversations.id"), nullable=False, index=True)
    sender_id = Column(Text)
    sender_type = Column(Text, nullable=False)  # user, bot, agent
    content = Column(Text)
    attachments = Column(JSON, nullable=False, default=list)
    type = Column(Text)  # text, image, file, sticker, voice
    is_synced = Column(Boolean, nullable=False, default=False)
    external_msg_id = Column(Text, unique=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)

    conversation = relationship("Conversation", back_populates="messages")
