from sqlalchemy import Column, Integer, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.types import JSON

from inbox_api.database import Base, BigIntId


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("tenant_id", "platform_id", "page_id", name="uq_conversation_tenant_platform_page"),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False)
    platform_id = Column(Text, nullable=False)  # Facebook PSID
    page_id = Column(Text, nullable=False)
    customer_name = Column(Text)
    last_message_content = Column(Text)
    last_message_at = Column(TIMESTAMP(timezone=True))
    tags = Column(JSON, nullable=False, default=list)
    assignee_id = Column(Integer)
    status = Column(Text, nullable=False, default="unread")  # unread, read, archived
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True))

    messages = relationship("Message", back_populates="conversation")
