from sqlalchemy import Column, Integer, LargeBinary, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP

from inbox_api.database import Base, BigIntId


class WebhookLog(Base):
    __tablename__ = "webhook_logs"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    platform = Column(Text, nullable=False)  # facebook
    payload = Column(LargeBinary, nullable=False)  # raw request body
    status = Column(Text, nullable=False, default="pending", index=True)  # pending, processed, failed
    retry_count = Column(Integer, nullable=False, default=0)
    error_log = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
