from sqlalchemy import Boolean, Column, Integer, Text

from inbox_api.database import Base, BigIntId


class Page(Base):
    __tablename__ = "pages"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False)
    platform = Column(Text, nullable=False, default="facebook")
    page_id = Column(Text, nullable=False, unique=True)
    page_name = Column(Text)
    access_token = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
