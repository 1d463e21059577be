import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from techtool.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=True)
    email = Column(String, nullable=True, index=True)
    avatar_url = Column(String, nullable=True)
    role = Column(String, nullable=True)  # admin / member / viewer
    discord_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
