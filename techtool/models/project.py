import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from techtool.core.database import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    status = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
