import uuid

from sqlalchemy import Column, String, ForeignKey, JSON
from techtool.core.database import Base


class Asset(Base):
    __tablename__ = "assets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    collaborator_ids = Column(JSON, nullable=True)  # list of users.id
    production_url = Column(String, nullable=True)
    links = Column(JSON, nullable=True)
