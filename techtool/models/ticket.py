import uuid

from sqlalchemy import Column, String, DateTime, Date, ForeignKey, JSON
from sqlalchemy.sql import func
from techtool.core.database import Base

class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # HRB-123; suffix allocated by techtool.core.ticket_ids
    display_id = Column(String, nullable=False, unique=True, index=True)

    title = Column(String, nullable=False)
    description = Column(String, nullable=True)

    project_id = Column(String(36), ForeignKey("projects.id"), nullable=True, index=True)
    requested_by_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    assignee_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)

    # storage format: urgent/high/medium/low, request/bug/task, open/in_progress/...
    priority = Column(String, nullable=True, default="medium")
    type = Column(String, nullable=True, default="request")
    status = Column(String, nullable=True, default="open", index=True)

    # timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    due_date = Column(Date, nullable=True)

    # list of urls; some legacy rows hold a single string
    links = Column(JSON, nullable=True)
    meta = Column(JSON, nullable=True)  # e.g. {"cancel_reason": "..."}
