from pydantic import BaseModel, Field, field_validator
from datetime import date
from typing import Any, Dict, List, Optional


class TicketFormIn(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = ""
    priority: Optional[str] = None  # free text, normalized case-insensitively
    type: Optional[str] = None
    url: Optional[str] = None
    expectedDoneDate: Optional[date] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v):
        if not v.strip():
            raise ValueError("title cannot be blank")
        return v.strip()

    @field_validator("expectedDoneDate", mode="before")
    @classmethod
    def empty_date_is_none(cls, v):
        return v or None


class TicketSubmission(BaseModel):
    requester: str = Field(..., min_length=1)
    requesterEmail: Optional[str] = None
    tickets: List[TicketFormIn] = Field(..., min_length=1)
    projectId: Optional[str] = None
    assignee: Optional[str] = None  # users.id
    assigneeName: Optional[str] = None

    @field_validator("projectId", "assignee", mode="before")
    @classmethod
    def ids_as_strings(cls, v):
        """Older clients send numeric ids; empty strings mean "none"."""
        if v is None or v == "":
            return None
        return str(v)


class TicketSubmissionResult(BaseModel):
    message: str
    ticketIds: List[str]


class TicketOut(BaseModel):
    """Ticket as the web client renders it (joined names, display enums)."""
    id: str
    display_id: str
    title: str
    description: str
    projectName: str
    project_id: Optional[str] = None
    requestedBy: str
    requested_by_id: Optional[str] = None
    reporterAvatar: str = ""
    priority: str
    type: str
    status: str
    assignee: str
    assignee_id: Optional[str] = None
    assigneeAvatar: str = ""
    createdAt: str
    assignedAt: str = ""
    started_at: str = ""
    completedAt: str = ""
    updated_at: str = ""
    dueDate: Optional[str] = None
    relevantLink: str = ""
    links: List[str] = []
    meta: Dict[str, Any] = {}
