from pydantic import BaseModel
from datetime import datetime
from typing import Any, Optional


class ChatSessionCreate(BaseModel):
    title: Optional[str] = None


class ChatSessionOut(BaseModel):
    id: str
    user_id: str
    title: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ChatMessageCreate(BaseModel):
    sessionId: Optional[str] = None
    sender: Optional[str] = None  # user / bot
    text: Optional[str] = None
    buttons: Optional[Any] = None


class ChatMessageOut(BaseModel):
    id: str
    session_id: str
    sender: str
    text: str
    buttons: Optional[Any] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ChatFeedbackCreate(BaseModel):
    sessionId: Optional[str] = None
    ticketId: Optional[str] = None
    rating: Optional[int] = None  # 1..5
    feedback: Optional[str] = None


class ChatFeedbackOut(BaseModel):
    id: str
    session_id: str
    ticket_id: str
    user_id: str
    rating: int
    feedback: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
