"""
Storage for conversations with the external chat agent.

The agent itself lives elsewhere; these routes only keep each user's
sessions, messages and per-ticket feedback. Every session is scoped to the
signed-in principal. Bot replies come back with bare ticket references
(HRB-12) turned into links to the ticket page.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from techtool.api.deps import get_db
from techtool.core.auth import Principal, require_allowed_user
from techtool.core.ticket_ids import linkify_ticket_refs
from techtool.models.chat import ChatFeedback, ChatMessage, ChatSession
from techtool.schemas.chat import (
    ChatFeedbackCreate,
    ChatFeedbackOut,
    ChatMessageCreate,
    ChatMessageOut,
    ChatSessionCreate,
    ChatSessionOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

BOT_SENDER = "bot"


def _storage_error(action: str, e: SQLAlchemyError) -> HTTPException:
    logger.exception("Error %s", action)
    return HTTPException(status_code=500, detail=f"Failed {action}. Server error: {str(e)}")


def _own_session(db: Session, session_id: str, user: Principal) -> ChatSession:
    session = db.scalars(
        select(ChatSession).where(ChatSession.id == session_id, ChatSession.user_id == user.id)
    ).first()
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _message_out(message: ChatMessage) -> ChatMessageOut:
    out = ChatMessageOut.model_validate(message)
    if out.sender == BOT_SENDER:
        out.text = linkify_ticket_refs(out.text)
    return out


@router.get("/sessions", response_model=List[ChatSessionOut])
def list_sessions(
    db: Session = Depends(get_db),
    current_user: Principal = Depends(require_allowed_user),
):
    stmt = (
        select(ChatSession)
        .where(ChatSession.user_id == current_user.id)
        .order_by(ChatSession.updated_at.desc())
    )
    try:
        return db.scalars(stmt).all()
    except SQLAlchemyError as e:
        raise _storage_error("to fetch chat sessions", e)


@router.post("/sessions", response_model=ChatSessionOut)
def create_session(
    payload: ChatSessionCreate,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(require_allowed_user),
):
    now = datetime.now(timezone.utc)
    session = ChatSession(
        user_id=current_user.id,
        title=(payload.title or "").strip() or "New Chat",
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(session)
        db.commit()
        db.refresh(session)
    except SQLAlchemyError as e:
        db.rollback()
        raise _storage_error("to create chat session", e)
    return session


@router.get("/messages", response_model=List[ChatMessageOut])
def list_messages(
    sessionId: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: Principal = Depends(require_allowed_user),
):
    """Messages oldest first; bot text has ticket references linked."""
    if not sessionId:
        raise HTTPException(status_code=400, detail="Missing sessionId")

    try:
        _own_session(db, sessionId, current_user)
        messages = db.scalars(
            select(ChatMessage)
            .where(ChatMessage.session_id == sessionId)
            .order_by(ChatMessage.created_at.asc())
        ).all()
    except SQLAlchemyError as e:
        raise _storage_error("to fetch chat messages", e)
    return [_message_out(m) for m in messages]


@router.post("/messages", response_model=ChatMessageOut)
def create_message(
    payload: ChatMessageCreate,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(require_allowed_user),
):
    if not payload.sessionId or not payload.sender or not payload.text:
        raise HTTPException(status_code=400, detail="Missing required fields")

    try:
        session = _own_session(db, payload.sessionId, current_user)

        now = datetime.now(timezone.utc)
        message = ChatMessage(
            session_id=session.id,
            sender=payload.sender,
            text=payload.text,
            buttons=payload.buttons or None,
            created_at=now,
        )
        db.add(message)
        session.updated_at = now
        db.commit()
        db.refresh(message)
    except SQLAlchemyError as e:
        db.rollback()
        raise _storage_error("to save chat message", e)
    return _message_out(message)


@router.get("/feedback", response_model=List[ChatFeedbackOut])
def list_feedback(
    sessionId: Optional[str] = Query(None),
    ticketId: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: Principal = Depends(require_allowed_user),
):
    if not sessionId:
        raise HTTPException(status_code=400, detail="Missing sessionId")

    stmt = select(ChatFeedback).where(ChatFeedback.session_id == sessionId)
    if ticketId:
        stmt = stmt.where(ChatFeedback.ticket_id == ticketId)
    try:
        _own_session(db, sessionId, current_user)
        return db.scalars(stmt).all()
    except SQLAlchemyError as e:
        raise _storage_error("to fetch feedback", e)


@router.post("/feedback", response_model=ChatFeedbackOut)
def create_feedback(
    payload: ChatFeedbackCreate,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(require_allowed_user),
):
    """One rating (1-5) per ticket filed in a session."""
    if not payload.sessionId or not payload.ticketId or payload.rating is None:
        raise HTTPException(status_code=400, detail="Missing required fields")
    if not 1 <= payload.rating <= 5:
        raise HTTPException(status_code=400, detail="Invalid rating")

    try:
        _own_session(db, payload.sessionId, current_user)

        existing = db.scalars(
            select(ChatFeedback.id).where(
                ChatFeedback.session_id == payload.sessionId,
                ChatFeedback.ticket_id == payload.ticketId,
            )
        ).first()
        if existing:
            raise HTTPException(status_code=409, detail="Feedback already submitted")

        feedback = ChatFeedback(
            session_id=payload.sessionId,
            ticket_id=payload.ticketId,
            user_id=current_user.id,
            rating=payload.rating,
            feedback=payload.feedback or None,
            created_at=datetime.now(timezone.utc),
        )
        db.add(feedback)
        db.commit()
        db.refresh(feedback)
    except SQLAlchemyError as e:
        db.rollback()
        raise _storage_error("to save feedback", e)
    return feedback
