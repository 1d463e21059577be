import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query
from fastapi.responses import JSONResponse, Response
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from techtool.api.deps import get_db
from techtool.core.auth import Principal, require_allowed_user
from techtool.core.config import settings
from techtool.core.etag import etag_matches, generate_etag
from techtool.core.notifications import CreatedTicket, TicketsCreatedEvent, notify_tickets_created
from techtool.core.read_model import (
    ProjectLookup,
    UserLookup,
    assemble_ticket,
    assemble_tickets,
    match_display,
    to_display,
    to_storage,
)
from techtool.core.ticket_ids import (
    NEWEST_FIRST,
    BatchContext,
    TicketAllocationConflict,
    TicketDraft,
    TicketIntegrityError,
    allocate_and_insert,
    normalize_display_id,
)
from techtool.models.project import Project
from techtool.models.ticket import Ticket
from techtool.models.user import User
from techtool.schemas.ticket import TicketOut, TicketSubmission, TicketSubmissionResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets", tags=["tickets"])


def _lookups(db: Session):
    projects = ProjectLookup.from_rows(db.scalars(select(Project)))
    users = UserLookup.from_rows(db.scalars(select(User)))
    return projects, users


def _cache_control() -> str:
    return (
        f"public, s-maxage={settings.TICKETS_CACHE_MAX_AGE}, "
        f"stale-while-revalidate={settings.TICKETS_CACHE_STALE_WHILE_REVALIDATE}"
    )


def _enum_filter(kind: str, value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    display = match_display(kind, value)
    if display is None:
        raise HTTPException(status_code=400, detail=f"Invalid {kind} '{value}'")
    return display


@router.get("", response_model=list[TicketOut])
def list_tickets(
    db: Session = Depends(get_db),
    current_user: Principal = Depends(require_allowed_user),
    if_none_match: Optional[str] = Header(None),
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    project_id: Optional[str] = Query(None),
    assignee_id: Optional[str] = Query(None),
    q: Optional[str] = Query(None),  # search in title
):
    """
    Ticket feed, newest first.

    Sends an ETag over the assembled rows; a matching If-None-Match gets a
    304 with no body. Enum filters compare display values so legacy rows
    stored with unusual casing still match.
    """
    wanted = {
        "status": _enum_filter("status", status),
        "priority": _enum_filter("priority", priority),
        "type": _enum_filter("type", type),
    }

    stmt = select(Ticket)
    if project_id:
        stmt = stmt.where(Ticket.project_id == project_id)
    if assignee_id:
        stmt = stmt.where(Ticket.assignee_id == assignee_id)
    if q:
        stmt = stmt.where(Ticket.title.ilike(f"%{q.strip()}%"))
    stmt = stmt.order_by(*NEWEST_FIRST)

    try:
        projects, users = _lookups(db)
        rows = assemble_tickets(db.scalars(stmt), projects, users)
    except SQLAlchemyError as e:
        logger.exception("Error fetching tickets")
        raise HTTPException(status_code=500, detail=f"Failed to fetch ticket data. Server error: {str(e)}")

    rows = [
        r for r in rows
        if all(v is None or getattr(r, k) == v for k, v in wanted.items())
    ]
    payload = [r.model_dump() for r in rows]
    etag = generate_etag(payload)

    if etag_matches(if_none_match, etag):
        return Response(status_code=304, headers={"ETag": etag, "Cache-Control": _cache_control()})

    return JSONResponse(content=payload, headers={"ETag": etag, "Cache-Control": _cache_control()})


@router.get("/{display_id}", response_model=TicketOut)
def get_ticket(
    display_id: str,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(require_allowed_user),
):
    """Accepts 42, hrb-42 or HRB-42."""
    normalized = normalize_display_id(display_id)
    if not normalized:
        raise HTTPException(status_code=404, detail="Ticket not found")

    try:
        ticket = db.scalars(
            select(Ticket).where(func.upper(Ticket.display_id) == normalized.upper())
        ).first()
        if not ticket:
            raise HTTPException(status_code=404, detail="Ticket not found")
        projects, users = _lookups(db)
    except SQLAlchemyError as e:
        logger.exception("Error fetching ticket %s", normalized)
        raise HTTPException(status_code=500, detail=f"Failed to fetch ticket data. Server error: {str(e)}")

    return assemble_ticket(ticket, projects, users)


def _resolve_requester(db: Session, payload: TicketSubmission, current_user: Principal) -> Optional[str]:
    """users.id for the requester: by id, then email, then name, then the signed-in user."""
    requester = payload.requester.strip()
    by_id = db.get(User, requester)
    if by_id:
        return by_id.id

    def by_email(email):
        return db.scalars(select(User.id).where(func.lower(User.email) == email.strip().lower())).first()

    for email in (payload.requesterEmail, requester):
        user_id = by_email(email) if email else None
        if user_id:
            return user_id

    by_name = db.scalars(select(User.id).where(func.lower(User.name) == requester.lower())).first()
    if by_name:
        return by_name
    return by_email(current_user.email) if current_user.email else None


@router.post("", response_model=TicketSubmissionResult)
def create_tickets(
    payload: TicketSubmission,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(require_allowed_user),
):
    """
    Create a batch of tickets sharing requester/project/assignee.

    All tickets get identifiers and are inserted, or none are. The Discord
    notification runs after the response and cannot fail the request.
    """
    try:
        if payload.projectId and not db.get(Project, payload.projectId):
            raise HTTPException(status_code=400, detail=f"Unknown project '{payload.projectId}'")
        assignee = db.get(User, payload.assignee) if payload.assignee else None
        if payload.assignee and not assignee:
            raise HTTPException(status_code=400, detail=f"Unknown assignee '{payload.assignee}'")

        ctx = BatchContext(
            requested_by_id=_resolve_requester(db, payload, current_user),
            project_id=payload.projectId,
            assignee_id=payload.assignee,
        )
        drafts = [
            TicketDraft(
                title=t.title,
                description=t.description or "",
                priority=to_storage("priority", t.priority),
                type=to_storage("type", t.type),
                due_date=t.expectedDoneDate,
                links=[t.url.strip()] if t.url and t.url.strip() else [],
            )
            for t in payload.tickets
        ]
        inserted = allocate_and_insert(db, drafts, ctx)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TicketAllocationConflict as e:
        raise HTTPException(status_code=409, detail=f"Failed to submit tickets: {str(e)}")
    except TicketIntegrityError as e:
        logger.error("Ticket batch integrity failure: %s", e)
        raise HTTPException(status_code=500, detail=f"Failed to submit tickets. Server error: {str(e)}")
    except SQLAlchemyError as e:
        logger.exception("Error submitting tickets")
        raise HTTPException(status_code=500, detail=f"Failed to submit tickets. Server error: {str(e)}")

    ticket_ids = [t.display_id for t in inserted]
    event = TicketsCreatedEvent(
        requester=payload.requester,
        tickets=[
            CreatedTicket(
                display_id=t.display_id,
                title=t.title,
                type=to_display("type", t.type),
                priority=to_display("priority", t.priority),
            )
            for t in inserted
        ],
        assignee_id=payload.assignee,
        assignee_name=payload.assigneeName or (assignee.name if assignee else None),
    )
    background_tasks.add_task(notify_tickets_created, event)

    return TicketSubmissionResult(
        message=f"{len(ticket_ids)} ticket(s) submitted successfully!",
        ticketIds=ticket_ids,
    )
