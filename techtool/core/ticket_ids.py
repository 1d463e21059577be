"""
Ticket identifier allocation (HRB-1, HRB-2, ...).

Identifiers are "<PREFIX>-<n>" where n is one greater than the highest suffix
already stored. The next value is computed by scanning existing display ids,
so two submitters racing each other can pick the same n. The unique index on
tickets.display_id turns that race into an IntegrityError; the batch is rolled
back (nothing persisted) and allocation is retried against a full scan.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from techtool.core.config import settings
from techtool.models.ticket import Ticket

logger = logging.getLogger(__name__)


class TicketAllocationError(Exception):
    """Base class for failures while allocating and inserting a ticket batch."""


class TicketIntegrityError(TicketAllocationError):
    """The insert did not persist one row per draft."""


class TicketAllocationConflict(TicketAllocationError):
    """Every attempt collided with identifiers taken by a concurrent submitter."""


@dataclass
class TicketDraft:
    title: str
    description: str = ""
    priority: str = "medium"  # storage format
    type: str = "request"
    due_date: Optional[date] = None
    links: List[str] = field(default_factory=list)


@dataclass
class BatchContext:
    requested_by_id: Optional[str] = None
    project_id: Optional[str] = None
    assignee_id: Optional[str] = None


def _id_pattern(prefix: str) -> re.Pattern:
    return re.compile(rf"^{re.escape(prefix)}-(\d+)$", re.IGNORECASE)


def format_display_id(n: int, prefix: Optional[str] = None) -> str:
    return f"{prefix or settings.TICKET_PREFIX}-{n}"


def parse_display_id(value, prefix: Optional[str] = None) -> Optional[int]:
    """Numeric suffix of "HRB-42" (any case), or None for anything else."""
    if not isinstance(value, str):
        return None
    match = _id_pattern(prefix or settings.TICKET_PREFIX).match(value.strip())
    if not match:
        return None
    n = int(match.group(1))
    return n if n > 0 else None


def normalize_display_id(value: str, prefix: Optional[str] = None) -> Optional[str]:
    """Accepts "42", "hrb-42" or "HRB-42" and returns "HRB-42"."""
    prefix = prefix or settings.TICKET_PREFIX
    raw = (value or "").strip()
    if raw.isdigit():
        return format_display_id(int(raw), prefix) if int(raw) > 0 else None
    n = parse_display_id(raw, prefix)
    return format_display_id(n, prefix) if n is not None else None


def next_suffix(display_ids: Iterable, prefix: Optional[str] = None) -> int:
    """One more than the highest parseable suffix, 1 when there is none."""
    suffixes = [n for n in (parse_display_id(v, prefix) for v in display_ids) if n is not None]
    return max(suffixes) + 1 if suffixes else 1


NEWEST_FIRST = (
    Ticket.created_at.desc(),
    # a batch shares one created_at; HRB-10 must sort above HRB-9
    func.length(Ticket.display_id).desc(),
    Ticket.display_id.desc(),
)


def fetch_recent_display_ids(db: Session, limit: Optional[int] = None) -> List[str]:
    """
    Display ids, newest first. With a `limit` only the most recent rows are
    read, plus the id with the highest suffix so the window never misses the
    maximum.
    """
    stmt = select(Ticket.display_id).order_by(*NEWEST_FIRST)
    if not limit:
        return list(db.scalars(stmt))

    ids = list(db.scalars(stmt.limit(limit)))
    highest = db.scalars(
        select(Ticket.display_id)
        .where(func.upper(Ticket.display_id).like(f"{settings.TICKET_PREFIX.upper()}-%"))
        .order_by(func.length(Ticket.display_id).desc(), func.upper(Ticket.display_id).desc())
        .limit(1)
    ).first()
    if highest is not None:
        ids.append(highest)
    return ids


def linkify_ticket_refs(text: str, base_path: str = "/tickets?ticket=", prefix: Optional[str] = None) -> str:
    """
    Turn bare ticket references in free text into markdown links.

    "see hrb-12" -> "see [hrb-12](/tickets?ticket=HRB-12)". References inside an
    existing markdown link (label or url) are left alone.
    """
    if not text:
        return text
    prefix = prefix or settings.TICKET_PREFIX
    pattern = re.compile(
        rf"(\[[^\]]*\]\([^)]*\))|(?<![\[\w-]){re.escape(prefix)}-\d+(?![\w\]])",
        re.IGNORECASE,
    )

    def _replace(match: re.Match) -> str:
        if match.group(1):
            return match.group(1)
        ref = match.group(0)
        return f"[{ref}]({base_path}{ref.upper()})"

    return pattern.sub(_replace, text)


def _build_rows(drafts: List[TicketDraft], ctx: BatchContext, start: int, now: datetime) -> List[Ticket]:
    rows = []
    for offset, draft in enumerate(drafts):
        rows.append(
            Ticket(
                display_id=format_display_id(start + offset),
                title=draft.title,
                description=draft.description,
                priority=draft.priority,
                type=draft.type,
                status="open",
                project_id=ctx.project_id,
                requested_by_id=ctx.requested_by_id,
                assignee_id=ctx.assignee_id,
                assigned_at=now if ctx.assignee_id else None,
                created_at=now,
                due_date=draft.due_date,
                links=list(draft.links),
            )
        )
    return rows


def allocate_and_insert(db: Session, drafts: List[TicketDraft], ctx: BatchContext) -> List[Ticket]:
    """
    Assign consecutive display ids to `drafts` (input order) and insert them
    in a single transaction. Returns the persisted rows.

    Storage errors from the scan propagate before anything is written.
    """
    if not drafts:
        raise ValueError("at least one ticket is required")
    if any(not (d.title or "").strip() for d in drafts):
        raise ValueError("every ticket needs a title")

    attempts = max(1, settings.TICKET_ID_MAX_ATTEMPTS)
    scan_limit = settings.TICKET_ID_SCAN_LIMIT

    for attempt in range(1, attempts + 1):
        start = next_suffix(fetch_recent_display_ids(db, scan_limit))
        now = datetime.now(timezone.utc)
        rows = _build_rows(drafts, ctx, start, now)
        display_ids = [r.display_id for r in rows]

        db.add_all(rows)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            taken = db.scalars(select(Ticket.display_id).where(Ticket.display_id.in_(display_ids))).first()
            if taken is None:
                # not an identifier collision (bad foreign key, ...)
                raise
            logger.warning(
                "Display id collision on attempt %s/%s (%s..%s), rescanning",
                attempt, attempts, display_ids[0], display_ids[-1],
            )
            # a bounded window may have missed the true maximum
            scan_limit = None
            continue

        persisted = set(db.scalars(select(Ticket.display_id).where(Ticket.display_id.in_(display_ids))))
        if len(persisted) != len(drafts):
            raise TicketIntegrityError(
                f"Inserted {len(persisted)} of {len(drafts)} tickets ({', '.join(display_ids)})"
            )

        logger.info("Allocated %s ticket id(s): %s", len(rows), ", ".join(display_ids))
        return rows

    raise TicketAllocationConflict(
        f"Could not allocate unique ticket ids after {attempts} attempt(s)"
    )
