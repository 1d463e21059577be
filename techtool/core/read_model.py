"""
Read model for the ticket list.

Tickets are stored normalized (foreign keys, lower snake case enums, links as
JSON). The web client wants joined names, display-format enums and a flat
newline separated link string, so every read goes through `assemble_tickets`.
"""
import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from techtool.schemas.ticket import TicketOut

PRIORITIES = ["Urgent", "High", "Medium", "Low"]
TYPES = ["Request", "Bug", "Task"]
STATUSES = ["Open", "In Progress", "Completed", "Cancelled", "Rejected", "On Hold", "Blocked"]

DEFAULTS = {"priority": "Medium", "type": "Request", "status": "Open"}
_ALLOWED = {"priority": PRIORITIES, "type": TYPES, "status": STATUSES}

_URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s")


def _key(value: str) -> str:
    return re.sub(r"[\s\-]+", "_", value.strip().lower())


# "in_progress" -> "In Progress", for every enum
_DISPLAY_BY_KEY = {kind: {_key(v): v for v in values} for kind, values in _ALLOWED.items()}


def to_display(kind: str, value: Optional[str]) -> str:
    """
    Storage (or free-text) value -> display value.

    Missing, empty and unrecognized values all map to the default for `kind`.
    """
    if isinstance(value, str) and value.strip():
        found = _DISPLAY_BY_KEY[kind].get(_key(value))
        if found:
            return found
    return DEFAULTS[kind]


def to_storage(kind: str, value: Optional[str]) -> str:
    """Display (or free-text) value -> storage value, with the same defaults."""
    return _key(to_display(kind, value))


def match_display(kind: str, value: Optional[str]) -> Optional[str]:
    """Like to_display but None instead of the default; used for query filters."""
    if not isinstance(value, str) or not value.strip():
        return None
    return _DISPLAY_BY_KEY[kind].get(_key(value))


def _clean_links(items: Iterable[Any]) -> List[str]:
    return [s for s in (str(i).strip() for i in items if isinstance(i, str)) if s]


def parse_links(value: Any) -> List[str]:
    """
    Stored `links` value -> list of non-empty trimmed urls. Never raises.

    Accepts a list, a JSON encoded list, or a bare link string (legacy rows,
    with or without a scheme). Broken JSON and free text give no links.
    """
    if value is None:
        return []
    if isinstance(value, list):
        return _clean_links(value)
    if not isinstance(value, str):
        return []
    raw = value.strip()
    if not raw:
        return []
    if _URL_RE.match(raw):
        return [raw]
    try:
        decoded = json.loads(raw)
    except ValueError:
        if raw[0] in "[{\"" or _WHITESPACE_RE.search(raw):
            return []
        return [raw]
    if isinstance(decoded, list):
        return _clean_links(decoded)
    if isinstance(decoded, str) and _URL_RE.match(decoded.strip()):
        return [decoded.strip()]
    return []


def flatten_links(value: Any) -> str:
    return "\n".join(parse_links(value))


@dataclass
class ProjectLookup:
    names: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_rows(cls, rows) -> "ProjectLookup":
        return cls({str(p.id): p.name or "" for p in rows if p.id is not None})

    def name(self, project_id: Optional[str]) -> str:
        if project_id is None:
            return ""
        return self.names.get(str(project_id), "")


@dataclass
class UserLookup:
    people: Dict[str, Tuple[str, str]] = field(default_factory=dict)

    @classmethod
    def from_rows(cls, rows) -> "UserLookup":
        return cls({str(u.id): (u.name or "", u.avatar_url or "") for u in rows if u.id is not None})

    def name(self, user_id: Optional[str]) -> str:
        if user_id is None:
            return ""
        return self.people.get(str(user_id), ("", ""))[0]

    def avatar(self, user_id: Optional[str]) -> str:
        if user_id is None:
            return ""
        return self.people.get(str(user_id), ("", ""))[1]


def _iso(value) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value or ""


def assemble_ticket(row, projects: ProjectLookup, users: UserLookup) -> TicketOut:
    return TicketOut(
        id=str(row.id),
        display_id=row.display_id,
        title=row.title or "",
        description=row.description or "",
        projectName=projects.name(row.project_id),
        project_id=row.project_id,
        requestedBy=users.name(row.requested_by_id),
        requested_by_id=row.requested_by_id,
        reporterAvatar=users.avatar(row.requested_by_id),
        priority=to_display("priority", row.priority),
        type=to_display("type", row.type),
        status=to_display("status", row.status),
        assignee=users.name(row.assignee_id),
        assignee_id=row.assignee_id,
        assigneeAvatar=users.avatar(row.assignee_id),
        createdAt=_iso(row.created_at),
        assignedAt=_iso(row.assigned_at),
        started_at=_iso(row.started_at),
        completedAt=_iso(row.completed_at),
        updated_at=_iso(row.updated_at),
        dueDate=_iso(row.due_date) or None,
        relevantLink=flatten_links(row.links),
        links=parse_links(row.links),
        meta=row.meta if isinstance(row.meta, dict) else {},
    )


def assemble_tickets(rows, projects: ProjectLookup, users: UserLookup) -> List[TicketOut]:
    """Rows come out in the order storage returned them."""
    return [assemble_ticket(r, projects, users) for r in rows]
