import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

import requests
from sqlalchemy import select

from techtool.core.config import settings
from techtool.core.database import SessionLocal
from techtool.models.user import User

logger = logging.getLogger(__name__)

EMBED_COLOR = 31415  # #007aff
FOOTER_TEXT = "TechTool Notification System"


@dataclass
class CreatedTicket:
    display_id: str
    title: str
    type: str  # display format
    priority: str


@dataclass
class TicketsCreatedEvent:
    requester: str
    tickets: List[CreatedTicket] = field(default_factory=list)
    assignee_id: Optional[str] = None
    assignee_name: Optional[str] = None


def _lookup_discord_id(user_id: str) -> Optional[str]:
    """Resolve the assignee's Discord id with a session of our own (we run after the response)."""
    db = SessionLocal()
    try:
        return db.scalars(select(User.discord_id).where(User.id == user_id)).first()
    finally:
        db.close()


def _ticket_url(display_id: str) -> str:
    return f"{settings.WEB_APP_URL.rstrip('/')}/tickets?ticket={display_id}"


def _content_line(event: TicketsCreatedEvent, discord_id: Optional[str]) -> str:
    count = len(event.tickets)
    plural = "s" if count > 1 else ""
    if discord_id:
        return f"Hi <@{discord_id}>, a new ticket has been assigned to you."
    if event.assignee_name:
        return f"Hi {event.assignee_name}, a new ticket has been assigned to you."
    return f"{event.requester} created {count} new ticket{plural}!"


def build_discord_payload(event: TicketsCreatedEvent, discord_id: Optional[str] = None) -> dict:
    """Webhook body: a content line (pings the assignee) and one embed listing every ticket."""
    count = len(event.tickets)
    plural = "s" if count > 1 else ""
    assignee_text = (
        f"Assignee: **{event.assignee_name}**" if event.assignee_name else "Assignee: Unassigned"
    )

    blocks = []
    for t in event.tickets:
        link = f"[**[{t.display_id}] - {t.title}**]({_ticket_url(t.display_id)})"
        blocks.append(f"{link}\n{assignee_text}\nType: {t.type} | Priority: {t.priority}")

    payload = {
        "username": settings.DISCORD_BOT_NAME,
        "content": _content_line(event, discord_id),
        "embeds": [
            {
                "author": {"name": f"{event.requester} created {count} new ticket{plural}!"},
                "description": "\n\n".join(blocks),
                "color": EMBED_COLOR,
                "footer": {"text": FOOTER_TEXT},
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        ],
    }
    if settings.DISCORD_AVATAR_URL:
        payload["avatar_url"] = settings.DISCORD_AVATAR_URL
    return payload


def notify_tickets_created(event: TicketsCreatedEvent) -> None:
    """
    Post the creation event to Discord. One attempt per batch; every failure
    is logged and swallowed since the tickets already exist.
    """
    webhook_url = settings.DISCORD_WEBHOOK_URL
    if not webhook_url or not event.tickets:
        return

    try:
        discord_id = None
        if event.assignee_id:
            try:
                discord_id = _lookup_discord_id(event.assignee_id)
            except Exception:
                logger.exception("Could not fetch discord id for assignee %s", event.assignee_id)

        response = requests.post(webhook_url, json=build_discord_payload(event, discord_id), timeout=10)
        if not response.ok:
            logger.error(
                "Discord notification failed (%s): %s", response.status_code, response.text
            )
            return
        logger.info(
            "Discord notified for %s",
            ", ".join(t.display_id for t in event.tickets),
        )
    except Exception:
        logger.exception("Error sending Discord notification")
