"""
Read-only lookups used by the ticket form and the asset directory.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from techtool.api.deps import get_db
from techtool.core.auth import Principal, require_allowed_user
from techtool.models.asset import Asset
from techtool.models.project import Project
from techtool.models.user import User
from techtool.schemas.directory import AssetOut, ProjectOut, TeamMemberOut

logger = logging.getLogger(__name__)

router = APIRouter(tags=["directory"])

TEAM_ROLES = ("admin", "member")
UNKNOWN_USER = "Unknown user"


@router.get("/projects", response_model=List[ProjectOut])
def list_projects(
    db: Session = Depends(get_db),
    current_user: Principal = Depends(require_allowed_user),
):
    try:
        projects = db.scalars(select(Project).order_by(Project.name)).all()
    except SQLAlchemyError as e:
        logger.exception("Error fetching projects")
        raise HTTPException(status_code=500, detail=f"Failed to fetch projects: {str(e)}")
    return [ProjectOut(id=p.id, name=p.name) for p in projects if p.id and p.name]


@router.get("/team-members", response_model=List[TeamMemberOut])
def list_team_members(
    db: Session = Depends(get_db),
    current_user: Principal = Depends(require_allowed_user),
):
    """Users with a name, an email and an admin/member role (possible assignees)."""
    try:
        users = db.scalars(select(User).order_by(User.name)).all()
    except SQLAlchemyError as e:
        logger.exception("Error fetching team members")
        raise HTTPException(status_code=500, detail=f"Failed to fetch team members: {str(e)}")

    members = [
        TeamMemberOut(
            id=u.id,
            name=u.name,
            email=u.email,
            avatar_url=u.avatar_url,
            role=u.role,
            discordId=u.discord_id,
        ).model_dump()
        for u in users
        if u.name and u.email and (u.role or "").lower() in TEAM_ROLES
    ]
    # changes rarely
    return JSONResponse(content=members, headers={"Cache-Control": "public, s-maxage=600"})


@router.get("/assets", response_model=List[AssetOut])
def list_assets(
    db: Session = Depends(get_db),
    current_user: Principal = Depends(require_allowed_user),
):
    try:
        assets = db.scalars(select(Asset).order_by(Asset.name)).all()
        names = {u.id: u.name for u in db.scalars(select(User)) if u.id and u.name}
    except SQLAlchemyError as e:
        logger.exception("Error fetching assets")
        raise HTTPException(status_code=500, detail=f"Failed to fetch assets: {str(e)}")

    out = []
    for a in assets:
        links = a.links if isinstance(a.links, list) else None
        collaborator_ids = a.collaborator_ids if isinstance(a.collaborator_ids, list) else []
        out.append(
            AssetOut(
                id=a.id,
                name=a.name,
                description=a.description or "",
                owner=names.get(a.owner_id, UNKNOWN_USER) if a.owner_id else None,
                collaborators=[names.get(cid, UNKNOWN_USER) for cid in collaborator_ids],
                source_url=links[0] if links else None,
                production_url=a.production_url,
                links=links,
            ).model_dump()
        )

    return JSONResponse(
        content=out,
        headers={"Cache-Control": "public, s-maxage=300, stale-while-revalidate=900"},
    )
