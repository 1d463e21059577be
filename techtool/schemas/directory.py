from pydantic import BaseModel
from typing import List, Optional


class ProjectOut(BaseModel):
    id: str
    name: str

    class Config:
        from_attributes = True


class TeamMemberOut(BaseModel):
    id: str
    name: str
    email: str
    avatar_url: Optional[str] = None
    role: Optional[str] = None
    discordId: Optional[str] = None


class AssetOut(BaseModel):
    id: str
    name: str
    description: str = ""
    owner: Optional[str] = None  # None when the asset has no owner
    collaborators: List[str] = []
    source_url: Optional[str] = None
    production_url: Optional[str] = None
    links: Optional[List[str]] = None
