"""Project Pydantic schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    emoji: Optional[str] = Field(None, max_length=16)


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    emoji: Optional[str] = Field(None, max_length=16)


class ProjectOut(BaseModel):
    id: int
    community_id: int
    name: str
    description: Optional[str] = None
    emoji: Optional[str] = None
    created_by: int
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProjectPage(BaseModel):
    projects: List[ProjectOut]
    total: int
    page: int
    total_pages: int
