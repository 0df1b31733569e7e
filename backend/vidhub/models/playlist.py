from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel

from vidhub.models.identity import utcnow


class Playlist(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: str
    owner_id: int = Field(index=True)
    # Order is meaningful: enrichment must return videos in this order
    video_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    # Bumped on every membership change; writers compare-and-replace on it
    revision: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})
