from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from vidhub.models.identity import utcnow


class Video(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str
    video_file: str
    thumbnail: str
    duration: float = Field(default=0)
    # Plain reference, not a foreign key: a deleted owner leaves the video readable
    owner_id: int = Field(index=True)
    is_published: bool = Field(default=True, index=True)
    views: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})
