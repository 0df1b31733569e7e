from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from vidhub.models.identity import utcnow


class Comment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    content: str
    video_id: int = Field(index=True)
    owner_id: int = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})
