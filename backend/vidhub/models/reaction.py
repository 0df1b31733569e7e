"""
Reaction Model

A like from an identity on a video or a comment. One edge per
(actor, target_type, target_id).
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel

from vidhub.models.identity import utcnow


class ReactionTarget(str, Enum):
    VIDEO = "video"
    COMMENT = "comment"


class Reaction(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("actor_id", "target_type", "target_id", name="uq_reaction_pair"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    actor_id: int = Field(index=True)
    target_type: str = Field(index=True)
    target_id: int = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
