"""
Subscription Model

Directed edge subscriber -> channel. At most one edge per ordered pair; the
unique constraint is what makes concurrent toggles safe.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel

from vidhub.models.identity import utcnow


class Subscription(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("subscriber_id", "channel_id", name="uq_subscription_pair"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    subscriber_id: int = Field(index=True)
    channel_id: int = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)
