"""
Session Record Model

One row per identity holding the fingerprint of the only refresh token that
may currently be rotated. Rotation replaces the fingerprint with a
conditional UPDATE; logout deletes the row.
"""

from datetime import datetime

from sqlmodel import Field, SQLModel

from vidhub.models.identity import utcnow


class SessionRecord(SQLModel, table=True):
    identity_id: int = Field(primary_key=True)
    refresh_fingerprint: str
    issued_at: datetime = Field(default_factory=utcnow)
