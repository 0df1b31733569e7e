"""
Relationship Toggle

Idempotent create/delete of binary edges (subscriptions, likes).

Find-then-act is not atomic, so the store arbitrates:
- create relies on the edge table's unique constraint. A caller that loses
  the insert race re-reads the winner and reports "created".
- delete is a conditional DELETE by id. A caller whose row was already
  removed by a concurrent toggle still reports "removed".

So two simultaneous toggles that both saw "no edge" leave exactly one edge,
and two that both saw the edge leave none.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, select

from vidhub.errors import ConflictError
from vidhub.models.reaction import Reaction, ReactionTarget
from vidhub.models.subscription import Subscription
from vidhub.utils.sql import is_unique_violation

logger = logging.getLogger(__name__)

CREATED = "created"
REMOVED = "removed"


@dataclass(frozen=True)
class EdgeType:
    name: str
    model: Type[SQLModel]
    subject_field: str
    object_field: str
    # Constant columns that are part of the edge's identity (e.g. target_type)
    scope: Dict[str, Any] = field(default_factory=dict)

    def key(self, subject_id: int, object_id: int) -> Dict[str, Any]:
        values = dict(self.scope)
        values[self.subject_field] = subject_id
        values[self.object_field] = object_id
        return values

    def where(self, subject_id: int, object_id: int):
        return [getattr(self.model, name) == value for name, value in self.key(subject_id, object_id).items()]


SUBSCRIPTION = EdgeType("subscription", Subscription, "subscriber_id", "channel_id")
VIDEO_LIKE = EdgeType("video_like", Reaction, "actor_id", "target_id", {"target_type": ReactionTarget.VIDEO.value})
COMMENT_LIKE = EdgeType(
    "comment_like", Reaction, "actor_id", "target_id", {"target_type": ReactionTarget.COMMENT.value}
)


@dataclass
class ToggleResult:
    state: str
    edge: Optional[Dict[str, Any]]

    @property
    def created(self) -> bool:
        return self.state == CREATED


def find_edge(session: Session, edge_type: EdgeType, subject_id: int, object_id: int) -> Optional[SQLModel]:
    return session.exec(select(edge_type.model).where(*edge_type.where(subject_id, object_id))).first()


def remove_edge(session: Session, edge_type: EdgeType, edge: SQLModel) -> ToggleResult:
    snapshot = edge.model_dump()
    result = session.execute(delete(edge_type.model).where(edge_type.model.id == snapshot["id"]))
    session.commit()
    if result.rowcount == 0:
        logger.info("%s %s already removed by a concurrent toggle", edge_type.name, snapshot["id"])
    return ToggleResult(REMOVED, snapshot)


def create_edge(session: Session, edge_type: EdgeType, subject_id: int, object_id: int) -> ToggleResult:
    edge = edge_type.model(**edge_type.key(subject_id, object_id))
    session.add(edge)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        if not is_unique_violation(exc):
            raise
        winner = find_edge(session, edge_type, subject_id, object_id)
        if winner is None:
            # Created and removed again between our insert and re-read
            raise ConflictError(f"Concurrent update on {edge_type.name}; retry the request") from exc
        logger.info("%s (%s, %s) created concurrently; keeping the existing edge", edge_type.name, subject_id, object_id)
        return ToggleResult(CREATED, winner.model_dump())
    session.refresh(edge)
    return ToggleResult(CREATED, edge.model_dump())


def toggle(session: Session, edge_type: EdgeType, subject_id: int, object_id: int) -> ToggleResult:
    """Remove the (subject, object) edge if present, otherwise create it."""
    existing = find_edge(session, edge_type, subject_id, object_id)
    if existing is not None:
        return remove_edge(session, edge_type, existing)
    return create_edge(session, edge_type, subject_id, object_id)
