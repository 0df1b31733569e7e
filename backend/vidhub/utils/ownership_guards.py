"""
Ownership Guards

One guard for every owner-only mutation:
- existence is checked first (404), ownership second (403)
- ownership compares the owner reference against the session identity id,
  never display attributes
"""

import logging
from typing import Any, Callable, Optional, Type, TypeVar

from sqlmodel import Session, SQLModel

from vidhub.errors import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=SQLModel)


def default_owner(entity: Any) -> Any:
    return entity.owner_id


def require_ownership(
    entity: Optional[T],
    identity_id: int,
    owner_of: Callable[[Any], Any] = default_owner,
    label: str = "Resource",
) -> T:
    """
    Return `entity` if it exists and belongs to `identity_id`.

    Raises:
        NotFoundError: entity is None
        ForbiddenError: entity is owned by another identity
    """
    if entity is None:
        raise NotFoundError(f"{label} not found")

    if owner_of(entity) != identity_id:
        logger.warning(
            "Identity %s denied on %s %s owned by %s", identity_id, label.lower(), getattr(entity, "id", None), owner_of(entity)
        )
        raise ForbiddenError(f"You are not the owner of this {label.lower()}")

    return entity


def get_or_404(session: Session, model: Type[T], entity_id: int, label: str = "Resource") -> T:
    entity = session.get(model, entity_id)
    if entity is None:
        raise NotFoundError(f"{label} not found")
    return entity


def get_owned_or_404(
    session: Session,
    model: Type[T],
    entity_id: int,
    identity_id: int,
    label: str = "Resource",
    owner_of: Callable[[Any], Any] = default_owner,
) -> T:
    """Load an entity by id and apply require_ownership."""
    return require_ownership(session.get(model, entity_id), identity_id, owner_of=owner_of, label=label)
