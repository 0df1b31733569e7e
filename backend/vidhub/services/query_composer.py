"""
Query Composer

Builds denormalized views over the store from an explicit list of stages:

- Filter / Sort: evaluated by the store (WHERE / ORDER BY) against fields of
  the pipeline's own collection, wherever they appear in the list.
- Join / Flatten / Project: evaluated in declared order on the fetched
  documents. A Join fetches every referenced document in one batched IN
  query and attaches the matches as a list under a named field.

When the local key of a Join holds a list of references (a playlist's
videos), the attached documents are re-projected into that list's order as a
final pass; the store's IN match makes no ordering promise.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type, Union

from sqlalchemy import Column as SAColumn
from sqlalchemy import or_
from sqlmodel import Session, SQLModel, func, select

from vidhub.models.comment import Comment
from vidhub.models.identity import Identity
from vidhub.models.playlist import Playlist
from vidhub.models.reaction import Reaction
from vidhub.models.subscription import Subscription
from vidhub.models.video import Video
from vidhub.utils.sql import scalar_int

logger = logging.getLogger(__name__)

COLLECTIONS: Dict[str, Type[SQLModel]] = {
    "identities": Identity,
    "videos": Video,
    "comments": Comment,
    "playlists": Playlist,
    "subscriptions": Subscription,
    "reactions": Reaction,
}

# Lightweight public profile attached wherever an owner is enriched
OWNER_FIELDS: Tuple[str, ...] = ("id", "username", "full_name", "avatar")

ASC = "asc"
DESC = "desc"

Document = Dict[str, Any]


def collection_model(name: str) -> Type[SQLModel]:
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise ValueError(f"Unknown collection '{name}'") from None


def _column(model: Type[SQLModel], name: str) -> SAColumn:
    try:
        return model.__table__.c[name]
    except KeyError:
        raise ValueError(f"{model.__name__} has no field '{name}'") from None


# ============================================================================
# Filter conditions
# ============================================================================


@dataclass(frozen=True)
class Eq:
    field: str
    value: Any

    def clause(self, model):
        return _column(model, self.field) == self.value


@dataclass(frozen=True)
class In:
    field: str
    values: Tuple[Any, ...]

    def clause(self, model):
        return _column(model, self.field).in_(list(self.values))


@dataclass(frozen=True)
class Range:
    field: str
    gte: Any = None
    lte: Any = None

    def clause(self, model):
        col = _column(model, self.field)
        parts = []
        if self.gte is not None:
            parts.append(col >= self.gte)
        if self.lte is not None:
            parts.append(col <= self.lte)
        if not parts:
            raise ValueError(f"Range on '{self.field}' needs gte and/or lte")
        return parts[0] if len(parts) == 1 else parts[0] & parts[1]


@dataclass(frozen=True)
class TextMatch:
    """Case-insensitive substring match on any of the given fields."""

    fields: Tuple[str, ...]
    term: str

    def clause(self, model):
        escaped = self.term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        return or_(*[_column(model, name).ilike(pattern, escape="\\") for name in self.fields])


Condition = Union[Eq, In, Range, TextMatch]


# ============================================================================
# Stages
# ============================================================================


class Filter:
    """Conjunction of conditions on the pipeline's own collection."""

    def __init__(self, *conditions: Condition):
        if not conditions:
            raise ValueError("Filter needs at least one condition")
        self.conditions: Tuple[Condition, ...] = tuple(conditions)

    def __repr__(self):
        return f"Filter{self.conditions!r}"


@dataclass(frozen=True)
class Sort:
    key: str
    direction: str = DESC

    def __post_init__(self):
        if self.direction not in (ASC, DESC):
            raise ValueError(f"Sort direction must be '{ASC}' or '{DESC}', got '{self.direction}'")


@dataclass(frozen=True)
class Join:
    """
    Attach documents of `relation` whose `foreign_key` matches this
    document's `local_key`, as a list under `as_field` (default: relation).

    `stages` is a nested pipeline run on the joined documents before they are
    attached; `fields` then restricts each joined document.
    """

    relation: str
    local_key: str
    foreign_key: str = "id"
    fields: Optional[Tuple[str, ...]] = None
    as_field: Optional[str] = None
    stages: Tuple[Any, ...] = ()

    @property
    def target(self) -> str:
        return self.as_field or self.relation


@dataclass(frozen=True)
class Flatten:
    """Collapse a joined list to its first element, or None when empty."""

    field: str


@dataclass(frozen=True)
class Project:
    fields: Tuple[str, ...]


Stage = Union[Filter, Join, Flatten, Project, Sort]


@dataclass(frozen=True)
class Pipeline:
    collection: str
    stages: Tuple[Stage, ...] = ()

    @property
    def model(self) -> Type[SQLModel]:
        return collection_model(self.collection)

    def then(self, *stages: Stage) -> "Pipeline":
        return Pipeline(self.collection, self.stages + tuple(stages))

    @property
    def filters(self) -> Tuple[Filter, ...]:
        return tuple(s for s in self.stages if isinstance(s, Filter))


def owner_enrichment(local_key: str = "owner_id", as_field: str = "owner") -> Tuple[Stage, ...]:
    """Join + Flatten idiom attaching the owner's public profile (or None)."""
    return (
        Join("identities", local_key, "id", fields=OWNER_FIELDS, as_field=as_field),
        Flatten(as_field),
    )


# ============================================================================
# Execution
# ============================================================================


def _store_statement(model: Type[SQLModel], stages: Iterable[Stage]):
    """Build the SELECT carrying every Filter and Sort stage."""
    statement = select(model)
    sorts: List[Sort] = []
    for stage in stages:
        if isinstance(stage, Filter):
            statement = statement.where(*[cond.clause(model) for cond in stage.conditions])
        elif isinstance(stage, Sort):
            sorts.append(stage)

    for sort in sorts:
        col = _column(model, sort.key)
        statement = statement.order_by(col.asc() if sort.direction == ASC else col.desc())

    # Primary key tie-breaker keeps page slices stable across identical sort keys
    pk = _column(model, "id")
    if sorts and sorts[-1].direction == DESC:
        statement = statement.order_by(pk.desc())
    else:
        statement = statement.order_by(pk.asc())
    return statement


def _to_document(row: SQLModel) -> Document:
    return row.model_dump()


def _apply_document_stages(session: Session, docs: List[Document], stages: Sequence[Stage]) -> List[Document]:
    for stage in stages:
        if isinstance(stage, Join):
            docs = _join(session, docs, stage)
        elif isinstance(stage, Flatten):
            for doc in docs:
                joined = doc.get(stage.field)
                doc[stage.field] = joined[0] if joined else None
        elif isinstance(stage, Project):
            docs = [{name: doc[name] for name in stage.fields if name in doc} for doc in docs]
    return docs


def _join(session: Session, docs: List[Document], stage: Join) -> List[Document]:
    foreign_model = collection_model(stage.relation)

    wanted = []
    seen = set()
    for doc in docs:
        for ref in _references(doc.get(stage.local_key)):
            if ref not in seen:
                seen.add(ref)
                wanted.append(ref)

    by_key: Dict[Any, List[Document]] = {}
    if wanted:
        statement = _store_statement(foreign_model, stage.stages).where(
            _column(foreign_model, stage.foreign_key).in_(wanted)
        )
        rows = session.exec(statement).all()
        keys = [getattr(row, stage.foreign_key) for row in rows]
        joined = _apply_document_stages(session, [_to_document(row) for row in rows], stage.stages)
        if stage.fields is not None:
            joined = [{name: doc[name] for name in stage.fields if name in doc} for doc in joined]
        for key, doc in zip(keys, joined):
            by_key.setdefault(key, []).append(doc)

    for doc in docs:
        local = doc.get(stage.local_key)
        if isinstance(local, (list, tuple)):
            # Re-project into the reference order; dangling references drop out
            doc[stage.target] = [match for ref in local for match in by_key.get(ref, [])[:1]]
        else:
            doc[stage.target] = list(by_key.get(local, [])) if local is not None else []
    return docs


def _references(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [v for v in value if v is not None]
    return [value]


def run(session: Session, pipeline: Pipeline, offset: Optional[int] = None, limit: Optional[int] = None) -> List[Document]:
    """Execute the pipeline, optionally slicing before document stages run."""
    logger.debug("Running %s pipeline: %r", pipeline.collection, pipeline.stages)
    statement = _store_statement(pipeline.model, pipeline.stages)
    if offset:
        statement = statement.offset(offset)
    if limit is not None:
        statement = statement.limit(limit)
    rows = session.exec(statement).all()
    return _apply_document_stages(session, [_to_document(row) for row in rows], pipeline.stages)


def first(session: Session, pipeline: Pipeline) -> Optional[Document]:
    docs = run(session, pipeline, limit=1)
    return docs[0] if docs else None


def count(session: Session, pipeline: Pipeline) -> int:
    """Count matches; only Filter stages apply (joins never drop documents)."""
    model = pipeline.model
    statement = select(func.count()).select_from(model)
    for stage in pipeline.filters:
        statement = statement.where(*[cond.clause(model) for cond in stage.conditions])
    return scalar_int(session.exec(statement).one())
