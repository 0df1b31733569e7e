"""
API Routes for Playlists

Membership changes are read-modify-write on one document, guarded by the
playlist's revision: the UPDATE only applies if the revision is unchanged
since the read, otherwise the change is re-derived from fresh state.
"""

import logging
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import update
from sqlmodel import Session

from vidhub.auth import CurrentIdentity, get_current_identity
from vidhub.database import get_session
from vidhub.errors import ConflictError, NotFoundError, ValidationError
from vidhub.models.identity import utcnow
from vidhub.models.playlist import Playlist
from vidhub.models.video import Video
from vidhub.services import query_composer
from vidhub.services.pagination import paginate
from vidhub.services.query_composer import DESC, Eq, Filter, Join, Pipeline, Sort, owner_enrichment
from vidhub.utils.ownership_guards import get_or_404, get_owned_or_404
from vidhub.utils.responses import api_response

logger = logging.getLogger(__name__)

router = APIRouter()

PLAYLIST_VIDEO_FIELDS = ("id", "title", "description", "thumbnail", "duration", "views", "owner")
MAX_MEMBERSHIP_ATTEMPTS = 3


class PlaylistCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class PlaylistUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


def playlist_pipeline(*stages) -> Pipeline:
    """Playlist with its videos (stored order, owners enriched) and its owner."""
    return Pipeline(
        "playlists",
        tuple(stages)
        + (
            Join(
                "videos",
                "video_ids",
                "id",
                fields=PLAYLIST_VIDEO_FIELDS,
                as_field="videos",
                stages=owner_enrichment(),
            ),
        )
        + owner_enrichment(),
    )


def get_enriched_playlist(session: Session, playlist_id: int) -> dict:
    playlist = query_composer.first(session, playlist_pipeline(Filter(Eq("id", playlist_id))))
    if playlist is None:
        raise NotFoundError("Playlist not found")
    return playlist


def _change_membership(
    session: Session,
    playlist_id: int,
    identity_id: int,
    change: Callable[[List[int]], Optional[List[int]]],
) -> bool:
    """
    Apply `change` to the playlist's video list with compare-and-replace on
    its revision. `change` returns None when there is nothing to do.

    Returns True if the list was rewritten.
    """
    for attempt in range(1, MAX_MEMBERSHIP_ATTEMPTS + 1):
        playlist = get_owned_or_404(session, Playlist, playlist_id, identity_id, "Playlist")
        new_ids = change(list(playlist.video_ids or []))
        if new_ids is None:
            return False

        result = session.execute(
            update(Playlist)
            .where(Playlist.id == playlist_id, Playlist.revision == playlist.revision)
            .values(video_ids=new_ids, revision=playlist.revision + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            session.commit()
            return True

        session.rollback()
        session.expire_all()
        logger.info("Playlist %s changed concurrently (attempt %d)", playlist_id, attempt)

    raise ConflictError("Playlist is being modified concurrently; retry the request")


@router.post("/playlists", status_code=201)
def create_playlist(
    payload: PlaylistCreate,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    name = (payload.name or "").strip()
    description = (payload.description or "").strip()
    if not name or not description:
        raise ValidationError("Name and description are required")

    playlist = Playlist(name=name, description=description, owner_id=current.id, video_ids=[])
    session.add(playlist)
    session.commit()
    session.refresh(playlist)
    return api_response(get_enriched_playlist(session, playlist.id), "Playlist created successfully", 201)


@router.get("/playlists/user/{user_id}")
def list_user_playlists(
    user_id: int,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    session: Session = Depends(get_session),
):
    pipeline = playlist_pipeline(Filter(Eq("owner_id", user_id)), Sort("created_at", DESC))
    result = paginate(session, pipeline, page, limit)
    return api_response(result.to_dict(), "Playlists fetched successfully")


@router.get("/playlists/{playlist_id}")
def get_playlist(playlist_id: int, session: Session = Depends(get_session)):
    return api_response(get_enriched_playlist(session, playlist_id), "Playlist fetched successfully")


@router.patch("/playlists/{playlist_id}")
def update_playlist(
    playlist_id: int,
    payload: PlaylistUpdate,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    playlist = get_owned_or_404(session, Playlist, playlist_id, current.id, "Playlist")

    name = (payload.name or "").strip()
    description = (payload.description or "").strip()
    if not name and not description:
        raise ValidationError("Provide a name and/or description")

    if name:
        playlist.name = name
    if description:
        playlist.description = description
    session.add(playlist)
    session.commit()
    return api_response(get_enriched_playlist(session, playlist_id), "Playlist updated successfully")


@router.delete("/playlists/{playlist_id}")
def delete_playlist(
    playlist_id: int,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    playlist = get_owned_or_404(session, Playlist, playlist_id, current.id, "Playlist")
    session.delete(playlist)
    session.commit()
    return api_response({}, "Playlist deleted successfully")


@router.patch("/playlists/add/{video_id}/{playlist_id}")
def add_video_to_playlist(
    video_id: int,
    playlist_id: int,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    get_owned_or_404(session, Playlist, playlist_id, current.id, "Playlist")
    get_or_404(session, Video, video_id, "Video")

    changed = _change_membership(
        session,
        playlist_id,
        current.id,
        lambda ids: None if video_id in ids else ids + [video_id],
    )
    message = "Video added to playlist successfully" if changed else "Video is already in the playlist"
    return api_response(get_enriched_playlist(session, playlist_id), message)


@router.patch("/playlists/remove/{video_id}/{playlist_id}")
def remove_video_from_playlist(
    video_id: int,
    playlist_id: int,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    changed = _change_membership(
        session,
        playlist_id,
        current.id,
        lambda ids: [vid for vid in ids if vid != video_id] if video_id in ids else None,
    )
    message = "Video removed from playlist successfully" if changed else "Video is not in the playlist"
    return api_response(get_enriched_playlist(session, playlist_id), message)
