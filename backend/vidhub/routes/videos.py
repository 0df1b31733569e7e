"""
API Routes for Videos
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy import delete, not_, update
from sqlmodel import Session

from vidhub.auth import CurrentIdentity, get_current_identity
from vidhub.database import get_session
from vidhub.errors import NotFoundError, ValidationError
from vidhub.models.comment import Comment
from vidhub.models.reaction import Reaction, ReactionTarget
from vidhub.models.video import Video
from vidhub.services import query_composer
from vidhub.services.media_storage import MediaStorage, get_media_storage, store_upload
from vidhub.services.pagination import paginate
from vidhub.services.query_composer import ASC, DESC, Eq, Filter, Pipeline, Project, Sort, TextMatch, owner_enrichment
from vidhub.utils.ownership_guards import get_owned_or_404
from vidhub.utils.responses import api_response

logger = logging.getLogger(__name__)

router = APIRouter()

SORTABLE_FIELDS = ("created_at", "updated_at", "views", "title", "duration")


def video_pipeline(*stages) -> Pipeline:
    return Pipeline("videos", tuple(stages) + owner_enrichment())


def get_enriched_video(session: Session, video_id: int) -> dict:
    video = query_composer.first(session, video_pipeline(Filter(Eq("id", video_id))))
    if video is None:
        raise NotFoundError("Video not found")
    return video


@router.get("/videos")
def list_videos(
    query: Optional[str] = None,
    owner_id: Optional[int] = None,
    sort_by: str = "created_at",
    sort_type: str = DESC,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    session: Session = Depends(get_session),
):
    """Published videos, optionally filtered by text and owner"""
    if sort_by not in SORTABLE_FIELDS:
        raise ValidationError(f"sort_by must be one of: {', '.join(SORTABLE_FIELDS)}")
    if sort_type not in (ASC, DESC):
        raise ValidationError("sort_type must be 'asc' or 'desc'")

    stages = [Filter(Eq("is_published", True))]
    if owner_id is not None:
        stages.append(Filter(Eq("owner_id", owner_id)))
    if query and query.strip():
        stages.append(Filter(TextMatch(("title", "description"), query.strip())))
    stages.append(Sort(sort_by, sort_type))

    result = paginate(session, video_pipeline(*stages), page, limit)
    return api_response(result.to_dict(), "Videos fetched successfully")


@router.post("/videos", status_code=201)
def publish_video(
    title: str = Form(""),
    description: str = Form(""),
    video_file: Optional[UploadFile] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    if not title.strip() or not description.strip():
        raise ValidationError("Title and description are required")
    if video_file is None:
        raise ValidationError("Video file is missing")
    if thumbnail is None:
        raise ValidationError("Thumbnail file is missing")

    uploaded_video = store_upload(storage, video_file)
    uploaded_thumbnail = store_upload(storage, thumbnail)

    video = Video(
        title=title.strip(),
        description=description.strip(),
        video_file=uploaded_video.url,
        thumbnail=uploaded_thumbnail.url,
        duration=uploaded_video.duration or 0,
        owner_id=current.id,
    )
    session.add(video)
    session.commit()
    session.refresh(video)

    logger.info("Identity %s published video %s", current.id, video.id)
    return api_response(video.model_dump(), "Video published successfully", 201)


@router.get("/videos/{video_id}")
def get_video(video_id: int, session: Session = Depends(get_session)):
    """Fetch one video; every read counts as a view"""
    result = session.execute(update(Video).where(Video.id == video_id).values(views=Video.views + 1))
    if result.rowcount == 0:
        session.rollback()
        raise NotFoundError("Video not found")
    session.commit()
    return api_response(get_enriched_video(session, video_id), "Video fetched successfully")


@router.patch("/videos/{video_id}")
def update_video(
    video_id: int,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    video_file: Optional[UploadFile] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    video = get_owned_or_404(session, Video, video_id, current.id, "Video")

    if title is not None and not title.strip():
        raise ValidationError("Title cannot be empty")
    if description is not None and not description.strip():
        raise ValidationError("Description cannot be empty")

    if title is not None:
        video.title = title.strip()
    if description is not None:
        video.description = description.strip()
    if video_file is not None:
        uploaded = store_upload(storage, video_file)
        video.video_file = uploaded.url
        if uploaded.duration is not None:
            video.duration = uploaded.duration
    if thumbnail is not None:
        video.thumbnail = store_upload(storage, thumbnail).url

    session.add(video)
    session.commit()
    return api_response(get_enriched_video(session, video_id), "Video details updated successfully")


def select_comment_ids(session: Session, video_id: int) -> list:
    docs = query_composer.run(session, Pipeline("comments", (Filter(Eq("video_id", video_id)), Project(("id",)))))
    return [doc["id"] for doc in docs]


@router.delete("/videos/{video_id}")
def delete_video(
    video_id: int,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    video = get_owned_or_404(session, Video, video_id, current.id, "Video")

    comment_ids = select_comment_ids(session, video_id)
    session.execute(
        delete(Reaction).where(Reaction.target_type == ReactionTarget.VIDEO.value, Reaction.target_id == video_id)
    )
    if comment_ids:
        session.execute(
            delete(Reaction).where(
                Reaction.target_type == ReactionTarget.COMMENT.value, Reaction.target_id.in_(comment_ids)
            )
        )
    session.execute(delete(Comment).where(Comment.video_id == video_id))
    session.delete(video)
    session.commit()

    logger.info("Identity %s deleted video %s", current.id, video_id)
    return api_response({}, "Video deleted successfully")


@router.patch("/videos/{video_id}/toggle-publish")
def toggle_publish_status(
    video_id: int,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    video = get_owned_or_404(session, Video, video_id, current.id, "Video")
    # Flip in the store so two concurrent toggles cannot both read the same value
    session.execute(update(Video).where(Video.id == video.id).values(is_published=not_(Video.is_published)))
    session.commit()
    session.refresh(video)

    state = "published" if video.is_published else "unpublished"
    return api_response(video.model_dump(), f"Video {state} successfully")
