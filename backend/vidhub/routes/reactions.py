"""
API Routes for Likes
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from vidhub.auth import CurrentIdentity, get_current_identity
from vidhub.database import get_session
from vidhub.models.comment import Comment
from vidhub.models.reaction import ReactionTarget
from vidhub.models.video import Video
from vidhub.services.pagination import paginate
from vidhub.services.query_composer import DESC, Eq, Filter, Flatten, Join, Pipeline, Project, Sort, owner_enrichment
from vidhub.services.relationship_toggle import COMMENT_LIKE, VIDEO_LIKE, toggle
from vidhub.utils.ownership_guards import get_or_404
from vidhub.utils.responses import api_response

router = APIRouter()


@router.post("/likes/toggle/v/{video_id}")
def toggle_video_like(
    video_id: int,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    get_or_404(session, Video, video_id, "Video")
    result = toggle(session, VIDEO_LIKE, current.id, video_id)
    message = "Video liked successfully" if result.created else "Video unliked successfully"
    return api_response({"state": result.state, "like": result.edge}, message)


@router.post("/likes/toggle/c/{comment_id}")
def toggle_comment_like(
    comment_id: int,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    get_or_404(session, Comment, comment_id, "Comment")
    result = toggle(session, COMMENT_LIKE, current.id, comment_id)
    message = "Comment liked successfully" if result.created else "Comment unliked successfully"
    return api_response({"state": result.state, "like": result.edge}, message)


@router.get("/likes/videos")
def list_liked_videos(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    """Videos the current identity liked, most recent like first"""
    pipeline = Pipeline(
        "reactions",
        (
            Filter(Eq("actor_id", current.id), Eq("target_type", ReactionTarget.VIDEO.value)),
            Join("videos", "target_id", "id", as_field="video", stages=owner_enrichment()),
            Flatten("video"),
            Project(("id", "video", "created_at")),
            Sort("created_at", DESC),
        ),
    )
    result = paginate(session, pipeline, page, limit)
    return api_response(result.to_dict(), "Liked videos fetched successfully")
