"""
API Routes for Comments
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import delete
from sqlmodel import Session

from vidhub.auth import CurrentIdentity, get_current_identity
from vidhub.database import get_session
from vidhub.errors import ValidationError
from vidhub.models.comment import Comment
from vidhub.models.reaction import Reaction, ReactionTarget
from vidhub.models.video import Video
from vidhub.services import query_composer
from vidhub.services.pagination import paginate
from vidhub.services.query_composer import DESC, Eq, Filter, Pipeline, Sort, owner_enrichment
from vidhub.utils.ownership_guards import get_or_404, get_owned_or_404
from vidhub.utils.responses import api_response

router = APIRouter()


class CommentBody(BaseModel):
    content: Optional[str] = None

    def cleaned(self) -> str:
        content = (self.content or "").strip()
        if not content:
            raise ValidationError("Comment content is required")
        return content


def _enriched_comment(session: Session, comment_id: int) -> dict:
    return query_composer.first(session, Pipeline("comments", (Filter(Eq("id", comment_id)),) + owner_enrichment()))


@router.get("/comments/{video_id}")
def list_video_comments(
    video_id: int,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    session: Session = Depends(get_session),
):
    """Comments on a video, newest first"""
    get_or_404(session, Video, video_id, "Video")
    pipeline = Pipeline(
        "comments",
        (Filter(Eq("video_id", video_id)),) + owner_enrichment() + (Sort("created_at", DESC),),
    )
    result = paginate(session, pipeline, page, limit)
    return api_response(result.to_dict(), "Comments fetched successfully")


@router.post("/comments/{video_id}", status_code=201)
def add_comment(
    video_id: int,
    payload: CommentBody,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    content = payload.cleaned()
    video = get_or_404(session, Video, video_id, "Video")

    comment = Comment(content=content, video_id=video.id, owner_id=current.id)
    session.add(comment)
    session.commit()
    session.refresh(comment)
    return api_response(_enriched_comment(session, comment.id), "Comment added successfully", 201)


@router.patch("/comments/c/{comment_id}")
def update_comment(
    comment_id: int,
    payload: CommentBody,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    comment = get_owned_or_404(session, Comment, comment_id, current.id, "Comment")
    comment.content = payload.cleaned()
    session.add(comment)
    session.commit()
    return api_response(_enriched_comment(session, comment_id), "Comment updated successfully")


@router.delete("/comments/c/{comment_id}")
def delete_comment(
    comment_id: int,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    comment = get_owned_or_404(session, Comment, comment_id, current.id, "Comment")
    session.execute(
        delete(Reaction).where(Reaction.target_type == ReactionTarget.COMMENT.value, Reaction.target_id == comment_id)
    )
    session.delete(comment)
    session.commit()
    return api_response({}, "Comment deleted successfully")
