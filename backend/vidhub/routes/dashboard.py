"""
API Routes for the channel dashboard (current identity's own channel)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, func, select

from vidhub.auth import CurrentIdentity, get_current_identity
from vidhub.database import get_session
from vidhub.models.reaction import Reaction, ReactionTarget
from vidhub.models.video import Video
from vidhub.services import query_composer
from vidhub.services.pagination import paginate
from vidhub.services.query_composer import DESC, Eq, Filter, Pipeline, Sort, owner_enrichment
from vidhub.utils.responses import api_response
from vidhub.utils.sql import scalar_int

router = APIRouter()


@router.get("/dashboard/stats")
def get_channel_stats(
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    """Totals across every video of the channel, published or not"""
    own_videos = Pipeline("videos", (Filter(Eq("owner_id", current.id)),))
    total_views = session.exec(
        select(func.coalesce(func.sum(Video.views), 0)).where(Video.owner_id == current.id)
    ).one()
    total_likes = session.exec(
        select(func.count())
        .select_from(Reaction)
        .where(
            Reaction.target_type == ReactionTarget.VIDEO.value,
            Reaction.target_id.in_(select(Video.id).where(Video.owner_id == current.id)),
        )
    ).one()

    stats = {
        "total_videos": query_composer.count(session, own_videos),
        "total_views": scalar_int(total_views),
        "total_subscribers": query_composer.count(
            session, Pipeline("subscriptions", (Filter(Eq("channel_id", current.id)),))
        ),
        "total_likes": scalar_int(total_likes),
    }
    return api_response(stats, "Channel stats fetched successfully")


@router.get("/dashboard/videos")
def get_channel_videos(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    pipeline = Pipeline(
        "videos",
        (Filter(Eq("owner_id", current.id)), Sort("created_at", DESC)) + owner_enrichment(),
    )
    result = paginate(session, pipeline, page, limit)
    return api_response(result.to_dict(), "Channel videos fetched successfully")
