"""
API Routes for Subscriptions
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from vidhub.auth import CurrentIdentity, get_current_identity
from vidhub.database import get_session
from vidhub.errors import ValidationError
from vidhub.models.identity import Identity
from vidhub.services.pagination import paginate
from vidhub.services.query_composer import (
    DESC,
    OWNER_FIELDS,
    Eq,
    Filter,
    Flatten,
    Join,
    Pipeline,
    Project,
    Sort,
)
from vidhub.services.relationship_toggle import SUBSCRIPTION, toggle
from vidhub.utils.ownership_guards import get_or_404
from vidhub.utils.responses import api_response

router = APIRouter()


def _edge_listing(filter_field: str, identity_id: int, join_field: str, as_field: str) -> Pipeline:
    return Pipeline(
        "subscriptions",
        (
            Filter(Eq(filter_field, identity_id)),
            Join("identities", join_field, "id", fields=OWNER_FIELDS, as_field=as_field),
            Flatten(as_field),
            Project((as_field, "created_at")),
            Sort("created_at", DESC),
        ),
    )


@router.post("/subscriptions/c/{channel_id}")
def toggle_subscription(
    channel_id: int,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    if channel_id == current.id:
        raise ValidationError("You cannot subscribe to your own channel")
    get_or_404(session, Identity, channel_id, "Channel")

    result = toggle(session, SUBSCRIPTION, current.id, channel_id)
    message = "Subscription added successfully" if result.created else "Subscription removed successfully"
    return api_response({"state": result.state, "subscription": result.edge}, message)


@router.get("/subscriptions/c/{channel_id}")
def list_channel_subscribers(
    channel_id: int,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    session: Session = Depends(get_session),
):
    """Identities subscribed to a channel"""
    get_or_404(session, Identity, channel_id, "Channel")
    result = paginate(session, _edge_listing("channel_id", channel_id, "subscriber_id", "subscriber"), page, limit)
    return api_response(result.to_dict(), "Subscribers fetched successfully")


@router.get("/subscriptions/u/{subscriber_id}")
def list_subscribed_channels(
    subscriber_id: int,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    session: Session = Depends(get_session),
):
    """Channels an identity is subscribed to"""
    get_or_404(session, Identity, subscriber_id, "Subscriber")
    result = paginate(session, _edge_listing("subscriber_id", subscriber_id, "channel_id", "channel"), page, limit)
    return api_response(result.to_dict(), "Subscribed channels fetched successfully")
