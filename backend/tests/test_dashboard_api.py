"""
Tests for channel dashboard stats and video listing.
"""

from fastapi.testclient import TestClient
from sqlmodel import Session

from vidhub.services import relationship_toggle
from vidhub.services.relationship_toggle import SUBSCRIPTION, VIDEO_LIKE

from tests.helpers import auth_headers, make_identity, make_video


def test_stats(client: TestClient, session: Session, alice, bob):
    carol = make_identity(session, "carol")
    published = make_video(session, alice.id, "Published", views=10)
    draft = make_video(session, alice.id, "Draft", views=5, is_published=False)
    bobs = make_video(session, bob.id, "Bob's", views=100)
    relationship_toggle.toggle(session, VIDEO_LIKE, bob.id, published.id)
    relationship_toggle.toggle(session, VIDEO_LIKE, carol.id, draft.id)
    relationship_toggle.toggle(session, VIDEO_LIKE, alice.id, bobs.id)
    relationship_toggle.toggle(session, SUBSCRIPTION, bob.id, alice.id)

    response = client.get("/api/v1/dashboard/stats", headers=auth_headers(alice.id))

    assert response.json()["data"] == {
        "total_videos": 2,
        "total_views": 15,
        "total_subscribers": 1,
        "total_likes": 2,
    }


def test_stats_for_empty_channel(client: TestClient, alice):
    response = client.get("/api/v1/dashboard/stats", headers=auth_headers(alice.id))

    assert response.json()["data"] == {"total_videos": 0, "total_views": 0, "total_subscribers": 0, "total_likes": 0}


def test_channel_videos_include_unpublished(client: TestClient, session: Session, alice, bob):
    make_video(session, alice.id, "Published")
    make_video(session, alice.id, "Draft", is_published=False)
    make_video(session, bob.id, "Not mine")

    response = client.get("/api/v1/dashboard/videos", headers=auth_headers(alice.id))

    assert sorted(v["title"] for v in response.json()["data"]["items"]) == ["Draft", "Published"]


def test_dashboard_requires_auth(client: TestClient):
    assert client.get("/api/v1/dashboard/stats").status_code == 401
