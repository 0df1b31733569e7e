"""Factories shared by the test modules."""

from sqlmodel import Session

from vidhub.models.identity import Identity
from vidhub.models.video import Video
from vidhub.services import session_manager


def make_identity(session: Session, username: str, password: str = "secret-pass", **extra) -> Identity:
    identity = Identity(
        username=username,
        email=extra.pop("email", f"{username}@example.com"),
        full_name=extra.pop("full_name", username.title()),
        password_hash=session_manager.hash_secret(password),
        avatar=extra.pop("avatar", f"https://media.test/{username}.png"),
        **extra,
    )
    session.add(identity)
    session.commit()
    session.refresh(identity)
    return identity


def make_video(session: Session, owner_id: int, title: str = "A video", **extra) -> Video:
    video = Video(
        title=title,
        description=extra.pop("description", f"About {title}"),
        video_file=extra.pop("video_file", "https://media.test/v.mp4"),
        thumbnail=extra.pop("thumbnail", "https://media.test/t.png"),
        owner_id=owner_id,
        **extra,
    )
    session.add(video)
    session.commit()
    session.refresh(video)
    return video


def auth_headers(identity_id: int) -> dict:
    return {"Authorization": f"Bearer {session_manager.create_access_token(identity_id)}"}
