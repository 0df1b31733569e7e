"""
API Routes for identities: registration, login, session rotation, profile.
"""

import logging
import os
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from vidhub.auth import ACCESS_COOKIE, REFRESH_COOKIE, CurrentIdentity, get_current_identity, get_optional_identity
from vidhub.database import get_session
from vidhub.errors import AuthError, ConflictError, NotFoundError, ValidationError
from vidhub.models.identity import Identity
from vidhub.services import query_composer, session_manager
from vidhub.services.media_storage import MediaStorage, get_media_storage, store_upload
from vidhub.services.query_composer import Eq, Filter, Pipeline
from vidhub.services.relationship_toggle import SUBSCRIPTION, find_edge
from vidhub.utils.ownership_guards import get_or_404
from vidhub.utils.responses import api_response

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class IdentityResponse(BaseModel):
    """Public view of an identity; never carries the password hash"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str
    created_at: datetime
    updated_at: datetime


class LoginRequest(BaseModel):
    identifier: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    password: str

    @property
    def resolved_identifier(self) -> str:
        return self.identifier or self.username or self.email or ""


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v):
        if not v or not v.strip():
            raise ValueError("new_password is required")
        return v


class AccountUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None


def _public(identity: Identity) -> dict:
    return IdentityResponse.model_validate(identity).model_dump()


def _cookie_secure() -> bool:
    return os.getenv("COOKIE_SECURE", "true").lower() in ("true", "1", "yes")


def _set_token_cookies(response: Response, pair: session_manager.TokenPair) -> None:
    for name, value in ((ACCESS_COOKIE, pair.access_token), (REFRESH_COOKIE, pair.refresh_token)):
        response.set_cookie(name, value, httponly=True, secure=_cookie_secure(), samesite="lax")


def _normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValidationError("A valid email is required")
    return email


# ============================================================================
# Session endpoints
# ============================================================================


@router.post("/users/register", status_code=201)
def register(
    full_name: str = Form(""),
    email: str = Form(""),
    username: str = Form(""),
    password: str = Form(""),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None),
    session: Session = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    """Create an identity; avatar upload is required, cover image optional"""
    if any(not (value or "").strip() for value in (full_name, email, username, password)):
        raise ValidationError("All fields are required")
    username = username.strip().lower()
    email = _normalize_email(email)

    existing = session.exec(
        select(Identity).where(or_(Identity.username == username, Identity.email == email))
    ).first()
    if existing:
        raise ConflictError("User with email or username already exists")

    if avatar is None:
        raise ValidationError("Avatar file is required")
    avatar_url = store_upload(storage, avatar).url
    cover_url = store_upload(storage, cover_image).url if cover_image is not None else ""

    identity = Identity(
        username=username,
        email=email,
        full_name=full_name.strip(),
        password_hash=session_manager.hash_secret(password),
        avatar=avatar_url,
        cover_image=cover_url,
    )
    session.add(identity)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("User with email or username already exists") from exc
    session.refresh(identity)

    logger.info("Registered identity %s", identity.id)
    return api_response(_public(identity), "User registered successfully", 201)


@router.post("/users/login")
def login(payload: LoginRequest, response: Response, session: Session = Depends(get_session)):
    identity = session_manager.verify_credentials(session, payload.resolved_identifier, payload.password)
    pair = session_manager.issue_token_pair(session, identity)
    _set_token_cookies(response, pair)
    return api_response({"user": _public(identity), **pair.to_dict()}, "User logged in successfully")


@router.post("/users/logout")
def logout(
    response: Response,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    session_manager.revoke(session, current.id)
    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE)
    return api_response({}, "User logged out")


@router.post("/users/refresh-token")
def refresh_token(
    request: Request,
    response: Response,
    payload: Optional[RefreshRequest] = None,
    session: Session = Depends(get_session),
):
    """Rotate the refresh token presented via cookie or body"""
    presented = request.cookies.get(REFRESH_COOKIE) or (payload.refresh_token if payload else None)
    if not presented:
        raise AuthError("Missing refresh token")
    pair = session_manager.rotate_refresh_token(session, presented)
    _set_token_cookies(response, pair)
    return api_response(pair.to_dict(), "Access token refreshed")


@router.post("/users/change-password")
def change_password(
    payload: ChangePasswordRequest,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    session_manager.change_credential(session, current.id, payload.old_password, payload.new_password)
    return api_response({}, "Password changed successfully")


# ============================================================================
# Profile endpoints
# ============================================================================


@router.get("/users/me")
def get_me(current: CurrentIdentity = Depends(get_current_identity), session: Session = Depends(get_session)):
    identity = get_or_404(session, Identity, current.id, "User")
    return api_response(_public(identity), "Current user fetched successfully")


@router.patch("/users/me")
def update_account(
    payload: AccountUpdate,
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    if not (payload.full_name or "").strip() and not (payload.email or "").strip():
        raise ValidationError("Provide full_name and/or email")

    identity = get_or_404(session, Identity, current.id, "User")
    if payload.full_name and payload.full_name.strip():
        identity.full_name = payload.full_name.strip()
    if payload.email and payload.email.strip():
        email = _normalize_email(payload.email)
        taken = session.exec(select(Identity).where(Identity.email == email, Identity.id != identity.id)).first()
        if taken:
            raise ConflictError("Email is already in use")
        identity.email = email

    session.add(identity)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("Email is already in use") from exc
    session.refresh(identity)
    return api_response(_public(identity), "Account details updated successfully")


def _replace_image(
    session: Session, storage: MediaStorage, identity_id: int, upload: Optional[UploadFile], field_name: str
) -> Identity:
    if upload is None:
        raise ValidationError(f"{field_name.replace('_', ' ').capitalize()} file is missing")
    identity = get_or_404(session, Identity, identity_id, "User")
    setattr(identity, field_name, store_upload(storage, upload).url)
    session.add(identity)
    session.commit()
    session.refresh(identity)
    return identity


@router.patch("/users/me/avatar")
def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    identity = _replace_image(session, storage, current.id, avatar, "avatar")
    return api_response(_public(identity), "Avatar updated successfully")


@router.patch("/users/me/cover-image")
def update_cover_image(
    cover_image: Optional[UploadFile] = File(None),
    current: CurrentIdentity = Depends(get_current_identity),
    session: Session = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    identity = _replace_image(session, storage, current.id, cover_image, "cover_image")
    return api_response(_public(identity), "Cover image updated successfully")


@router.get("/users/channel/{username}")
def get_channel_profile(
    username: str,
    viewer: Optional[CurrentIdentity] = Depends(get_optional_identity),
    session: Session = Depends(get_session),
):
    """Public channel profile with subscription counts"""
    username = username.strip().lower()
    if not username:
        raise ValidationError("Username is missing")

    identity = session.exec(select(Identity).where(Identity.username == username)).first()
    if identity is None:
        raise NotFoundError("Channel does not exist")

    subscribers = query_composer.count(session, Pipeline("subscriptions", (Filter(Eq("channel_id", identity.id)),)))
    subscribed_to = query_composer.count(
        session, Pipeline("subscriptions", (Filter(Eq("subscriber_id", identity.id)),))
    )
    is_subscribed = viewer is not None and find_edge(session, SUBSCRIPTION, viewer.id, identity.id) is not None

    profile = _public(identity)
    profile.pop("email")
    profile.update(
        subscribers_count=subscribers,
        channels_subscribed_to_count=subscribed_to,
        is_subscribed=is_subscribed,
    )
    return api_response(profile, "User channel fetched successfully")
