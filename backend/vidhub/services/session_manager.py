"""
Identity & Session Manager

Credential verification plus the access/refresh token lifecycle.

- Access tokens are stateless: a valid signature and expiry is the whole
  check, the store is never consulted.
- Refresh tokens are stateful: each identity has one session record holding
  the sha256 fingerprint of the only refresh token that may be rotated.
  Rotation is a conditional UPDATE on that fingerprint, so of two concurrent
  rotations (or a replay of an already-rotated token) exactly one wins and
  the other gets TokenReuseError without a new pair.
"""

import hashlib
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext
from sqlalchemy import delete, or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from vidhub.errors import AuthError, InternalError, NotFoundError, TokenReuseError, ValidationError
from vidhub.models.identity import Identity
from vidhub.models.session_record import SessionRecord

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=int(os.getenv("PASSWORD_HASH_ROUNDS", "12")),
)

# Verified against when no identity matches, so unknown identifiers cost the same as wrong secrets
_DUMMY_HASH = pwd_context.hash("vidhub-timing-equalizer")


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str

    def to_dict(self) -> Dict[str, str]:
        return {"access_token": self.access_token, "refresh_token": self.refresh_token}


def _get_required_env(name: str) -> str:
    value = os.environ.get(name, "").strip()
    if not value:
        raise InternalError(f"Missing required environment variable: {name}")
    return value


def _access_ttl() -> timedelta:
    return timedelta(minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15")))


def _refresh_ttl() -> timedelta:
    return timedelta(days=int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "10")))


def fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# ============================================================================
# Credentials
# ============================================================================


def hash_secret(secret: str) -> str:
    return pwd_context.hash(secret)


def verify_credentials(session: Session, identifier: str, secret: str) -> Identity:
    """
    Resolve `identifier` (username or email) and check `secret` against the
    stored hash.

    Raises:
        ValidationError: identifier or secret missing
        AuthError: no such identity or wrong secret (indistinguishable)
    """
    identifier = (identifier or "").strip().lower()
    if not identifier or not secret:
        raise ValidationError("Username or email and password are required")

    identity = session.exec(
        select(Identity).where(or_(Identity.username == identifier, Identity.email == identifier))
    ).first()

    if identity is None:
        pwd_context.verify(secret, _DUMMY_HASH)
        logger.warning("Login failed: unknown identifier")
        raise AuthError("Invalid credentials")

    if not pwd_context.verify(secret, identity.password_hash):
        logger.warning("Login failed for identity %s: wrong secret", identity.id)
        raise AuthError("Invalid credentials")

    return identity


def change_credential(session: Session, identity_id: int, old_secret: str, new_secret: str) -> Identity:
    """Replace the secret after checking the old one; ends the refresh lineage."""
    if not old_secret or not new_secret:
        raise ValidationError("Old and new password are required")

    identity = session.get(Identity, identity_id)
    if identity is None:
        raise NotFoundError("User not found")
    if not pwd_context.verify(old_secret, identity.password_hash):
        raise AuthError("Invalid old password")

    identity.password_hash = hash_secret(new_secret)
    session.add(identity)
    session.execute(delete(SessionRecord).where(SessionRecord.identity_id == identity_id))
    session.commit()
    session.refresh(identity)
    logger.info("Password changed for identity %s; refresh lineage revoked", identity_id)
    return identity


# ============================================================================
# Tokens
# ============================================================================


def _encode(identity_id: int, token_type: str, ttl: timedelta, secret: str, **extra: Any) -> str:
    now = datetime.now(timezone.utc)
    claims = {"sub": str(identity_id), "type": token_type, "iat": now, "exp": now + ttl}
    claims.update(extra)
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def _decode(token: str, token_type: str, secret: str) -> int:
    if not token:
        raise AuthError("Missing token")
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise AuthError(f"{token_type.capitalize()} token expired") from exc
    except jwt.PyJWTError as exc:
        raise AuthError(f"Invalid {token_type} token") from exc

    if claims.get("type") != token_type:
        raise AuthError(f"Invalid {token_type} token")
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthError(f"Invalid {token_type} token") from exc


def create_access_token(identity_id: int) -> str:
    return _encode(identity_id, ACCESS, _access_ttl(), _get_required_env("ACCESS_TOKEN_SECRET"))


def create_refresh_token(identity_id: int) -> str:
    # jti makes two tokens minted in the same second distinct
    return _encode(
        identity_id, REFRESH, _refresh_ttl(), _get_required_env("REFRESH_TOKEN_SECRET"), jti=uuid.uuid4().hex
    )


def decode_access_token(token: str) -> int:
    """Return the subject id of a valid access token. Never touches the store."""
    return _decode(token, ACCESS, _get_required_env("ACCESS_TOKEN_SECRET"))


def decode_refresh_token(token: str) -> int:
    return _decode(token, REFRESH, _get_required_env("REFRESH_TOKEN_SECRET"))


def issue_token_pair(session: Session, identity: Identity) -> TokenPair:
    """Mint a pair and make its refresh token the identity's only live one."""
    pair = TokenPair(create_access_token(identity.id), create_refresh_token(identity.id))

    identity_id = identity.id
    new_fingerprint = fingerprint(pair.refresh_token)
    overwrite = (
        update(SessionRecord)
        .where(SessionRecord.identity_id == identity_id)
        .values(refresh_fingerprint=new_fingerprint, issued_at=datetime.now(timezone.utc))
    )
    if session.execute(overwrite).rowcount == 0:
        session.add(SessionRecord(identity_id=identity_id, refresh_fingerprint=new_fingerprint))
        try:
            session.commit()
            return pair
        except IntegrityError:
            # A concurrent login inserted the record first; last writer wins
            session.rollback()
            session.execute(overwrite)
    session.commit()
    return pair


def rotate_refresh_token(session: Session, presented: Optional[str]) -> TokenPair:
    """
    Exchange a refresh token for a new pair.

    Raises:
        AuthError: token missing, malformed, expired, or its identity is gone
        TokenReuseError: token is not the identity's stored one (replayed,
            already rotated, or revoked); nothing is reissued
    """
    identity_id = decode_refresh_token(presented)

    pair = TokenPair(create_access_token(identity_id), create_refresh_token(identity_id))
    result = session.execute(
        update(SessionRecord)
        .where(
            SessionRecord.identity_id == identity_id,
            SessionRecord.refresh_fingerprint == fingerprint(presented),
        )
        .values(refresh_fingerprint=fingerprint(pair.refresh_token), issued_at=datetime.now(timezone.utc))
    )
    if result.rowcount != 1:
        session.rollback()
        logger.warning("Refresh token reuse detected for identity %s", identity_id)
        raise TokenReuseError()

    if session.get(Identity, identity_id) is None:
        session.rollback()
        raise AuthError("Invalid refresh token")

    session.commit()
    return pair


def revoke(session: Session, identity_id: int) -> None:
    """Drop the session record; every refresh token of this identity stops rotating."""
    session.execute(delete(SessionRecord).where(SessionRecord.identity_id == identity_id))
    session.commit()
    logger.info("Session revoked for identity %s", identity_id)
