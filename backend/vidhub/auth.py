"""
Request identity.

The transport boundary: pulls the access token from an `Authorization:
Bearer` header or the `access_token` cookie and verifies it statelessly.
Routes receive a CurrentIdentity; nothing here reads the store.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from vidhub.errors import AuthError
from vidhub.services import session_manager

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


@dataclass(frozen=True)
class CurrentIdentity:
    id: int


def _presented_access_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.replace("Bearer ", "", 1).strip()
        if token:
            return token
    return request.cookies.get(ACCESS_COOKIE) or None


def get_current_identity(request: Request) -> CurrentIdentity:
    token = _presented_access_token(request)
    if not token:
        raise AuthError("Missing access token")
    identity = CurrentIdentity(session_manager.decode_access_token(token))
    request.state.identity_id = identity.id
    return identity


def get_optional_identity(request: Request) -> Optional[CurrentIdentity]:
    """Like get_current_identity, but anonymous requests yield None. A bad token still fails."""
    if not _presented_access_token(request):
        return None
    return get_current_identity(request)
