"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one auth method exists: "Authorization: Bearer <access token>". The
header is handed verbatim to AuthSessionManager.authenticate(), which owns
the parsing rules, so the HTTP layer and the core cannot disagree about what
a valid header looks like.

try_get_principal() is the soft variant (returns None on failure).
get_current_principal() wraps it and raises HTTP 401 if unauthenticated.
require_permission(action) builds a dependency that raises HTTP 403 when the
principal's role lacks action.
ensure_can_modify() is called inside handlers once the resource owner is known.

Layer rule: auth/dependencies.py may import from fastapi because it is part
of the FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, HTTPException, Request

from auth.models import Principal
from auth.permissions import can_modify, has_permission
from auth.session import AuthSessionManager


def get_session_manager(request: Request) -> AuthSessionManager:
    """Return the AuthSessionManager built by the app lifespan."""
    return request.app.state.auth


def try_get_principal(request: Request) -> Principal | None:
    """Authenticate the request's Bearer header. Never raises."""
    manager = get_session_manager(request)
    return manager.authenticate(request.headers.get("Authorization"))


def get_current_principal(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(get_current_principal)): ...
    """
    principal = try_get_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def require_permission(action: str) -> Callable[..., Principal]:
    """Dependency factory: require an authenticated principal whose role grants action.

    Use as a FastAPI dependency:
        @router.post("/content")
        def create(principal: Principal = Depends(require_permission("content:create"))): ...
    """

    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not has_permission(principal.role, action):
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": "Insufficient permissions."},
            )
        return principal

    return dependency


def ensure_can_modify(principal: Principal, resource_owner_id: str) -> None:
    """Raise HTTP 403 unless principal may modify a resource owned by resource_owner_id."""
    if not can_modify(principal.role, principal.user_id, resource_owner_id):
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "You can only modify your own resources."},
        )
