"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register            -- create account (default role) + token pair
  POST /api/v1/auth/login               -- email/password login + token pair
  POST /api/v1/auth/refresh             -- rotate refresh token + new token pair
  POST /api/v1/auth/logout              -- revoke a refresh token; always 200
  POST /api/v1/auth/logout-all          -- revoke every refresh token of the caller
  GET  /api/v1/auth/me                  -- current principal (requires auth)
  GET  /api/v1/auth/permissions/check   -- may the caller perform ?action= (requires auth)

Security:
  POST /login and /register are rate-limited per IP (pre-check in front of
  the auth core; limits come from Settings).
  Login returns the same generic error for wrong email and wrong password.
  Cache-Control: no-store on every response that carries tokens.
  AuthError messages are pre-composed; internal exception text never leaks.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit, register_limit
from api.models import (
    AuthResponse,
    LoginRequest,
    MeResponse,
    MessageResponse,
    PermissionCheckResponse,
    RefreshRequest,
    RegisterRequest,
    UserInfo,
)
from auth.dependencies import get_current_principal, get_session_manager
from auth.errors import AuthError
from auth.models import Principal, TokenPair
from auth.permissions import has_permission, permissions_for
from auth.session import AuthSessionManager

# Auth policy:
# - POST /api/v1/auth/register:          public, rate limited
# - POST /api/v1/auth/login:             public, rate limited
# - POST /api/v1/auth/refresh:           public -- the refresh token is the credential
# - POST /api/v1/auth/logout:            public -- revoking needs only the token itself
# - POST /api/v1/auth/logout-all:        requires auth (get_current_principal)
# - GET  /api/v1/auth/me:                requires auth (get_current_principal)
# - GET  /api/v1/auth/permissions/check: requires auth (get_current_principal)
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _auth_error(exc: AuthError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={"code": exc.code, "message": exc.message},
    )


def _token_response(manager: AuthSessionManager, pair: TokenPair, status_code: int = 200) -> JSONResponse:
    """Build the user + token pair response for a freshly issued pair."""
    user = pair.user
    body = AuthResponse(
        user=UserInfo(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role.value,
            permissions=sorted(permissions_for(user.role)),
        ),
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type=pair.token_type,
        expires_in=manager.codec.expires_in,
    )
    resp = JSONResponse(status_code=status_code, content=body.model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(register_limit)
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account. The role is always the default registration role."""
    manager = get_session_manager(request)
    try:
        pair = manager.register(body.email, body.password, body.name)
    except AuthError as exc:
        raise _auth_error(exc) from exc
    return _token_response(manager, pair, status_code=201)


@limiter.limit(login_limit)
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a token pair.

    Include the access token in the Authorization header as: Bearer <access_token>
    """
    manager = get_session_manager(request)
    try:
        pair = manager.login(body.email, body.password)
    except AuthError as exc:
        resp = JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": exc.code, "message": exc.message}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp
    return _token_response(manager, pair)


@router.post("/auth/refresh", response_model=AuthResponse)
def refresh(request: Request, body: RefreshRequest) -> JSONResponse:
    """Exchange a refresh token for a new pair. The old refresh token stops working."""
    manager = get_session_manager(request)
    try:
        pair = manager.refresh(body.refresh_token)
    except AuthError as exc:
        raise _auth_error(exc) from exc
    return _token_response(manager, pair)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, body: RefreshRequest) -> MessageResponse:
    """Revoke the supplied refresh token. Succeeds even if it was already revoked."""
    get_session_manager(request).logout(body.refresh_token)
    return MessageResponse(message="Logged out.")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout-all", response_model=MessageResponse)
def logout_all(
    request: Request,
    principal: Principal = Depends(get_current_principal),
) -> MessageResponse:
    """Revoke every refresh token of the caller. Access tokens expire on their own."""
    removed = get_session_manager(request).logout_everywhere(principal.user_id)
    return MessageResponse(message=f"Revoked {removed} session(s).")


@router.get("/auth/me", response_model=MeResponse)
def me(principal: Principal = Depends(get_current_principal)) -> MeResponse:
    """Return identity information carried by the caller's access token."""
    return MeResponse(
        user_id=principal.user_id,
        email=principal.email,
        role=principal.role.value,
        permissions=sorted(permissions_for(principal.role)),
    )


@router.get("/auth/permissions/check", response_model=PermissionCheckResponse)
def check_permission(
    action: str = Query(..., max_length=100),
    principal: Principal = Depends(get_current_principal),
) -> PermissionCheckResponse:
    """Report whether the caller's role grants action (e.g. ?action=content:publish)."""
    return PermissionCheckResponse(action=action, allowed=has_permission(principal.role, action))
