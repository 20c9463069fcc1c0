"""
Authentication routes.
Password login and signup against Supabase Auth; the browser keeps the tokens.

Each exchange runs on its own short-lived client so sessions never
leak between callers.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException

from ...core import AuthFailed
from ...db import close_client, create_anon_client, error_message
from ...db.gateway import GATEWAY_ERRORS
from ...lib import IdentityStore, WalletRegistry, build_admin_policy
from ...lib.auth import get_client, get_current_user, get_registry
from ...lib.session import HOME_ROUTE
from ...models import Identity, LoginRequest, SessionResponse


router = APIRouter()
logger = structlog.get_logger("dollarprompt.api.auth")


async def get_identity_store():
    """One IdentityStore per request (overridden in tests)."""
    client = await create_anon_client()
    store = IdentityStore(client, build_admin_policy(client))
    try:
        yield store
    finally:
        await store.close()
        await close_client(client)


def _session_response(store: IdentityStore, identity: Identity) -> SessionResponse:
    return SessionResponse(
        user_id=identity.id,
        email=identity.email,
        access_token=identity.access_token,
        refresh_token=identity.refresh_token,
        is_admin=store.is_admin,
    )


@router.post("/login", response_model=SessionResponse)
async def login(
    body: LoginRequest,
    store: IdentityStore = Depends(get_identity_store),
):
    """
    Sign in with email + password.

    Returns the Supabase tokens and whether the user is an admin.
    """
    try:
        identity = await store.sign_in_with_password(body.email, body.password)
    except AuthFailed as e:
        raise HTTPException(status_code=401, detail=e.message)
    return _session_response(store, identity)


@router.post("/signup")
async def signup(
    body: LoginRequest,
    store: IdentityStore = Depends(get_identity_store),
):
    """
    Create an account.

    When the project requires e-mail confirmation no session exists yet,
    so only a message comes back.
    """
    try:
        identity = await store.sign_up(body.email, body.password)
    except AuthFailed as e:
        raise HTTPException(status_code=400, detail=e.message)

    if identity is None:
        return {"success": True, "message": "Check your email to confirm your account."}
    return _session_response(store, identity)


@router.post("/logout")
async def logout(
    user: Identity = Depends(get_current_user),
    client=Depends(get_client),
    registry: WalletRegistry = Depends(get_registry),
):
    """Revoke the caller's session on Supabase and drop their cached wallet."""
    try:
        await client.auth.admin.sign_out(user.access_token)
    except GATEWAY_ERRORS as exc:
        logger.warning("sign_out_failed", user_id=user.id, error=error_message(exc))
    await registry.evict(user.id)
    return {"success": True, "redirect": HOME_ROUTE}


@router.get("/me", response_model=SessionResponse)
async def me(
    user: Identity = Depends(get_current_user),
    client=Depends(get_client),
):
    """Who the bearer token belongs to, and whether they are an admin."""
    is_admin = await build_admin_policy(client).is_admin(user)
    return SessionResponse(user_id=user.id, email=user.email, is_admin=is_admin)
