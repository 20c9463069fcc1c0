"""
Authentication dependencies for the API.
Uses Supabase Auth - tokens are verified by Supabase, never parsed here.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..core import GatewayError
from ..db import get_supabase_client
from ..db.gateway import GATEWAY_ERRORS
from ..models import Identity
from .policies import build_admin_policy
from .registry import WalletRegistry
from .wallet import WalletStore


security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


async def get_client():
    """Shared anon client (overridden in tests)."""
    return await get_supabase_client()


async def _identity_for_token(client, token: str) -> Identity:
    try:
        response = await client.auth.get_user(token)
    except (GATEWAY_ERRORS + (GatewayError,)):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    if not response or not response.user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    return Identity(
        id=str(response.user.id),
        email=response.user.email or None,
        access_token=token,
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    client=Depends(get_client),
) -> Identity:
    """Validate the bearer token with Supabase and return the caller."""
    return await _identity_for_token(client, credentials.credentials)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    client=Depends(get_client),
) -> Optional[Identity]:
    """Like get_current_user, but anonymous callers get None."""
    if credentials is None:
        return None
    return await _identity_for_token(client, credentials.credentials)


def get_registry(request: Request) -> WalletRegistry:
    return request.app.state.wallets


async def get_wallet(
    user: Identity = Depends(get_current_user),
    registry: WalletRegistry = Depends(get_registry),
) -> WalletStore:
    """The caller's cached wallet (refreshed on first use)."""
    return await registry.get(user)


async def get_optional_wallet(
    user: Optional[Identity] = Depends(get_optional_user),
    registry: WalletRegistry = Depends(get_registry),
) -> Optional[WalletStore]:
    if user is None:
        return None
    return await registry.get(user)


async def require_admin(
    user: Identity = Depends(get_current_user),
    client=Depends(get_client),
) -> Identity:
    """Admin views only - decided by the configured admin policy."""
    policy = build_admin_policy(client)
    if not await policy.is_admin(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
