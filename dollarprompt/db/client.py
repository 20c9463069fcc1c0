"""
Supabase client configuration.
Three clients:
- anon client (respects RLS) for catalog reads and auth
- service client (bypasses RLS) for operator scripts
- per-user client whose PostgREST calls carry the user's JWT, so RPCs see auth.uid()
"""

from typing import Optional

from supabase import AsyncClient, acreate_client

from ..core import get_settings

_anon_client: Optional[AsyncClient] = None
_admin_client: Optional[AsyncClient] = None


def _require(url: Optional[str], key: Optional[str], names: str) -> None:
    if not url or not key:
        raise ValueError(f"{names} must be set")


async def get_supabase_client() -> AsyncClient:
    """
    Get Supabase client with anon key (respects RLS).
    Use this for all user-facing operations.
    """
    global _anon_client
    if _anon_client is None:
        settings = get_settings()
        _require(settings.supabase_url, settings.supabase_key, "SUPABASE_URL and SUPABASE_KEY")
        _anon_client = await acreate_client(settings.supabase_url, settings.supabase_key)
    return _anon_client


async def get_admin_client() -> AsyncClient:
    """
    Get Supabase client with service role key (bypasses RLS).
    Use this ONLY for:
    - Operator scripts (seeding, stats)
    - Background maintenance
    """
    global _admin_client
    if _admin_client is None:
        settings = get_settings()
        _require(
            settings.supabase_url,
            settings.supabase_service_key,
            "SUPABASE_URL and SUPABASE_SERVICE_KEY",
        )
        _admin_client = await acreate_client(settings.supabase_url, settings.supabase_service_key)
    return _admin_client


async def create_user_client(access_token: str) -> AsyncClient:
    """
    Create a fresh anon client acting as the signed-in user.
    Not cached here - the wallet registry owns one per user.
    """
    settings = get_settings()
    _require(settings.supabase_url, settings.supabase_key, "SUPABASE_URL and SUPABASE_KEY")
    client = await acreate_client(settings.supabase_url, settings.supabase_key)
    client.postgrest.auth(access_token)
    return client


async def create_anon_client() -> AsyncClient:
    """
    Fresh, uncached anon client for one auth exchange (login / signup),
    so a session never lands on the shared client.
    """
    settings = get_settings()
    _require(settings.supabase_url, settings.supabase_key, "SUPABASE_URL and SUPABASE_KEY")
    return await acreate_client(settings.supabase_url, settings.supabase_key)


async def close_client(client) -> None:
    """
    Close the HTTP connection pools of a client from create_user_client or
    create_anon_client. The shared clients above live for the whole process.
    """
    await client.auth.close()
    await client.postgrest.aclose()
