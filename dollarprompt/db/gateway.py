"""
Thin helpers around the Supabase async client.

Every query, RPC and storage call in the package goes through here so that
client failures surface as a single GatewayError carrying the server's message.
"""

import inspect
from typing import Any, Optional

import httpx
from supabase import AuthError, PostgrestAPIError, StorageException

from ..core import GatewayError, get_settings

GATEWAY_ERRORS = (PostgrestAPIError, StorageException, AuthError, httpx.HTTPError)


def error_message(exc: BaseException) -> str:
    """Best available human message from a client exception."""
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc) or exc.__class__.__name__


async def execute(query) -> Any:
    """Run a PostgREST builder, translating client failures."""
    try:
        return await query.execute()
    except GATEWAY_ERRORS as exc:
        raise GatewayError(error_message(exc)) from exc


async def call_rpc(client, name: str, params: Optional[dict] = None) -> Any:
    """Invoke a remote procedure. Returns the response data."""
    response = await execute(client.rpc(name, params or {}))
    return response.data


async def first_row(query) -> Optional[dict]:
    """Run a query limited to one row and return it (or None)."""
    response = await execute(query.limit(1))
    return response.data[0] if response.data else None


def storage_path_from_url(url: Optional[str], bucket: Optional[str] = None) -> Optional[str]:
    """
    Extract the object path from a public storage URL.
    https://x.supabase.co/storage/v1/object/public/prompt-images/a.png -> a.png
    """
    if not url:
        return None
    bucket = bucket or get_settings().storage_bucket
    marker = f"/{bucket}/"
    if marker not in url:
        return None
    path = url.split(marker, 1)[1]
    return path or None


async def upload_file(
    client,
    path: str,
    content: bytes,
    content_type: Optional[str] = None,
    bucket: Optional[str] = None,
) -> str:
    """Upload bytes to storage and return the public URL."""
    bucket_api = client.storage.from_(bucket or get_settings().storage_bucket)
    options = {"content-type": content_type} if content_type else None
    try:
        await bucket_api.upload(path, content, options)
        public_url = bucket_api.get_public_url(path)
        if inspect.isawaitable(public_url):
            public_url = await public_url
    except GATEWAY_ERRORS as exc:
        raise GatewayError(error_message(exc)) from exc
    return public_url


async def remove_file(client, path: str, bucket: Optional[str] = None) -> None:
    bucket_api = client.storage.from_(bucket or get_settings().storage_bucket)
    try:
        await bucket_api.remove([path])
    except GATEWAY_ERRORS as exc:
        raise GatewayError(error_message(exc)) from exc
