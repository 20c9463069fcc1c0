"""
Per-user wallet registry.

The API keeps one WalletStore per signed-in user, each bound to a client
that carries that user's JWT. The cache is bounded (least recently used
users and idle users are dropped) and non-authoritative - dropping an entry
only costs a refresh on the user's next request.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional

import structlog

from ..db import close_client, create_user_client
from ..models import Identity
from .ads import AdBridge
from .cache import BoundedCache
from .wallet import WalletStore

logger = structlog.get_logger("dollarprompt.registry")

ClientFactory = Callable[[str], Awaitable[object]]


@dataclass
class _Entry:
    client: object
    wallet: WalletStore
    access_token: Optional[str]


class WalletRegistry:
    """user id -> WalletStore, created and refreshed on first use."""

    def __init__(
        self,
        client_factory: ClientFactory = create_user_client,
        ad_bridge: Optional[AdBridge] = None,
        max_entries: int = 10_000,
        ttl_seconds: float = 3600.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.client_factory = client_factory
        self.ad_bridge = ad_bridge
        self._entries: BoundedCache[_Entry] = BoundedCache(max_entries, ttl_seconds, clock)
        self._locks: BoundedCache[asyncio.Lock] = BoundedCache(max_entries, ttl_seconds, clock)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, identity: Identity) -> WalletStore:
        await self._release(self._entries.expire())
        self._locks.expire()
        lock = self._locks.setdefault(identity.id, asyncio.Lock)
        async with lock:
            entry = self._entries.get(identity.id)
            if entry is None:
                client = await self.client_factory(identity.access_token)
                wallet = WalletStore(client, identity=identity, ad_bridge=self.ad_bridge)
                entry = _Entry(client=client, wallet=wallet, access_token=identity.access_token)
                await self._release(self._entries.set(identity.id, entry))
                await wallet.refresh()
                logger.info("wallet_created", user_id=identity.id, cached=len(self._entries))
                return wallet

            if identity.access_token and identity.access_token != entry.access_token:
                # token rotated - keep the cache, re-authorize the client
                entry.client.postgrest.auth(identity.access_token)
                entry.access_token = identity.access_token
                entry.wallet.identity = identity
            if entry.wallet.is_stale() and not len(entry.wallet.pending):
                # new reward day: yesterday's claims no longer count
                await entry.wallet.refresh()
                logger.info("wallet_day_rolled", user_id=identity.id, day=str(entry.wallet.loaded_day))
        return entry.wallet

    def client_for(self, user_id: str):
        entry = self._entries.get(user_id)
        return entry.client if entry else None

    async def evict(self, user_id: str) -> None:
        entry = self._entries.pop(user_id)
        self._locks.pop(user_id)
        if entry is not None:
            await self._release([entry])

    async def close(self) -> None:
        """Release every cached client (app shutdown)."""
        self._locks.clear()
        await self._release(self._entries.clear())

    async def _release(self, entries: Iterable[_Entry]) -> None:
        for entry in entries:
            if len(entry.wallet.pending):
                # a claim is still using this client; let it finish on its own
                continue
            try:
                await close_client(entry.client)
            except Exception as exc:
                logger.warning("wallet_client_close_failed", error=str(exc))
