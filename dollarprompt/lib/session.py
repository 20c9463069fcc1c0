"""
Session / identity store.

Holds who is signed in and whether they are an admin, follows Supabase
auth-state events for its whole lifetime and tells listeners (the wallet
store, mostly) whenever that changes.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, List, Optional, Union

import structlog

from ..core import AuthFailed, get_settings
from ..db.gateway import GATEWAY_ERRORS, error_message
from ..models import Identity
from .policies import AdminPolicy

logger = structlog.get_logger("dollarprompt.session")

HOME_ROUTE = "/"

Listener = Callable[["IdentityStore"], Union[None, Awaitable[None]]]


def identity_from_session(session: Any) -> Optional[Identity]:
    """Build an Identity from a Supabase auth session (None when signed out)."""
    if session is None or getattr(session, "user", None) is None:
        return None
    user = session.user
    return Identity(
        id=str(user.id),
        email=getattr(user, "email", None) or None,
        access_token=getattr(session, "access_token", None),
        refresh_token=getattr(session, "refresh_token", None),
    )


class IdentityStore:
    """Current identity + admin flag, kept in sync with the auth client."""

    def __init__(self, client, policy: AdminPolicy, timeout: Optional[float] = None):
        self.client = client
        self.policy = policy
        self.timeout = timeout if timeout is not None else get_settings().session_timeout_seconds
        self.identity: Optional[Identity] = None
        self.is_admin = False
        self.loading = True
        self._listeners: List[Listener] = []
        self._subscription = None
        self._version = 0
        self._tasks = set()

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a change callback. Returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def initialize(self) -> None:
        """
        Fetch the current session and start following auth events.
        An unreachable auth server settles as signed out, never hangs.
        """
        try:
            session = await asyncio.wait_for(self.client.auth.get_session(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("session_fetch_timeout", timeout=self.timeout)
            session = None
        except GATEWAY_ERRORS as exc:
            logger.warning("session_fetch_failed", error=error_message(exc))
            session = None

        await self._apply(identity_from_session(session))

        if self._subscription is None:
            self._subscription = self.client.auth.on_auth_state_change(self._on_auth_change)

    def _on_auth_change(self, event: str, session: Any) -> None:
        logger.info("auth_state_changed", auth_event=str(event))
        task = asyncio.ensure_future(self._apply(identity_from_session(session)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _apply(self, identity: Optional[Identity]) -> None:
        self._version += 1
        version = self._version

        is_admin = await self.policy.is_admin(identity)
        if version != self._version:
            # a newer auth event already won
            return

        self.identity = identity
        self.is_admin = is_admin
        self.loading = False
        await self._notify()

    async def _notify(self) -> None:
        for listener in list(self._listeners):
            result = listener(self)
            if inspect.isawaitable(result):
                await result

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        try:
            response = await self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except GATEWAY_ERRORS as exc:
            raise AuthFailed(error_message(exc)) from exc

        identity = identity_from_session(getattr(response, "session", None))
        if identity is None:
            raise AuthFailed("Invalid login credentials")

        await self._apply(identity)
        logger.info("signed_in", user_id=identity.id)
        return identity

    async def sign_up(self, email: str, password: str) -> Optional[Identity]:
        """
        Register a new account.
        Returns None when the project requires e-mail confirmation first.
        """
        try:
            response = await self.client.auth.sign_up({"email": email, "password": password})
        except GATEWAY_ERRORS as exc:
            raise AuthFailed(error_message(exc)) from exc

        identity = identity_from_session(getattr(response, "session", None))
        if identity is not None:
            await self._apply(identity)
        return identity

    async def sign_out(self) -> str:
        """Invalidate the session and clear local state. Returns the route to go to."""
        try:
            await self.client.auth.sign_out()
        except GATEWAY_ERRORS as exc:
            logger.warning("sign_out_failed", error=error_message(exc))

        self._version += 1
        self.identity = None
        self.is_admin = False
        self.loading = False
        await self._notify()
        return HOME_ROUTE

    async def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
