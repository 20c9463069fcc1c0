"""
Optimistic mutations with rollback.

Every wallet claim has the same shape:
    Idle -> Pending (local change applied, request in flight) -> Committed | RolledBack

apply() always runs before invoke() is awaited, rollback() only runs after
invoke() has failed. A key stays Pending for the whole sequence, so a second
request for the same key is refused instead of hitting the server twice.
"""

from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Hashable, Iterator

import structlog

from ..core import DollarPromptError, GatewayError

logger = structlog.get_logger("dollarprompt.optimistic")


class ClaimInProgress(DollarPromptError):
    """A mutation for this key is already Pending."""


class PendingClaims:
    """Set of claim keys currently Pending."""

    def __init__(self):
        self._keys = set()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Mark key Pending for the duration of the block."""
        if key in self._keys:
            raise ClaimInProgress("This reward is already being claimed.")
        self._keys.add(key)
        try:
            yield
        finally:
            self._keys.discard(key)


async def run_optimistic(
    key: Hashable,
    apply: Callable[[], None],
    invoke: Callable[[], Awaitable[Any]],
    rollback: Callable[[], None],
) -> Any:
    """
    Apply a local change, run the remote call, undo the change if it fails.

    Returns whatever invoke() returns. A GatewayError is re-raised after
    rollback so the caller can surface the server's message.
    """
    apply()
    try:
        result = await invoke()
    except GatewayError as exc:
        rollback()
        logger.warning("optimistic_rolled_back", key=str(key), error=exc.message)
        raise
    except BaseException:
        # cancellation or a bug - still leave no local drift behind
        rollback()
        raise
    logger.debug("optimistic_committed", key=str(key))
    return result
