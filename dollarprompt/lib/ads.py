"""
Rewarded-ad bridge.

The ad network ships its SDK as an entry function. AD_SDK_ENTRY names it as
"package.module:function"; the module is imported once per process and the
entry attribute is polled until the SDK has installed it.

Three call shapes:
- slot 1: entry()            interstitial, completion awaited
- slot 2: entry("pop")       pop variant, completion awaited
- slot 3: entry(settings)    in-app variant, no completion signal - treated as
                             shown after a fixed settle delay (approximation)
"""

import asyncio
import copy
import importlib
import inspect
from types import ModuleType
from typing import Any, Callable, Dict, Optional

import structlog

from ..core import AdUnavailable, get_settings

logger = structlog.get_logger("dollarprompt.ads")

AD_UNAVAILABLE_MESSAGE = "Ad unavailable. Please disable your ad blocker and try again."

IN_APP_SETTINGS = {
    "type": "inApp",
    "inAppSettings": {
        "frequency": 2,
        "capping": 0.1,
        "interval": 30,
        "timeout": 5,
        "everyPage": False,
    },
}

# module name -> module, one import per process
_injected: Dict[str, ModuleType] = {}


def _inject(module_name: str) -> ModuleType:
    module = _injected.get(module_name)
    if module is None:
        module = importlib.import_module(module_name)
        _injected[module_name] = module
        logger.info("ad_sdk_injected", module=module_name)
    return module


class AdBridge:
    """Loads the ad SDK and shows rewarded ads by slot."""

    def __init__(
        self,
        entry_spec: Optional[str] = None,
        poll_interval: Optional[float] = None,
        inapp_settle_seconds: Optional[float] = None,
        resolver: Optional[Callable[[], Optional[Callable[..., Any]]]] = None,
    ):
        settings = get_settings()
        self.entry_spec = entry_spec if entry_spec is not None else settings.ad_sdk_entry
        self.poll_interval = poll_interval if poll_interval is not None else settings.ad_poll_interval
        self.inapp_settle_seconds = (
            inapp_settle_seconds if inapp_settle_seconds is not None else settings.ad_inapp_settle_seconds
        )
        self._resolver = resolver
        self._module: Optional[ModuleType] = None
        self._attr: Optional[str] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._background = set()
        self.is_ready = False

    async def load(self) -> None:
        """Inject the SDK (once) and start polling for its entry function."""
        if self.is_ready or self._poll_task is not None:
            return

        if self._resolver is None:
            if not self.entry_spec:
                logger.info("ad_sdk_not_configured")
                return
            module_name, _, attr = self.entry_spec.partition(":")
            if not module_name or not attr:
                logger.error("ad_sdk_entry_invalid", entry=self.entry_spec)
                return
            try:
                self._module = _inject(module_name)
            except ImportError as exc:
                logger.error("ad_sdk_inject_failed", module=module_name, error=str(exc))
                return
            self._attr = attr

        self._poll_task = asyncio.get_running_loop().create_task(self._poll())

    async def _poll(self) -> None:
        while self._entry() is None:
            await asyncio.sleep(self.poll_interval)
        self.is_ready = True
        logger.info("ad_sdk_ready")

    def _entry(self) -> Optional[Callable[..., Any]]:
        if self._resolver is not None:
            entry = self._resolver()
        elif self._module is not None and self._attr:
            entry = getattr(self._module, self._attr, None)
        else:
            entry = None
        return entry if callable(entry) else None

    async def close(self) -> None:
        """Stop polling and drop any fire-and-forget calls still running."""
        tasks = list(self._background)
        if self._poll_task is not None and not self._poll_task.done():
            tasks.append(self._poll_task)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._poll_task = None
        self._background.clear()

    async def show_ad_by_slot(self, slot: int) -> None:
        """Show the ad for a reward slot. Raises AdUnavailable if it was not shown."""
        entry = self._entry()
        if entry is None:
            raise AdUnavailable("Ad SDK is not loaded. " + AD_UNAVAILABLE_MESSAGE)

        try:
            if slot == 3:
                self._fire_and_forget(entry(copy.deepcopy(IN_APP_SETTINGS)))
                await asyncio.sleep(self.inapp_settle_seconds)
                return

            result = entry("pop") if slot == 2 else entry()
            if inspect.isawaitable(result):
                await result
        except AdUnavailable:
            raise
        except Exception as exc:
            logger.warning("ad_show_failed", slot=slot, error=str(exc))
            raise AdUnavailable(AD_UNAVAILABLE_MESSAGE) from exc

    def _fire_and_forget(self, result: Any) -> None:
        if not inspect.isawaitable(result):
            return
        task = asyncio.ensure_future(result)
        self._background.add(task)
        task.add_done_callback(self._background_done)

    def _background_done(self, task: asyncio.Future) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("ad_inapp_failed", error=str(task.exception()))
