"""
Client-only preferences and anti-abuse hints.

Typed keys over a plain key-value backend, so the same code runs against
process memory (session scope) or a JSON file (durable scope) and can be
tested without either. Values are best-effort: clearing the backend resets
them, and a value in an unexpected format is treated as absent.
"""

import json
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

LIKED_PROMPTS_KEY = "liked_prompts"
AD_SHOWN_PREFIX = "ad_shown:"
MONETIZATION_MODAL_SEEN_KEY = "monetization_modal_seen"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Lives as long as the process - the session-storage equivalent."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore:
    """Durable key-value file - the local-storage equivalent."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)


class ClientState:
    """
    Typed view over a KeyValueStore.

    durable: liked prompt ids, monetization modal seen
    session: ad-shown markers (pass a separate store to scope them per session)
    """

    def __init__(self, durable: KeyValueStore, session: Optional[KeyValueStore] = None):
        self.durable = durable
        self.session = session if session is not None else MemoryKeyValueStore()

    # liked prompts

    def liked_prompt_ids(self) -> List[str]:
        raw = self.durable.get(LIKED_PROMPTS_KEY)
        if not raw:
            return []
        try:
            value = json.loads(raw)
        except ValueError:
            return []
        if not isinstance(value, list):
            return []
        return [str(v) for v in value]

    def has_liked(self, prompt_id: str) -> bool:
        return str(prompt_id) in self.liked_prompt_ids()

    def mark_liked(self, prompt_id: str) -> bool:
        """Record a like. False if it was already recorded."""
        liked = self.liked_prompt_ids()
        if str(prompt_id) in liked:
            return False
        liked.append(str(prompt_id))
        self.durable.set(LIKED_PROMPTS_KEY, json.dumps(liked))
        return True

    def unmark_liked(self, prompt_id: str) -> None:
        liked = [p for p in self.liked_prompt_ids() if p != str(prompt_id)]
        self.durable.set(LIKED_PROMPTS_KEY, json.dumps(liked))

    # ad-shown markers

    def ad_shown(self, placement: str) -> bool:
        return self.session.get(AD_SHOWN_PREFIX + placement) == "true"

    def mark_ad_shown(self, placement: str) -> bool:
        """Mark a placement shown for this session. False if it already was."""
        if self.ad_shown(placement):
            return False
        self.session.set(AD_SHOWN_PREFIX + placement, "true")
        return True

    # monetization modal

    def monetization_modal_seen(self) -> bool:
        return self.durable.get(MONETIZATION_MODAL_SEEN_KEY) == "true"

    def mark_monetization_modal_seen(self) -> None:
        self.durable.set(MONETIZATION_MODAL_SEEN_KEY, "true")
