"""
Shared fixtures: an in-memory stand-in for the Supabase async client.

FakeDatabase holds the tables and implements the RPCs the way the reference
SQL does. FakeClient is what the services see: table() builders, rpc(),
storage and auth, all async where the real client is.

Failure knobs:
    db.fail_rpc["purchase_prompt"] = "Insufficient credits"   # server refusal
    db.fail_tables["profiles"] = "boom"                        # query failure
    db.unreachable = True                                      # transport error
    db.rpc_gates["claim_ad_reward"] = asyncio.Event()          # hold an RPC in flight
"""

import asyncio
import itertools
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from supabase import PostgrestAPIError as APIError, StorageException

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dollarprompt.core import Settings, get_settings
from dollarprompt.lib import AdBridge
from dollarprompt.models import Identity

PUBLIC_URL = "https://fake.supabase.co/storage/v1/object/public/{bucket}/{path}"
USER_ID = "11111111-1111-1111-1111-111111111111"
ADMIN_ID = "22222222-2222-2222-2222-222222222222"
TOKENS = {"token-user": USER_ID, "token-admin": ADMIN_ID}


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _matches(row: dict, filters: List[tuple]) -> bool:
    for column, op, value in filters:
        current = row.get(column)
        if op == "eq" and str(current) != str(value):
            return False
        if op == "ilike":
            needle = str(value).strip("%").lower()
            if needle not in str(current or "").lower():
                return False
    return True


class FakeQuery:
    """Chainable PostgREST builder over one FakeDatabase table."""

    def __init__(self, db: "FakeDatabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.count = None
        self.payload = None
        self.on_conflict = None
        self.filters: List[tuple] = []
        self.ordering: Optional[tuple] = None
        self.window: Optional[tuple] = None
        self.max_rows: Optional[int] = None

    def select(self, columns: str = "*", count: Optional[str] = None):
        self.columns = columns
        self.count = count
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def upsert(self, payload, on_conflict: Optional[str] = None):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def update(self, payload: dict):
        self.op, self.payload = "update", payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column: str, value: Any):
        self.filters.append((column, "eq", value))
        return self

    def ilike(self, column: str, pattern: str):
        self.filters.append((column, "ilike", pattern))
        return self

    def order(self, column: str, desc: bool = False):
        self.ordering = (column, desc)
        return self

    def range(self, start: int, end: int):
        self.window = (start, end)
        return self

    def limit(self, size: int):
        self.max_rows = size
        return self

    async def execute(self):
        self.db.queries.append((self.table, self.op, list(self.filters)))
        self.db.check(self.table)
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            return self._response(self.db.insert(self.table, self.payload))
        if self.op == "upsert":
            return self._response(self.db.upsert(self.table, self.payload, self.on_conflict))
        if self.op == "update":
            hits = [r for r in rows if _matches(r, self.filters)]
            for row in hits:
                row.update(self.payload)
            return self._response([dict(r) for r in hits])
        if self.op == "delete":
            hits = [r for r in rows if _matches(r, self.filters)]
            self.db.tables[self.table] = [r for r in rows if r not in hits]
            return self._response([dict(r) for r in hits])

        hits = [dict(r) for r in rows if _matches(r, self.filters)]
        if self.ordering:
            column, desc = self.ordering
            hits.sort(key=lambda r: str(r.get(column) or ""), reverse=desc)
        total = len(hits)
        if self.window:
            start, end = self.window
            hits = hits[start:end + 1]
        if self.max_rows is not None:
            hits = hits[: self.max_rows]
        if self.table == "prompts" and "categories(" in self.columns:
            for row in hits:
                row["categories"] = self.db.category_join(row.get("category_id"))
        return self._response(hits, total)

    def _response(self, data: list, total: Optional[int] = None):
        return SimpleNamespace(data=data, count=total if self.count else None)


class FakeRpc:
    def __init__(self, client: "FakeClient", name: str, params: dict):
        self.client = client
        self.name = name
        self.params = params

    async def execute(self):
        db = self.client.db
        db.rpc_calls.append((self.name, dict(self.params)))
        gate = db.rpc_gates.get(self.name)
        if gate is not None:
            await gate.wait()
        db.check_rpc(self.name)
        handler = getattr(db, f"rpc_{self.name}")
        data = handler(self.client.user_id, **self.params)
        return SimpleNamespace(data=data, count=None)


class FakeBucket:
    def __init__(self, db: "FakeDatabase", bucket: str):
        self.db = db
        self.bucket = bucket

    async def upload(self, path: str, content: bytes, options: Optional[dict] = None):
        if self.db.fail_storage.get("upload"):
            raise StorageException(self.db.fail_storage["upload"])
        self.db.files[path] = content
        return SimpleNamespace(path=path)

    def get_public_url(self, path: str) -> str:
        return PUBLIC_URL.format(bucket=self.bucket, path=path)

    async def remove(self, paths: List[str]):
        if self.db.fail_storage.get("remove"):
            raise StorageException(self.db.fail_storage["remove"])
        for path in paths:
            self.db.files.pop(path, None)
            self.db.removed.append(path)
        return []


class FakeStorage:
    def __init__(self, db: "FakeDatabase"):
        self.db = db

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self.db, bucket)


class FakeSubscription:
    def __init__(self, auth: "FakeAuth", callback: Callable):
        self.auth = auth
        self.callback = callback

    def unsubscribe(self):
        if self.callback in self.auth.listeners:
            self.auth.listeners.remove(self.callback)


def make_session(user_id: str, email: str, token: str):
    user = SimpleNamespace(id=user_id, email=email)
    return SimpleNamespace(user=user, access_token=token, refresh_token=f"refresh-{token}")


class FakeAuthAdmin:
    """GoTrue admin API: only the /logout call is used."""

    def __init__(self, db: "FakeDatabase"):
        self.db = db

    async def sign_out(self, jwt: str, scope: str = "global"):
        if self.db.unreachable:
            raise httpx.ConnectError("auth server unreachable")
        self.db.revoked_tokens.append(jwt)


class FakeAuth:
    """Password accounts keyed by e-mail; tokens map to user ids."""

    def __init__(self, client: "FakeClient"):
        self.client = client
        self.db = client.db
        self.session = None
        self.listeners: List[Callable] = []
        self.session_delay = 0.0
        self.admin = FakeAuthAdmin(self.db)
        self.closed = False

    async def get_session(self):
        if self.db.unreachable:
            raise httpx.ConnectError("auth server unreachable")
        if self.session_delay:
            await asyncio.sleep(self.session_delay)
        return self.session

    def on_auth_state_change(self, callback: Callable) -> FakeSubscription:
        self.listeners.append(callback)
        return FakeSubscription(self, callback)

    def emit(self, event: str, session) -> None:
        self.session = session
        for callback in list(self.listeners):
            callback(event, session)

    async def sign_in_with_password(self, credentials: dict):
        if self.db.unreachable:
            raise httpx.ConnectError("auth server unreachable")
        account = self.db.accounts.get(credentials["email"])
        if account is None or account["password"] != credentials["password"]:
            return SimpleNamespace(user=None, session=None)
        session = make_session(account["id"], credentials["email"], account["token"])
        self.client.token = account["token"]
        self.emit("SIGNED_IN", session)
        return SimpleNamespace(user=session.user, session=session)

    async def sign_up(self, credentials: dict):
        user_id = str(uuid.uuid4())
        token = f"token-{user_id}"
        TOKENS[token] = user_id
        self.db.accounts[credentials["email"]] = {
            "id": user_id,
            "password": credentials["password"],
            "token": token,
        }
        self.db.insert("profiles", {"id": user_id, "credits": 5, "role": "user"})
        if self.db.confirm_email:
            return SimpleNamespace(user=SimpleNamespace(id=user_id), session=None)
        session = make_session(user_id, credentials["email"], token)
        self.emit("SIGNED_IN", session)
        return SimpleNamespace(user=session.user, session=session)

    async def sign_out(self):
        if self.db.unreachable:
            raise httpx.ConnectError("auth server unreachable")
        self.client.token = None
        self.emit("SIGNED_OUT", None)

    async def close(self):
        self.closed = True

    async def get_user(self, token: str):
        user_id = TOKENS.get(token)
        if user_id is None:
            return None
        email = next((e for e, a in self.db.accounts.items() if a["id"] == user_id), None)
        return SimpleNamespace(user=SimpleNamespace(id=user_id, email=email))


class FakePostgrest:
    def __init__(self, client: "FakeClient"):
        self.client = client
        self.closed = False

    def auth(self, token: str):
        self.client.token = token

    async def aclose(self):
        self.closed = True


class FakeClient:
    """What the services receive in place of supabase.AsyncClient."""

    def __init__(self, db: "FakeDatabase", token: Optional[str] = None):
        self.db = db
        self.token = token
        self.storage = FakeStorage(db)
        self.auth = FakeAuth(self)
        self.postgrest = FakePostgrest(self)

    @property
    def user_id(self) -> Optional[str]:
        return TOKENS.get(self.token)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.db, name)

    def rpc(self, name: str, params: Optional[dict] = None) -> FakeRpc:
        return FakeRpc(self, name, params or {})


class FakeDatabase:
    """Tables plus RPCs with the reference SQL's semantics."""

    def __init__(self):
        self.tables: Dict[str, List[dict]] = {}
        self.files: Dict[str, bytes] = {}
        self.removed: List[str] = []
        self.revoked_tokens: List[str] = []
        self.accounts: Dict[str, dict] = {}
        self.queries: List[tuple] = []
        self.rpc_calls: List[tuple] = []
        self.rpc_gates: Dict[str, asyncio.Event] = {}
        self.fail_rpc: Dict[str, str] = {}
        self.fail_tables: Dict[str, str] = {}
        self.fail_storage: Dict[str, str] = {}
        self.unreachable = False
        self.confirm_email = False
        self.today: Optional[str] = None
        self._ids = itertools.count(1000)
        self._numbers = itertools.count(1)

    def day(self) -> str:
        """Server calendar day (CURRENT_DATE); tests may pin it."""
        return self.today or _today()

    # failure injection

    def check(self, table: str) -> None:
        if self.unreachable:
            raise httpx.ConnectError("database unreachable")
        if table in self.fail_tables:
            raise APIError({"message": self.fail_tables[table], "code": "500"})

    def check_rpc(self, name: str) -> None:
        if self.unreachable:
            raise httpx.ConnectError("database unreachable")
        if name in self.fail_rpc:
            raise APIError({"message": self.fail_rpc[name], "code": "P0001"})

    # rows

    def insert(self, table: str, payload) -> List[dict]:
        rows = payload if isinstance(payload, list) else [payload]
        stored = []
        for row in rows:
            row = dict(row)
            if table == "prompts":
                row.setdefault("id", str(uuid.uuid4()))
                row.setdefault("prompt_id", next(self._numbers))
                row.setdefault("like_count", 0)
            elif table not in ("profiles", "coupons", "app_config"):
                row.setdefault("id", next(self._ids))
            row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            self.tables.setdefault(table, []).append(row)
            stored.append(dict(row))
        return stored

    def upsert(self, table: str, payload, on_conflict: Optional[str]) -> List[dict]:
        rows = payload if isinstance(payload, list) else [payload]
        stored = []
        for row in rows:
            existing = None
            if on_conflict:
                existing = next(
                    (r for r in self.tables.get(table, []) if r.get(on_conflict) == row.get(on_conflict)),
                    None,
                )
            if existing is not None:
                existing.update(row)
                stored.append(dict(existing))
            else:
                stored.extend(self.insert(table, row))
        return stored

    def rows(self, table: str, **filters) -> List[dict]:
        return [
            r for r in self.tables.get(table, [])
            if all(str(r.get(k)) == str(v) for k, v in filters.items())
        ]

    def profile(self, user_id: str) -> dict:
        return self.rows("profiles", id=user_id)[0]

    def category_join(self, category_id) -> Optional[dict]:
        for row in self.tables.get("categories", []):
            if row["id"] == category_id:
                return {"name": row["name"], "slug": row["slug"]}
        return None

    def _raise(self, message: str):
        raise APIError({"message": message, "code": "P0001"})

    def _require_user(self, user_id: Optional[str]) -> dict:
        if user_id is None:
            self._raise("Not authenticated")
        return self.profile(user_id)

    def _cost(self) -> int:
        rows = self.rows("app_config", config_key="prompt_cost")
        return int(rows[0]["config_value"]) if rows else 1

    # RPCs

    def rpc_is_admin(self, user_id, p_user_id):
        rows = self.rows("profiles", id=p_user_id)
        return bool(rows) and rows[0].get("role") == "admin"

    def rpc_purchase_prompt(self, user_id, p_prompt_id_in, p_cost_in):
        profile = self._require_user(user_id)
        if self.rows("unlocked_prompts", user_id=user_id, prompt_id=p_prompt_id_in):
            return None
        cost = max(p_cost_in, self._cost())
        if profile["credits"] < cost:
            self._raise("Insufficient credits")
        profile["credits"] -= cost
        self.insert("unlocked_prompts", {"user_id": user_id, "prompt_id": p_prompt_id_in})
        return None

    def rpc_claim_ad_reward(self, user_id, p_slot):
        profile = self._require_user(user_id)
        if self.rows("daily_ad_claims", user_id=user_id, reward_slot=p_slot, claim_date=self.day()):
            self._raise("Reward already claimed today")
        profile["credits"] += 3
        self.insert(
            "daily_ad_claims",
            {"user_id": user_id, "reward_slot": p_slot, "claim_date": self.day()},
        )
        self.insert("ad_views", {"user_id": user_id, "reward_slot": p_slot})
        return None

    def rpc_claim_link_reward(self, user_id, p_link_id):
        profile = self._require_user(user_id)
        if self.rows("daily_link_claims", user_id=user_id, link_id=p_link_id, claim_date=self.day()):
            self._raise("Reward already claimed today")
        profile["credits"] += 1
        self.insert(
            "daily_link_claims",
            {"user_id": user_id, "link_id": p_link_id, "claim_date": self.day()},
        )
        return None

    def rpc_claim_telegram_reward(self, user_id):
        profile = self._require_user(user_id)
        if profile.get("has_claimed_telegram_reward"):
            self._raise("Telegram reward already claimed")
        profile["credits"] += 10
        profile["has_claimed_telegram_reward"] = True
        return None

    def rpc_claim_coupon_reward(self, user_id, p_coupon_code):
        profile = self._require_user(user_id)
        coupons = self.rows("coupons", code=p_coupon_code, is_active=True)
        if not coupons or self.rows("user_coupon_claims", user_id=user_id, coupon_code=p_coupon_code):
            return 0
        amount = coupons[0]["credits"]
        profile["credits"] += amount
        self.insert(
            "user_coupon_claims",
            {"user_id": user_id, "coupon_code": p_coupon_code, "claim_date": self.day()},
        )
        return amount

    def rpc_increment_like_count(self, user_id, p_prompt_id):
        for row in self.rows("prompts", id=p_prompt_id):
            row["like_count"] = row.get("like_count", 0) + 1
        return None


def seed(db: FakeDatabase) -> None:
    db.accounts["ana@example.com"] = {"id": USER_ID, "password": "secret", "token": "token-user"}
    db.accounts["boss@example.com"] = {"id": ADMIN_ID, "password": "secret", "token": "token-admin"}
    db.insert("profiles", {"id": USER_ID, "credits": 5, "role": "user", "has_claimed_telegram_reward": False})
    db.insert("profiles", {"id": ADMIN_ID, "credits": 0, "role": "admin", "has_claimed_telegram_reward": False})
    db.insert("categories", {"id": 1, "name": "Portraits", "slug": "portraits"})
    db.insert("categories", {"id": 2, "name": "Anime", "slug": "anime"})
    db.insert("app_config", {"config_key": "prompt_cost", "config_value": "1"})
    db.insert("coupons", {"code": "WELCOME5", "credits": 5, "is_active": True})

    titles = [
        ("Golden hour portrait", 1),
        ("Cyberpunk street", 2),
        ("Studio headshot", 1),
        ("Cyber samurai", 2),
        ("Rainy window portrait", 1),
    ]
    for i, (title, category_id) in enumerate(titles):
        db.insert(
            "prompts",
            {
                "id": f"prompt-{i + 1}",
                "prompt_id": 40 + i + 1,
                "title": title,
                "category_id": category_id,
                "image_url": PUBLIC_URL.format(bucket="prompt-images", path=f"p{i + 1}.png"),
                "prompt_text": f"Secret text {i + 1}",
                "instructions": "Use at 4:5",
                "creator_name": "Mira" if i % 2 == 0 else "Jon",
                "like_count": 0,
                "created_at": f"2024-01-0{i + 1}T10:00:00+00:00",
            },
        )
    db.insert(
        "hero_images",
        {"id": 1, "image_url": PUBLIC_URL.format(bucket="prompt-images", path="hero1.png")},
    )


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    for name in ("ADMIN_POLICY", "CONTENT_GATE", "AD_SDK_ENTRY", "REWARD_TIMEZONE"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://fake.supabase.co",
        supabase_key="anon",
        prompts_page_size=2,
    )


@pytest.fixture
def db() -> FakeDatabase:
    database = FakeDatabase()
    seed(database)
    return database


@pytest.fixture
def client(db) -> FakeClient:
    return FakeClient(db, token="token-user")


@pytest.fixture
def anon_client(db) -> FakeClient:
    return FakeClient(db)


@pytest.fixture
def admin_client(db) -> FakeClient:
    return FakeClient(db, token="token-admin")


@pytest.fixture
def identity() -> Identity:
    return Identity(id=USER_ID, email="ana@example.com", access_token="token-user")


@pytest.fixture
def admin_identity() -> Identity:
    return Identity(id=ADMIN_ID, email="boss@example.com", access_token="token-admin")


class FakeAdSdk:
    """Entry function stand-in. Records calls; can be told to fail."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.error: Optional[Exception] = None
        self.release: Optional[asyncio.Event] = None

    async def __call__(self, *args):
        self.calls.append(args)
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error


async def wait_until_ready(bridge: AdBridge) -> None:
    for _ in range(100):
        if bridge.is_ready:
            return
        await asyncio.sleep(0.001)
    raise AssertionError("ad bridge never became ready")


@pytest.fixture
def ad_sdk() -> FakeAdSdk:
    return FakeAdSdk()


@pytest_asyncio.fixture
async def ready_bridge(ad_sdk):
    bridge = AdBridge(resolver=lambda: ad_sdk, poll_interval=0.001, inapp_settle_seconds=0)
    await bridge.load()
    await wait_until_ready(bridge)
    yield bridge
    await bridge.close()
