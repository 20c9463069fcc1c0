"""
HTTP surface, end to end over the in-memory Supabase fake.
"""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from dollarprompt.api.main import app
from dollarprompt.api.routes.auth import get_identity_store
from dollarprompt.api.routes import auth as auth_routes
from dollarprompt.lib import AdBridge, BoundedCache, IdentityStore, RpcAdminPolicy, WalletRegistry
from dollarprompt.lib.auth import get_client

from conftest import ADMIN_ID, USER_ID, FakeAdSdk, FakeClient

USER = {"Authorization": "Bearer token-user"}
ADMIN = {"Authorization": "Bearer token-admin"}


@pytest.fixture
def api(db, monkeypatch):
    sdk = FakeAdSdk()
    bridge = AdBridge(resolver=lambda: sdk, inapp_settle_seconds=0)
    bridge.is_ready = True

    async def user_client(token):
        return FakeClient(db, token)

    async def anon_client():
        return FakeClient(db)

    async def identity_store():
        auth_client = FakeClient(db)
        yield IdentityStore(auth_client, RpcAdminPolicy(auth_client), timeout=1)

    monkeypatch.setattr(app.state, "wallets", WalletRegistry(client_factory=user_client, ad_bridge=bridge))
    monkeypatch.setattr(app.state, "client_states", BoundedCache(max_entries=100))
    app.dependency_overrides[get_client] = anon_client
    app.dependency_overrides[get_identity_store] = identity_store
    yield SimpleNamespace(http=TestClient(app), db=db, bridge=bridge, sdk=sdk)
    app.dependency_overrides.clear()


def test_health(api):
    response = api.http.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestAuth:
    def test_login(self, api):
        response = api.http.post("/auth/login", json={"email": "ana@example.com", "password": "secret"})

        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == USER_ID
        assert body["access_token"] == "token-user"
        assert body["is_admin"] is False

    def test_login_wrong_password(self, api):
        response = api.http.post("/auth/login", json={"email": "ana@example.com", "password": "nope"})

        assert response.status_code == 401

    def test_signup_returns_session(self, api):
        response = api.http.post("/auth/signup", json={"email": "new@example.com", "password": "pw"})

        assert response.status_code == 200
        assert response.json()["access_token"].startswith("token-")

    def test_me_and_bad_token(self, api):
        assert api.http.get("/auth/me", headers=ADMIN).json()["is_admin"] is True
        assert api.http.get("/auth/me", headers={"Authorization": "Bearer forged"}).status_code == 401

    def test_logout_evicts_wallet(self, api):
        api.http.get("/wallet", headers=USER)
        assert USER_ID in app.state.wallets

        response = api.http.post("/auth/logout", headers=USER)

        assert response.json() == {"success": True, "redirect": "/"}
        assert USER_ID not in app.state.wallets
        assert api.db.revoked_tokens == ["token-user"]

    def test_logout_still_succeeds_when_auth_is_down(self, api):
        api.http.get("/wallet", headers=USER)
        api.db.unreachable = True

        response = api.http.post("/auth/logout", headers=USER)

        assert response.status_code == 200
        assert api.db.revoked_tokens == []
        assert USER_ID not in app.state.wallets

    @pytest.mark.asyncio
    async def test_identity_store_client_is_closed(self, db, monkeypatch):
        client = FakeClient(db)

        async def anon_client():
            return client

        monkeypatch.setattr(auth_routes, "create_anon_client", anon_client)
        dependency = auth_routes.get_identity_store()
        store = await dependency.__anext__()
        assert store.client is client
        with pytest.raises(StopAsyncIteration):
            await dependency.__anext__()

        assert client.auth.closed
        assert client.postgrest.closed


class TestCatalog:
    def test_list_is_gated_for_anonymous(self, api):
        response = api.http.get("/prompts", params={"page": 0})

        body = response.json()
        assert response.status_code == 200
        assert len(body["prompts"]) == 5  # default page size is larger than the catalog
        assert all(p["prompt_text"] is None for p in body["prompts"])
        assert body["has_more"] is False

    def test_search_by_number(self, api):
        body = api.http.get("/prompts", params={"q": "00042"}).json()

        assert [p["id"] for p in body["prompts"]] == ["prompt-2"]

    def test_categories_and_home(self, api):
        assert [c["slug"] for c in api.http.get("/prompts/categories").json()] == ["anime", "portraits"]
        assert len(api.http.get("/prompts/home").json()["hero_images"]) == 1

    def test_detail_by_number_and_missing(self, api):
        detail = api.http.get("/prompts/42").json()

        assert detail["prompt"]["id"] == "prompt-2"
        assert detail["locked"] is True
        assert api.http.get("/prompts/does-not-exist").status_code == 404


class TestUnlock:
    def test_unlock_flow(self, api):
        response = api.http.post("/prompts/prompt-1/unlock", headers=USER)

        assert response.status_code == 200
        assert response.json()["credits"] == 4
        assert response.json()["view"]["prompt"]["prompt_text"] == "Secret text 1"

        detail = api.http.get("/prompts/prompt-1", headers=USER).json()
        assert detail["locked"] is False
        assert api.http.get("/wallet", headers=USER).json()["profile"]["credits"] == 4
        assert api.db.profile(USER_ID)["credits"] == 4

    def test_unlock_without_credits(self, api):
        api.db.profile(USER_ID)["credits"] = 0

        response = api.http.post("/prompts/prompt-1/unlock", headers=USER)

        assert response.status_code == 402
        assert response.json()["detail"] == "Not enough credits!"

    def test_unlock_needs_sign_in(self, api):
        assert api.http.post("/prompts/prompt-1/unlock").status_code in (401, 403)


class TestLikes:
    def test_anonymous_like_needs_client_id(self, api):
        assert api.http.post("/prompts/prompt-1/like").status_code == 400

    def test_anonymous_like_once_per_client(self, api):
        headers = {"X-Client-Id": "browser-1"}

        first = api.http.post("/prompts/prompt-1/like", headers=headers).json()
        second = api.http.post("/prompts/prompt-1/like", headers=headers).json()

        assert first == {"liked": True, "like_count": 1}
        assert second["liked"] is False

    def test_signed_in_like_twice_conflicts(self, api):
        assert api.http.post("/prompts/prompt-1/like", headers=USER).status_code == 200
        assert api.http.post("/prompts/prompt-1/like", headers=USER).status_code == 409

    def test_client_states_are_bounded(self, api, monkeypatch):
        monkeypatch.setattr(app.state, "client_states", BoundedCache(max_entries=2))

        for client_id in ("browser-1", "browser-2", "browser-3"):
            api.http.post("/prompts/prompt-1/like", headers={"X-Client-Id": client_id})

        states = app.state.client_states
        assert len(states) == 2
        assert "client:browser-1" not in states
        assert "client:browser-3" in states


class TestRewards:
    def test_coupon(self, api):
        ok = api.http.post("/wallet/rewards/coupon", json={"code": "welcome5"}, headers=USER)
        again = api.http.post("/wallet/rewards/coupon", json={"code": "WELCOME5"}, headers=USER)

        assert ok.json()["amount"] == 5
        assert ok.json()["credits"] == 10
        assert again.status_code == 400
        assert again.json()["detail"] == "Invalid or already used coupon code."

    def test_ad_reward_once_per_slot(self, api):
        first = api.http.post("/wallet/rewards/ad/1", headers=USER)
        second = api.http.post("/wallet/rewards/ad/1", headers=USER)

        assert first.status_code == 200
        assert first.json()["credits"] == 8
        assert second.status_code == 409
        assert api.sdk.calls == [()]

    def test_ad_reward_when_sdk_missing(self, api):
        api.bridge.is_ready = False

        response = api.http.post("/wallet/rewards/ad/2", headers=USER)

        assert response.status_code == 503

    def test_unknown_slot(self, api):
        assert api.http.post("/wallet/rewards/ad/7", headers=USER).status_code == 422

    def test_link_and_telegram(self, api):
        assert api.http.post("/wallet/rewards/link/sponsor-a", headers=USER).json()["credits"] == 6
        assert api.http.post("/wallet/rewards/telegram", headers=USER).json()["credits"] == 16
        assert api.http.post("/wallet/rewards/telegram", headers=USER).status_code == 409


class TestUploadAndAdmin:
    def test_public_upload(self, api):
        response = api.http.post(
            "/prompts/upload",
            data={"title": "Neon", "category_id": "2", "prompt_text": "rain", "creator_name": "Mira"},
            files={"image": ("neon.png", b"\x89PNG", "image/png")},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Prompt uploaded successfully!"

    def test_public_upload_without_image(self, api):
        response = api.http.post(
            "/prompts/upload",
            data={"title": "Neon", "category_id": "2", "prompt_text": "rain", "creator_name": "Mira"},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "A preview image is required."

    def test_admin_only(self, api):
        assert api.http.get("/admin/analytics", headers=USER).status_code == 403

    def test_admin_analytics_and_delete(self, api):
        api.db.insert("ad_views", {"user_id": ADMIN_ID, "reward_slot": 1})

        analytics = api.http.get("/admin/analytics", headers=ADMIN).json()
        deleted = api.http.delete("/admin/prompts/prompt-2", headers=ADMIN)

        assert analytics == {"total_views": 1, "estimated_earnings": 0.05}
        assert deleted.json()["message"] == "Prompt deleted successfully!"
        assert api.db.removed == ["p2.png"]
        assert api.http.delete("/admin/prompts/prompt-2", headers=ADMIN).status_code == 404
