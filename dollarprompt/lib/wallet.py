"""
Profile / wallet store.

Caches one user's credits, unlocked prompts and today's claims, and runs
every credit-changing action as an optimistic mutation:

    local change -> RPC -> keep (success) or undo exactly (failure)

The server is authoritative for balances and double-claim prevention; this
store only mirrors it well enough to gate the UI and avoid obvious duplicate
requests.
"""

import asyncio
import uuid
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Hashable, List, Optional, Set

import pytz
import structlog

from ..core import AdUnavailable, GatewayError, Settings, get_settings
from ..db import call_rpc, execute, first_row
from ..models import (
    ClaimResult,
    CouponClaim,
    DailyAdClaim,
    DailyLinkClaim,
    Identity,
    Profile,
    WalletState,
)
from .ads import AdBridge, AD_UNAVAILABLE_MESSAGE
from .optimistic import ClaimInProgress, PendingClaims, run_optimistic

logger = structlog.get_logger("dollarprompt.wallet")

AD_REWARD = 3
LINK_REWARD = 1
TELEGRAM_REWARD = 10

NOT_ENOUGH_CREDITS = "Not enough credits!"
SIGN_IN_REQUIRED = "Please sign in to claim rewards."
INVALID_COUPON = "Invalid or already used coupon code."


def _temp_id() -> str:
    return f"temp-{uuid.uuid4().hex[:12]}"


def _as_amount(data: Any) -> int:
    """Credited amount returned by claim_coupon_reward (scalar, or a one-row list)."""
    if isinstance(data, list):
        data = data[0] if data else 0
    if isinstance(data, dict):
        data = next(iter(data.values()), 0)
    try:
        return int(data)
    except (TypeError, ValueError):
        return 0


class WalletStore:
    """Credits, unlocks and reward claims for one identity."""

    def __init__(
        self,
        client,
        identity: Optional[Identity] = None,
        ad_bridge: Optional[AdBridge] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        settings = settings or get_settings()
        self.client = client
        self.identity = identity
        self.ad_bridge = ad_bridge
        self.timezone = pytz.timezone(settings.reward_timezone)
        self.default_prompt_cost = settings.default_prompt_cost
        self._clock = clock or (lambda: datetime.now(pytz.UTC))
        self.pending = PendingClaims()
        self.loaded_day: Optional[date] = None
        self._reset()
        self.loading = True

    def _reset(self) -> None:
        self.profile: Optional[Profile] = None
        self.unlocked_prompt_ids: Set[str] = set()
        self.daily_ad_claims: List[DailyAdClaim] = []
        self.daily_link_claims: List[DailyLinkClaim] = []
        self.coupon_claims: List[CouponClaim] = []
        self.prompt_cost = self.default_prompt_cost

    def today(self) -> date:
        """Calendar date for daily claims, in the reward timezone."""
        return self._clock().astimezone(self.timezone).date()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def on_identity_change(self, store) -> None:
        """Listener for IdentityStore - follow the new identity and reload."""
        self.identity = store.identity
        await self.refresh()

    async def refresh(self) -> None:
        """
        Reload everything for the current identity.
        Sub-fetches run concurrently; one failing leaves the rest in place.
        """
        identity = self.identity
        if identity is None:
            self._reset()
            self.loaded_day = None
            self.loading = False
            return

        self.loading = True
        today = self.today()
        user_id = identity.id

        parts = {
            "profile": self._fetch_profile(user_id),
            "unlocked_prompts": self._fetch_unlocked(user_id),
            "daily_ad_claims": self._fetch_ad_claims(user_id, today),
            "daily_link_claims": self._fetch_link_claims(user_id, today),
            "coupon_claims": self._fetch_coupon_claims(user_id),
            "prompt_cost": self._fetch_prompt_cost(),
        }
        results = await asyncio.gather(*parts.values(), return_exceptions=True)

        if self.identity is None or self.identity.id != user_id:
            # signed out or switched user while we were waiting
            return

        for name, result in zip(parts, results):
            if isinstance(result, Exception):
                logger.warning(
                    "wallet_fetch_failed",
                    part=name,
                    user_id=user_id,
                    error=getattr(result, "message", None) or str(result),
                )
                continue
            if isinstance(result, BaseException):
                raise result
            self._merge(name, result)

        self.loaded_day = today
        self.loading = False

    def _merge(self, name: str, value: Any) -> None:
        if name == "profile":
            self.profile = value
        elif name == "unlocked_prompts":
            self.unlocked_prompt_ids = value
        elif name == "prompt_cost":
            self.prompt_cost = value
        else:
            setattr(self, name, value)

    async def _fetch_profile(self, user_id: str) -> Optional[Profile]:
        row = await first_row(self.client.table("profiles").select("*").eq("id", user_id))
        return Profile(**row) if row else None

    async def _fetch_unlocked(self, user_id: str) -> Set[str]:
        response = await execute(
            self.client.table("unlocked_prompts").select("prompt_id").eq("user_id", user_id)
        )
        return {str(row["prompt_id"]) for row in response.data or []}

    async def _fetch_ad_claims(self, user_id: str, today: date) -> List[DailyAdClaim]:
        response = await execute(
            self.client.table("daily_ad_claims")
            .select("*")
            .eq("user_id", user_id)
            .eq("claim_date", today.isoformat())
        )
        claims = [DailyAdClaim(**row) for row in response.data or []]
        return [c for c in claims if c.claim_date == today]

    async def _fetch_link_claims(self, user_id: str, today: date) -> List[DailyLinkClaim]:
        response = await execute(
            self.client.table("daily_link_claims")
            .select("*")
            .eq("user_id", user_id)
            .eq("claim_date", today.isoformat())
        )
        claims = [DailyLinkClaim(**row) for row in response.data or []]
        return [c for c in claims if c.claim_date == today]

    async def _fetch_coupon_claims(self, user_id: str) -> List[CouponClaim]:
        response = await execute(
            self.client.table("user_coupon_claims").select("*").eq("user_id", user_id)
        )
        return [CouponClaim(**row) for row in response.data or []]

    async def _fetch_prompt_cost(self) -> int:
        row = await first_row(
            self.client.table("app_config").select("config_value").eq("config_key", "prompt_cost")
        )
        if not row:
            return self.default_prompt_cost
        try:
            cost = int(row["config_value"])
        except (TypeError, ValueError):
            return self.default_prompt_cost
        return cost if cost > 0 else self.default_prompt_cost

    # ------------------------------------------------------------------
    # Predicates (used to disable controls)
    # ------------------------------------------------------------------

    def is_unlocked(self, prompt_id: str) -> bool:
        return str(prompt_id) in self.unlocked_prompt_ids

    def todays_ad_claims(self) -> List[DailyAdClaim]:
        today = self.today()
        return [c for c in self.daily_ad_claims if c.claim_date == today]

    def todays_link_claims(self) -> List[DailyLinkClaim]:
        today = self.today()
        return [c for c in self.daily_link_claims if c.claim_date == today]

    def is_ad_slot_claimed(self, slot: int) -> bool:
        return any(c.reward_slot == slot for c in self.todays_ad_claims())

    def is_link_claimed(self, link_id: str) -> bool:
        return any(c.link_id == link_id for c in self.todays_link_claims())

    def is_stale(self) -> bool:
        """True once the reward day has moved past the last successful load."""
        return self.loaded_day is not None and self.loaded_day != self.today()

    def is_coupon_claimed(self, code: str) -> bool:
        code = code.strip().upper()
        return any(c.coupon_code.upper() == code for c in self.coupon_claims)

    def is_pending(self, key: Hashable) -> bool:
        return key in self.pending

    def state(self) -> WalletState:
        return WalletState(
            profile=self.profile.model_copy() if self.profile else None,
            unlocked_prompt_ids=sorted(self.unlocked_prompt_ids),
            daily_ad_claims=self.todays_ad_claims(),
            daily_link_claims=self.todays_link_claims(),
            coupon_claims=list(self.coupon_claims),
            prompt_cost=self.prompt_cost,
            loading=self.loading,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _ok(self, message: str, amount: Optional[int] = None) -> ClaimResult:
        credits = self.profile.credits if self.profile else None
        return ClaimResult(success=True, message=message, credits=credits, amount=amount)

    def _fail(self, message: str, code: str) -> ClaimResult:
        credits = self.profile.credits if self.profile else None
        return ClaimResult(success=False, message=message, code=code, credits=credits)

    def _error(self, exc: Exception) -> ClaimResult:
        if isinstance(exc, ClaimInProgress):
            return self._fail(exc.message, "in_progress")
        if isinstance(exc, AdUnavailable):
            return self._fail(exc.message, "ad_unavailable")
        return self._fail(exc.message, "gateway")

    async def _claim(
        self,
        key: Hashable,
        apply: Callable[[], None],
        invoke: Callable[[], Awaitable[Any]],
        rollback: Callable[[], None],
        before: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> Any:
        """
        Hold key Pending, run the optional suspending step, then the
        optimistic mutation. Raises ClaimInProgress, AdUnavailable or GatewayError.
        """
        with self.pending.hold(key):
            if before is not None:
                await before()
            return await run_optimistic(key, apply, invoke, rollback)

    async def unlock_prompt(self, prompt_id: str) -> ClaimResult:
        """Spend prompt_cost credits to unlock a prompt. Already unlocked = no-op."""
        prompt_id = str(prompt_id)
        key = ("unlock", prompt_id)
        if key in self.pending:
            return self._fail("This prompt is already being unlocked.", "in_progress")
        if prompt_id in self.unlocked_prompt_ids:
            return self._ok("Prompt already unlocked.")

        cost = self.prompt_cost
        profile = self.profile
        if self.identity is None or profile is None or profile.credits < cost:
            logger.info("unlock_refused", prompt_id=prompt_id, cost=cost)
            return self._fail(NOT_ENOUGH_CREDITS, "not_enough_credits")
        user_id = self.identity.id

        def apply():
            profile.credits -= cost
            self.unlocked_prompt_ids.add(prompt_id)

        def rollback():
            profile.credits += cost
            self.unlocked_prompt_ids.discard(prompt_id)

        try:
            await self._claim(
                key,
                apply,
                lambda: call_rpc(
                    self.client,
                    "purchase_prompt",
                    {"p_prompt_id_in": prompt_id, "p_cost_in": cost},
                ),
                rollback,
            )
        except (ClaimInProgress, GatewayError) as e:
            return self._error(e)

        logger.info("prompt_unlocked", user_id=user_id, prompt_id=prompt_id, cost=cost)
        return self._ok("Prompt unlocked!")

    async def claim_ad_reward(self, slot: int) -> ClaimResult:
        """Show the rewarded ad for slot, then credit AD_REWARD."""
        if self.identity is None or self.profile is None:
            return self._fail(SIGN_IN_REQUIRED, "sign_in_required")
        if self.ad_bridge is None or not self.ad_bridge.is_ready:
            return self._fail(AD_UNAVAILABLE_MESSAGE, "ad_unavailable")
        if self.is_ad_slot_claimed(slot):
            return self._fail("You already claimed this reward today.", "already_claimed")

        profile = self.profile
        record = DailyAdClaim(
            id=_temp_id(),
            user_id=self.identity.id,
            reward_slot=slot,
            claim_date=self.today(),
            claimed_at=self._clock(),
        )

        def apply():
            profile.credits += AD_REWARD
            self.daily_ad_claims.append(record)

        def rollback():
            profile.credits -= AD_REWARD
            self.daily_ad_claims = [c for c in self.daily_ad_claims if c.id != record.id]

        try:
            await self._claim(
                ("ad", slot),
                apply,
                lambda: call_rpc(self.client, "claim_ad_reward", {"p_slot": slot}),
                rollback,
                before=lambda: self.ad_bridge.show_ad_by_slot(slot),
            )
        except (ClaimInProgress, AdUnavailable, GatewayError) as e:
            return self._error(e)

        return self._ok(f"+{AD_REWARD} credits added!", amount=AD_REWARD)

    async def claim_link_reward(self, link_id: str) -> ClaimResult:
        """Credit LINK_REWARD for visiting a partner link (once per link per day)."""
        if self.identity is None or self.profile is None:
            return self._fail(SIGN_IN_REQUIRED, "sign_in_required")
        if self.is_link_claimed(link_id):
            return self._fail("You already claimed this reward today.", "already_claimed")

        profile = self.profile
        record = DailyLinkClaim(
            id=_temp_id(),
            user_id=self.identity.id,
            link_id=link_id,
            claim_date=self.today(),
            claimed_at=self._clock(),
        )

        def apply():
            profile.credits += LINK_REWARD
            self.daily_link_claims.append(record)

        def rollback():
            profile.credits -= LINK_REWARD
            self.daily_link_claims = [c for c in self.daily_link_claims if c.id != record.id]

        try:
            await self._claim(
                ("link", link_id),
                apply,
                lambda: call_rpc(self.client, "claim_link_reward", {"p_link_id": link_id}),
                rollback,
            )
        except (ClaimInProgress, GatewayError) as e:
            return self._error(e)

        return self._ok(f"+{LINK_REWARD} credit added!", amount=LINK_REWARD)

    async def claim_telegram_reward(self) -> ClaimResult:
        """One-time TELEGRAM_REWARD for joining the channel."""
        if self.identity is None or self.profile is None:
            return self._fail(SIGN_IN_REQUIRED, "sign_in_required")
        if self.profile.has_claimed_telegram_reward:
            return self._fail("Telegram reward already claimed.", "already_claimed")

        profile = self.profile

        def apply():
            profile.credits += TELEGRAM_REWARD
            profile.has_claimed_telegram_reward = True

        def rollback():
            profile.credits -= TELEGRAM_REWARD
            profile.has_claimed_telegram_reward = False

        try:
            await self._claim(
                ("telegram",),
                apply,
                lambda: call_rpc(self.client, "claim_telegram_reward"),
                rollback,
            )
        except (ClaimInProgress, GatewayError) as e:
            return self._error(e)

        return self._ok(f"+{TELEGRAM_REWARD} credits added!", amount=TELEGRAM_REWARD)

    async def claim_coupon_reward(self, code: str) -> ClaimResult:
        """
        Redeem a coupon. The server returns the credited amount; anything
        not positive means the code is invalid or was already used.
        """
        code = (code or "").strip().upper()
        if not code:
            return self._fail("Please enter a coupon code.", "invalid")
        if self.identity is None or self.profile is None:
            return self._fail(SIGN_IN_REQUIRED, "sign_in_required")

        profile = self.profile
        user_id = self.identity.id
        record = CouponClaim(
            id=_temp_id(),
            user_id=user_id,
            coupon_code=code,
            claim_date=self.today(),
            claimed_at=self._clock(),
        )

        def apply():
            self.coupon_claims.append(record)

        def rollback():
            self.coupon_claims = [c for c in self.coupon_claims if c.id != record.id]

        try:
            data = await self._claim(
                ("coupon", code),
                apply,
                lambda: call_rpc(self.client, "claim_coupon_reward", {"p_coupon_code": code}),
                rollback,
            )
        except (ClaimInProgress, GatewayError) as e:
            return self._error(e)

        amount = _as_amount(data)
        if amount <= 0:
            rollback()
            logger.info("coupon_rejected", user_id=user_id, code=code)
            return self._fail(INVALID_COUPON, "invalid")

        profile.credits += amount
        logger.info("coupon_redeemed", user_id=user_id, code=code, amount=amount)
        return self._ok(f"Coupon redeemed! +{amount} credits added.", amount=amount)
