"""
Wallet routes.
Credits, today's claims and the reward actions.

Every claim is applied to the cached wallet first and undone if the server
refuses it, so the response always carries the balance the caller should show.
"""

from fastapi import APIRouter, Depends, Path

from ...lib import WalletStore
from ...lib.auth import get_wallet
from ...models import ClaimResult, CouponRequest, WalletState
from ..responses import claim_or_raise


router = APIRouter()


@router.get("", response_model=WalletState)
async def get_wallet_state(wallet: WalletStore = Depends(get_wallet)):
    """
    Current wallet.

    Returns credits, unlocked prompt ids, today's ad and link claims,
    coupon claims and the current prompt cost.
    """
    return wallet.state()


@router.post("/refresh", response_model=WalletState)
async def refresh_wallet(wallet: WalletStore = Depends(get_wallet)):
    """Re-read everything from the database (e.g. after a purchase elsewhere)."""
    await wallet.refresh()
    return wallet.state()


@router.post("/rewards/ad/{slot}", response_model=ClaimResult)
async def claim_ad_reward(
    slot: int = Path(..., ge=1, le=3),
    wallet: WalletStore = Depends(get_wallet),
):
    """
    Watch the rewarded ad for a slot and collect its credits.

    Each slot pays once per day. 503 when the ad network is not ready.
    """
    return claim_or_raise(await wallet.claim_ad_reward(slot))


@router.post("/rewards/link/{link_id}", response_model=ClaimResult)
async def claim_link_reward(link_id: str, wallet: WalletStore = Depends(get_wallet)):
    """Credit for visiting a partner link, once per link per day."""
    return claim_or_raise(await wallet.claim_link_reward(link_id))


@router.post("/rewards/telegram", response_model=ClaimResult)
async def claim_telegram_reward(wallet: WalletStore = Depends(get_wallet)):
    """One-time bonus for joining the Telegram channel."""
    return claim_or_raise(await wallet.claim_telegram_reward())


@router.post("/rewards/coupon", response_model=ClaimResult)
async def claim_coupon_reward(body: CouponRequest, wallet: WalletStore = Depends(get_wallet)):
    """Redeem a coupon code (case-insensitive)."""
    return claim_or_raise(await wallet.claim_coupon_reward(body.code))
