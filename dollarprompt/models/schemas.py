"""
Data models for the DollarPrompt service.
Rows mirror the Supabase tables; requests/results are what the API exchanges.
"""

from datetime import datetime, date
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class Row(BaseModel):
    """Base for table rows - unknown columns are ignored."""
    model_config = ConfigDict(extra="ignore")


class Identity(BaseModel):
    """The signed-in user as seen by this process. Memory only."""
    id: str
    email: Optional[EmailStr] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class Profile(Row):
    """One per identity. Credits only change through server-side RPCs."""
    id: str
    credits: int = Field(default=0, ge=0)
    role: Optional[str] = "user"
    has_claimed_telegram_reward: bool = False


class Category(Row):
    id: int
    name: str
    slug: str


class Prompt(Row):
    """
    A catalog entry.
    id is opaque; prompt_id is the short number users type (shown as 00042).
    """
    id: str
    prompt_id: Optional[int] = None
    title: str
    category_id: Optional[int] = None
    image_url: Optional[str] = None
    prompt_text: Optional[str] = None
    instructions: Optional[str] = None
    creator_name: Optional[str] = None
    instagram_handle: Optional[str] = None
    ad_direct_link_url: Optional[str] = None
    like_count: int = Field(default=0, ge=0)
    created_at: Optional[datetime] = None
    categories: Optional[dict] = None  # joined {"name": ...}

    @field_validator("id", mode="before")
    @classmethod
    def _opaque_id(cls, value):
        return str(value)

    @property
    def display_number(self) -> Optional[str]:
        return f"{self.prompt_id:05d}" if self.prompt_id is not None else None


class HeroImage(Row):
    id: int
    image_url: str
    alt_text: Optional[str] = None
    created_at: Optional[datetime] = None


class DailyAdClaim(Row):
    id: Union[int, str]
    user_id: str
    reward_slot: int
    claim_date: date
    claimed_at: Optional[datetime] = None


class DailyLinkClaim(Row):
    id: Union[int, str]
    user_id: str
    link_id: str
    claim_date: date
    claimed_at: Optional[datetime] = None


class CouponClaim(Row):
    id: Union[int, str]
    user_id: str
    coupon_code: str
    claim_date: Optional[date] = None
    claimed_at: Optional[datetime] = None


class AdView(Row):
    id: int
    user_id: Optional[str] = None
    reward_slot: Optional[int] = None
    payout: Optional[float] = None
    created_at: Optional[datetime] = None


class ClaimResult(BaseModel):
    """
    Outcome of a wallet operation.
    Truthy on success so callers can write `if await wallet.unlock_prompt(x):`.
    """
    success: bool
    message: str
    code: str = "ok"
    credits: Optional[int] = None
    amount: Optional[int] = None

    def __bool__(self) -> bool:
        return self.success


class AdminResult(BaseModel):
    """Outcome of an admin/upload write. warning is set for non-fatal leftovers."""
    success: bool
    message: str
    warning: Optional[str] = None
    record: Optional[dict] = None

    def __bool__(self) -> bool:
        return self.success


class WalletState(BaseModel):
    profile: Optional[Profile] = None
    unlocked_prompt_ids: List[str] = Field(default_factory=list)
    daily_ad_claims: List[DailyAdClaim] = Field(default_factory=list)
    daily_link_claims: List[DailyLinkClaim] = Field(default_factory=list)
    coupon_claims: List[CouponClaim] = Field(default_factory=list)
    prompt_cost: int = 1
    loading: bool = False


class PromptPage(BaseModel):
    prompts: List[Prompt]
    page: int
    has_more: bool


class PromptView(BaseModel):
    """A prompt as shown to one viewer - text withheld when locked."""
    prompt: Prompt
    locked: bool = False


class HomeFeed(BaseModel):
    hero_images: List[HeroImage]
    prompts: List[Prompt]


class AdAnalytics(BaseModel):
    total_views: int
    estimated_earnings: float


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class SessionResponse(BaseModel):
    user_id: str
    email: Optional[EmailStr] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    is_admin: bool = False


class CouponRequest(BaseModel):
    code: str


class PromptForm(BaseModel):
    """Fields shared by the public upload form and the admin prompt form."""
    title: str
    category_id: Optional[int] = None
    prompt_text: str
    instructions: Optional[str] = None
    creator_name: Optional[str] = None
    instagram_handle: Optional[str] = None
    ad_direct_link_url: Optional[str] = None


class HeroImageForm(BaseModel):
    alt_text: Optional[str] = None


class ImageFile(BaseModel):
    """An image in memory, ready to upload."""
    filename: str
    content: bytes
    content_type: Optional[str] = None
