from .schemas import (
    Identity,
    Profile,
    Category,
    Prompt,
    HeroImage,
    DailyAdClaim,
    DailyLinkClaim,
    CouponClaim,
    AdView,
    ClaimResult,
    AdminResult,
    WalletState,
    PromptPage,
    PromptView,
    HomeFeed,
    AdAnalytics,
    LoginRequest,
    SessionResponse,
    CouponRequest,
    PromptForm,
    HeroImageForm,
    ImageFile,
)

__all__ = [
    "Identity",
    "Profile",
    "Category",
    "Prompt",
    "HeroImage",
    "DailyAdClaim",
    "DailyLinkClaim",
    "CouponClaim",
    "AdView",
    "ClaimResult",
    "AdminResult",
    "WalletState",
    "PromptPage",
    "PromptView",
    "HomeFeed",
    "AdAnalytics",
    "LoginRequest",
    "SessionResponse",
    "CouponRequest",
    "PromptForm",
    "HeroImageForm",
    "ImageFile",
]
