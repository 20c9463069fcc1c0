from .config import Settings, get_settings
from .errors import (
    DollarPromptError,
    ValidationFailed,
    GatewayError,
    AdUnavailable,
    AuthFailed,
)
from .logging import configure_logging

__all__ = [
    "Settings",
    "get_settings",
    "DollarPromptError",
    "ValidationFailed",
    "GatewayError",
    "AdUnavailable",
    "AuthFailed",
    "configure_logging",
]
