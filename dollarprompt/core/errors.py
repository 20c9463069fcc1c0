"""
Error taxonomy.

- ValidationFailed: caught before any network call, no state mutated
- GatewayError: a Supabase query, RPC, upload or auth call failed
- AdUnavailable: rewarded-ad SDK missing or the ad was not shown
- AuthFailed: credential submission rejected
"""


class DollarPromptError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(DollarPromptError):
    pass


class GatewayError(DollarPromptError):
    pass


class AdUnavailable(DollarPromptError):
    pass


class AuthFailed(DollarPromptError):
    pass
