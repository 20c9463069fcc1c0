"""
Admin authorization policies.

One policy is chosen at startup (ADMIN_POLICY):
- rpc:   ask the is_admin(p_user_id) RPC - the server decides (default)
- role:  read profiles.role == "admin"
- email: compare against the ADMIN_EMAILS allowlist

A policy that cannot reach the server answers False.
"""

from typing import Iterable, Optional

import structlog

from ..core import GatewayError, Settings, get_settings
from ..db import call_rpc, first_row
from ..models import Identity

logger = structlog.get_logger("dollarprompt.policies")


class AdminPolicy:
    """Decides whether an identity may use the admin views."""

    name = "base"

    async def is_admin(self, identity: Optional[Identity]) -> bool:
        raise NotImplementedError


class RpcAdminPolicy(AdminPolicy):
    name = "rpc"

    def __init__(self, client):
        self.client = client

    async def is_admin(self, identity: Optional[Identity]) -> bool:
        if identity is None:
            return False
        try:
            data = await call_rpc(self.client, "is_admin", {"p_user_id": identity.id})
        except GatewayError as e:
            logger.warning("admin_check_failed", policy=self.name, user_id=identity.id, error=e.message)
            return False
        return data is True


class ProfileRoleAdminPolicy(AdminPolicy):
    name = "role"

    def __init__(self, client):
        self.client = client

    async def is_admin(self, identity: Optional[Identity]) -> bool:
        if identity is None:
            return False
        try:
            row = await first_row(
                self.client.table("profiles").select("role").eq("id", identity.id)
            )
        except GatewayError as e:
            logger.warning("admin_check_failed", policy=self.name, user_id=identity.id, error=e.message)
            return False
        return bool(row) and row.get("role") == "admin"


class EmailAllowlistAdminPolicy(AdminPolicy):
    name = "email"

    def __init__(self, emails: Iterable[str]):
        self.emails = frozenset(e.strip().lower() for e in emails if e.strip())

    async def is_admin(self, identity: Optional[Identity]) -> bool:
        if identity is None or not identity.email:
            return False
        return str(identity.email).lower() in self.emails


def build_admin_policy(client, settings: Optional[Settings] = None) -> AdminPolicy:
    """Pick the configured policy."""
    settings = settings or get_settings()
    if settings.admin_policy == "role":
        return ProfileRoleAdminPolicy(client)
    if settings.admin_policy == "email":
        return EmailAllowlistAdminPolicy(settings.admin_emails)
    return RpcAdminPolicy(client)
