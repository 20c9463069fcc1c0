from .optimistic import PendingClaims, ClaimInProgress, run_optimistic
from .ads import AdBridge
from .policies import (
    AdminPolicy,
    RpcAdminPolicy,
    ProfileRoleAdminPolicy,
    EmailAllowlistAdminPolicy,
    build_admin_policy,
)
from .session import IdentityStore
from .wallet import WalletStore
from .client_state import ClientState, MemoryKeyValueStore, JsonFileKeyValueStore
from .content import ContentService, PromptFeed
from .admin import AdminService
from .uploads import UploadService
from .cache import BoundedCache
from .registry import WalletRegistry

__all__ = [
    "PendingClaims",
    "ClaimInProgress",
    "run_optimistic",
    "AdBridge",
    "AdminPolicy",
    "RpcAdminPolicy",
    "ProfileRoleAdminPolicy",
    "EmailAllowlistAdminPolicy",
    "build_admin_policy",
    "IdentityStore",
    "WalletStore",
    "ClientState",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "ContentService",
    "PromptFeed",
    "AdminService",
    "UploadService",
    "BoundedCache",
    "WalletRegistry",
]
