from .schema import SCHEMA_SQL, RPC_SQL, SEED_SQL, INDEXES_SQL
from .client import (
    get_supabase_client,
    get_admin_client,
    create_user_client,
    create_anon_client,
    close_client,
)
from .gateway import (
    execute,
    call_rpc,
    first_row,
    upload_file,
    remove_file,
    storage_path_from_url,
    error_message,
)

__all__ = [
    "SCHEMA_SQL",
    "RPC_SQL",
    "SEED_SQL",
    "INDEXES_SQL",
    "get_supabase_client",
    "get_admin_client",
    "create_user_client",
    "create_anon_client",
    "close_client",
    "execute",
    "call_rpc",
    "first_row",
    "upload_file",
    "remove_file",
    "storage_path_from_url",
    "error_message",
]
