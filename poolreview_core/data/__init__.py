from .pool_update import (
    POOL_DB_NAME,
    PoolUpdateError,
    PoolUpdateResult,
    PoolUpdateStatus,
    part_from_document,
    update_pool,
)
from .store import PoolStore
from .vcs import list_changes, parse_name_status

__all__ = [
    "POOL_DB_NAME",
    "PoolStore",
    "PoolUpdateError",
    "PoolUpdateResult",
    "PoolUpdateStatus",
    "list_changes",
    "parse_name_status",
    "part_from_document",
    "update_pool",
]
