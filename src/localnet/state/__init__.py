"""
Devnet state directories: layout, liveness records and clean operations.
"""

from .layout import StateLayout
from .lockfile import (
    lock_is_live,
    read_lock,
    read_network_record,
    remove_file,
    write_json_atomic,
    write_lock,
    write_network_record,
)
from .manager import CleanScope, StateDirectoryManager

__all__ = [
    "CleanScope",
    "StateDirectoryManager",
    "StateLayout",
    "lock_is_live",
    "read_lock",
    "read_network_record",
    "remove_file",
    "write_json_atomic",
    "write_lock",
    "write_network_record",
]
