"""Token table adapters - storage for per-key bucket state."""

from keythrottle.adapters.token_table.adapter import TokenTableAdapter, detect_table_mode
from keythrottle.adapters.token_table.base import AsyncTokenTable, SyncTokenTable
from keythrottle.adapters.token_table.in_memory import InMemoryTokenTable

__all__ = [
    "AsyncTokenTable",
    "InMemoryTokenTable",
    "SyncTokenTable",
    "TokenTableAdapter",
    "detect_table_mode",
]
