"""Normalize sync and async token tables into one awaitable interface.

The throttle only ever awaits ``adapter.get`` / ``adapter.put``; which shape
the underlying table has is decided once, at construction, by
:func:`detect_table_mode`.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Literal

from keythrottle.adapters.token_table.base import AsyncTokenTable, SyncTokenTable
from keythrottle.core.errors import ConfigurationError
from keythrottle.throttle.bucket import BucketSnapshot

TableMode = Literal["sync", "async"]


def detect_table_mode(table: Any) -> TableMode:
    """Decide whether a table exposes the sync or the async contract.

    Subclasses (or registered virtual subclasses) of the base classes are
    classified directly. Anything else is accepted only if ``get`` and
    ``put`` are both coroutine functions or both plain callables.

    Args:
        table: Candidate token table.

    Returns:
        "sync" or "async".

    Raises:
        ConfigurationError: If the table matches neither contract.
    """
    is_sync = isinstance(table, SyncTokenTable)
    is_async = isinstance(table, AsyncTokenTable)
    if is_sync and not is_async:
        return "sync"
    if is_async and not is_sync:
        return "async"

    table_name = type(table).__name__
    getter = getattr(table, "get", None)
    putter = getattr(table, "put", None)
    if not is_sync and callable(getter) and callable(putter):
        get_async = inspect.iscoroutinefunction(getter)
        put_async = inspect.iscoroutinefunction(putter)
        if get_async and put_async:
            return "async"
        if not get_async and not put_async:
            return "sync"

    raise ConfigurationError(
        code="throttle_config_invalid",
        message=(
            f"Unable to detect token table type (sync/async) for {table_name}; "
            "implement SyncTokenTable or AsyncTokenTable"
        ),
        details={"option": "tokens_table", "table": table_name},
    )


class TokenTableAdapter:
    """Awaitable get/put over either token table shape.

    Calls into a synchronous table first yield to the event loop, so results
    are always delivered on a later scheduling tick and a burst of checks
    cannot recurse through the caller's stack. Exceptions raised by the table
    propagate out of the awaited call unchanged.
    """

    def __init__(self, table: SyncTokenTable | AsyncTokenTable | Any) -> None:
        self.table = table
        self.mode: TableMode = detect_table_mode(table)

    async def get(self, key: str) -> BucketSnapshot | None:
        if self.mode == "async":
            return await self.table.get(key)
        await asyncio.sleep(0)
        return self.table.get(key)

    async def put(self, key: str, snapshot: BucketSnapshot) -> None:
        if self.mode == "async":
            await self.table.put(key, snapshot)
            return
        await asyncio.sleep(0)
        self.table.put(key, snapshot)
