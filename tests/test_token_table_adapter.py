"""Tests for token table shape detection and the awaitable adapter."""

import asyncio

import pytest

from keythrottle.adapters.token_table import (
    AsyncTokenTable,
    InMemoryTokenTable,
    SyncTokenTable,
    TokenTableAdapter,
    detect_table_mode,
)
from keythrottle.core.errors import ConfigurationError


class DuckSyncTable:
    def __init__(self) -> None:
        self.data: dict = {}

    def get(self, key):
        return self.data.get(key)

    def put(self, key, snapshot):
        self.data[key] = snapshot


class DuckAsyncTable:
    def __init__(self) -> None:
        self.data: dict = {}

    async def get(self, key):
        return self.data.get(key)

    async def put(self, key, snapshot):
        self.data[key] = snapshot


class MixedTable:
    def get(self, key):
        return None

    async def put(self, key, snapshot):
        return None


class ExplodingSyncTable(SyncTokenTable):
    def get(self, key):
        raise RuntimeError("disk on fire")

    def put(self, key, snapshot):
        raise RuntimeError("disk still on fire")


class DictAsyncTable(AsyncTokenTable):
    def __init__(self) -> None:
        self.data: dict = {}

    async def get(self, key):
        return self.data.get(key)

    async def put(self, key, snapshot):
        self.data[key] = snapshot


@pytest.mark.parametrize(
    ("table", "expected"),
    [
        (InMemoryTokenTable(max_keys=10), "sync"),
        (DictAsyncTable(), "async"),
        (DuckSyncTable(), "sync"),
        (DuckAsyncTable(), "async"),
    ],
)
def test_detects_table_mode(table, expected: str) -> None:
    assert detect_table_mode(table) == expected


@pytest.mark.parametrize("table", [object(), MixedTable(), {"get": 1, "put": 2}])
def test_unrecognized_table_fails_fast(table) -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        TokenTableAdapter(table)

    assert exc_info.value.code == "throttle_config_invalid"
    assert exc_info.value.details["option"] == "tokens_table"


@pytest.mark.asyncio
async def test_sync_table_is_awaitable_through_adapter() -> None:
    table = DuckSyncTable()
    adapter = TokenTableAdapter(table)

    assert await adapter.get("k") is None
    await adapter.put("k", {"tokens": 1})
    assert await adapter.get("k") == {"tokens": 1}


@pytest.mark.asyncio
async def test_async_table_is_awaited_through_adapter() -> None:
    table = DictAsyncTable()
    adapter = TokenTableAdapter(table)

    await adapter.put("k", {"tokens": 2})
    assert table.data == {"k": {"tokens": 2}}
    assert await adapter.get("k") == {"tokens": 2}


@pytest.mark.asyncio
async def test_sync_table_errors_propagate_from_await() -> None:
    adapter = TokenTableAdapter(ExplodingSyncTable())

    with pytest.raises(RuntimeError, match="disk on fire"):
        await adapter.get("k")
    with pytest.raises(RuntimeError, match="still on fire"):
        await adapter.put("k", {})


class EventLogTable(SyncTokenTable):
    def __init__(self, events: list[str]) -> None:
        self.events = events

    def get(self, key):
        self.events.append("table.get")
        return None

    def put(self, key, snapshot):
        self.events.append("table.put")


@pytest.mark.asyncio
@pytest.mark.parametrize("operation", ["get", "put"])
async def test_sync_table_call_waits_for_next_loop_tick(operation: str) -> None:
    events: list[str] = []
    adapter = TokenTableAdapter(EventLogTable(events))

    async def sibling() -> None:
        events.append("sibling")

    if operation == "get":
        call = asyncio.create_task(adapter.get("k"))
    else:
        call = asyncio.create_task(adapter.put("k", {"tokens": 1}))
    other = asyncio.create_task(sibling())
    await asyncio.gather(call, other)

    assert events == ["sibling", f"table.{operation}"]
