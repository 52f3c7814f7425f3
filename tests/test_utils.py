"""Tests for formatting helpers and the event emitter."""
import pytest

from netdisk_uploader.utils.events import EventEmitter
from netdisk_uploader.utils.formatting import format_duration, human_size


def test_human_size():
    assert human_size(0) == "0 B"
    assert human_size(512) == "512 B"
    assert human_size(1536) == "1.5 KB"
    assert human_size(5 * 1024 ** 3) == "5.0 GB"


def test_format_duration():
    assert format_duration(12.34) == "12.3s"
    assert format_duration(90) == "1.5m"
    assert format_duration(5400) == "1.5h"


@pytest.mark.asyncio
async def test_emitter_calls_sync_and_async_listeners():
    events = EventEmitter()
    seen = []

    async def async_listener(value):
        seen.append(("async", value))

    events.on("x", lambda value: seen.append(("sync", value)))
    events.on("x", async_listener)
    await events.emit("x", 1)

    assert seen == [("sync", 1), ("async", 1)]


@pytest.mark.asyncio
async def test_failing_listener_does_not_block_others():
    events = EventEmitter()
    seen = []

    def broken(value):
        raise RuntimeError("listener bug")

    events.on("x", broken)
    events.on("x", seen.append)
    await events.emit("x", 2)

    assert seen == [2]


def test_off_and_has_listeners():
    events = EventEmitter()
    listener = print

    events.on("x", listener)
    events.on("x", listener)
    assert events.has_listeners("x")

    events.off("x", listener)
    assert not events.has_listeners("x")
