"""
Tests for the reverse call channel.
"""

import asyncio

import pytest
from unittest.mock import MagicMock

from pgproxy.base import RemoteExecutionError
from pgproxy.reverse import ReverseChannel


def call(fn, *params, action="call"):
    return {"fn": fn, "params": list(params), "action": action}


@pytest.mark.asyncio
async def test_dispatches_exposed_function(fake_client):
    """Test that a call notification invokes the exposed function once, in order."""
    received = MagicMock()
    channel = ReverseChannel(fake_client, {"node_function": received})
    await channel.start()

    fake_client.notify("pgproxy", call("node_function", [{"param1": "asdf"}], "1234"))
    await asyncio.sleep(0)

    received.assert_called_once_with([{"param1": "asdf"}], "1234")
    assert channel.metrics["dispatched"] == 1
    await channel.stop()


@pytest.mark.asyncio
async def test_awaits_coroutine_functions(fake_client):
    """Test that async exposed functions run to completion."""
    done = asyncio.Event()
    seen = []

    async def node_function(value):
        await asyncio.sleep(0)
        seen.append(value)
        done.set()
        return "discarded"

    channel = ReverseChannel(fake_client, {"node_function": node_function})
    await channel.start()

    fake_client.notify("pgproxy", call("node_function", 42))
    await asyncio.wait_for(done.wait(), timeout=1)

    assert seen == [42]
    await channel.stop()


@pytest.mark.asyncio
async def test_ignores_other_actions(fake_client):
    """Test that a notification whose action is not call invokes nothing."""
    received = MagicMock()
    channel = ReverseChannel(fake_client, {"node_function": received})
    await channel.start()

    fake_client.notify("pgproxy", call("node_function", 1, action="result"))
    await asyncio.sleep(0)

    received.assert_not_called()
    assert channel.metrics["ignored"] == 1
    await channel.stop()


@pytest.mark.asyncio
async def test_ignores_unknown_functions_and_topics(fake_client):
    """Test that unregistered names and foreign topics invoke nothing."""
    received = MagicMock()
    channel = ReverseChannel(fake_client, {"node_function": received})
    await channel.start()

    fake_client.notify("pgproxy", call("other_function", 1))
    channel.handle_notification("other_channel", '{"fn": "node_function", "params": [], "action": "call"}')
    await asyncio.sleep(0)

    received.assert_not_called()
    await channel.stop()


@pytest.mark.asyncio
async def test_drops_malformed_notifications(fake_client):
    """Test that undecodable payloads are dropped silently."""
    received = MagicMock()
    channel = ReverseChannel(fake_client, {"node_function": received})
    await channel.start()

    fake_client.notify("pgproxy", "not json")
    fake_client.notify("pgproxy", {"fn": "node_function"})
    await asyncio.sleep(0)

    received.assert_not_called()
    assert channel.metrics["dropped"] == 2
    await channel.stop()


@pytest.mark.asyncio
async def test_errors_in_exposed_functions_are_contained(fake_client, caplog):
    """Test that a failing exposed function is logged and does not stop the channel."""
    received = MagicMock(side_effect=[ValueError("boom"), None])
    channel = ReverseChannel(fake_client, {"node_function": received})
    await channel.start()

    fake_client.notify("pgproxy", call("node_function", 1))
    await asyncio.sleep(0)
    fake_client.notify("pgproxy", call("node_function", 2))
    await asyncio.sleep(0)

    assert received.call_count == 2
    assert channel.metrics["failed"] == 1
    assert channel.metrics["dispatched"] == 1
    assert "Error in reverse call to node_function" in caplog.text
    await channel.stop()


@pytest.mark.asyncio
async def test_stop_is_idempotent(fake_client):
    """Test that stop is safe before start and after stop."""
    channel = ReverseChannel(fake_client, {"node_function": MagicMock()})

    await channel.stop()
    await channel.start()
    await channel.start()
    assert len(fake_client.listeners["pgproxy"]) == 1

    await channel.stop()
    await channel.stop()
    assert fake_client.listeners["pgproxy"] == []
    assert not channel.listening


@pytest.mark.asyncio
async def test_stop_prevents_dispatch_and_cancels_in_flight(fake_client):
    """Test that stop cancels running dispatches and later notifications do nothing."""
    started = asyncio.Event()
    finished = []

    async def slow(value):
        started.set()
        await asyncio.sleep(10)
        finished.append(value)

    channel = ReverseChannel(fake_client, {"slow": slow})
    await channel.start()

    fake_client.notify("pgproxy", call("slow", 1))
    await asyncio.wait_for(started.wait(), timeout=1)
    tasks = list(channel.tasks)

    await channel.stop()
    channel.handle_notification("pgproxy", '{"fn": "slow", "params": [2], "action": "call"}')
    await asyncio.gather(*tasks, return_exceptions=True)

    assert all(task.cancelled() for task in tasks)
    assert finished == []
    assert channel.metrics["received"] == 1


@pytest.mark.asyncio
async def test_failed_unsubscribe_still_cancels_in_flight(fake_client):
    """Test that in-flight dispatches are cancelled even if unsubscribing fails."""
    started = asyncio.Event()

    async def slow(value):
        started.set()
        await asyncio.sleep(10)

    channel = ReverseChannel(fake_client, {"slow": slow})
    await channel.start()

    fake_client.notify("pgproxy", call("slow", 1))
    await asyncio.wait_for(started.wait(), timeout=1)
    tasks = list(channel.tasks)

    async def fail(topic, callback):
        raise RemoteExecutionError("connection lost")

    fake_client.unsubscribe = fail

    with pytest.raises(RemoteExecutionError):
        await channel.stop()
    await asyncio.gather(*tasks, return_exceptions=True)

    assert all(task.cancelled() for task in tasks)
    assert not channel.listening
