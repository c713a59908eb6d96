"""
Tests for the realtime client and subscription registry.
"""

import asyncio
import json
from types import SimpleNamespace

import aiohttp
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from caesarbot_gateway.clients.realtime import RealtimeClient, SubscriptionRegistry
from caesarbot_gateway.envelope import ConfigurationError
from caesarbot_gateway.models.core import ChangeFilter


class FakeWebSocket:
    """
    Records sent frames and replays queued incoming messages.

    After the queue is drained the socket stays open until ``close`` unless
    ``hold_open`` is off, which behaves like a server-side drop.
    """

    def __init__(self, messages=None, hold_open=True):
        self.messages = list(messages or [])
        self.hold_open = hold_open
        self.sent = []
        self.closed = False
        self._closed_event = asyncio.Event()

    async def send_json(self, message):
        self.sent.append(message)

    async def close(self):
        self.closed = True
        self._closed_event.set()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message
        if self.hold_open:
            await self._closed_event.wait()


def text_frame(payload):
    return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=json.dumps(payload))


def join_reply(topic, ref, response=None):
    return {
        "topic": topic,
        "event": "phx_reply",
        "ref": ref,
        "payload": {"status": "ok", "response": response or {}},
    }


def fake_session(*sockets):
    session = MagicMock(closed=False)
    session.ws_connect = AsyncMock(side_effect=list(sockets))
    return session


class FakeHandle:
    def __init__(self, name, events):
        self.name = name
        self.events = events

    async def subscribe(self):
        self.events.append(("subscribe", self.name, id(self)))

    async def unsubscribe(self):
        self.events.append(("unsubscribe", self.name, id(self)))


class FakeChannelFactory:
    def __init__(self):
        self.events = []
        self.handles = []

    def channel(self, name, change_filter, callback):
        handle = FakeHandle(name, self.events)
        self.handles.append(handle)
        return handle


class TestSubscriptionRegistry:
    """Test at-most-one-handle-per-name bookkeeping."""

    @pytest.mark.asyncio
    async def test_subscribe_returns_name(self):
        registry = SubscriptionRegistry(FakeChannelFactory())

        name = await registry.subscribe("leaderboard-updates", ChangeFilter("user_stats"), print)

        assert name == "leaderboard-updates"
        assert registry.active_channels == ["leaderboard-updates"]
        assert "leaderboard-updates" in registry

    @pytest.mark.asyncio
    async def test_same_name_replaces_existing(self):
        """Subscribing twice tears down the first handle before the second goes live."""
        factory = FakeChannelFactory()
        registry = SubscriptionRegistry(factory)

        await registry.subscribe("user-stats-A", ChangeFilter("user_stats"), print)
        await registry.subscribe("user-stats-A", ChangeFilter("user_stats"), print)

        first, second = factory.handles
        assert factory.events == [
            ("subscribe", "user-stats-A", id(first)),
            ("unsubscribe", "user-stats-A", id(first)),
            ("subscribe", "user-stats-A", id(second)),
        ]
        assert len(registry) == 1
        assert registry.get("user-stats-A") is second

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        factory = FakeChannelFactory()
        registry = SubscriptionRegistry(factory)
        await registry.subscribe("a", ChangeFilter("t"), print)

        assert await registry.unsubscribe("a") is True
        assert await registry.unsubscribe("a") is False
        assert registry.active_channels == []

    @pytest.mark.asyncio
    async def test_unsubscribe_all(self):
        factory = FakeChannelFactory()
        registry = SubscriptionRegistry(factory)
        await registry.subscribe("a", ChangeFilter("t"), print)
        await registry.subscribe("b", ChangeFilter("t"), print)

        await registry.unsubscribe_all()

        assert len(registry) == 0
        assert [e[0] for e in factory.events].count("unsubscribe") == 2

    @pytest.mark.asyncio
    async def test_unsubscribe_all_continues_after_error(self):
        factory = FakeChannelFactory()
        registry = SubscriptionRegistry(factory)
        await registry.subscribe("a", ChangeFilter("t"), print)
        await registry.subscribe("b", ChangeFilter("t"), print)
        factory.handles[0].unsubscribe = AsyncMock(side_effect=ConnectionResetError("socket gone"))

        await registry.unsubscribe_all()

        assert len(registry) == 0
        assert ("unsubscribe", "b", id(factory.handles[1])) in factory.events

    @pytest.mark.asyncio
    async def test_closed_handles_are_forgotten(self):
        factory = FakeChannelFactory()
        registry = SubscriptionRegistry(factory)
        await registry.subscribe("a", ChangeFilter("t"), print)
        await registry.subscribe("b", ChangeFilter("t"), print)

        factory.handles[0].state = "closed"
        factory.handles[1].state = "joined"

        assert registry.active_channels == ["b"]
        assert "a" not in registry
        assert registry.get("a") is None
        assert await registry.unsubscribe("a") is False


class TestRealtimeClient:
    """Test the websocket protocol handling."""

    def test_requires_credentials(self):
        with pytest.raises(ConfigurationError):
            RealtimeClient("", "key")

    def test_socket_url(self):
        client = RealtimeClient("https://project.supabase.co/", "key")
        assert client.socket_url == "wss://project.supabase.co/realtime/v1/websocket"

    @pytest.mark.asyncio
    async def test_join_sends_postgres_changes_config(self):
        client = RealtimeClient("https://project.supabase.co", "anon")
        client._ws = FakeWebSocket()

        with patch.object(client, "connect", new=AsyncMock()):
            channel = client.channel(
                "user-stats-A",
                ChangeFilter("user_stats", filter="wallet_address=eq.A"),
                lambda payload: None,
            )
            await channel.subscribe()

        frame = client._ws.sent[0]
        assert frame["topic"] == "realtime:user-stats-A"
        assert frame["event"] == "phx_join"
        assert frame["payload"]["config"]["postgres_changes"] == [{
            "event": "*",
            "schema": "public",
            "table": "user_stats",
            "filter": "wallet_address=eq.A",
        }]
        assert channel.state == "joining"

    @pytest.mark.asyncio
    async def test_dispatch_routes_changes_to_callback(self):
        """Both plain and coroutine callbacks receive the change data."""
        client = RealtimeClient("https://project.supabase.co", "anon")
        client._ws = FakeWebSocket()
        received = []

        async def async_callback(payload):
            received.append(("async", payload["record"]["caesar_points"]))

        with patch.object(client, "connect", new=AsyncMock()):
            plain = client.channel("a", ChangeFilter("user_stats"), lambda p: received.append(("plain", p["type"])))
            coro = client.channel("b", ChangeFilter("user_stats"), async_callback)
            await plain.subscribe()
            await coro.subscribe()

        change = {"data": {"type": "UPDATE", "table": "user_stats", "record": {"caesar_points": 7}}}
        await client._dispatch({"topic": "realtime:a", "event": "postgres_changes", "payload": change})
        await client._dispatch({"topic": "realtime:b", "event": "postgres_changes", "payload": change})
        await client._dispatch({"topic": "realtime:unknown", "event": "postgres_changes", "payload": change})

        assert received == [("plain", "UPDATE"), ("async", 7)]

    @pytest.mark.asyncio
    async def test_callback_error_does_not_break_dispatch(self):
        client = RealtimeClient("https://project.supabase.co", "anon")
        client._ws = FakeWebSocket()

        def broken(payload):
            raise RuntimeError("callback failed")

        with patch.object(client, "connect", new=AsyncMock()):
            await client.channel("a", ChangeFilter("t"), broken).subscribe()

        await client._dispatch({"topic": "realtime:a", "event": "postgres_changes", "payload": {"data": {}}})

    @pytest.mark.asyncio
    async def test_join_reply_updates_state(self):
        client = RealtimeClient("https://project.supabase.co", "anon")
        client._ws = FakeWebSocket()

        with patch.object(client, "connect", new=AsyncMock()):
            channel = client.channel("a", ChangeFilter("t"), print)
            await channel.subscribe()

        await client._dispatch({
            "topic": "realtime:a", "event": "phx_reply", "ref": channel.join_ref,
            "payload": {"status": "ok", "response": {}},
        })
        assert channel.state == "joined"

    @pytest.mark.asyncio
    async def test_leave_last_channel_closes_socket(self):
        client = RealtimeClient("https://project.supabase.co", "anon")
        ws = FakeWebSocket()
        client._ws = ws

        with patch.object(client, "connect", new=AsyncMock()):
            channel = client.channel("a", ChangeFilter("t"), print)
            await channel.subscribe()
        await channel.unsubscribe()

        assert ws.sent[-1]["event"] == "phx_leave"
        assert ws.closed is True
        assert channel.state == "closed"
        assert client.channels == []

    @pytest.mark.asyncio
    async def test_heartbeat_loop(self):
        client = RealtimeClient("https://project.supabase.co", "anon", heartbeat_interval=0.01)
        client._ws = FakeWebSocket()

        task = asyncio.create_task(client._heartbeat_loop())
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        heartbeats = [f for f in client._ws.sent if f["event"] == "heartbeat"]
        assert heartbeats
        assert heartbeats[0]["topic"] == "phoenix"

    @pytest.mark.asyncio
    async def test_connect_and_read_loop(self):
        """Incoming frames are dispatched by the reader task."""
        received = []
        frame = text_frame({
            "topic": "realtime:a",
            "event": "postgres_changes",
            "payload": {"data": {"type": "INSERT"}},
        })
        ws = FakeWebSocket([frame])
        session = MagicMock(closed=False)
        session.ws_connect = AsyncMock(return_value=ws)
        client = RealtimeClient("https://project.supabase.co", "anon", session=session)

        channel = client.channel("a", ChangeFilter("t"), received.append)
        await channel.subscribe()

        session.ws_connect.assert_awaited_once_with(
            "wss://project.supabase.co/realtime/v1/websocket",
            params={"apikey": "anon", "vsn": "1.0.0"},
        )

        await asyncio.sleep(0.01)
        assert received == [{"type": "INSERT"}]

        await client.close()
        assert ws.closed is True
        session.close.assert_not_called()

    @pytest.mark.asyncio
    async def test_replacing_a_channel_on_a_live_client(self):
        """Same-name resubscribe leaves then joins, and frames for the old join are ignored."""
        client = RealtimeClient("https://project.supabase.co", "anon")
        ws = FakeWebSocket()
        client._ws = ws
        registry = SubscriptionRegistry(client)
        received = []

        with patch.object(client, "connect", new=AsyncMock()):
            # Keeps the socket open while user-stats-A is replaced
            await registry.subscribe("leaderboard-updates", ChangeFilter("user_stats"), print)
            await registry.subscribe("user-stats-A", ChangeFilter("user_stats"), received.append)
            first = registry.get("user-stats-A")
            await client._dispatch(join_reply(first.topic, first.join_ref))
            assert first.state == "joined"

            await registry.subscribe("user-stats-A", ChangeFilter("user_stats"), received.append)

        second = registry.get("user-stats-A")
        leave, join = ws.sent[-2:]
        assert (leave["event"], join["event"]) == ("phx_leave", "phx_join")
        assert leave["topic"] == join["topic"] == "realtime:user-stats-A"
        assert leave["join_ref"] == first.join_ref
        assert join["join_ref"] == second.join_ref
        assert second.join_ref != first.join_ref
        assert first.state == "closed"
        assert second.state == "joining"
        assert len(registry) == 2
        assert ws.closed is False

        # Reply to the leave does not complete the new join
        await client._dispatch(join_reply(second.topic, leave["ref"]))
        assert second.state == "joining"

        await client._dispatch(join_reply(second.topic, second.join_ref))
        assert second.state == "joined"

        await client._dispatch({"topic": second.topic, "event": "phx_close", "ref": first.join_ref, "payload": {}})
        await client._dispatch({
            "topic": second.topic, "event": "phx_error",
            "ref": None, "join_ref": first.join_ref, "payload": {},
        })
        await client._dispatch({
            "topic": second.topic, "event": "postgres_changes",
            "join_ref": first.join_ref, "payload": {"data": {"type": "UPDATE"}},
        })
        assert second.state == "joined"
        assert received == []
        assert registry.active_channels == ["leaderboard-updates", "user-stats-A"]

        await client._dispatch({"topic": second.topic, "event": "phx_close", "ref": second.join_ref, "payload": {}})
        assert second.state == "closed"
        assert "user-stats-A" not in registry
        assert [c.name for c in client.channels] == ["leaderboard-updates"]

    @pytest.mark.asyncio
    async def test_changes_for_other_subscription_ids_are_dropped(self):
        client = RealtimeClient("https://project.supabase.co", "anon")
        client._ws = FakeWebSocket()
        received = []

        with patch.object(client, "connect", new=AsyncMock()):
            channel = client.channel("a", ChangeFilter("user_stats"), received.append)
            await channel.subscribe()
        await client._dispatch(join_reply(channel.topic, channel.join_ref, {
            "postgres_changes": [{"id": 11, "event": "*", "schema": "public", "table": "user_stats"}],
        }))

        for ids in ([99], [11], None):
            await client._dispatch({
                "topic": channel.topic, "event": "postgres_changes",
                "payload": {"data": {"ids": ids}, "ids": ids},
            })

        assert channel.subscription_ids == {11}
        assert received == [{"ids": [11]}, {"ids": None}]

    @pytest.mark.asyncio
    async def test_failed_join_send_forgets_channel(self):
        client = RealtimeClient("https://project.supabase.co", "anon")
        client._ws = MagicMock(closed=False)
        client._ws.send_json = AsyncMock(side_effect=ConnectionResetError("socket gone"))

        with patch.object(client, "connect", new=AsyncMock()):
            channel = client.channel("a", ChangeFilter("t"), print)
            with pytest.raises(ConnectionResetError):
                await channel.subscribe()

        assert channel.state == "errored"
        assert client.channels == []

    @pytest.mark.asyncio
    async def test_server_drop_reconnects_and_rejoins(self):
        dropped = FakeWebSocket(hold_open=False)
        fresh = FakeWebSocket()
        session = fake_session(dropped, fresh)
        client = RealtimeClient("https://project.supabase.co", "anon", session=session, reconnect_delay_ms=0)
        registry = SubscriptionRegistry(client)

        await registry.subscribe("a", ChangeFilter("t"), print)
        channel = registry.get("a")
        first_ref = channel.join_ref
        await asyncio.sleep(0.05)

        assert session.ws_connect.await_count == 2
        assert dropped.closed is True
        assert client.reconnecting is False
        rejoin = fresh.sent[-1]
        assert (rejoin["topic"], rejoin["event"]) == ("realtime:a", "phx_join")
        assert rejoin["join_ref"] == channel.join_ref != first_ref
        assert channel.state == "joining"
        assert registry.active_channels == ["a"]

        await client._dispatch(join_reply(channel.topic, channel.join_ref))
        assert channel.state == "joined"

        await client.close()
        assert fresh.closed is True

    @pytest.mark.asyncio
    async def test_reconnect_gives_up_and_drops_channels(self):
        dropped = FakeWebSocket(hold_open=False)
        session = fake_session(dropped, OSError("refused"), OSError("refused"))
        client = RealtimeClient(
            "https://project.supabase.co", "anon",
            session=session, reconnect_attempts=2, reconnect_delay_ms=0,
        )
        registry = SubscriptionRegistry(client)

        await registry.subscribe("a", ChangeFilter("t"), print)
        channel = registry.get("a")
        await asyncio.sleep(0.05)

        assert session.ws_connect.await_count == 3
        assert channel.state == "closed"
        assert client.channels == []
        assert registry.active_channels == []
        assert client.connected is False

    @pytest.mark.asyncio
    async def test_connect_cancels_tasks_of_previous_socket(self):
        first = FakeWebSocket()
        second = FakeWebSocket()
        client = RealtimeClient("https://project.supabase.co", "anon", session=fake_session(first, second))

        await client.connect()
        old_heartbeat = client._heartbeat_task
        old_reader = client._reader_task
        first.closed = True

        await client.connect()

        assert old_heartbeat.cancelled()
        assert old_reader.cancelled()
        assert client._heartbeat_task is not old_heartbeat
        assert client._ws is second

        await client.close()
