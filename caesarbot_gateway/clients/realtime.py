"""
Realtime change-feed client and session-scoped subscription registry.

``RealtimeClient`` speaks the Supabase Realtime (Phoenix channels) protocol
over an aiohttp websocket. ``SubscriptionRegistry`` tracks at most one live
channel per name and is owned by whoever composes the adapters (normally
the ``Gateway``), not by module state.
"""

import asyncio
import inspect
import itertools
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Set

import aiohttp

from ..envelope import ConfigurationError
from ..models.core import ChangeFilter
from ..retry import with_retry


logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "1.0.0"
PHOENIX_TOPIC = "phoenix"

ChangeCallback = Callable[[Dict[str, Any]], Any]


class ChannelHandle(Protocol):
    """What the registry needs from a channel."""
    name: str

    async def subscribe(self) -> None: ...

    async def unsubscribe(self) -> None: ...


class ChannelFactory(Protocol):
    def channel(self, name: str, change_filter: ChangeFilter, callback: ChangeCallback) -> ChannelHandle: ...


class RealtimeChannel:
    """One named subscription to a ``postgres_changes`` feed."""

    def __init__(self, client: "RealtimeClient", name: str, change_filter: ChangeFilter,
                 callback: ChangeCallback):
        self.client = client
        self.name = name
        self.topic = f"realtime:{name}"
        self.change_filter = change_filter
        self.callback = callback
        self.state = "closed"
        self.join_ref: Optional[str] = None
        self.subscription_ids: Set[Any] = set()

    async def subscribe(self) -> None:
        await self.client._join(self)

    async def unsubscribe(self) -> None:
        await self.client._leave(self)

    async def _handle_change(self, payload: Dict[str, Any]) -> None:
        result = self.callback(payload.get("data", payload))
        if inspect.isawaitable(result):
            await result

    def __repr__(self) -> str:
        return f"RealtimeChannel(name={self.name!r}, state={self.state!r})"


class RealtimeClient:
    """
    Websocket client for the Supabase Realtime service.

    The socket is opened on the first join and closed when the last
    channel leaves or ``close`` is called. If the server drops the socket
    while channels are tracked, it is reopened with linear backoff and
    every channel is joined again.
    """

    def __init__(self, url: str, api_key: str, heartbeat_interval: float = 30.0,
                 session: Optional[aiohttp.ClientSession] = None,
                 reconnect_attempts: int = 5, reconnect_delay_ms: float = 1000):
        if not url or not api_key:
            raise ConfigurationError("SUPABASE_URL and SUPABASE_ANON_KEY are required")

        self.url = url.rstrip("/")
        self.api_key = api_key
        self.heartbeat_interval = heartbeat_interval
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay_ms = reconnect_delay_ms
        self.socket_url = self._socket_url(self.url)

        self._session = session
        self._owns_session = session is None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._channels: Dict[str, RealtimeChannel] = {}
        self._refs = itertools.count(1)
        self._reader_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._connect_lock = asyncio.Lock()

    @staticmethod
    def _socket_url(url: str) -> str:
        if url.startswith("https://"):
            url = "wss://" + url[len("https://"):]
        elif url.startswith("http://"):
            url = "ws://" + url[len("http://"):]
        return f"{url}/realtime/v1/websocket"

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    @property
    def reconnecting(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    @property
    def channels(self) -> List[RealtimeChannel]:
        return list(self._channels.values())

    def channel(self, name: str, change_filter: ChangeFilter, callback: ChangeCallback) -> RealtimeChannel:
        """Create a channel handle; nothing is sent until ``subscribe``."""
        return RealtimeChannel(self, name, change_filter, callback)

    async def connect(self) -> None:
        async with self._connect_lock:
            if self.connected:
                return

            # Tasks bound to a previous socket
            await self._drop_socket()

            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession()
                self._owns_session = True

            self._ws = await self._session.ws_connect(
                self.socket_url,
                params={"apikey": self.api_key, "vsn": PROTOCOL_VERSION},
            )
            self._reader_task = asyncio.create_task(self._read_loop())
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
            logger.info(f"Connected to realtime service at {self.socket_url}")

    async def close(self) -> None:
        """Close the socket and background tasks; channels are dropped."""
        for channel in self._channels.values():
            channel.state = "closed"
        self._channels.clear()
        await self._disconnect()

        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()

    @staticmethod
    async def _cancel(*tasks: Optional[asyncio.Task]) -> None:
        current = asyncio.current_task()
        for task in tasks:
            if task is not None and task is not current and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    async def _drop_socket(self) -> None:
        await self._cancel(self._heartbeat_task, self._reader_task)
        self._heartbeat_task = None
        self._reader_task = None

        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        self._ws = None

    async def _disconnect(self) -> None:
        if self._reconnect_task is not asyncio.current_task():
            await self._cancel(self._reconnect_task)
            self._reconnect_task = None
        await self._drop_socket()

    def _next_ref(self) -> str:
        return str(next(self._refs))

    async def _send(self, topic: str, event: str, payload: Dict[str, Any],
                    ref: Optional[str] = None, join_ref: Optional[str] = None) -> None:
        message = {
            "topic": topic,
            "event": event,
            "payload": payload,
            "ref": ref or self._next_ref(),
        }
        if join_ref is not None:
            message["join_ref"] = join_ref
        await self._ws.send_json(message)

    def _join_payload(self, channel: RealtimeChannel) -> Dict[str, Any]:
        return {
            "config": {
                "broadcast": {"self": False},
                "presence": {"key": ""},
                "postgres_changes": [channel.change_filter.to_payload()],
            },
            "access_token": self.api_key,
        }

    async def _send_join(self, channel: RealtimeChannel) -> None:
        channel.join_ref = self._next_ref()
        channel.state = "joining"
        channel.subscription_ids = set()

        await self._send(
            channel.topic, "phx_join", self._join_payload(channel),
            ref=channel.join_ref, join_ref=channel.join_ref,
        )
        logger.debug(f"Joining realtime channel {channel.name}")

    async def _join(self, channel: RealtimeChannel) -> None:
        await self.connect()

        self._channels[channel.topic] = channel
        try:
            await self._send_join(channel)
        except Exception:
            channel.state = "errored"
            if self._channels.get(channel.topic) is channel:
                del self._channels[channel.topic]
            raise

    async def _leave(self, channel: RealtimeChannel) -> None:
        if self._channels.get(channel.topic) is not channel:
            channel.state = "closed"
            return

        del self._channels[channel.topic]
        channel.state = "closed"

        if self.connected:
            await self._send(channel.topic, "phx_leave", {}, join_ref=channel.join_ref)
        logger.debug(f"Left realtime channel {channel.name}")

        if not self._channels:
            await self._disconnect()

    async def _read_loop(self) -> None:
        ws = self._ws
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    message = json.loads(msg.data)
                except ValueError:
                    logger.warning(f"Ignoring malformed realtime message: {msg.data!r}")
                    continue
                await self._dispatch(message)
            elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                break

        if self._ws is not ws:
            return

        logger.warning("Realtime socket closed by the server")
        self._ws = None
        if not ws.closed:
            await ws.close()

        if self._channels:
            for channel in self._channels.values():
                channel.state = "errored"
            self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        """Reopen the socket and rejoin every tracked channel."""
        async def _rejoin():
            await self.connect()
            try:
                for channel in list(self._channels.values()):
                    await self._send_join(channel)
            except Exception:
                await self._drop_socket()
                raise

        await asyncio.sleep(self.reconnect_delay_ms / 1000)
        try:
            await with_retry(
                _rejoin,
                max_attempts=self.reconnect_attempts,
                base_delay_ms=self.reconnect_delay_ms,
                operation="realtime_reconnect",
            )
        except Exception as e:
            logger.error(f"Realtime reconnect failed, dropping {len(self._channels)} channel(s): {e}")
            for channel in self._channels.values():
                channel.state = "closed"
            self._channels.clear()
            await self._drop_socket()
        else:
            logger.info(f"Rejoined {len(self._channels)} realtime channel(s)")
        finally:
            if self._reconnect_task is asyncio.current_task():
                self._reconnect_task = None

    async def _dispatch(self, message: Dict[str, Any]) -> None:
        """Route one server message to the channel it belongs to."""
        topic = message.get("topic")
        event = message.get("event")
        payload = message.get("payload") or {}
        channel = self._channels.get(topic)

        if channel is None:
            return

        # Close and error frames carry the join ref of the channel they end
        owner_ref = message.get("join_ref")
        if owner_ref is None and event in ("phx_close", "phx_error"):
            owner_ref = message.get("ref")
        if owner_ref is not None and owner_ref != channel.join_ref:
            logger.debug(f"Dropping {event} for an earlier {channel.name} subscription")
            return

        if event == "postgres_changes":
            ids = payload.get("ids")
            if channel.subscription_ids and ids and not channel.subscription_ids.intersection(ids):
                return
            try:
                await channel._handle_change(payload)
            except Exception as e:
                logger.error(f"Error in realtime callback for {channel.name}: {e}")

        elif event == "phx_reply" and message.get("ref") == channel.join_ref:
            if payload.get("status") == "ok":
                channel.state = "joined"
                response = payload.get("response") or {}
                channel.subscription_ids = {
                    change["id"] for change in response.get("postgres_changes") or []
                    if isinstance(change, dict) and change.get("id") is not None
                }
            else:
                channel.state = "errored"
                logger.warning(f"Realtime join rejected for {channel.name}: {payload.get('response')}")

        elif event == "phx_error":
            channel.state = "errored"
            logger.warning(f"Realtime channel {channel.name} received phx_error")

        elif event == "phx_close":
            channel.state = "closed"
            del self._channels[topic]
            logger.warning(f"Realtime channel {channel.name} was closed by the server")

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            if not self.connected:
                return
            try:
                await self._send(PHOENIX_TOPIC, "heartbeat", {})
            except (aiohttp.ClientError, ConnectionError) as e:
                logger.warning(f"Realtime heartbeat failed: {e}")
                return


class SubscriptionRegistry:
    """
    Tracks live change subscriptions by channel name.

    Subscribing under a name that is already live tears the old handle
    down first, so at most one handle exists per name. Handles the client
    has closed (server close, failed reconnect) are forgotten.
    """

    def __init__(self, client: ChannelFactory):
        self._client = client
        self._handles: Dict[str, ChannelHandle] = {}

    def _prune(self) -> None:
        for name, handle in list(self._handles.items()):
            if getattr(handle, "state", None) == "closed":
                del self._handles[name]

    @property
    def active_channels(self) -> List[str]:
        self._prune()
        return list(self._handles.keys())

    def __len__(self) -> int:
        self._prune()
        return len(self._handles)

    def __contains__(self, name: str) -> bool:
        self._prune()
        return name in self._handles

    def get(self, name: str) -> Optional[ChannelHandle]:
        self._prune()
        return self._handles.get(name)

    async def subscribe(self, name: str, change_filter: ChangeFilter, callback: ChangeCallback) -> str:
        """
        Subscribe ``callback`` to changes matching ``change_filter``.

        Returns:
            The channel name, usable with ``unsubscribe``
        """
        existing = self._handles.pop(name, None)
        if existing is not None:
            logger.debug(f"Replacing existing subscription {name}")
            await existing.unsubscribe()

        handle = self._client.channel(name, change_filter, callback)
        await handle.subscribe()
        self._handles[name] = handle
        return name

    async def unsubscribe(self, name: str) -> bool:
        """Tear down one subscription; returns False if it was not live."""
        self._prune()
        handle = self._handles.pop(name, None)
        if handle is None:
            return False
        await handle.unsubscribe()
        return True

    async def unsubscribe_all(self) -> None:
        """Tear down every tracked subscription (logout, shutdown)."""
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            try:
                await handle.unsubscribe()
            except Exception as e:
                logger.warning(f"Error unsubscribing {handle.name}: {e}")
