"""
Nostr relay pool over WebSockets.

Opens one NIP-01 subscription per relay and forwards each distinct event to a
callback. A subscription runs until every relay socket closes or the caller
cancels it; cancellation sends ``CLOSE`` to the relays still connected.
"""

import asyncio
import json
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Set

import aiohttp

from feed_agent.ingestion.base import FetchError

logger = logging.getLogger(__name__)


class RelayPoolError(FetchError):
    """Raised when no relay in the pool could be reached."""

    pass


def _is_valid_event(event: Any, kinds: Optional[List[int]]) -> bool:
    if not isinstance(event, dict):
        return False
    if not isinstance(event.get("id"), str) or not isinstance(event.get("pubkey"), str):
        return False
    if not isinstance(event.get("created_at"), int) or not isinstance(event.get("content"), str):
        return False
    if kinds is not None and event.get("kind") not in kinds:
        return False
    return True


class RelayPool:
    """
    A set of Nostr relays queried together.

    Events seen on several relays are delivered once. The pool reuses an
    injected ``aiohttp.ClientSession`` or owns one it creates lazily.
    """

    def __init__(
        self,
        relays: List[str],
        session: Optional[aiohttp.ClientSession] = None,
        connect_timeout: float = 5.0,
    ):
        """
        Initialize the pool.

        Args:
            relays: Relay WebSocket URLs
            session: Optional shared HTTP session
            connect_timeout: Seconds allowed for each relay handshake
        """
        self.relays = list(relays)
        self.connect_timeout = connect_timeout
        self._session = session
        self._owns_session = session is None
        self._sockets: Dict[str, aiohttp.ClientWebSocketResponse] = {}
        self._seen: Set[str] = set()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _connect(self, url: str) -> aiohttp.ClientWebSocketResponse:
        session = await self._get_session()
        ws = await asyncio.wait_for(session.ws_connect(url), timeout=self.connect_timeout)
        self._sockets[url] = ws
        return ws

    async def subscribe(
        self,
        filters: Dict[str, Any],
        on_event: Callable[[Dict[str, Any]], None],
    ) -> None:
        """
        Subscribe every relay to ``filters`` and stream events to ``on_event``.

        Returns when all relays have closed their sockets; in practice the
        caller cancels the subscription after its collection window.

        Args:
            filters: NIP-01 filter object, e.g. ``{"kinds": [1], "since": ...}``
            on_event: Called once per distinct valid event

        Raises:
            RelayPoolError: If no relay accepts a connection
        """
        sub_id = uuid.uuid4().hex[:16]
        results = await asyncio.gather(
            *(self._connect(url) for url in self.relays), return_exceptions=True
        )

        connected = []
        for url, result in zip(self.relays, results):
            if isinstance(result, BaseException):
                logger.warning(f"Could not connect to relay {url}: {result!r}")
            else:
                connected.append((url, result))

        if not connected:
            raise RelayPoolError(f"None of {len(self.relays)} relays could be reached")

        logger.debug(f"Subscribed {sub_id} on {len(connected)}/{len(self.relays)} relays")

        try:
            await asyncio.gather(
                *(self._listen(url, ws, sub_id, filters, on_event) for url, ws in connected)
            )
        finally:
            await self._unsubscribe(sub_id)

    async def _listen(
        self,
        url: str,
        ws: aiohttp.ClientWebSocketResponse,
        sub_id: str,
        filters: Dict[str, Any],
        on_event: Callable[[Dict[str, Any]], None],
    ) -> None:
        kinds = filters.get("kinds")
        try:
            await ws.send_str(json.dumps(["REQ", sub_id, filters]))

            async for msg in ws:
                if msg.type != aiohttp.WSMsgType.TEXT:
                    if msg.type == aiohttp.WSMsgType.ERROR:
                        logger.warning(f"Relay {url} socket error: {ws.exception()!r}")
                        break
                    continue

                try:
                    message = json.loads(msg.data)
                except json.JSONDecodeError:
                    logger.debug(f"Ignoring malformed message from {url}")
                    continue
                if not isinstance(message, list) or not message:
                    continue

                verb = message[0]
                if verb == "EVENT" and len(message) >= 3 and message[1] == sub_id:
                    event = message[2]
                    if not _is_valid_event(event, kinds):
                        continue
                    if event["id"] in self._seen:
                        continue
                    self._seen.add(event["id"])
                    on_event(event)
                elif verb == "EOSE":
                    logger.debug(f"Relay {url} sent stored events for {sub_id}")
                elif verb == "NOTICE":
                    logger.info(f"Relay {url} notice: {message[1:]}")
                elif verb == "CLOSED" and len(message) >= 2 and message[1] == sub_id:
                    logger.info(f"Relay {url} closed subscription: {message[2:]}")
                    break
        except (aiohttp.ClientError, ConnectionError) as e:
            logger.warning(f"Relay {url} dropped: {e!r}")

    async def _unsubscribe(self, sub_id: str) -> None:
        for url, ws in self._sockets.items():
            if ws.closed:
                continue
            try:
                await ws.send_str(json.dumps(["CLOSE", sub_id]))
            except (aiohttp.ClientError, ConnectionError) as e:
                logger.debug(f"Failed to send CLOSE to {url}: {e!r}")

    async def close(self) -> None:
        """Close every relay socket and the owned HTTP session."""
        sockets = list(self._sockets.values())
        self._sockets.clear()
        for ws in sockets:
            if not ws.closed:
                await ws.close()

        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def __len__(self) -> int:
        return len(self.relays)
