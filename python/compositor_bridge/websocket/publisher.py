"""
WebSocket event publisher.

Streams pipeline-facing bridge events (endpoint registered/unregistered,
custom request responses) to WebSocket subscribers with:
- Queue size limit, oldest event dropped first
- Automatic reconnection
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import websockets
from websockets.protocol import State

logger = logging.getLogger("vcb.websocket")


class EventPublisher:
    """Fan out bridge events to one or more WebSocket endpoints."""

    def __init__(
        self,
        urls: List[str],
        queue_maxsize: int = 1000,
        reconnect_interval: float = 5.0,
    ):
        """
        Initialize publisher.

        Args:
            urls: WebSocket URLs to connect to (blank and '#' entries ignored)
            queue_maxsize: Maximum queued events (oldest dropped when full)
            reconnect_interval: Seconds between reconnection attempts
        """
        self.urls = [u for u in urls if u and not u.strip().startswith("#")]
        self.queue_maxsize = queue_maxsize
        self.reconnect_interval = reconnect_interval

        self._connections: Dict[str, Any] = {}
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_maxsize)
        self._running = False
        self._dropped_count = 0
        self._sent_count = 0
        self._send_task: Optional[asyncio.Task] = None
        self._reconnect_tasks: Dict[str, asyncio.Task] = {}

    @staticmethod
    def _is_connected(ws: Any) -> bool:
        return ws.state == State.OPEN

    @property
    def connected_count(self) -> int:
        return len([ws for ws in self._connections.values() if self._is_connected(ws)])

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    @property
    def sent_count(self) -> int:
        return self._sent_count

    def publish(self, event: Any) -> None:
        """
        Queue an event for sending. Usable directly as an orchestrator event handler.

        Args:
            event: Object with to_dict(), or a dict
        """
        event_dict = event.to_dict() if hasattr(event, "to_dict") else event

        try:
            self._queue.put_nowait(event_dict)
        except asyncio.QueueFull:
            try:
                self._queue.get_nowait()
                self._dropped_count += 1
                if self._dropped_count % 100 == 1:
                    logger.warning(f"Queue full, dropped {self._dropped_count} events")
                self._queue.put_nowait(event_dict)
            except asyncio.QueueEmpty:
                pass

    async def _connect_one(self, url: str) -> bool:
        try:
            logger.info(f"Connecting to: {url}")
            ws = await websockets.connect(url)
            self._connections[url] = ws
            logger.info(f"Connected: {url}")
            return True
        except Exception as e:
            logger.warning(f"Connection failed: {url} - {e}")
            return False

    async def _reconnect_loop(self, url: str):
        while self._running and url not in self._connections:
            await asyncio.sleep(self.reconnect_interval)
            if await self._connect_one(url):
                break

    def _schedule_reconnect(self, url: str) -> None:
        task = self._reconnect_tasks.get(url)
        if task is None or task.done():
            self._reconnect_tasks[url] = asyncio.create_task(self._reconnect_loop(url))

    async def _send_loop(self):
        while self._running:
            try:
                event_dict = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            data = json.dumps(event_dict, ensure_ascii=False)
            dead_urls = []
            for url, ws in list(self._connections.items()):
                try:
                    if self._is_connected(ws):
                        await ws.send(data)
                        self._sent_count += 1
                        logger.debug(f"[{url}] {event_dict.get('type', 'unknown')}")
                    else:
                        dead_urls.append(url)
                except Exception as e:
                    logger.error(f"Send error ({url}): {e}")
                    dead_urls.append(url)

            for url in dead_urls:
                self._connections.pop(url, None)
                self._schedule_reconnect(url)

    async def start(self):
        """Connect to all subscribers and start sending."""
        self._running = True
        self._send_task = asyncio.create_task(self._send_loop())

        if not self.urls:
            logger.warning("No event WebSocket URLs configured")
            return

        for url in self.urls:
            if not await self._connect_one(url):
                self._schedule_reconnect(url)

    async def stop(self):
        """Stop publishing and close connections."""
        self._running = False

        tasks = list(self._reconnect_tasks.values())
        if self._send_task:
            tasks.append(self._send_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._reconnect_tasks.clear()
        self._send_task = None

        for url, ws in list(self._connections.items()):
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"Close failed ({url}): {e}")
        self._connections.clear()

        logger.info(f"Event publisher stopped. Sent: {self._sent_count}, Dropped: {self._dropped_count}")

    def get_stats(self) -> dict:
        """Get publisher statistics."""
        return {
            "connected": self.connected_count,
            "total_urls": len(self.urls),
            "queue_size": self._queue.qsize(),
            "queue_maxsize": self.queue_maxsize,
            "sent_count": self._sent_count,
            "dropped_count": self._dropped_count,
        }
