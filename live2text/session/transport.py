"""WebSocket transport for the live service, built on aiohttp.

The transport runs on an asyncio loop (usually an EventLoopThread) and reports
everything that happens to it through callbacks: open, message, error, close.
Nothing is raised to the caller of ``send``; failures arrive as error events.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, Optional, Union

import aiohttp

from ..errors import LiveConnectionError
from .protocol import redact_endpoint

logger = logging.getLogger(__name__)


@dataclass
class TransportCallbacks:
    """Event handlers a transport reports to."""
    on_open: Callable[[], None]
    on_message: Callable[[Union[str, bytes]], None]
    on_error: Callable[[Exception], None]
    on_close: Callable[[Optional[int], str], None]


class AbstractTransport(ABC):
    """A bidirectional message link with event callbacks."""

    @abstractmethod
    def open(self, callbacks: TransportCallbacks) -> None:
        """Start connecting; ``callbacks.on_open`` fires once connected."""
        pass

    @abstractmethod
    def send(self, payload: str) -> None:
        """Queue ``payload`` for sending. Never raises."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the link and cancel pending sends."""
        pass


class EventLoopThread:
    """Runs an asyncio event loop in a daemon thread."""

    def __init__(self, name: str = "Live2TextLoop"):
        self.loop = asyncio.new_event_loop()
        self.thread = threading.Thread(target=self._run, name=name, daemon=True)
        self.started = threading.Event()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.call_soon(self.started.set)
        try:
            self.loop.run_forever()
        finally:
            self.loop.close()
            logger.debug("Event loop thread exiting and closing its event loop.")

    def start(self) -> "EventLoopThread":
        self.thread.start()
        self.started.wait()
        return self

    def submit(self, coro) -> Future:
        """Schedule ``coro`` on the loop from any thread."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    async def _cancel_pending(self) -> None:
        tasks = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def stop(self, timeout: float = 5.0) -> None:
        if not self.thread.is_alive():
            return
        # Let open sockets close before the loop goes away.
        try:
            self.submit(self._cancel_pending()).result(timeout)
        except FutureTimeoutError:
            logger.warning("Pending tasks did not finish before loop shutdown")
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.thread.join(timeout)
        if self.thread.is_alive():
            logger.warning("Event loop thread did not terminate cleanly.")


class WebSocketTransport(AbstractTransport):
    """aiohttp client WebSocket with a send queue drained on the loop."""

    def __init__(self, endpoint: str, loop: asyncio.AbstractEventLoop,
                 heartbeat: Optional[float] = None):
        """Initialize transport.

        Args:
            endpoint: wss:// URL including the API key query string
            loop: Event loop the socket runs on
            heartbeat: Optional ping interval in seconds
        """
        self.endpoint = endpoint
        self.loop = loop
        self.heartbeat = heartbeat

        self.callbacks: Optional[TransportCallbacks] = None
        self.send_queue: Optional[asyncio.Queue] = None
        self.ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self.task: Optional[asyncio.Task] = None
        self.closing = False

    def open(self, callbacks: TransportCallbacks) -> None:
        self.callbacks = callbacks
        asyncio.run_coroutine_threadsafe(self._start(), self.loop)

    async def _start(self) -> None:
        if self.closing:
            return
        self.send_queue = asyncio.Queue()
        self.task = asyncio.create_task(self._run())

    def send(self, payload: str) -> None:
        if self.closing:
            logger.debug("Dropping send on closing transport")
            return
        self.loop.call_soon_threadsafe(self._enqueue, payload)

    def _enqueue(self, payload: str) -> None:
        if self.send_queue is not None and not self.closing:
            self.send_queue.put_nowait(payload)

    def close(self) -> None:
        self.closing = True
        self.loop.call_soon_threadsafe(self._cancel)

    def _cancel(self) -> None:
        if self.task is not None and not self.task.done():
            self.task.cancel()

    async def _run(self) -> None:
        logger.info(f"Connecting to {redact_endpoint(self.endpoint)}")
        close_code: Optional[int] = None
        close_reason = ""
        sender: Optional[asyncio.Task] = None
        try:
            async with aiohttp.ClientSession() as session:
                async with session.ws_connect(self.endpoint, heartbeat=self.heartbeat) as ws:
                    self.ws = ws
                    self.callbacks.on_open()
                    sender = asyncio.create_task(self._send_loop(ws))

                    async for msg in ws:
                        if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                            self.callbacks.on_message(msg.data)
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            self.callbacks.on_error(
                                LiveConnectionError(f"WebSocket error: {ws.exception()}"))

                    close_code = ws.close_code
                    close_reason = "Server closed the connection" if close_code not in (None, 1000) else ""
        except asyncio.CancelledError:
            close_reason = "Closed by client"
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"WebSocket connection failed: {e}")
            self.callbacks.on_error(LiveConnectionError(f"Connection failed: {e}"))
            close_reason = str(e)
        finally:
            if sender is not None:
                sender.cancel()
            self.ws = None
            self.closing = True
            logger.info(f"WebSocket closed: {close_code} {close_reason}")
            self.callbacks.on_close(close_code, close_reason)

    async def _send_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        while True:
            payload = await self.send_queue.get()
            try:
                await ws.send_str(payload)
            except (ConnectionResetError, aiohttp.ClientError) as e:
                logger.error(f"Error sending message: {e}")
                self.callbacks.on_error(LiveConnectionError(f"Send failed: {e}"))
                return


def websocket_transport_factory(endpoint: str, loop_thread: EventLoopThread,
                                heartbeat: Optional[float] = None) -> Callable[[], AbstractTransport]:
    """Factory producing a fresh WebSocketTransport per connect."""
    def factory() -> AbstractTransport:
        return WebSocketTransport(endpoint, loop_thread.loop, heartbeat=heartbeat)
    return factory
