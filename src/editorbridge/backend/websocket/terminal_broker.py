"""Terminal event broker.

Delivers TerminalEvents from PTY reader threads to the front end's
WebSocket subscriber for that terminal.

Architecture:
    PTY reader thread
        PTYSession._read_output()
            ↓ broker.push_from_worker(terminal_id, event)
            ↓ call_soon_threadsafe
    Main event loop
        TerminalEventBroker._forward_events(terminal_id)
            ↓ queue.get()
            ↓ websocket.send_json(msg)
        Browser
"""

import asyncio
import codecs
import logging
from collections import deque
from typing import Deque, Dict, Optional

from fastapi import WebSocket

from ..terminal.pty_session import EXIT, OUTPUT, TerminalEvent

logger = logging.getLogger(__name__)

# Newest events win; one event is at most one PTY read (4 KiB)
BACKLOG_EVENTS = 256


class TerminalEventBroker:
    """
    Routes terminal events to WebSocket subscribers.

    Responsibilities:
    - One subscriber WebSocket per terminal id (a new one replaces the old)
    - Thread-safe event intake via call_soon_threadsafe
    - UTF-8 decoding of output that survives chunk boundaries

    Events for a terminal without a subscriber are kept in a bounded
    backlog and replayed when a subscriber connects, so the first prompt
    (or an early exit) is not lost when the stream is opened after start.
    """

    def __init__(self):
        # Subscriber connections: {terminal_id → WebSocket}
        self._websockets: Dict[str, WebSocket] = {}

        # Event queues: {terminal_id → asyncio.Queue}
        self._queues: Dict[str, asyncio.Queue] = {}

        # Forwarding tasks: {terminal_id → asyncio.Task}
        self._tasks: Dict[str, asyncio.Task] = {}

        # Events that arrived with no subscriber: {terminal_id → deque}
        self._backlogs: Dict[str, Deque[TerminalEvent]] = {}

        self._main_loop: Optional[asyncio.AbstractEventLoop] = None

    def set_main_loop(self, loop: asyncio.AbstractEventLoop):
        """
        Set main event loop reference.

        Must be called during application startup.
        """
        self._main_loop = loop
        logger.info("TerminalEventBroker: Main event loop set")

    async def connect_terminal(self, terminal_id: str, websocket: WebSocket):
        """
        Register the subscriber for a terminal.

        If the terminal already has a subscriber, the old one is closed.
        """
        if terminal_id in self._websockets:
            if self._websockets[terminal_id] is websocket:
                logger.warning(f"Terminal {terminal_id} WebSocket already registered, skipping")
                return

            logger.warning(f"Terminal {terminal_id} resubscribed, closing old connection")
            await self.disconnect_terminal(terminal_id)

        self._websockets[terminal_id] = websocket
        queue = asyncio.Queue()
        for event in self._backlogs.pop(terminal_id, ()):
            queue.put_nowait(event)
        self._queues[terminal_id] = queue

        task = asyncio.create_task(self._forward_events(terminal_id))
        self._tasks[terminal_id] = task

        def task_done_callback(t: asyncio.Task):
            if not t.cancelled() and t.exception():
                exc = t.exception()
                logger.error(
                    f"Forwarding task failed for terminal {terminal_id}: {exc}",
                    exc_info=(type(exc), exc, exc.__traceback__)
                )

        task.add_done_callback(task_done_callback)

        logger.info(f"Terminal {terminal_id} WebSocket connected")

    async def disconnect_terminal(self, terminal_id: str, websocket: Optional[WebSocket] = None):
        """
        Drop the subscriber for a terminal.

        Args:
            terminal_id: Terminal identifier
            websocket: If provided, only disconnect when it is the registered one
        """
        registered_ws = self._websockets.get(terminal_id)
        if registered_ws is None:
            return

        if websocket is not None and registered_ws is not websocket:
            logger.debug(
                f"Terminal {terminal_id} WebSocket mismatch, skipping disconnect "
                f"(probably already resubscribed)"
            )
            return

        task = self._tasks.pop(terminal_id, None)
        if task is not None and not task.done():
            task.cancel()
            try:
                await asyncio.wait_for(task, timeout=1.0)
            except asyncio.CancelledError:
                logger.debug(f"Forwarding task cancelled for terminal {terminal_id}")
            except asyncio.TimeoutError:
                logger.warning(f"Task cancellation timed out for terminal {terminal_id}")

        try:
            await registered_ws.close()
        except Exception as e:
            logger.debug(f"Error closing WebSocket for terminal {terminal_id}: {e}")

        del self._websockets[terminal_id]
        del self._queues[terminal_id]

        logger.info(f"Terminal {terminal_id} WebSocket disconnected")

    async def _forward_events(self, terminal_id: str):
        """Forward queued events to the subscriber (runs in main loop)."""
        queue = self._queues.get(terminal_id)
        if queue is None:
            return

        # Output chunks can split a multi-byte character
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        try:
            while terminal_id in self._websockets:
                event: TerminalEvent = await queue.get()

                ws = self._websockets.get(terminal_id)
                if ws is None:
                    break

                if event.kind == OUTPUT:
                    text = decoder.decode(event.data)
                    if not text:
                        continue
                    await ws.send_json({"terminal_id": terminal_id, "type": OUTPUT, "data": text})
                elif event.kind == EXIT:
                    tail = decoder.decode(b"", final=True)
                    if tail:
                        await ws.send_json({"terminal_id": terminal_id, "type": OUTPUT, "data": tail})
                    await ws.send_json({"terminal_id": terminal_id, "type": EXIT})
                    decoder.reset()

        except asyncio.CancelledError:
            logger.debug(f"Forwarding task cancelled for terminal {terminal_id}")
            raise
        except Exception as e:
            logger.warning(f"Error forwarding event to terminal {terminal_id}: {e}")

    def push_from_worker(self, terminal_id: str, event: TerminalEvent):
        """
        Push an event from a reader thread.

        Thread-safe: all dictionary access happens on the main loop.
        """
        loop = self._main_loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._push_internal, terminal_id, event)
        except RuntimeError:
            # Loop closed between the check and the call (shutdown)
            pass

    def _push_internal(self, terminal_id: str, event: TerminalEvent):
        queue = self._queues.get(terminal_id)
        if queue is not None:
            queue.put_nowait(event)
        else:
            backlog = self._backlogs.get(terminal_id)
            if backlog is None:
                backlog = self._backlogs[terminal_id] = deque(maxlen=BACKLOG_EVENTS)
            backlog.append(event)

    def discard_backlog(self, terminal_id: str):
        """Forget events buffered for a terminal (called before its id is reused)."""
        self._backlogs.pop(terminal_id, None)

    def is_connected(self, terminal_id: str) -> bool:
        return terminal_id in self._websockets

    async def disconnect_all(self):
        """Disconnect every subscriber (application shutdown)."""
        terminal_ids = list(self._websockets)
        for terminal_id in terminal_ids:
            await self.disconnect_terminal(terminal_id)
        self._backlogs.clear()

        logger.info(f"Disconnected all terminal subscribers ({len(terminal_ids)} connections)")
