import logging
from typing import Dict, Iterable

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from fastapi import WebSocket

from .coordinator import Outbound
from .types import ConnectionId

log = logging.getLogger(__name__)


class ConnectionHub:
    """
    One outbox per open websocket.

    deliver() only enqueues (no await), so events produced by one command
    land in every target's outbox before the next command is handled; each
    connection's sender drains its outbox in that order.

    Memory streams wake their readers through the event loop that owns
    them, so one hub must only be driven from a single event loop.

    An outbox holds at most `outbox_size` frames. A client that stops
    reading and lets it fill up is dropped: its outbox is closed, its sender
    finishes what was queued and the endpoint tears the connection down.
    """

    def __init__(self, outbox_size: int = 256) -> None:
        self.outbox_size = outbox_size
        self._outboxes: Dict[ConnectionId, MemoryObjectSendStream] = {}

    def register(self, connection_id: ConnectionId) -> MemoryObjectReceiveStream:
        send_stream, receive_stream = anyio.create_memory_object_stream(self.outbox_size)
        self._outboxes[connection_id] = send_stream
        return receive_stream

    def unregister(self, connection_id: ConnectionId) -> None:
        send_stream = self._outboxes.pop(connection_id, None)
        if send_stream is not None:
            send_stream.close()

    def deliver(self, events: Iterable[Outbound]) -> None:
        for event in events:
            frame = event.frame()
            for target in event.targets:
                outbox = self._outboxes.get(target)
                if outbox is None:
                    log.debug("Dropping %s for closed connection %s", event.event, target)
                    continue
                try:
                    outbox.send_nowait(frame)
                except anyio.WouldBlock:
                    log.warning("Outbox of %s is full, dropping the connection", target)
                    self.unregister(target)
                except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                    log.debug("Outbox of %s already closed", target)

    def __len__(self) -> int:
        return len(self._outboxes)


async def pump_outbox(websocket: WebSocket, outbox: MemoryObjectReceiveStream, connection_id: ConnectionId) -> bool:
    """
    Send queued frames until the outbox closes or the socket goes away.
    Returns True when the hub closed the outbox (the socket is still open).
    """
    async with outbox:
        async for frame in outbox:
            try:
                await websocket.send_json(frame)
            except Exception as exc:
                # dead socket: the receiver side will see the disconnect and clean up
                log.warning("Could not send %s to %s: %s", frame.get("type"), connection_id, exc)
                return False
    return True
