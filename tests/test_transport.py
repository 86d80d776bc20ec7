"""
Testing the connection hub without a socket.
- Frames land in each target's outbox in delivery order.
- A client whose outbox fills up is dropped.
"""

import anyio

from decode.coordinator import Outbound
from decode.transport import ConnectionHub


def drain(outbox):
    frames = []
    while True:
        try:
            frames.append(outbox.receive_nowait())
        except anyio.WouldBlock:
            return frames, False
        except anyio.EndOfStream:
            return frames, True


def test_deliver_fans_out_in_order():
    hub = ConnectionHub()
    ana = hub.register("A")
    ben = hub.register("B")

    hub.deliver([
        Outbound(("A",), "secretSet", {"success": True}),
        Outbound(("A", "B"), "phaseChange", {"phase": "playing"}),
    ])

    assert drain(ana) == ([{"type": "secretSet", "success": True}, {"type": "phaseChange", "phase": "playing"}], False)
    assert drain(ben) == ([{"type": "phaseChange", "phase": "playing"}], False)


def test_deliver_skips_unknown_connections():
    hub = ConnectionHub()

    hub.deliver([Outbound(("ghost",), "opponentReady", {})])

    assert len(hub) == 0


def test_full_outbox_drops_the_connection():
    hub = ConnectionHub(outbox_size=2)
    slow = hub.register("slow")
    fast = hub.register("fast")

    hub.deliver([Outbound(("slow",), "chatMessage", {"text": str(i)}) for i in range(3)])
    hub.deliver([Outbound(("slow", "fast"), "opponentDisconnected", {})])

    frames, closed = drain(slow)
    # what was queued before the overflow is still sent, then the stream ends
    assert [frame["text"] for frame in frames] == ["0", "1"]
    assert closed is True
    assert len(hub) == 1

    assert drain(fast) == ([{"type": "opponentDisconnected"}], False)


def test_unregister_closes_outbox():
    hub = ConnectionHub()
    outbox = hub.register("A")

    hub.unregister("A")

    assert drain(outbox) == ([], True)
    assert len(hub) == 0
