"""
Labels for clarity.
"""

from typing import Literal

Digits = str  # "1357": decimal digits, no repeats
ConnectionId = str  # one per open websocket
RoomCode = str  # 6 chars, A-Z0-9
Phase = Literal["waiting", "setup", "playing", "finished"]
