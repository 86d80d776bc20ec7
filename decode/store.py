"""
In-memory room registry
Holds every live room and which connection sits in which room.

Locking:
- each Room has its own RLock; every read-modify-write of a room happens under it
- the registry lock only guards the two maps (code -> room, connection -> code)
- order is always room lock first, registry lock second
"""

import logging
import secrets
import string
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import RLock
from time import time
from typing import Dict, Iterator, List, Optional, Tuple
from uuid import uuid4

from .errors import RoomFull, RoomNotFound
from .types import ConnectionId, Digits, Phase, RoomCode

log = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6
MAX_PLAYERS = 2


def now_ms() -> int:
    # the browser client reads timestamps as epoch milliseconds
    return int(time() * 1000)


@dataclass
class GuessEntry:
    guess: Digits
    correct_digit: int
    correct_position: int
    timestamp: int = field(default_factory=now_ms)


@dataclass
class Participant:
    connection_id: ConnectionId
    name: str
    secret: Optional[Digits] = None
    guesses: List[GuessEntry] = field(default_factory=list)

    def reset_round(self) -> None:
        self.secret = None
        self.guesses = []


@dataclass
class ChatMessage:
    sender: str
    sender_connection_id: ConnectionId
    text: str
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: int = field(default_factory=now_ms)
    # emoji -> names of the players who reacted with it (ordered, no duplicates)
    reactions: Dict[str, List[str]] = field(default_factory=dict)

    def toggle_reaction(self, emoji: str, name: str) -> None:
        names = self.reactions.setdefault(emoji, [])
        if name in names:
            names.remove(name)
        else:
            names.append(name)
        if not names:
            del self.reactions[emoji]

    def to_event(self) -> dict:
        return {
            "id": self.id,
            "sender": self.sender,
            "senderSocketId": self.sender_connection_id,
            "text": self.text,
            "timestamp": self.timestamp,
            "reactions": {emoji: list(names) for emoji, names in self.reactions.items()},
        }


@dataclass
class Room:
    code: RoomCode
    number_length: int
    players: List[Participant] = field(default_factory=list)
    phase: Phase = "waiting"
    turn: int = 0
    chat: List[ChatMessage] = field(default_factory=list)
    winner: Optional[str] = None
    lock: RLock = field(default_factory=RLock, repr=False, compare=False)

    def participant(self, connection_id: ConnectionId) -> Optional[Participant]:
        for player in self.players:
            if player.connection_id == connection_id:
                return player
        return None

    def opponent_of(self, connection_id: ConnectionId) -> Optional[Participant]:
        for player in self.players:
            if player.connection_id != connection_id:
                return player
        return None

    def index_of(self, connection_id: ConnectionId) -> int:
        for index, player in enumerate(self.players):
            if player.connection_id == connection_id:
                return index
        return -1

    def connection_ids(self) -> Tuple[ConnectionId, ...]:
        return tuple(player.connection_id for player in self.players)

    def current_player(self) -> Participant:
        return self.players[self.turn]

    def is_full(self) -> bool:
        return len(self.players) >= MAX_PLAYERS

    def is_open(self, number_length: int) -> bool:
        return (
            self.phase == "waiting"
            and len(self.players) == 1
            and self.number_length == number_length
        )

    def all_secrets_set(self) -> bool:
        return len(self.players) == MAX_PLAYERS and all(p.secret is not None for p in self.players)

    def find_message(self, message_id: str) -> Optional[ChatMessage]:
        for message in self.chat:
            if message.id == message_id:
                return message
        return None

    def reset_round(self) -> None:
        """Back to `setup` for a rematch: secrets, guesses, winner and chat are cleared."""
        for player in self.players:
            player.reset_round()
        self.phase = "setup"
        self.turn = 0
        self.winner = None
        self.chat = []


class RoomRegistry:
    def __init__(self) -> None:
        self._rooms: Dict[RoomCode, Room] = {}
        self._connections: Dict[ConnectionId, RoomCode] = {}
        self._lock = RLock()

    # --- Lookups ---

    def get(self, code: RoomCode) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(code)

    def resolve_by_connection(self, connection_id: ConnectionId) -> Optional[Room]:
        with self._lock:
            code = self._connections.get(connection_id)
            if code is None:
                return None
            return self._rooms.get(code)

    @contextmanager
    def with_room(self, code: Optional[RoomCode]) -> Iterator[Optional[Room]]:
        """
        Scoped exclusive access to one room. Yields None when the code is unknown.
        The registry lock is released before the room lock is taken.
        """
        room = self.get(code) if code is not None else None
        if room is None:
            yield None
            return
        with room.lock:
            yield room

    @contextmanager
    def with_connection(self, connection_id: ConnectionId) -> Iterator[Optional[Room]]:
        """Like with_room, for the room this connection currently plays in."""
        room = self.resolve_by_connection(connection_id)
        with self.with_room(room.code if room else None) as locked:
            if locked is not None and locked.participant(connection_id) is None:
                # left between the lookup and the lock
                locked = None
            yield locked

    @property
    def room_count(self) -> int:
        with self._lock:
            return len(self._rooms)

    # --- Lifecycle ---

    def create_room(self, number_length: int, participant: Participant) -> Room:
        with self._lock:
            code = self._fresh_code()
            room = Room(code=code, number_length=number_length, players=[participant])
            self._rooms[code] = room
            self._connections[participant.connection_id] = code
        log.info("Room %s created by %s (length %d)", code, participant.name, number_length)
        return room

    def find_open_room(self, number_length: int) -> Optional[Room]:
        """First waiting room (registry insertion order) with one player and the same length."""
        with self._lock:
            for room in self._rooms.values():
                if room.is_open(number_length):
                    return room
        return None

    def join_room(self, code: RoomCode, participant: Participant) -> Room:
        room = self.get(code)
        if room is None:
            raise RoomNotFound()

        with room.lock:
            if not self._is_live(room):
                raise RoomNotFound()
            if room.is_full():
                raise RoomFull()
            self._seat(room, participant)
        log.info("%s joined room %s", participant.name, code)
        return room

    def quick_match(self, number_length: int, participant: Participant) -> Tuple[Room, bool]:
        """
        Pair with the oldest open room of the same length, or open a new one.
        Returns (room, paired).
        """
        while True:
            candidate = self.find_open_room(number_length)
            if candidate is None:
                return self.create_room(number_length, participant), False

            with candidate.lock:
                # someone else may have taken it between the scan and the lock
                if self._is_live(candidate) and candidate.is_open(number_length):
                    self._seat(candidate, participant)
                    log.info("%s quick-matched into room %s", participant.name, candidate.code)
                    return candidate, True

    def remove_participant(self, connection_id: ConnectionId) -> Optional[Room]:
        """
        Drop a connection from its room. An emptied room is deleted; otherwise the
        player left behind goes back to `waiting` with a clean round.
        """
        room = self.resolve_by_connection(connection_id)
        if room is None:
            with self._lock:
                self._connections.pop(connection_id, None)
            return None

        with room.lock:
            room.players = [p for p in room.players if p.connection_id != connection_id]
            with self._lock:
                self._connections.pop(connection_id, None)
                if not room.players:
                    self._rooms.pop(room.code, None)

            if room.players:
                for player in room.players:
                    player.reset_round()
                room.phase = "waiting"
                room.turn = 0
                room.winner = None
                room.chat = []
            else:
                log.info("Room %s deleted (last player left)", room.code)
        return room

    def sweep_empty_rooms(self) -> int:
        """Safety net: delete rooms that somehow ended up with nobody in them."""
        with self._lock:
            candidates = [room for room in self._rooms.values() if not room.players]

        removed = 0
        for room in candidates:
            with room.lock:
                if room.players:
                    continue
                with self._lock:
                    if self._rooms.get(room.code) is room:
                        del self._rooms[room.code]
                        removed += 1
        if removed:
            log.info("Swept %d empty room(s)", removed)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._rooms.clear()
            self._connections.clear()

    # --- Helpers ---

    def _seat(self, room: Room, participant: Participant) -> None:
        # caller holds room.lock
        room.players.append(participant)
        room.phase = "setup"
        with self._lock:
            self._connections[participant.connection_id] = room.code

    def _is_live(self, room: Room) -> bool:
        with self._lock:
            return self._rooms.get(room.code) is room

    def _fresh_code(self) -> RoomCode:
        # caller holds self._lock
        while True:
            code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            if code not in self._rooms:
                return code
