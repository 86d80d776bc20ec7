"""
Session coordinator: the game's state machine.

Every inbound frame names a command. The command's schema validates the
payload, then its handler runs with the issuing connection id and returns
the events to send. Nothing is emitted inline, so the whole game can be
driven without a socket.

Phases: waiting -> setup -> playing -> finished, and back to setup on
playAgain. A command that arrives in a phase where it no longer applies
(a late guess, a secret after the game started) returns no events.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from .engine import compute_feedback, is_valid_number, is_win
from .errors import GameError, InvalidMessage, InvalidNumber, NotYourTurn, RoomFull, RoomNotFound
from .schemas import (
    ChatMessageIn,
    ChatReactionIn,
    CreateRoomIn,
    JoinRoomIn,
    MakeGuessIn,
    PlayAgainIn,
    QuickMatchIn,
    SetSecretIn,
)
from .stats import PlayerStats, StatsStore
from .store import ChatMessage, GuessEntry, Participant, Room, RoomRegistry
from .types import ConnectionId

log = logging.getLogger(__name__)

HOST_DEFAULT_NAME = "Player 1"
GUEST_DEFAULT_NAME = "Player 2"


@dataclass(frozen=True)
class Outbound:
    """One event for one or more connections."""

    targets: Tuple[ConnectionId, ...]
    event: str
    data: dict = field(default_factory=dict)

    def frame(self) -> dict:
        return {"type": self.event, **self.data}


def to_one(connection_id: ConnectionId, event: str, data: Optional[dict] = None) -> Outbound:
    return Outbound((connection_id,), event, data or {})


def to_room(room: Room, event: str, data: Optional[dict] = None) -> Outbound:
    # the broadcast group is whoever sits in the room right now
    return Outbound(room.connection_ids(), event, data or {})


@dataclass
class Context:
    registry: RoomRegistry
    stats: StatsStore
    default_number_length: int = 4


Handler = Callable[[ConnectionId, BaseModel, Context], List[Outbound]]


class Command(NamedTuple):
    schema: Type[BaseModel]
    handler: Handler


# ---------------- Helpers ----------------

def _turn_update(room: Room) -> Outbound:
    player = room.current_player()
    return to_room(room, "turnUpdate", {
        "currentTurn": player.name,
        "currentTurnSocketId": player.connection_id,
    })


def _paired_events(room: Room, connection_id: ConnectionId) -> List[Outbound]:
    # caller holds room.lock
    me = room.participant(connection_id)
    opponent = room.opponent_of(connection_id)
    if me is None or opponent is None:
        return []
    return [
        to_one(connection_id, "roomJoined", {
            "code": room.code,
            "numberLength": room.number_length,
            "playerIndex": room.index_of(connection_id),
            "opponentName": opponent.name,
        }),
        to_one(opponent.connection_id, "opponentJoined", {"opponentName": me.name}),
        to_room(room, "phaseChange", {"phase": "setup", "numberLength": room.number_length}),
    ]


def _name_keys(room: Room) -> List[str]:
    """Display names as gameOver keys; a repeated name gets its seat number appended."""
    keys: List[str] = []
    for index, player in enumerate(room.players):
        key = player.name
        if key in keys:
            key = f"{player.name} ({index + 1})"
        keys.append(key)
    return keys


def _leave_current_room(connection_id: ConnectionId, ctx: Context) -> List[Outbound]:
    room = ctx.registry.remove_participant(connection_id)
    if room is None:
        return []
    with room.lock:
        if not room.players:
            return []
        return [to_room(room, "opponentDisconnected")]


def _record_result(ctx: Context, winner: str, loser: str) -> Tuple[PlayerStats, PlayerStats]:
    try:
        return ctx.stats.record_result(winner, loser)
    except Exception:
        log.exception("Could not record result %s beat %s", winner, loser)
        return PlayerStats(), PlayerStats()


# ---------------- Lobby commands ----------------

def create_room(connection_id: ConnectionId, payload: CreateRoomIn, ctx: Context) -> List[Outbound]:
    events = _leave_current_room(connection_id, ctx)
    number_length = payload.number_length or ctx.default_number_length
    participant = Participant(connection_id, payload.player_name or HOST_DEFAULT_NAME)

    room = ctx.registry.create_room(number_length, participant)
    events.append(to_one(connection_id, "roomCreated", {
        "code": room.code,
        "numberLength": room.number_length,
        "playerIndex": 0,
    }))
    return events


def join_room(connection_id: ConnectionId, payload: JoinRoomIn, ctx: Context) -> List[Outbound]:
    current = ctx.registry.resolve_by_connection(connection_id)
    if current is not None and current.code == payload.code:
        return []

    # Check before leaving the current room so a failed join changes nothing
    target = ctx.registry.get(payload.code)
    if target is None:
        raise RoomNotFound()
    with target.lock:
        if target.is_full():
            raise RoomFull()

    events = _leave_current_room(connection_id, ctx)
    participant = Participant(connection_id, payload.player_name or GUEST_DEFAULT_NAME)
    room = ctx.registry.join_room(payload.code, participant)
    with room.lock:
        events.extend(_paired_events(room, connection_id))
    return events


def quick_match(connection_id: ConnectionId, payload: QuickMatchIn, ctx: Context) -> List[Outbound]:
    events = _leave_current_room(connection_id, ctx)
    number_length = payload.number_length or ctx.default_number_length
    participant = Participant(connection_id, payload.player_name or "")

    room, paired = ctx.registry.quick_match(number_length, participant)
    with room.lock:
        if not participant.name:
            participant.name = GUEST_DEFAULT_NAME if paired else HOST_DEFAULT_NAME
        if paired:
            events.extend(_paired_events(room, connection_id))
        else:
            events.append(to_one(connection_id, "quickMatchWaiting", {
                "code": room.code,
                "numberLength": room.number_length,
            }))
    return events


# ---------------- Game commands ----------------

def set_secret(connection_id: ConnectionId, payload: SetSecretIn, ctx: Context) -> List[Outbound]:
    with ctx.registry.with_connection(connection_id) as room:
        if room is None or room.phase != "setup":
            return []

        if not is_valid_number(payload.secret, room.number_length):
            raise InvalidNumber(room.number_length)

        # a second secret in the same round replaces the first
        player = room.participant(connection_id)
        player.secret = payload.secret
        events = [to_one(connection_id, "secretSet", {"success": True})]

        opponent = room.opponent_of(connection_id)
        if opponent is not None:
            events.append(to_one(opponent.connection_id, "opponentReady"))

        if room.all_secrets_set():
            room.phase = "playing"
            room.turn = 0
            events.append(to_room(room, "phaseChange", {"phase": "playing"}))
            events.append(_turn_update(room))
            log.info("Room %s: both secrets set, game started", room.code)
        return events


def make_guess(connection_id: ConnectionId, payload: MakeGuessIn, ctx: Context) -> List[Outbound]:
    with ctx.registry.with_connection(connection_id) as room:
        if room is None or room.phase != "playing":
            return []

        current = room.current_player()
        if current.connection_id != connection_id:
            raise NotYourTurn()

        if not is_valid_number(payload.guess, room.number_length):
            raise InvalidNumber(room.number_length)

        # The player guesses the OPPONENT's secret
        opponent_index = 1 - room.turn
        opponent = room.players[opponent_index]
        correct_position, correct_digit = compute_feedback(opponent.secret, payload.guess)

        current.guesses.append(GuessEntry(
            guess=payload.guess,
            correct_digit=correct_digit,
            correct_position=correct_position,
        ))
        events = [to_room(room, "guessResult", {
            "playerName": current.name,
            "playerSocketId": current.connection_id,
            "guess": payload.guess,
            "correctDigit": correct_digit,
            "correctPosition": correct_position,
            "guessNumber": len(current.guesses),
        })]

        if is_win(opponent.secret, payload.guess):
            room.phase = "finished"
            room.winner = current.name
            winner_stats, loser_stats = _record_result(ctx, current.name, opponent.name)

            keys = _name_keys(room)
            events.append(to_room(room, "gameOver", {
                "winner": current.name,
                "winnerSocketId": current.connection_id,
                "secrets": {key: p.secret for key, p in zip(keys, room.players)},
                "totalGuesses": {key: len(p.guesses) for key, p in zip(keys, room.players)},
                "stats": {
                    keys[room.turn]: winner_stats.to_public(),
                    keys[opponent_index]: loser_stats.to_public(),
                },
            }))
            log.info("Room %s: %s won in %d guesses", room.code, current.name, len(current.guesses))
            return events

        # Switch turns
        room.turn = opponent_index
        events.append(_turn_update(room))
        return events


def play_again(connection_id: ConnectionId, payload: PlayAgainIn, ctx: Context) -> List[Outbound]:
    with ctx.registry.with_connection(connection_id) as room:
        # setup needs two players; an orphaned player waits for a new opponent instead
        if room is None or len(room.players) < 2:
            return []

        room.reset_round()
        log.info("Room %s: rematch", room.code)
        return [
            to_room(room, "phaseChange", {"phase": "setup", "numberLength": room.number_length}),
            to_room(room, "gameReset"),
        ]


# ---------------- Chat ----------------

def chat_message(connection_id: ConnectionId, payload: ChatMessageIn, ctx: Context) -> List[Outbound]:
    with ctx.registry.with_connection(connection_id) as room:
        if room is None or not payload.text:
            return []

        player = room.participant(connection_id)
        message = ChatMessage(sender=player.name, sender_connection_id=connection_id, text=payload.text)
        room.chat.append(message)
        return [to_room(room, "chatMessage", message.to_event())]


def chat_reaction(connection_id: ConnectionId, payload: ChatReactionIn, ctx: Context) -> List[Outbound]:
    with ctx.registry.with_connection(connection_id) as room:
        if room is None:
            return []

        message = room.find_message(payload.message_id)
        if message is None:
            return []

        player = room.participant(connection_id)
        message.toggle_reaction(payload.emoji, player.name)
        return [to_room(room, "chatReactionUpdate", {
            "messageId": message.id,
            "reactions": message.to_event()["reactions"],
        })]


COMMANDS: Dict[str, Command] = {
    "createRoom": Command(CreateRoomIn, create_room),
    "joinRoom": Command(JoinRoomIn, join_room),
    "quickMatch": Command(QuickMatchIn, quick_match),
    "setSecret": Command(SetSecretIn, set_secret),
    "makeGuess": Command(MakeGuessIn, make_guess),
    "chatMessage": Command(ChatMessageIn, chat_message),
    "chatReaction": Command(ChatReactionIn, chat_reaction),
    "playAgain": Command(PlayAgainIn, play_again),
}


class Coordinator:
    """Entry point for the transport: connect, dispatch frames, disconnect."""

    def __init__(self, registry: RoomRegistry, stats: StatsStore, default_number_length: int = 4):
        self.context = Context(registry, stats, default_number_length)

    def connect(self, connection_id: ConnectionId) -> List[Outbound]:
        return [to_one(connection_id, "connected", {"connectionId": connection_id})]

    def dispatch(self, connection_id: ConnectionId, message) -> List[Outbound]:
        try:
            if not isinstance(message, dict):
                raise InvalidMessage()
            name = message.get("type")
            command = COMMANDS.get(name) if isinstance(name, str) else None
            if command is None:
                raise InvalidMessage(f"Unknown command: {name!r}")
            try:
                payload = command.schema.model_validate(message)
            except ValidationError as exc:
                log.debug("Bad %s payload from %s: %s", name, connection_id, exc)
                raise InvalidMessage()
            return command.handler(connection_id, payload, self.context)
        except GameError as exc:
            return [to_one(connection_id, "error", {"message": exc.message})]

    def disconnect(self, connection_id: ConnectionId) -> List[Outbound]:
        events = _leave_current_room(connection_id, self.context)
        log.info("Player disconnected: %s", connection_id)
        return events
