"""
Explicit validation & Pydantic models
- Inbound websocket commands are validated here before a handler runs.
- HTTP responses of the read-only query surface.
- The wire format is camelCase (what the browser client sends and reads);
  Python attributes stay snake_case through aliases.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .stats import PlayerStats

MIN_NUMBER_LENGTH = 3
MAX_NUMBER_LENGTH = 8


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _clean_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------- Inbound commands ----------------

# 1. createRoom / quickMatch: who is playing and how long the numbers are
class CreateRoomIn(CamelModel):
    player_name: Optional[str] = Field(None, description="Display name; a default is used when blank")
    number_length: Optional[int] = Field(
        None,
        ge=MIN_NUMBER_LENGTH,
        le=MAX_NUMBER_LENGTH,
        description="Digits per secret; server default when omitted",
    )

    @field_validator("player_name")
    @classmethod
    def strip_name(cls, value: Optional[str]) -> Optional[str]:
        return _clean_name(value)


class QuickMatchIn(CreateRoomIn):
    pass


# 2. joinRoom: the shared room code
class JoinRoomIn(CamelModel):
    code: str = Field(..., description="Room code, case-insensitive")
    player_name: Optional[str] = Field(None, description="Display name; a default is used when blank")

    @field_validator("player_name")
    @classmethod
    def strip_name(cls, value: Optional[str]) -> Optional[str]:
        return _clean_name(value)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, code: str) -> str:
        return code.strip().upper()


# 3. setSecret / makeGuess
class SetSecretIn(CamelModel):
    # Any: a non-string secret is rejected as InvalidNumber by the handler
    secret: Any = Field(None, description="Digit string with no repeated digits")


class MakeGuessIn(CamelModel):
    guess: Any = Field(None, description="Digit string with no repeated digits")


# 4. Chat
class ChatMessageIn(CamelModel):
    text: str = Field("", description="Message body; blank messages are dropped")

    @field_validator("text")
    @classmethod
    def strip_text(cls, text: str) -> str:
        return text.strip()


class ChatReactionIn(CamelModel):
    message_id: str = Field(..., description="Id of the chat message being reacted to")
    emoji: str = Field(..., min_length=1, description="Reaction symbol")


class PlayAgainIn(CamelModel):
    pass


# ---------------- HTTP responses ----------------

# 5. Stats for one player (zeros for names never seen)
class StatsOut(CamelModel):
    games_played: int = Field(..., description="Finished games")
    wins: int = Field(..., description="Games won")
    losses: int = Field(..., description="Games lost")
    win_streak: int = Field(..., description="Current consecutive wins")
    best_streak: int = Field(..., description="Best consecutive wins")
    last_played: Optional[int] = Field(None, description="Epoch ms of the last finished game")
    win_rate: int = Field(..., description="Percent of games won, rounded")

    @classmethod
    def from_stats(cls, stats: PlayerStats) -> "StatsOut":
        return cls(
            games_played=stats.games_played,
            wins=stats.wins,
            losses=stats.losses,
            win_streak=stats.win_streak,
            best_streak=stats.best_streak,
            last_played=stats.last_played,
            win_rate=stats.win_rate,
        )


# 6. Leaderboard row
class LeaderboardEntryOut(StatsOut):
    name: str = Field(..., description="Display name")

    @classmethod
    def from_entry(cls, name: str, stats: PlayerStats) -> "LeaderboardEntryOut":
        return cls(name=name, **StatsOut.from_stats(stats).model_dump())


# 7. Lobby counters
class OnlineOut(BaseModel):
    online: int = Field(..., description="Open game connections")
    rooms: int = Field(..., description="Live rooms")


# 8. Liveness
class HealthOut(BaseModel):
    status: str = Field("ok", description="Always 'ok' while the process serves requests")
    uptime: float = Field(..., description="Seconds since the app started")
    rooms: int = Field(..., description="Live rooms")
    players: int = Field(..., description="Open game connections")
