"""
SQLAlchemy ORM models for the database-backed stats store.

Tables:
- player_stats: one row per display name (the same key the JSON document uses)
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base
from .stats import PlayerStats


class PlayerStatsRow(Base):
    __tablename__ = "player_stats"

    # Display name, not an account id
    name: Mapped[str] = mapped_column(String(64), primary_key=True)

    games_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    win_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Epoch milliseconds, same as the JSON document
    last_played: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    def to_stats(self) -> PlayerStats:
        return PlayerStats(
            games_played=self.games_played or 0,
            wins=self.wins or 0,
            losses=self.losses or 0,
            win_streak=self.win_streak or 0,
            best_streak=self.best_streak or 0,
            last_played=self.last_played,
        )

    def apply(self, stats: PlayerStats) -> None:
        self.games_played = stats.games_played
        self.wins = stats.wins
        self.losses = stats.losses
        self.win_streak = stats.win_streak
        self.best_streak = stats.best_streak
        self.last_played = stats.last_played
