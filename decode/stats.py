"""
Player statistics.

Records are keyed by display name, the same weak identity the lobby uses:
two people typing the same name share one record.

StatsStore is the interface the coordinator and the HTTP routes talk to.
- MemoryStatsStore: in-process only
- JSONFileStatsStore: one JSON document, rewritten in full on every flush
- DBStatsStore (repository.py): SQLAlchemy table, changed rows upserted on flush

The websocket endpoint flushes in a worker thread after each finished game.
Persistence failures are logged and the records stay pending for the next
flush; the updated in-memory record is what the players see.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path
from threading import Lock, RLock
from typing import Dict, List, Optional, Set, Tuple

from .store import now_ms

log = logging.getLogger(__name__)


@dataclass
class PlayerStats:
    games_played: int = 0
    wins: int = 0
    losses: int = 0
    win_streak: int = 0
    best_streak: int = 0
    last_played: Optional[int] = None

    @property
    def win_rate(self) -> int:
        if self.games_played <= 0:
            return 0
        # halves round up (2 of 3 -> 67, 1 of 8 -> 13)
        return int(100 * self.wins / self.games_played + 0.5)

    def record_win(self, when: int) -> None:
        self.games_played += 1
        self.wins += 1
        self.win_streak += 1
        if self.win_streak > self.best_streak:
            self.best_streak = self.win_streak
        self.last_played = when

    def record_loss(self, when: int) -> None:
        self.games_played += 1
        self.losses += 1
        self.win_streak = 0
        self.last_played = when

    def to_document(self) -> dict:
        return {
            "gamesPlayed": self.games_played,
            "wins": self.wins,
            "losses": self.losses,
            "winStreak": self.win_streak,
            "bestStreak": self.best_streak,
            "lastPlayed": self.last_played,
        }

    def to_public(self) -> dict:
        public = self.to_document()
        public["winRate"] = self.win_rate
        return public

    @classmethod
    def from_document(cls, data: dict) -> "PlayerStats":
        return cls(
            games_played=int(data.get("gamesPlayed", 0)),
            wins=int(data.get("wins", 0)),
            losses=int(data.get("losses", 0)),
            win_streak=int(data.get("winStreak", 0)),
            best_streak=int(data.get("bestStreak", 0)),
            last_played=data.get("lastPlayed"),
        )


def rank(entries: List[Tuple[str, PlayerStats]], limit: int) -> List[Tuple[str, PlayerStats]]:
    """Wins desc, then win rate desc. Stable for ties."""
    ordered = sorted(entries, key=lambda entry: (-entry[1].wins, -entry[1].win_rate))
    return ordered[:limit]


class StatsStore(ABC):
    """
    Interface. record_result only touches memory, so it is safe to call on
    the event loop; flush() does the durable write and belongs in a worker
    thread. Implementations serialize read-modify-write per record.
    """

    @abstractmethod
    def get(self, name: str) -> PlayerStats:
        ...

    @abstractmethod
    def record_result(self, winner: str, loser: str) -> Tuple[PlayerStats, PlayerStats]:
        ...

    @abstractmethod
    def leaderboard(self, limit: int = 20) -> List[Tuple[str, PlayerStats]]:
        ...

    @property
    @abstractmethod
    def dirty(self) -> bool:
        """True while results are waiting for flush()."""

    @abstractmethod
    def flush(self) -> None:
        ...

    def close(self) -> None:
        self.flush()


class MemoryStatsStore(StatsStore):
    """
    Records live in a dict behind one lock. Subclasses override _write to
    persist the names touched since the last flush.
    """

    def __init__(self, initial: Optional[Dict[str, PlayerStats]] = None) -> None:
        self._stats: Dict[str, PlayerStats] = dict(initial or {})
        self._dirty: Set[str] = set()
        self._lock = RLock()
        # one writer at a time, so an older snapshot never lands after a newer one
        self._flush_lock = Lock()

    def get(self, name: str) -> PlayerStats:
        with self._lock:
            stats = self._stats.get(name)
            # hand out copies so callers never mutate the stored record
            return replace(stats) if stats else PlayerStats()

    def record_result(self, winner: str, loser: str) -> Tuple[PlayerStats, PlayerStats]:
        when = now_ms()
        with self._lock:
            winner_stats = self._stats.setdefault(winner, PlayerStats())
            winner_stats.record_win(when)
            loser_stats = self._stats.setdefault(loser, PlayerStats())
            loser_stats.record_loss(when)
            self._dirty.update((winner, loser))
            return replace(winner_stats), replace(loser_stats)

    def leaderboard(self, limit: int = 20) -> List[Tuple[str, PlayerStats]]:
        with self._lock:
            entries = [(name, replace(stats)) for name, stats in self._stats.items()]
        return rank(entries, limit)

    @property
    def dirty(self) -> bool:
        with self._lock:
            return bool(self._dirty)

    def flush(self) -> None:
        with self._flush_lock:
            with self._lock:
                if not self._dirty:
                    return
                changed = {name: replace(self._stats[name]) for name in self._dirty}
                snapshot = {name: replace(stats) for name, stats in self._stats.items()}
                self._dirty.clear()
            if not self._write(changed, snapshot):
                # keep them pending; the next flush retries
                with self._lock:
                    self._dirty.update(changed)

    def _write(self, changed: Dict[str, PlayerStats], snapshot: Dict[str, PlayerStats]) -> bool:
        return True


class JSONFileStatsStore(MemoryStatsStore):
    def __init__(self, path) -> None:
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> Dict[str, PlayerStats]:
        if not self.path.exists():
            log.info("No stats file at %s, starting fresh.", self.path)
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            loaded = {name: PlayerStats.from_document(record) for name, record in data.items()}
        except (OSError, ValueError, AttributeError, TypeError) as exc:
            log.warning("Could not read stats file %s (%s), starting fresh.", self.path, exc)
            return {}
        log.info("Loaded stats for %d players.", len(loaded))
        return loaded

    def _write(self, changed: Dict[str, PlayerStats], snapshot: Dict[str, PlayerStats]) -> bool:
        # whole document is rewritten every time
        document = {name: stats.to_document() for name, stats in snapshot.items()}
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            if self.path.parent and not self.path.parent.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            log.warning("Failed to save stats to %s: %s", self.path, exc)
            return False
        return True
