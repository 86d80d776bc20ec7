"""
DB-backed stats store that mirrors the StatsStore interface.

Public methods:
- get(name) -> PlayerStats
- record_result(winner, loser) -> (PlayerStats, PlayerStats)
- leaderboard(limit) -> [(name, PlayerStats)]
- flush() -> upsert the rows touched since the last flush, one commit

Reads are served from the records loaded at startup, so only flush() talks
to the database after that. Lets the server switch from the JSON file to a
database without changing the coordinator or the HTTP routes.
"""

from __future__ import annotations

import logging
from typing import Dict

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .models import PlayerStatsRow
from .stats import MemoryStatsStore, PlayerStats

log = logging.getLogger(__name__)


class DBStatsStore(MemoryStatsStore):
    """StatsStore on top of the player_stats table. One short session per flush."""

    def __init__(self, session_factory: sessionmaker, engine=None):
        self.session_factory = session_factory
        self.engine = engine
        super().__init__(self._load())

    def _load(self) -> Dict[str, PlayerStats]:
        with self.session_factory() as db:
            rows = db.execute(select(PlayerStatsRow)).scalars().all()
            loaded = {row.name: row.to_stats() for row in rows}
        log.info("Loaded stats for %d players from the database.", len(loaded))
        return loaded

    def _write(self, changed: Dict[str, PlayerStats], snapshot: Dict[str, PlayerStats]) -> bool:
        with self.session_factory() as db:
            try:
                for name, stats in changed.items():
                    row = db.get(PlayerStatsRow, name)
                    if row is None:
                        row = PlayerStatsRow(name=name)
                        db.add(row)
                    row.apply(stats)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                log.warning("Failed to save stats for %s: %s", ", ".join(sorted(changed)), exc)
                return False
        return True

    def close(self) -> None:
        super().close()
        if self.engine is not None:
            self.engine.dispose()
