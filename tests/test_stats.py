"""
Testing the stats stores
- in-memory and JSON document stores share the same record rules
- record_result only touches memory; flush() does the durable write
- the JSON document is rewritten in full and survives a restart
- the SQLAlchemy store behaves the same against SQLite
- concurrent results for one player are never lost
"""

import json
from concurrent.futures import ThreadPoolExecutor

from decode.bootstrap_db import create_all
from decode.db import Base
from decode.repository import DBStatsStore
from decode.stats import JSONFileStatsStore, MemoryStatsStore, PlayerStats

PLAYERS = 40


def record_concurrently(store, flush=False):
    def play(i):
        store.record_result("Ana", f"X{i}")
        if flush:
            store.flush()

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(play, range(PLAYERS)))


def test_unknown_player_has_zero_stats(stats):
    record = stats.get("nobody")

    assert record == PlayerStats()
    assert record.win_rate == 0
    assert stats.leaderboard() == []


def test_record_result_updates_winner_and_loser(stats):
    winner, loser = stats.record_result("Ana", "Ben")

    assert (winner.games_played, winner.wins, winner.losses) == (1, 1, 0)
    assert (winner.win_streak, winner.best_streak) == (1, 1)
    assert (loser.games_played, loser.wins, loser.losses) == (1, 0, 1)
    assert loser.win_streak == 0
    assert winner.last_played is not None
    assert winner.win_rate == 100
    assert loser.win_rate == 0


def test_streaks_reset_on_loss_and_keep_best(stats):
    stats.record_result("Ana", "Ben")
    stats.record_result("Ana", "Ben")
    stats.record_result("Ben", "Ana")
    stats.record_result("Ana", "Ben")

    ana = stats.get("Ana")
    assert ana.wins == 3
    assert ana.losses == 1
    assert ana.win_streak == 1
    assert ana.best_streak == 2
    assert ana.win_rate == 75


def test_win_rate_rounds_half_up():
    assert PlayerStats(games_played=8, wins=1).win_rate == 13
    assert PlayerStats(games_played=3, wins=2).win_rate == 67
    assert PlayerStats(games_played=3, wins=1).win_rate == 33


def test_get_returns_a_copy(stats):
    stats.record_result("Ana", "Ben")

    stats.get("Ana").wins = 99

    assert stats.get("Ana").wins == 1


def test_leaderboard_orders_by_wins_then_win_rate():
    store = MemoryStatsStore({
        "few-games": PlayerStats(games_played=2, wins=2),
        "many-games": PlayerStats(games_played=10, wins=2),
        "champ": PlayerStats(games_played=5, wins=4),
        "rookie": PlayerStats(games_played=1, wins=0, losses=1),
    })

    names = [name for name, _ in store.leaderboard()]

    assert names == ["champ", "few-games", "many-games", "rookie"]
    assert len(store.leaderboard(limit=2)) == 2


def test_json_store_rewrites_document_and_reloads(tmp_path):
    path = tmp_path / "player-stats.json"
    store = JSONFileStatsStore(path)
    store.record_result("Ana", "Ben")
    assert store.dirty
    assert not path.exists()

    store.flush()

    assert not store.dirty
    document = json.loads(path.read_text(encoding="utf-8"))
    assert set(document) == {"Ana", "Ben"}
    assert document["Ana"]["wins"] == 1
    assert document["Ben"]["losses"] == 1
    assert "winRate" not in document["Ana"]  # derived, never stored

    reloaded = JSONFileStatsStore(path)
    assert reloaded.get("Ana").wins == 1
    assert reloaded.get("Ben").losses == 1


def test_json_store_starts_fresh_on_corrupt_file(tmp_path):
    path = tmp_path / "player-stats.json"
    path.write_text("{not json", encoding="utf-8")

    store = JSONFileStatsStore(path)

    assert store.leaderboard() == []


def test_json_store_keeps_results_pending_when_write_fails(tmp_path):
    # the target path is a directory, so os.replace fails
    path = tmp_path / "stats-dir"
    path.mkdir()
    store = JSONFileStatsStore(tmp_path / "missing.json")
    store.path = path

    winner, loser = store.record_result("Ana", "Ben")
    store.flush()

    assert winner.wins == 1
    assert store.get("Ana").wins == 1
    assert store.dirty

    store.path = tmp_path / "player-stats.json"
    store.flush()

    assert not store.dirty
    document = json.loads(store.path.read_text(encoding="utf-8"))
    assert document["Ana"]["wins"] == 1


def test_close_flushes_pending_results(tmp_path):
    path = tmp_path / "player-stats.json"
    store = JSONFileStatsStore(path)
    store.record_result("Ana", "Ben")

    store.close()

    assert JSONFileStatsStore(path).get("Ana").wins == 1


def test_db_store_flow(db_stats):
    assert db_stats.get("Ana") == PlayerStats()

    db_stats.record_result("Ana", "Ben")
    winner, loser = db_stats.record_result("Ana", "Ben")

    assert winner.wins == 2
    assert winner.win_streak == 2
    assert winner.best_streak == 2
    assert loser.losses == 2
    assert db_stats.get("Ben").games_played == 2
    assert [name for name, _ in db_stats.leaderboard()] == ["Ana", "Ben"]

    db_stats.flush()

    reloaded = DBStatsStore(db_stats.session_factory)
    assert reloaded.get("Ana").wins == 2
    assert reloaded.get("Ana").best_streak == 2
    assert reloaded.get("Ben").losses == 2


def test_db_store_same_name_on_both_sides_shares_a_record(db_stats):
    winner, loser = db_stats.record_result("Player", "Player")

    assert winner == loser
    assert winner.games_played == 2
    assert winner.wins == 1
    assert winner.losses == 1

    db_stats.flush()
    assert DBStatsStore(db_stats.session_factory).get("Player").games_played == 2


def test_db_store_keeps_results_pending_when_commit_fails(engine, db_stats):
    Base.metadata.drop_all(bind=engine)
    db_stats.record_result("Ana", "Ben")

    db_stats.flush()

    assert db_stats.dirty
    assert db_stats.get("Ana").wins == 1

    create_all(engine)
    db_stats.flush()

    assert not db_stats.dirty
    assert DBStatsStore(db_stats.session_factory).get("Ana").wins == 1


def test_concurrent_results_for_one_player_are_all_counted():
    store = MemoryStatsStore()

    record_concurrently(store)

    ana = store.get("Ana")
    assert ana.games_played == PLAYERS
    assert ana.wins == PLAYERS
    assert ana.win_streak == PLAYERS
    assert len(store.leaderboard(limit=PLAYERS + 1)) == PLAYERS + 1


def test_concurrent_results_and_flushes_reach_the_database(db_stats):
    record_concurrently(db_stats, flush=True)
    db_stats.flush()

    ana = DBStatsStore(db_stats.session_factory).get("Ana")
    assert ana.games_played == PLAYERS
    assert ana.wins == PLAYERS
    assert not db_stats.dirty
