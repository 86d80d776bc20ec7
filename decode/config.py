import os

from dotenv import load_dotenv

# Dev convenience: pick up a local .env; in prod the platform injects env vars
load_dotenv()


class Config:
    APP_ENV = os.environ.get('APP_ENV', 'local')
    HOST = os.environ.get('HOST', '0.0.0.0')
    PORT = int(os.environ.get('PORT', '3000'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
    # Where player stats live: file (JSON document), db (SQLAlchemy) or memory
    STATS_BACKEND = os.environ.get('STATS_BACKEND', 'file').lower()
    STATS_FILE = os.environ.get('STATS_FILE', 'player-stats.json')
    DATABASE_URL = os.environ.get('DATABASE_URL')
    # Empty-room sweep interval (seconds). 0 disables.
    CLEANUP_INTERVAL_SEC = int(os.environ.get('CLEANUP_INTERVAL_SEC', '60'))
    # Used when a createRoom/quickMatch omits numberLength
    DEFAULT_NUMBER_LENGTH = int(os.environ.get('DEFAULT_NUMBER_LENGTH', '4'))
    LEADERBOARD_SIZE = int(os.environ.get('LEADERBOARD_SIZE', '20'))
    # Frames queued per connection before a client that stopped reading is dropped
    OUTBOX_SIZE = int(os.environ.get('OUTBOX_SIZE', '256'))
