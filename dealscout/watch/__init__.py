# dealscout/watch/__init__.py
from .config import WatchlistRepository
from .notifier import Notifier
from .scheduler import AsyncioTimerService, WatchlistScheduler, WatchQueue, parse_schedule
from .snapshots import SnapshotStore, diff_snapshots
from .worker import WatchlistWorker

__all__ = [
    "AsyncioTimerService",
    "Notifier",
    "SnapshotStore",
    "WatchQueue",
    "WatchlistRepository",
    "WatchlistScheduler",
    "WatchlistWorker",
    "diff_snapshots",
    "parse_schedule",
]
