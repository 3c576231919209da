from .base import Base
from .records import SNAPSHOT_VERSION, Question, HistoryEntry, Memo, Snapshot
from .question import QuestionRow
from .history import HistoryRow
from .memo import MemoRow
from .cache import CacheEntry

__all__ = [
    "Base",
    "SNAPSHOT_VERSION",
    "Question",
    "HistoryEntry",
    "Memo",
    "Snapshot",
    "QuestionRow",
    "HistoryRow",
    "MemoRow",
    "CacheEntry",
]
