"""Core library for VocabMaster."""

from vocabmaster.core.aliases import canonicalize, path_variants
from vocabmaster.core.metrics import ProgressMetrics
from vocabmaster.core.models import (
    ReviewStats,
    UserProgress,
    VocabularySet,
    Word,
    WordState,
    word_identity,
)
from vocabmaster.core.scheduler import SchedulingEngine
from vocabmaster.core.session import AnswerResult, InvalidTransition, LearningSession, SessionState
from vocabmaster.core.storage import (
    JsonFileBackend,
    KeyValueBackend,
    MemoryBackend,
    ProgressStore,
    SQLiteBackend,
    StorageUnavailable,
)
from vocabmaster.core.vocab import VocabFormatError, load_vocab_file

__all__ = [
    # Models
    "ReviewStats",
    "UserProgress",
    "VocabularySet",
    "Word",
    "WordState",
    "word_identity",
    # Scheduling
    "SchedulingEngine",
    # Storage
    "JsonFileBackend",
    "KeyValueBackend",
    "MemoryBackend",
    "ProgressStore",
    "SQLiteBackend",
    "StorageUnavailable",
    "canonicalize",
    "path_variants",
    # Session
    "AnswerResult",
    "InvalidTransition",
    "LearningSession",
    "SessionState",
    # Sources and metrics
    "ProgressMetrics",
    "VocabFormatError",
    "load_vocab_file",
]
