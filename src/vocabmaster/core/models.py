"""Pydantic models for vocabulary sets, words and review statistics."""

import hashlib
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, Field

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
EASE_PENALTY = 0.2

# Thresholds for deriving WordState
MASTERY_ATTEMPTS = 5
MASTERY_EASE_FACTOR = 2.0


def utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class WordState(StrEnum):
    """Learning state of a word, derived from its review stats."""

    NEW = "new"
    LEARNING = "learning"
    MASTERED = "mastered"


class ReviewStats(BaseModel):
    """Per-word review history and due-date arithmetic."""

    attempts: int = Field(default=0, ge=0)
    correct: int = Field(default=0, ge=0)
    ease_factor: float = Field(default=DEFAULT_EASE_FACTOR, ge=MIN_EASE_FACTOR)
    interval: float = Field(default=1.0, ge=1.0)
    due_date: datetime = Field(default_factory=utcnow)
    last_reviewed: datetime | None = None

    def calculate_next_review(self, correct: bool, now: datetime | None = None) -> None:
        """Update the schedule after an answer.

        Counters are not touched here; the session records the attempt.
        """
        now = now or utcnow()
        if correct:
            self.interval = self.interval * self.ease_factor
        else:
            self.interval = 1.0
            self.ease_factor = max(MIN_EASE_FACTOR, self.ease_factor - EASE_PENALTY)
        self.due_date = now + timedelta(days=self.interval)
        self.last_reviewed = now

    def record_attempt(self, correct: bool) -> None:
        self.attempts += 1
        if correct:
            self.correct += 1

    @property
    def state(self) -> WordState:
        if self.attempts == 0:
            return WordState.NEW
        if self.attempts >= MASTERY_ATTEMPTS and self.ease_factor >= MASTERY_EASE_FACTOR:
            return WordState.MASTERED
        return WordState.LEARNING

    def is_due(self, now: datetime) -> bool:
        return self.due_date <= now


class Word(BaseModel):
    """A vocabulary entry with its review stats."""

    target: str
    native: str
    examples: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    transliteration: str = ""
    image: str = ""
    id: str | None = None
    stats: ReviewStats = Field(default_factory=ReviewStats)


def word_identity(word: Word) -> str:
    """Stable identifier used for learned-progress tracking.

    Falls back to a digest of the word content so the identifier survives
    reloads of the same source data.
    """
    if word.id:
        return word.id
    if word.target:
        return word.target
    digest = hashlib.sha1("\x1f".join([word.native, *word.examples]).encode("utf-8"))
    return f"word-{digest.hexdigest()[:12]}"


class VocabMetadata(BaseModel):
    """Creation metadata for a vocabulary set."""

    created: datetime = Field(default_factory=utcnow)
    version: str = "1.0"
    difficulty: str = "beginner"


class VocabularySet(BaseModel):
    """An ordered collection of words in one language."""

    id: str
    name: str
    language: str = "unknown"
    words: list[Word] = Field(default_factory=list)
    metadata: VocabMetadata = Field(default_factory=VocabMetadata)


class UserProgress(BaseModel):
    """Aggregate counters across every answered review."""

    words_learned: int = 0
    sessions_completed: int = 0
    total_attempts: int = 0
    correct_attempts: int = 0

    def update_stats(self, correct: bool) -> None:
        self.total_attempts += 1
        if correct:
            self.correct_attempts += 1
            self.words_learned += 1

    @property
    def accuracy(self) -> float:
        """Percentage of correct attempts (0.0 when nothing was answered)."""
        if self.total_attempts == 0:
            return 0.0
        return self.correct_attempts / self.total_attempts * 100

    def get_stats(self) -> dict:
        """Counters plus derived accuracy, in the persisted camelCase shape."""
        return {
            "wordsLearned": self.words_learned,
            "sessionsCompleted": self.sessions_completed,
            "totalAttempts": self.total_attempts,
            "correctAttempts": self.correct_attempts,
            "accuracy": self.accuracy,
        }

    @classmethod
    def from_stats(cls, data: dict) -> "UserProgress":
        """Build from a persisted stats object; unknown keys are ignored."""
        return cls(
            words_learned=int(data.get("wordsLearned", 0)),
            sessions_completed=int(data.get("sessionsCompleted", 0)),
            total_attempts=int(data.get("totalAttempts", 0)),
            correct_attempts=int(data.get("correctAttempts", 0)),
        )
