"""One review loop over a vocabulary set."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from vocabmaster.core.models import VocabularySet, Word, WordState, utcnow, word_identity
from vocabmaster.core.scheduler import SchedulingEngine
from vocabmaster.core.storage import ProgressStore

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    IDLE = "idle"
    PRESENTING = "presenting"
    REVEALED = "revealed"
    COMPLETE = "complete"


class InvalidTransition(Exception):
    """A session operation was called in a state that does not allow it."""


@dataclass
class AnswerResult:
    """Outcome of grading one word."""

    word_id: str
    correct: bool
    answered_at: datetime
    due_next: datetime
    interval_days: float
    ease_factor: float
    state: WordState


class LearningSession:
    """Drives Idle -> Presenting -> Revealed -> Presenting ... -> Complete.

    A completed session cannot be restarted; create a new one instead.
    """

    def __init__(
        self,
        vocab_set: VocabularySet,
        engine: SchedulingEngine,
        store: ProgressStore,
        set_key: str | None = None,
    ):
        self.vocab_set = vocab_set
        self.engine = engine
        self.store = store
        self.set_key = set_key or vocab_set.id
        self.state = SessionState.IDLE
        self.current_word: Word | None = None
        self.reviewed = 0

    @property
    def showing_answer(self) -> bool:
        return self.state == SessionState.REVEALED

    def _require(self, *allowed: SessionState) -> None:
        if self.state not in allowed:
            raise InvalidTransition(f"Cannot do that while session is {self.state}")

    def start(self, now: datetime | None = None) -> Word | None:
        self._require(SessionState.IDLE)
        return self.next_word(now)

    def next_word(self, now: datetime | None = None) -> Word | None:
        """Pick the next due word, or complete the session if none is due."""
        self._require(SessionState.IDLE, SessionState.PRESENTING)
        self.current_word = self.engine.get_next_word(self.vocab_set, now)
        if self.current_word is None:
            self._complete()
        else:
            self.state = SessionState.PRESENTING
        return self.current_word

    def show_answer(self) -> Word:
        self._require(SessionState.PRESENTING)
        self.state = SessionState.REVEALED
        return self.current_word

    def mark_correct(self, correct: bool, now: datetime | None = None) -> AnswerResult:
        """Grade the revealed word, record progress and move on."""
        self._require(SessionState.REVEALED)
        now = now or utcnow()
        word = self.current_word
        word_id = word_identity(word)

        word.stats.record_attempt(correct)
        word.stats.calculate_next_review(correct, now)
        self.store.progress.update_stats(correct)
        if correct:
            self.store.record_learned(self.set_key, word_id)
        self.store.save_user_progress()
        self.reviewed += 1

        result = AnswerResult(
            word_id=word_id,
            correct=correct,
            answered_at=now,
            due_next=word.stats.due_date,
            interval_days=word.stats.interval,
            ease_factor=word.stats.ease_factor,
            state=word.stats.state,
        )

        # Progress is recorded before the next pick so the answered word
        # is scheduled with its new due date.
        self.state = SessionState.PRESENTING
        self.next_word(now)
        return result

    def end(self) -> None:
        """Stop early; no further transitions are possible."""
        self._require(SessionState.IDLE, SessionState.PRESENTING, SessionState.REVEALED)
        self.current_word = None
        self._complete()

    def _complete(self) -> None:
        self.state = SessionState.COMPLETE
        self.store.progress.sessions_completed += 1
        self.store.save_all()
        logger.info("Session on %s complete after %d review(s)", self.set_key, self.reviewed)
