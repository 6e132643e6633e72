"""Priority-based selection of the next word to review."""

from datetime import datetime

from vocabmaster.core.models import DEFAULT_EASE_FACTOR, VocabularySet, Word, utcnow

# Heuristic weights, kept as-is for compatibility with existing schedules
EASE_WEIGHT = 10
ATTEMPTS_WEIGHT = 5


class SchedulingEngine:
    """Selects the next due word from a vocabulary set.

    This is a spaced-repetition approximation, not SM-2. Overdue time
    (in milliseconds) dominates the score, a lowered ease factor surfaces
    harder words sooner, and each recorded attempt pushes a word back so
    that heavily drilled words do not starve new material.
    """

    def due_words(self, vocab_set: VocabularySet, now: datetime | None = None) -> list[Word]:
        """Words whose due date has passed, in set order."""
        now = now or utcnow()
        return [word for word in vocab_set.words if word.stats.is_due(now)]

    def get_next_word(self, vocab_set: VocabularySet, now: datetime | None = None) -> Word | None:
        """Return the highest-priority due word, or None if nothing is due.

        Ties go to the word that comes first in the set.
        """
        now = now or utcnow()
        best: Word | None = None
        best_priority = float("-inf")
        for word in self.due_words(vocab_set, now):
            priority = self.word_priority(word, now)
            if priority > best_priority:
                best = word
                best_priority = priority
        return best

    def word_priority(self, word: Word, now: datetime | None = None) -> float:
        now = now or utcnow()
        stats = word.stats
        overdue_ms = max(0.0, (now - stats.due_date).total_seconds() * 1000)
        ease_penalty = (DEFAULT_EASE_FACTOR - stats.ease_factor) * EASE_WEIGHT
        practice_bonus = stats.attempts * ATTEMPTS_WEIGHT
        return overdue_ms + ease_penalty - practice_bonus
