"""Progress metrics for display."""

from vocabmaster.core.models import VocabularySet, WordState
from vocabmaster.core.storage import ProgressStore


class ProgressMetrics:
    """Computes learning progress figures from the store and loaded sets."""

    def __init__(self, store: ProgressStore):
        self.store = store

    def set_summary(self, vocab_set: VocabularySet) -> dict[str, int]:
        """Word counts for one set.

        ``learning`` counts words answered at least once in this process;
        ``learned`` is the persisted learned-id record for the set.
        """
        states = [word.stats.state for word in vocab_set.words]
        return {
            "total": len(vocab_set.words),
            "learning": sum(1 for s in states if s != WordState.NEW),
            "learned": len(self.store.learned_ids(vocab_set.id)),
            "mastered": sum(1 for s in states if s == WordState.MASTERED),
        }

    def words_learned(self) -> int:
        """Learned ids across sets, or the aggregate counter if none are recorded."""
        if self.store.has_learned_progress():
            return self.store.total_learned_across_sets()
        return self.store.progress.words_learned

    def accuracy(self) -> float:
        return self.store.progress.accuracy
