"""Tests for VocabMaster storage."""

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from vocabmaster.config import Settings
from vocabmaster.core.aliases import vocab_key
from vocabmaster.core.storage import (
    USER_ID_KEY,
    JsonFileBackend,
    MemoryBackend,
    ProgressStore,
    SQLiteBackend,
    StorageUnavailable,
    create_backend,
    get_or_create_user_id,
)

USER = "u-test"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(params=["memory", "json", "sqlite"])
def backend(request, temp_dir):
    """Each backend implementation, in turn."""
    if request.param == "memory":
        return MemoryBackend()
    if request.param == "json":
        return JsonFileBackend(temp_dir / "progress")
    return SQLiteBackend(temp_dir / "vocabmaster.db")


@pytest.fixture
def memory():
    return MemoryBackend()


@pytest.fixture
def store(memory):
    return ProgressStore(memory, USER)


class TestBackends:
    """Contract tests shared by every backend."""

    def test_missing_key_is_none(self, backend):
        assert backend.load("nope") is None

    def test_save_and_load(self, backend):
        backend.save("u-1:vocab:src/vocab/de.json", {"learnedIds": ["a", "b"]})
        assert backend.load("u-1:vocab:src/vocab/de.json") == {"learnedIds": ["a", "b"]}

    def test_overwrite(self, backend):
        backend.save("k", {"v": 1})
        backend.save("k", {"v": 2})
        assert backend.load("k") == {"v": 2}

    def test_keys_and_delete(self, backend):
        backend.save("a", 1)
        backend.save("b:vocab:x/y.json", 2)
        assert sorted(backend.keys()) == ["a", "b:vocab:x/y.json"]

        backend.delete("a")
        backend.delete("missing")
        assert backend.keys() == ["b:vocab:x/y.json"]

    def test_unicode_round_trip(self, backend):
        backend.save("k", {"learnedIds": ["¡Hola!", "日本語"]})
        assert backend.load("k") == {"learnedIds": ["¡Hola!", "日本語"]}


class TestCorruptPayloads:
    def test_json_file_corrupt_is_absent(self, temp_dir):
        backend = JsonFileBackend(temp_dir)
        backend.save("k", {"ok": True})
        next(temp_dir.glob("*.json")).write_text("{not json")
        assert backend.load("k") is None

    def test_sqlite_corrupt_is_absent(self, temp_dir):
        backend = SQLiteBackend(temp_dir / "db.sqlite")
        with backend._connection() as conn:
            conn.execute("INSERT INTO kv_store (key, value) VALUES ('k', '{broken')")
        assert backend.load("k") is None

    def test_json_file_invalid_utf8_is_absent(self, temp_dir):
        backend = JsonFileBackend(temp_dir)
        backend.save("k", {"ok": True})
        next(temp_dir.glob("*.json")).write_bytes(b'{"learnedIds": ["\xff\xfe"]}')
        assert backend.load("k") is None

    def test_store_ignores_undecodable_record(self, temp_dir):
        backend = JsonFileBackend(temp_dir)
        store = ProgressStore(backend, USER)
        backend.save(vocab_key(USER, "set-a"), {"learnedIds": ["w1"]})
        next(temp_dir.glob("*.json")).write_bytes(b'{"learnedIds": ["\xff\xfe"]}')

        store.load_for_path("set-a")
        assert store.learned_ids("set-a") == frozenset()

    def test_memory_corrupt_is_absent(self, memory):
        memory._data["k"] = "{broken"
        assert memory.load("k") is None


class TestCreateBackend:
    def test_json(self, temp_dir):
        backend = create_backend(Settings(state_dir=temp_dir, backend="json"))
        assert isinstance(backend, JsonFileBackend)

    def test_sqlite(self, temp_dir):
        backend = create_backend(Settings(state_dir=temp_dir, backend="sqlite"))
        assert isinstance(backend, SQLiteBackend)
        assert (temp_dir / "vocabmaster.db").exists()


class TestUserId:
    def test_created_once(self, memory):
        first = get_or_create_user_id(memory)
        assert first.startswith("u-")
        assert get_or_create_user_id(memory) == first
        assert memory.load(USER_ID_KEY) == first

    def test_unavailable_falls_back(self, memory):
        with patch.object(memory, "load", side_effect=StorageUnavailable("down")):
            assert get_or_create_user_id(memory) == "default"


class TestRecordLearned:
    def test_adds_to_memory_and_backend(self, store, memory):
        store.record_learned("set-a", "w1")
        assert store.learned_ids("set-a") == {"w1"}
        assert memory.load(vocab_key(USER, "set-a")) == {"learnedIds": ["w1"]}

    def test_duplicates_ignored(self, store):
        store.record_learned("set-a", "w1")
        store.record_learned("set-a", "w1")
        assert store.learned_ids("set-a") == {"w1"}

    def test_keeps_ids_stored_by_an_earlier_run(self, memory):
        first = ProgressStore(memory, USER)
        first.record_learned("spanish-basics", "hello")

        second = ProgressStore(memory, USER)
        second.record_learned("spanish-basics", "thank you")

        assert second.learned_ids("spanish-basics") == {"hello", "thank you"}
        stored = memory.load(vocab_key(USER, "spanish-basics"))
        assert set(stored["learnedIds"]) == {"hello", "thank you"}

    def test_persists_under_every_alias(self, store, memory):
        store.link("set-a", "src/vocab/a.json")
        store.record_learned("set-a", "w1")

        assert memory.load(vocab_key(USER, "set-a")) == {"learnedIds": ["w1"]}
        assert memory.load(vocab_key(USER, "src/vocab/a.json")) == {"learnedIds": ["w1"]}

    def test_readable_through_any_alias(self, store):
        store.link("set-a", "src/vocab/a.json")
        store.record_learned("src/vocab/a.json", "w2")
        for alias in ("set-a", "src/vocab/a.json", "vocab/a.json", "./vocab/a.json"):
            assert "w2" in store.learned_ids(alias)

    def test_backend_failure_does_not_raise(self, store, memory):
        with patch.object(memory, "save", side_effect=StorageUnavailable("disk full")):
            store.record_learned("set-a", "w1")
        assert store.learned_ids("set-a") == {"w1"}

    def test_backend_failure_is_logged(self, store, memory, caplog):
        with patch.object(memory, "save", side_effect=StorageUnavailable("disk full")):
            store.record_learned("set-a", "w1")
        assert "disk full" in caplog.text


class TestLink:
    def test_merges_existing_records(self, store):
        store.record_learned("set-a", "w1")
        store.record_learned("vocab/a.json", "w2")
        store.link("set-a", "vocab/a.json")

        assert store.learned_ids("set-a") == {"w1", "w2"}
        assert store.learned_ids("vocab/a.json") == {"w1", "w2"}
        assert store.total_learned_across_sets() == 2

    def test_aliases_for(self, store):
        store.link("set-a", "src/vocab/a.json")
        assert store.aliases_for("vocab/a.json") == ["set-a", "src/vocab/a.json"]
        assert store.aliases_for("unknown") == []

    def test_picks_up_record_stored_under_set_id(self, store, memory):
        memory.save(vocab_key(USER, "de"), {"learnedIds": ["a"]})
        store.load_for_path("two/de.json")
        store.link("de", "two/de.json")

        assert store.learned_ids("two/de.json") == {"a"}
        assert memory.load(vocab_key(USER, "two/de.json")) == {"learnedIds": ["a"]}

    def test_merges_stored_records_under_both_names(self, store, memory):
        memory.save(vocab_key(USER, "de"), {"learnedIds": ["a"]})
        memory.save(vocab_key(USER, "two/de.json"), {"learnedIds": ["b"]})
        store.load_for_path("two/de.json")
        store.link("de", "two/de.json")

        assert store.learned_ids("de") == {"a", "b"}
        assert store.total_learned_across_sets() == 2
        for alias in ("de", "two/de.json"):
            assert memory.load(vocab_key(USER, alias)) == {"learnedIds": ["a", "b"]}

    def test_link_twice_is_harmless(self, store):
        store.link("set-a", "vocab/a.json")
        store.link("set-a", "vocab/a.json")
        assert store.aliases_for("set-a") == ["set-a", "vocab/a.json"]


class TestLoadForPath:
    def test_exact_key_hit(self, store, memory):
        memory.save(vocab_key(USER, "vocab/a.json"), {"learnedIds": ["w1", "w2"]})
        store.load_for_path("vocab/a.json")
        assert store.learned_ids("vocab/a.json") == {"w1", "w2"}

    def test_finds_src_prefixed_variant(self, store, memory):
        memory.save(vocab_key(USER, "src/vocab/a.json"), {"learnedIds": ["w1"]})
        store.load_for_path("vocab/a.json")
        assert store.learned_ids("vocab/a.json") == {"w1"}

    def test_finds_unprefixed_variant(self, store, memory):
        memory.save(vocab_key(USER, "vocab/a.json"), {"learnedIds": ["w1"]})
        store.load_for_path("/vocab/a.json")
        assert store.learned_ids("/vocab/a.json") == {"w1"}

    def test_first_hit_wins(self, store, memory):
        memory.save(vocab_key(USER, "vocab/a.json"), {"learnedIds": ["first"]})
        memory.save(vocab_key(USER, "src/vocab/a.json"), {"learnedIds": ["second"]})
        store.load_for_path("vocab/a.json")
        assert store.learned_ids("vocab/a.json") == {"first"}

    def test_missing_initializes_empty(self, store):
        store.load_for_path("vocab/none.json")
        assert store.learned_ids("vocab/none.json") == frozenset()
        assert store.aliases_for("vocab/none.json") == ["vocab/none.json"]

    def test_malformed_record_treated_as_missing(self, store, memory):
        memory.save(vocab_key(USER, "vocab/a.json"), {"learned": "oops"})
        memory.save(vocab_key(USER, "src/vocab/a.json"), {"learnedIds": ["w9"]})
        store.load_for_path("vocab/a.json")
        assert store.learned_ids("vocab/a.json") == {"w9"}

    def test_non_dict_record_treated_as_missing(self, store, memory):
        memory.save(vocab_key(USER, "vocab/a.json"), ["w1"])
        store.load_for_path("vocab/a.json")
        assert store.learned_ids("vocab/a.json") == frozenset()

    def test_unavailable_backend_initializes_empty(self, store, memory):
        with patch.object(memory, "load", side_effect=StorageUnavailable("gone")):
            store.load_for_path("vocab/a.json")
        assert store.learned_ids("vocab/a.json") == frozenset()

    def test_merges_with_in_memory_progress(self, store, memory):
        store.record_learned("vocab/a.json", "fresh")
        memory.save(vocab_key(USER, "vocab/a.json"), {"learnedIds": ["stored"]})
        store.load_for_path("vocab/a.json")
        assert store.learned_ids("vocab/a.json") == {"fresh", "stored"}

    def test_record_then_load_any_alias_contains_once(self, memory):
        writer = ProgressStore(memory, USER)
        writer.link("set-a", "src/vocab/a.json")
        writer.record_learned("set-a", "w1")

        reader = ProgressStore(memory, USER)
        for alias in ("src/vocab/a.json", "vocab/a.json", "set-a"):
            reader.load_for_path(alias)
            reader.load_for_path(alias)
            assert reader.learned_ids(alias) == {"w1"}
        assert memory.load(vocab_key(USER, "set-a"))["learnedIds"].count("w1") == 1


class TestTotals:
    def test_empty(self, store):
        assert store.total_learned_across_sets() == 0
        assert not store.has_learned_progress()

    def test_aliases_counted_once(self, store):
        store.link("set-a", "vocab/a.json")
        store.record_learned("set-a", "w1")
        store.record_learned("vocab/a.json", "w2")
        assert store.total_learned_across_sets() == 2

    def test_sums_distinct_sets(self, store):
        store.record_learned("set-a", "w1")
        store.record_learned("set-b", "w1")
        store.record_learned("set-b", "w2")
        assert store.total_learned_across_sets() == 3


class TestUserProgressPersistence:
    def test_save_and_load(self, store, memory):
        store.progress.update_stats(True)
        store.progress.update_stats(False)
        store.save_user_progress()

        stored = memory.load(USER)
        assert stored["totalAttempts"] == 2
        assert stored["accuracy"] == pytest.approx(50.0)

        fresh = ProgressStore(memory, USER)
        progress = fresh.load_user_progress()
        assert progress.total_attempts == 2
        assert progress.correct_attempts == 1

    def test_malformed_stats_ignored(self, store, memory):
        memory.save(USER, {"totalAttempts": "many"})
        assert store.load_user_progress().total_attempts == 0

    def test_save_all_rewrites_every_alias(self, store, memory):
        store.link("set-a", "vocab/a.json")
        store.record_learned("set-a", "w1")
        memory.delete(vocab_key(USER, "vocab/a.json"))

        store.save_all()
        assert memory.load(vocab_key(USER, "vocab/a.json")) == {"learnedIds": ["w1"]}
        assert memory.load(USER) is not None


class TestResetAll:
    def test_reset_clears_everything(self, store, memory):
        store.link("set-a", "vocab/a.json")
        store.record_learned("set-a", "w1")
        store.record_learned("set-b", "w2")
        store.progress.update_stats(True)
        store.save_user_progress()
        memory.save(USER_ID_KEY, USER)
        memory.save("other-user:vocab:set-a", {"learnedIds": ["x"]})

        assert store.reset_all() == {"reset": True}
        assert store.total_learned_across_sets() == 0
        assert store.progress.total_attempts == 0
        assert store.learned_ids("set-a") == frozenset()
        assert sorted(memory.keys()) == sorted([USER_ID_KEY, "other-user:vocab:set-a"])

    def test_reset_reports_failure(self, store, memory):
        store.record_learned("set-a", "w1")
        with patch.object(memory, "keys", side_effect=StorageUnavailable("locked")):
            result = store.reset_all()
        assert result["reset"] is False
        assert "locked" in result["error"]
        assert store.total_learned_across_sets() == 0

    def test_reset_on_sqlite(self, temp_dir):
        backend = SQLiteBackend(temp_dir / "vocabmaster.db")
        store = ProgressStore(backend, USER)
        store.record_learned("set-a", "w1")
        store.record_learned("set-b", "w2")

        assert store.reset_all() == {"reset": True}
        assert backend.keys() == []
