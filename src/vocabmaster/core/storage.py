"""Durable key-value backends and the learned-progress store."""

from __future__ import annotations

import json
import logging
import random
import sqlite3
import string
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import quote, unquote

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from vocabmaster.core.aliases import canonicalize, path_variants, vocab_key, vocab_prefix
from vocabmaster.core.models import UserProgress

if TYPE_CHECKING:
    from vocabmaster.config import Settings

logger = logging.getLogger(__name__)

USER_ID_KEY = "vocabmaster:userId"
DEFAULT_USER_ID = "default"


class StorageUnavailable(Exception):
    """The durable backend could not be read or written."""


class KeyValueBackend(Protocol):
    """Generic durable store of JSON-serializable values."""

    def load(self, key: str) -> Any | None:
        """Return the stored value, or None if absent or corrupt."""
        ...

    def save(self, key: str, data: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryBackend:
    """In-process backend holding JSON text, mainly for tests and dry runs."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def load(self, key: str) -> Any | None:
        raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt value for %s", key)
            return None

    def save(self, key: str, data: Any) -> None:
        self._data[key] = json.dumps(data)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileBackend:
    """One JSON file per key inside a directory."""

    def __init__(self, directory: Path):
        self.directory = directory
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Cannot create {directory}: {e}") from e

    def _path_for(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}.json"

    def load(self, key: str) -> Any | None:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Discarding corrupt file %s", path)
            return None
        except OSError as e:
            raise StorageUnavailable(f"Cannot read {path}: {e}") from e

    def save(self, key: str, data: Any) -> None:
        path = self._path_for(key)
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise StorageUnavailable(f"Cannot write {path}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Cannot delete {key}: {e}") from e

    def keys(self) -> list[str]:
        try:
            return [unquote(path.stem) for path in sorted(self.directory.glob("*.json"))]
        except OSError as e:
            raise StorageUnavailable(f"Cannot list {self.directory}: {e}") from e


class SQLiteBackend:
    """Key-value table in a single SQLite database."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_db()
        except (OSError, sqlite3.Error) as e:
            raise StorageUnavailable(f"Cannot open {db_path}: {e}") from e

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
            """
            )

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def load(self, key: str) -> Any | None:
        try:
            with self._connection() as conn:
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot read {key}: {e}") from e
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt value for %s", key)
            return None

    def save(self, key: str, data: Any) -> None:
        try:
            with self._connection() as conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                """,
                    (key, json.dumps(data, ensure_ascii=False)),
                )
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot write {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with self._connection() as conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot delete {key}: {e}") from e

    def keys(self) -> list[str]:
        try:
            with self._connection() as conn:
                rows = conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
                return [row["key"] for row in rows]
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot list keys: {e}") from e


def create_backend(settings: Settings) -> KeyValueBackend:
    """Build the backend named in the settings."""
    if settings.backend == "json":
        return JsonFileBackend(settings.state_dir / "progress")
    if settings.backend == "sqlite":
        return SQLiteBackend(settings.state_dir / "vocabmaster.db")
    raise ValueError(f"Unknown storage backend: {settings.backend}")


def _base36(number: int) -> str:
    digits = string.digits + string.ascii_lowercase
    out = ""
    while True:
        number, rem = divmod(number, 36)
        out = digits[rem] + out
        if number == 0:
            return out


def generate_user_id() -> str:
    """Short id: base36 timestamp plus a random suffix."""
    suffix = "".join(random.choices(string.digits + string.ascii_lowercase, k=6))
    return f"u-{_base36(int(time.time() * 1000))}-{suffix}"


def get_or_create_user_id(backend: KeyValueBackend) -> str:
    """Return the persisted user id, creating one on first use."""
    try:
        user_id = backend.load(USER_ID_KEY)
        if isinstance(user_id, str) and user_id:
            return user_id
        user_id = generate_user_id()
        backend.save(USER_ID_KEY, user_id)
        return user_id
    except StorageUnavailable as e:
        logger.warning("Failed to get or create user id, falling back to %r: %s", DEFAULT_USER_ID, e)
        return DEFAULT_USER_ID


class LearnedProgressRecord(BaseModel):
    """Persisted shape of one set's learned word ids."""

    model_config = ConfigDict(populate_by_name=True)

    learned_ids: list[str] = Field(alias="learnedIds")


class ProgressStore:
    """Learned-word progress per vocabulary set, for one user.

    Records are held in a canonical-id table; every surface key (set id or
    load path) resolves to a record through an alias table, so one logical
    set is counted and persisted as a single record no matter how many
    names it is reachable by. Each record is replicated in the backend
    under every surface key seen for it.

    Backend failures never propagate: they are logged and the in-memory
    state stays authoritative for the rest of the process.
    """

    def __init__(self, backend: KeyValueBackend, user_id: str):
        self.backend = backend
        self.user_id = user_id
        self.progress = UserProgress()
        self._records: dict[str, set[str]] = {}
        self._aliases: dict[str, str] = {}
        self._surface_keys: dict[str, list[str]] = {}

    # ------------------------------------------------------------------
    # Alias resolution
    # ------------------------------------------------------------------

    def _resolve(self, key: str) -> str | None:
        return self._aliases.get(canonicalize(key))

    def _ensure_record(self, key: str) -> str:
        """Record id for a key, creating an empty record if needed.

        The first time a surface key is attached to a record, whatever is
        stored under that key is merged in, so a later write under the key
        never drops ids from an earlier run.
        """
        canonical = canonicalize(key)
        record_id = self._aliases.get(canonical)
        if record_id is None:
            record_id = canonical
            self._aliases[canonical] = record_id
            self._records[record_id] = set()
            self._surface_keys[record_id] = []
        if key not in self._surface_keys[record_id]:
            self._surface_keys[record_id].append(key)
            self._merge_stored(record_id, key)
        return record_id

    def _merge_stored(self, record_id: str, surface: str) -> None:
        storage_key = vocab_key(self.user_id, surface)
        learned = self._parse_record(storage_key, self._load(storage_key))
        if learned:
            self._records[record_id] |= learned

    def link(self, set_id: str, path: str) -> None:
        """Declare that a set id and a load path name the same set.

        If both already carry progress, stored or in memory, the records are
        merged and the union is written back under every alias.
        """
        keep = self._ensure_record(set_id)
        other = self._ensure_record(path)
        if keep != other:
            self._records[keep] |= self._records.pop(other)
            for alias, record_id in self._aliases.items():
                if record_id == other:
                    self._aliases[alias] = keep
            for surface in self._surface_keys.pop(other):
                if surface not in self._surface_keys[keep]:
                    self._surface_keys[keep].append(surface)
            logger.debug("Linked %s and %s", set_id, path)

        if self._records[keep]:
            self._persist_record(keep)

    def aliases_for(self, key: str) -> list[str]:
        record_id = self._resolve(key)
        if record_id is None:
            return []
        return list(self._surface_keys[record_id])

    def learned_ids(self, key: str) -> frozenset[str]:
        record_id = self._resolve(key)
        if record_id is None:
            return frozenset()
        return frozenset(self._records[record_id])

    # ------------------------------------------------------------------
    # Backend access
    # ------------------------------------------------------------------

    def _load(self, key: str) -> Any | None:
        try:
            return self.backend.load(key)
        except StorageUnavailable as e:
            logger.warning("Storage unavailable while loading %s: %s", key, e)
            return None

    def _save(self, key: str, data: Any) -> bool:
        try:
            self.backend.save(key, data)
            return True
        except StorageUnavailable as e:
            logger.warning("Storage unavailable while saving %s: %s", key, e)
            return False

    def _persist_record(self, record_id: str) -> None:
        payload = {"learnedIds": sorted(self._records[record_id])}
        for surface in self._surface_keys[record_id]:
            self._save(vocab_key(self.user_id, surface), payload)

    @staticmethod
    def _parse_record(key: str, data: Any) -> set[str] | None:
        if data is None:
            return None
        try:
            record = LearnedProgressRecord.model_validate(data)
        except ValidationError:
            logger.warning("Ignoring malformed progress record under %s", key)
            return None
        return set(record.learned_ids)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def record_learned(self, set_key: str, word_id: str) -> None:
        """Mark a word learned and persist under every alias of its set."""
        record_id = self._ensure_record(set_key)
        self._records[record_id].add(word_id)
        self._persist_record(record_id)

    def load_for_path(self, path: str) -> None:
        """Load stored progress for a set path, trying tolerant key forms.

        The first variant holding a well-formed record wins and is merged
        into any in-memory progress for the same set. With no stored record
        the set starts empty.
        """
        for candidate in path_variants(path):
            key = vocab_key(self.user_id, candidate)
            learned = self._parse_record(key, self._load(key))
            if learned is not None:
                record_id = self._ensure_record(path)
                self._records[record_id] |= learned
                logger.debug("Loaded %d learned ids for %s from %s", len(learned), path, key)
                return

        self._ensure_record(path)
        logger.debug("No stored progress for %s", path)

    def total_learned_across_sets(self) -> int:
        """Learned ids summed over distinct sets; aliases count once."""
        return sum(len(learned) for learned in self._records.values())

    def has_learned_progress(self) -> bool:
        return any(self._records.values())

    def load_user_progress(self) -> UserProgress:
        data = self._load(self.user_id)
        if isinstance(data, dict):
            try:
                self.progress = UserProgress.from_stats(data)
            except (TypeError, ValueError):
                logger.warning("Ignoring malformed progress stats for %s", self.user_id)
        return self.progress

    def save_user_progress(self) -> None:
        self._save(self.user_id, self.progress.get_stats())

    def save_all(self) -> None:
        """Persist the aggregate counters and every record under every alias."""
        self.save_user_progress()
        for record_id in self._records:
            self._persist_record(record_id)

    def reset_all(self) -> dict:
        """Clear all in-memory and stored progress for this user."""
        self.progress = UserProgress()
        self._records.clear()
        self._aliases.clear()
        self._surface_keys.clear()

        prefix = vocab_prefix(self.user_id)
        try:
            for key in self.backend.keys():
                if key == self.user_id or key.startswith(prefix):
                    self.backend.delete(key)
        except StorageUnavailable as e:
            logger.warning("Reset failed: %s", e)
            return {"reset": False, "error": str(e)}

        logger.info("Reset all progress for %s", self.user_id)
        return {"reset": True}
