"""Reading vocabulary set documents and writing exports."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, ValidationError

from vocabmaster.core.models import VocabularySet, Word

if TYPE_CHECKING:
    from vocabmaster.core.storage import ProgressStore

logger = logging.getLogger(__name__)


class VocabFormatError(ValueError):
    """A vocabulary document could not be parsed."""


class WordEntry(BaseModel):
    """A word as it appears in a source document."""

    target: str
    native: str
    examples: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    transliteration: str | None = None
    image: str | None = None
    id: str | None = None


class VocabDocument(BaseModel):
    id: str | None = None
    name: str | None = None
    language: str | None = None
    words: list[WordEntry] = Field(default_factory=list)


def vocab_set_from_dict(data: dict, path: str | None = None) -> VocabularySet:
    """Build a set from a source document; id and name default to the path."""
    try:
        doc = VocabDocument.model_validate(data)
    except ValidationError as e:
        raise VocabFormatError(f"Invalid vocabulary document {path or ''}: {e}") from e

    words = [
        Word(
            target=entry.target,
            native=entry.native,
            examples=entry.examples,
            tags=entry.tags,
            transliteration=entry.transliteration or "",
            image=entry.image or "",
            id=entry.id,
        )
        for entry in doc.words
    ]
    fallback = path or "untitled"
    return VocabularySet(
        id=doc.id or fallback,
        name=doc.name or fallback,
        language=doc.language or "unknown",
        words=words,
    )


def load_vocab_file(path: str | Path, store: ProgressStore | None = None) -> VocabularySet:
    """Read a set from disk and attach any stored progress for it.

    The set id and the path it was loaded from are linked in the store so
    progress recorded under either name lands in the same record.
    """
    path_str = str(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise VocabFormatError(f"{path_str} is not valid JSON: {e}") from e
    except UnicodeDecodeError as e:
        raise VocabFormatError(f"{path_str} is not valid UTF-8: {e}") from e

    vocab_set = vocab_set_from_dict(data, path_str)
    if store is not None:
        store.load_for_path(path_str)
        store.link(vocab_set.id, path_str)
    logger.info("Loaded %s (%d words) from %s", vocab_set.id, len(vocab_set.words), path_str)
    return vocab_set


def export_vocab_set(vocab_set: VocabularySet) -> dict:
    """Export document: the source shape without review history."""
    return {
        "id": vocab_set.id,
        "name": vocab_set.name,
        "language": vocab_set.language,
        "metadata": vocab_set.metadata.model_dump(mode="json"),
        "words": [
            {
                "target": word.target,
                "native": word.native,
                "transliteration": word.transliteration,
                "image": word.image,
                "examples": word.examples,
                "tags": word.tags,
            }
            for word in vocab_set.words
        ],
    }


def write_export(vocab_set: VocabularySet, dest: Path) -> Path:
    dest.parent.mkdir(parents=True, exist_ok=True)
    with open(dest, "w", encoding="utf-8") as f:
        json.dump(export_vocab_set(vocab_set), f, indent=2, ensure_ascii=False)
    return dest


def default_vocabulary() -> VocabularySet:
    """Built-in sample set used when no file is given."""
    return VocabularySet(
        id="spanish-basics",
        name="Spanish Basics",
        language="es",
        words=[
            Word(
                target="hello",
                native="hola",
                examples=["¡Hola! ¿Cómo estás?", "Hello! How are you?"],
                tags=["greeting"],
            ),
            Word(
                target="thank you",
                native="gracias",
                examples=["Gracias por tu ayuda."],
                tags=["politeness"],
            ),
            Word(target="water", native="agua", examples=["¿Puedo tener agua?"], tags=["food"]),
        ],
    )
