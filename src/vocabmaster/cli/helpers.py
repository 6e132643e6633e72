"""Shared CLI helpers."""

from rich.console import Console

from vocabmaster.config import load_settings
from vocabmaster.core.storage import ProgressStore, create_backend, get_or_create_user_id
from vocabmaster.logging_config import setup_logging

console = Console()


def open_store() -> ProgressStore:
    """Build the progress store for the configured user.

    Each command owns its own store; nothing is shared across invocations.
    """
    settings = load_settings()
    setup_logging(settings)
    backend = create_backend(settings)
    user_id = settings.user_id or get_or_create_user_id(backend)
    store = ProgressStore(backend, user_id)
    store.load_user_progress()
    return store
