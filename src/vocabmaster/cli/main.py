"""Main CLI entry point for VocabMaster."""

from pathlib import Path

import typer
from rich import print as rprint
from rich.panel import Panel
from rich.table import Table

from vocabmaster.cli.helpers import console, open_store
from vocabmaster.core.metrics import ProgressMetrics
from vocabmaster.core.models import VocabularySet, Word
from vocabmaster.core.scheduler import SchedulingEngine
from vocabmaster.core.session import LearningSession
from vocabmaster.core.storage import ProgressStore
from vocabmaster.core.vocab import (
    VocabFormatError,
    default_vocabulary,
    load_vocab_file,
    write_export,
)

app = typer.Typer(
    name="vocabmaster",
    help="Vocabulary learning with spaced repetition.",
    no_args_is_help=True,
)


def _load_set(store: ProgressStore, path: Path | None) -> VocabularySet:
    """Load a set file, or the built-in sample set when no path is given."""
    if path is None:
        return default_vocabulary()
    try:
        return load_vocab_file(path, store)
    except FileNotFoundError:
        rprint(f"[red]No such vocabulary file: {path}[/red]")
        raise typer.Exit(1)
    except VocabFormatError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)


# ============================================================================
# LEARN command
# ============================================================================


@app.command()
def learn(
    path: Path | None = typer.Argument(
        None,
        help="Vocabulary set JSON file (defaults to the built-in sample set)",
    ),
) -> None:
    """Start an interactive learning session."""
    store = open_store()
    vocab_set = _load_set(store, path)
    session = LearningSession(vocab_set, SchedulingEngine(), store)

    rprint(f"\n[bold]Learning Session[/bold]: {vocab_set.name} ({len(vocab_set.words)} words)\n")

    try:
        word = session.start()
        while word is not None:
            title = f"Word {session.reviewed + 1}"
            console.print(Panel(_front(word), title=title, border_style="blue"))

            reveal = typer.prompt("[Enter to reveal, q to quit]", default="", show_default=False)
            if reveal.strip().lower() == "q":
                session.end()
                rprint("\n[yellow]Session ended early.[/yellow]")
                break

            session.show_answer()
            console.print(Panel(_back(word), title="Answer", border_style="green"))

            correct = _prompt_grade()
            if correct is None:
                session.end()
                rprint("\n[yellow]Session ended early.[/yellow]")
                break

            result = session.mark_correct(correct)
            rprint(
                f"[dim]Next review: {result.due_next.strftime('%Y-%m-%d %H:%M')}"
                f" ({result.interval_days:.1f} day(s))[/dim]\n"
            )
            word = session.current_word
        else:
            rprint("[bold green]Session complete![/bold green] All due words reviewed.")
    finally:
        # Flush even on Ctrl+C; the store swallows backend errors.
        store.save_all()

    rprint(f"Reviewed {session.reviewed} word(s).")


def _front(word: Word) -> str:
    lines = [f"[bold]{word.target}[/bold]"]
    if word.transliteration:
        lines.append(f"[italic]{word.transliteration}[/italic]")
    if word.image:
        lines.append(f"[dim]Image: {word.image}[/dim]")
    return "\n".join(lines)


def _back(word: Word) -> str:
    lines = [f"[bold]Translation:[/bold] {word.native}"]
    if word.tags:
        lines.append(f"[bold]Tags:[/bold] {', '.join(word.tags)}")
    if word.examples:
        lines.append("[bold]Examples:[/bold]")
        lines.extend(f"  - {example}" for example in word.examples)
    return "\n".join(lines)


def _prompt_grade() -> bool | None:
    """Ask whether the answer was right; None means quit."""
    while True:
        choice = typer.prompt("Correct? (y/n, q to quit)", default="y").strip().lower()
        if choice in ("y", "yes"):
            return True
        if choice in ("n", "no"):
            return False
        if choice == "q":
            return None
        rprint("[red]Invalid choice. Enter y, n or q.[/red]")


# ============================================================================
# STATS command
# ============================================================================


@app.command()
def stats(
    paths: list[Path] | None = typer.Argument(
        None,
        help="Vocabulary set files to summarize",
    ),
) -> None:
    """Show progress statistics."""
    store = open_store()
    vocab_sets = [_load_set(store, path) for path in paths or []]
    metrics = ProgressMetrics(store)
    progress = store.progress

    table = Table(title="VocabMaster Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("User", store.user_id)
    table.add_row("Words Learned", str(metrics.words_learned()))
    table.add_row("Accuracy", f"{metrics.accuracy():.2f}%")
    table.add_row("Total Attempts", str(progress.total_attempts))
    table.add_row("Correct Attempts", str(progress.correct_attempts))
    table.add_row("Sessions Completed", str(progress.sessions_completed))

    if vocab_sets:
        table.add_row("", "")
        table.add_row("[bold]By Set[/bold]", "")
        for vocab_set in vocab_sets:
            summary = metrics.set_summary(vocab_set)
            table.add_row(
                f"  {vocab_set.name}",
                f"{summary['learned']}/{summary['total']} learned",
            )

    console.print(table)


# ============================================================================
# EXPORT command
# ============================================================================


@app.command()
def export(
    path: Path = typer.Argument(..., help="Vocabulary set file to export"),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Destination file (defaults to <set id>.json)",
    ),
) -> None:
    """Export a vocabulary set without review history."""
    store = open_store()
    vocab_set = _load_set(store, path)
    dest = output or Path(f"{vocab_set.id.rsplit('/', 1)[-1].removesuffix('.json')}.json")
    write_export(vocab_set, dest)
    rprint(f"[green]Exported {vocab_set.name}[/green] to {dest}")


# ============================================================================
# RESET / WHOAMI commands
# ============================================================================


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Reset all progress for this user."""
    if not yes and not typer.confirm("Reset all progress for this user? This cannot be undone."):
        rprint("Reset cancelled")
        return

    store = open_store()
    result = store.reset_all()
    if result["reset"]:
        rprint("[green]Progress reset[/green]")
    else:
        rprint(f"[red]Reset failed:[/red] {result.get('error', 'unknown error')}")
        raise typer.Exit(1)


@app.command()
def whoami() -> None:
    """Show the user id progress is stored under."""
    store = open_store()
    rprint(store.user_id)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
