"""Interactive CLI application."""
import logging
from datetime import datetime

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from cda_anxiety.config import load_config
from cda_anxiety.errors import PersistenceError
from cda_anxiety.history import HistoryStore, open_history_store
from cda_anxiety.interpretation import block_severity, severity_color, total_tone
from cda_anxiety.models import Result
from cda_anxiety.questions import (
    ANSWER_LABELS, BLOCK_SIZE, MAX_ANSWER, MIN_ANSWER, QUESTION_COUNT,
    block_key, global_index, load_blocks,
)
from cda_anxiety.scoring import answered_count, score

console = Console()
logger = logging.getLogger(__name__)

EXIT_WORDS = ("q", "quit", "menu")
SKIP_WORDS = ("s", "skip")
ANSWER_CHOICES = [str(v) for v in range(MIN_ANSWER, MAX_ANSWER + 1)]


class SessionExitRequested(Exception):
    """Raised when the user leaves an assessment before finishing it."""


def setup_logging(level: str = "WARNING") -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def ask_answer(question_number: int, text: str) -> int | None:
    """Ask one question. Returns None when the user skips it."""
    console.print(f"[bold]{question_number}.[/bold] {text}")
    while True:
        answer = session_prompt("[dim]0-3, s to skip, q to leave[/dim]").strip().lower()
        if answer in SKIP_WORDS:
            return None
        if answer in ANSWER_CHOICES:
            return int(answer)
        console.print("[red]Please enter a number from 0 to 3.[/red]")


def show_welcome(store: HistoryStore):
    status = "[dim]Local mode[/dim]" if store.is_offline() else "[green]Connected[/green]"
    console.print(Panel(
        "[bold]CDA Method[/bold]\n[dim]Anxiety Self-Assessment[/dim]\n" + status,
        title="Welcome", border_style="gold1",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("test", "Take the assessment"),
        ("history", "Previous results"),
        ("clear", "Delete all saved results"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def show_instructions():
    scale = " | ".join(f"{v} - {label}" for v, label in ANSWER_LABELS.items())
    console.print(Panel(
        "Read each statement and rate how well it describes your current experience.\n"
        f"[bold]{scale}[/bold]",
        title="Instructions", border_style="gold1",
    ))


def progress_bar(answered: int, total: int = QUESTION_COUNT, width: int = 25) -> str:
    filled = int(width * answered / total) if total else 0
    return f"[gold1]{'█' * filled}[/gold1][dim]{'░' * (width - filled)}[/dim] {answered}/{total}"


def collect_answers() -> dict:
    answers: dict[int, int] = {}
    for block in load_blocks():
        console.print(f"\n[bold gold1]Block {block.block} - {block.title}[/bold gold1]")
        if block.subtitle:
            console.print(f"[dim]{block.subtitle}[/dim]")
        for position, text in enumerate(block.questions):
            idx = global_index(block.block, position)
            value = ask_answer(idx + 1, text)
            if value is not None:
                answers[idx] = value
            console.print(progress_bar(answered_count(answers)))
    return answers


def run_assessment(store: HistoryStore) -> Result | None:
    """Collect answers, score them and save the result.

    Returns None when saving fails; nothing is shown as saved in that case.
    """
    show_instructions()
    answers = collect_answers()
    result = score(answers)
    try:
        saved = store.append(result)
    except PersistenceError as e:
        logger.error("Error saving result: %s", e)
        console.print(f"[red]Could not save the result: {e}[/red]")
        return None
    render_result(saved)
    return saved


def block_bar(value: int, maximum: int = BLOCK_SIZE * MAX_ANSWER, width: int = 15) -> str:
    color = severity_color(block_severity(value))
    filled = max(0, min(width, round(width * value / maximum))) if maximum else 0
    return f"[{color}]{'█' * filled}{'░' * (width - filled)}[/{color}]"


def render_result(result: Result) -> None:
    console.print(Panel(
        f"[bold]{result.total_score}[/bold][dim]/{QUESTION_COUNT * MAX_ANSWER}[/dim]\n"
        f"[bold]{result.level}[/bold]",
        title="Total Score", style=f"{result.color_text} on {result.color_bg}",
    ))
    console.print(Panel(result.suggestions, title="Suggestions", border_style="gold1"))

    titles = {block_key(b.block): b.title for b in load_blocks()}
    table = Table(title="Score by Dimension")
    table.add_column("Dimension", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("")
    for key, value in result.block_scores.items():
        table.add_row(titles.get(key, key), f"{value}/15", block_bar(value))
    console.print(table)


def format_date(value: str) -> str:
    try:
        return datetime.fromisoformat(value).astimezone().strftime("%d %b %Y %H:%M")
    except ValueError:
        return value


def render_history(history: list[Result]) -> None:
    if not history:
        console.print("[dim]No saved results.[/dim]")
        return
    table = Table(title="History")
    table.add_column("Date")
    table.add_column("Score", justify="right")
    table.add_column("Level")
    for item in history:
        color = severity_color(total_tone(item.total_score))
        table.add_row(format_date(item.date), f"[{color}]{item.total_score} pts[/{color}]", item.level)
    console.print(table)


def cmd_test(store: HistoryStore):
    console.print("\n[bold]New Assessment[/bold]")
    run_assessment(store)


def cmd_history(store: HistoryStore):
    snapshots: list[list[Result]] = []
    unsubscribe = store.subscribe(snapshots.append)
    try:
        render_history(snapshots[-1] if snapshots else [])
    finally:
        unsubscribe()


def cmd_clear(store: HistoryStore):
    if not store.history():
        console.print("[dim]History is already empty.[/dim]")
        return
    if not Confirm.ask("Delete all saved results? This cannot be undone", default=False):
        return
    try:
        store.clear_all()
    except PersistenceError as e:
        logger.error("Error clearing history: %s", e)
        console.print(f"[red]Could not clear the history: {e}[/red]")
        return
    console.print("[green]History cleared.[/green]")


def main():
    config = load_config()
    setup_logging(config.log_level)
    store = open_history_store(config)

    show_welcome(store)

    try:
        while True:
            show_menu()
            choice = Prompt.ask("\n[bold]>[/bold]", default="test").strip().lower()
            try:
                if choice == "test":
                    cmd_test(store)
                elif choice == "history":
                    cmd_history(store)
                elif choice == "clear":
                    cmd_clear(store)
                elif choice in ("quit", "exit", "q"):
                    console.print("[dim]Take care of yourself.[/dim]")
                    break
                else:
                    console.print("[red]Unknown command. Try again.[/red]")
            except SessionExitRequested:
                console.print("\n[dim]Assessment abandoned, nothing was saved.[/dim]")
            except KeyboardInterrupt:
                console.print("\n[dim]Use 'quit' to exit.[/dim]")
    finally:
        store.close()


if __name__ == "__main__":
    main()
