import os
import json
from datetime import datetime
from typing import Any, Dict, List, Optional
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.markup import escape

from config import settings

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"
OUTPUT_MODES = {"plain", "json", "rich"}

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in OUTPUT_MODES:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    mode = os.environ.get(OUTPUT_MODE_ENV, settings.output_mode).lower()
    return mode if mode in OUTPUT_MODES else "plain"


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime(settings.date_format)


def _book_row(b: Any) -> Dict[str, Any]:
    return {
        "id": b.id,
        "title": b.title,
        "author": b.author,
        "genre": b.genre,
        "year": b.year,
        "is_available": b.is_available,
    }


def print_message(message: str, ok: bool = True) -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps({"ok": ok, "message": message}, ensure_ascii=False))
    elif mode == "rich":
        style = "green" if ok else "bold red"
        _console.print(f"[{style}]{'✓' if ok else '✗'} {escape(message)}[/]", highlight=False)
    else:
        print(f"{'✓' if ok else '✗'} {message}")


def print_book_list(books: List[Any], title: str = "Books", empty_message: str = "No books in library.") -> None:
    """Print books in the current output mode.
    - plain: one 'ID: .. | Title | Author | Genre | Year | Available: ..' line per book
    - json: JSON array
    - rich: Rich table
    """
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps([_book_row(b) for b in books], ensure_ascii=False))
        return

    if not books:
        print(empty_message)
        return

    if mode == "rich":
        table = Table(title=f"📚 {escape(title)}", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True, justify="right")
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Genre", style="white")
        table.add_column("Year", justify="right")
        table.add_column("Available")
        for b in books:
            available = "[green]Yes[/]" if b.is_available else "[red]No[/]"
            table.add_row(str(b.id), escape(b.title), escape(b.author), escape(b.genre), str(b.year), available)
        _console.print(table)
    else:
        for b in books:
            print(str(b))


def print_reader_list(readers: List[Any], empty_message: str = "No readers registered.") -> None:
    mode = get_output_mode()

    if mode == "json":
        payload = [
            {"id": r.id, "name": r.name, "email": r.email, "borrowed_book_ids": list(r.borrowed_book_ids)}
            for r in readers
        ]
        print(json.dumps(payload, ensure_ascii=False))
        return

    if not readers:
        print(empty_message)
        return

    if mode == "rich":
        table = Table(title="👤 Readers", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True, justify="right")
        table.add_column("Name", style="white")
        table.add_column("Email", style="white")
        table.add_column("Books on loan", justify="right")
        for r in readers:
            table.add_row(str(r.id), escape(r.name), escape(r.email), str(len(r.borrowed_book_ids)))
        _console.print(table)
    else:
        for r in readers:
            print(str(r))


def print_history(borrowings: List[Any], lib: Any = None, empty_message: str = "No borrowings found.") -> None:
    """Print borrowing records. With a library given, titles and names are shown instead of bare ids."""
    mode = get_output_mode()

    def book_label(b) -> str:
        book = lib.get_book(b.book_id) if lib else None
        return book.title if book else f"#{b.book_id}"

    def reader_label(b) -> str:
        reader = lib.get_reader(b.reader_id) if lib else None
        return reader.name if reader else f"#{b.reader_id}"

    if mode == "json":
        payload = [
            {
                "id": b.id,
                "book_id": b.book_id,
                "reader_id": b.reader_id,
                "borrow_date": b.borrow_date.isoformat(),
                "return_date": b.return_date.isoformat() if b.return_date else None,
                "is_returned": b.is_returned,
            }
            for b in borrowings
        ]
        print(json.dumps(payload, ensure_ascii=False))
        return

    if not borrowings:
        print(empty_message)
        return

    if mode == "rich":
        table = Table(title="📖 Borrow history", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True, justify="right")
        table.add_column("Book", style="white")
        table.add_column("Reader", style="white")
        table.add_column("Borrowed")
        table.add_column("Returned")
        for b in borrowings:
            returned = format_date(b.return_date) if b.is_returned else "[yellow]on loan[/]"
            table.add_row(str(b.id), escape(book_label(b)), escape(reader_label(b)), format_date(b.borrow_date), returned)
        _console.print(table)
    else:
        for b in borrowings:
            status = f"Returned: {format_date(b.return_date)}" if b.is_returned else "On loan"
            print(f"ID: {b.id} | Book: {book_label(b)} | Reader: {reader_label(b)} | "
                  f"Borrowed: {format_date(b.borrow_date)} | {status}")


def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print statistics in the current output mode.
    - plain: one 'Label: value' line per counter, then the top lists
    - json: JSON object
    - rich: Panel with the counters
    """
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    counters = [
        ("Total books", stats.get("total_books", 0)),
        ("Available books", stats.get("available_books", 0)),
        ("Books on loan", stats.get("borrowed_books", 0)),
        ("Total readers", stats.get("total_readers", 0)),
        ("Total borrowings", stats.get("total_borrowings", 0)),
        ("Active borrowings", stats.get("active_borrowings", 0)),
    ]
    genres = stats.get("top_genres", [])
    authors = stats.get("top_authors", [])

    if mode == "json":
        payload = dict(stats)
        payload["top_genres"] = [{"genre": g, "count": c} for g, c in genres]
        payload["top_authors"] = [{"author": a, "count": c} for a, c in authors]
        print(json.dumps(payload, ensure_ascii=False))
    elif mode == "rich":
        lines = [f"[bold]{label}:[/] {value}" for label, value in counters]
        if genres:
            lines.append("\n[bold]📚 Top genres[/]")
            lines.extend(f"  - {escape(g) or '(none)'}: {c}" for g, c in genres)
        if authors:
            lines.append("\n[bold]✍️ Top authors[/]")
            lines.extend(f"  - {escape(a) or '(none)'}: {c}" for a, c in authors)
        _console.print(Panel.fit("\n".join(lines), title="📊 Stats", border_style="blue"))
    else:
        for label, value in counters:
            print(f"{label}: {value}")
        if genres:
            print("Top genres:")
            for g, c in genres:
                print(f"  - {g or '(none)'}: {c}")
        if authors:
            print("Top authors:")
            for a, c in authors:
                print(f"  - {a or '(none)'}: {c}")
