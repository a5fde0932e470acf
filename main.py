import os
import sys
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from config import configure_logging, settings
from library import Library, LibraryError, OperationResult, PersistenceError
from utils.ui_helpers import (
    print_book_list,
    print_history,
    print_message,
    print_reader_list,
    print_stats_result,
    set_output_mode,
)
from utils.validators import InputParser, TextValidator

APP_NAME = settings.app_name

console = Console()


class LibraryManager:
    """Holds the Library instance for the current data file."""

    _instance: Optional[Library] = None
    _data_file: Optional[str] = None
    data_file_override: Optional[str] = None

    @classmethod
    def get_instance(cls) -> Library:
        data_file = cls.data_file_override or settings.data_file
        if cls._instance is None or data_file != cls._data_file:
            # Data file changed (e.g. --data-file); rebuild from disk
            cls._instance = Library(data_file=data_file)
            cls._data_file = data_file
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None
        cls._data_file = None
        cls.data_file_override = None


def _report(result: OperationResult) -> None:
    print_message(result.message)
    if not result.persisted:
        print_message(f"Warning: changes could not be saved to {LibraryManager._data_file}", ok=False)


def _fail(error: Exception) -> None:
    print_message(str(error), ok=False)
    raise typer.Exit(code=1)


# --- Typer CLI application ---
app = typer.Typer(help="Library CLI: books, readers and loans")


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    data_file: Optional[str] = typer.Option(
        None,
        "--data-file",
        "-d",
        help="Path to the library JSON file",
    ),
):
    """Global CLI options (output mode, data file)."""
    set_output_mode(output or settings.output_mode)
    LibraryManager.data_file_override = data_file


@app.command("list")
def cli_list():
    """List all books."""
    print_book_list(LibraryManager.get_instance().list_books())


@app.command("add")
def cli_add(
    title: str = typer.Argument(..., help="Book title"),
    author: str = typer.Option("", "--author", "-a", help="Author"),
    genre: str = typer.Option("", "--genre", "-g", help="Genre"),
    year: int = typer.Option(0, "--year", "-y", help="Publication year"),
):
    """Add a book."""
    try:
        _report(LibraryManager.get_instance().add_book(title, author, genre, year))
    except (LibraryError, PersistenceError) as e:
        _fail(e)


@app.command("remove")
def cli_remove(book_id: int = typer.Argument(..., help="Book ID")):
    """Remove a book that is not on loan."""
    try:
        _report(LibraryManager.get_instance().remove_book(book_id))
    except (LibraryError, PersistenceError) as e:
        _fail(e)


@app.command("find")
def cli_find(book_id: int = typer.Argument(..., help="Book ID")):
    """Show a single book and who holds it."""
    lib = LibraryManager.get_instance()
    book = lib.get_book(book_id)
    if not book:
        print_message(f"Book with ID {book_id} not found.", ok=False)
        raise typer.Exit(code=1)
    print_book_list([book])
    borrowing = lib.get_active_borrowing(book.id)
    if borrowing:
        reader = lib.get_reader(borrowing.reader_id)
        holder = reader.name if reader else f"reader #{borrowing.reader_id}"
        print(f"On loan to: {holder}")


@app.command("search")
def cli_search(term: str = typer.Argument(..., help="Text to look for in title, author or genre")):
    """Search books by title, author or genre."""
    books = LibraryManager.get_instance().search_books(term)
    print_book_list(books, title=f"Search results for '{term}'", empty_message=f"No books match '{term}'.")


@app.command("filter")
def cli_filter(
    genre: Optional[str] = typer.Option(None, "--genre", "-g", help="Exact genre (case-insensitive)"),
    available: Optional[bool] = typer.Option(None, "--available/--borrowed", help="Only available or only loaned books"),
):
    """Filter books by genre and/or availability."""
    books = LibraryManager.get_instance().filter_books(genre=genre, is_available=available)
    print_book_list(books, title="Filtered books", empty_message="No books found.")


@app.command("sort")
def cli_sort(criterion: str = typer.Argument("title", help="title | author | year")):
    """List books sorted by title, author or year (newest first)."""
    books = LibraryManager.get_instance().sort_books(criterion)
    print_book_list(books, title=f"Books sorted by {criterion}")


@app.command("readers")
def cli_readers():
    """List all readers."""
    print_reader_list(LibraryManager.get_instance().list_readers())


@app.command("add-reader")
def cli_add_reader(
    name: str = typer.Argument(..., help="Reader name"),
    email: str = typer.Option("", "--email", "-e", help="Email address"),
):
    """Register a reader."""
    try:
        _report(LibraryManager.get_instance().add_reader(name, email))
    except (LibraryError, PersistenceError) as e:
        _fail(e)


@app.command("reader-books")
def cli_reader_books(reader_id: int = typer.Argument(..., help="Reader ID")):
    """List the books a reader currently holds."""
    try:
        books = LibraryManager.get_instance().get_reader_books(reader_id)
    except LibraryError as e:
        _fail(e)
    print_book_list(books, title=f"Books on loan to reader {reader_id}", empty_message="No books on loan.")


@app.command("borrow")
def cli_borrow(
    book_id: int = typer.Argument(..., help="Book ID"),
    reader_id: int = typer.Argument(..., help="Reader ID"),
):
    """Lend a book to a reader."""
    try:
        _report(LibraryManager.get_instance().borrow_book(book_id, reader_id))
    except (LibraryError, PersistenceError) as e:
        _fail(e)


@app.command("return")
def cli_return(book_id: int = typer.Argument(..., help="Book ID")):
    """Take a book back."""
    try:
        _report(LibraryManager.get_instance().return_book(book_id))
    except (LibraryError, PersistenceError) as e:
        _fail(e)


@app.command("history")
def cli_history(
    book_id: Optional[int] = typer.Option(None, "--book", "-b", help="Only this book"),
    reader_id: Optional[int] = typer.Option(None, "--reader", "-r", help="Only this reader"),
):
    """Show borrowings, most recent first."""
    lib = LibraryManager.get_instance()
    print_history(lib.get_borrow_history(book_id=book_id, reader_id=reader_id), lib=lib)


@app.command("stats")
def cli_stats():
    """Show library statistics."""
    print_stats_result(LibraryManager.get_instance().get_statistics())


@app.command("menu")
def cli_menu():
    """Start the interactive menu."""
    run_menu()


# --- Interactive menu ---
def _ask_int(label: str) -> Optional[int]:
    value = InputParser.parse_int(Prompt.ask(label))
    if value is None:
        console.print("[bold red]✗ Please enter a whole number.[/]")
    return value


def _run_action(action) -> None:
    try:
        result = action()
    except (LibraryError, PersistenceError) as e:
        console.print(f"[bold red]✗ {escape(str(e))}[/]")
        return
    console.print(f"[green]✓ {escape(result.message)}[/]")
    if not result.persisted:
        console.print(f"[yellow]⚠️ Changes could not be saved to {escape(str(LibraryManager._data_file))}[/]")


def _render_menu(title: str, items) -> None:
    table = Table.grid(padding=(0, 2))
    table.add_column(justify="right", style="bold cyan", width=4)
    table.add_column(justify="left", style="white")
    for key, label, icon in items:
        table.add_row(f"[reverse]{key}[/]", f"{icon} {label}")
    console.print(Panel(table, title=title, border_style="cyan", box=box.HEAVY, padding=(1, 2)))


def _choose(items) -> str:
    return Prompt.ask("Choose an option", choices=[key for key, _, _ in items], default="0").strip()


def add_book_interactive(lib: Library) -> None:
    title = Prompt.ask("Title")
    author = Prompt.ask("Author", default="")
    genre = Prompt.ask("Genre", default="")
    year = _ask_int("Publication year")
    if year is None:
        return
    _run_action(lambda: lib.add_book(title, author, genre, year))


def remove_book_interactive(lib: Library) -> None:
    book_id = _ask_int("ID of the book to remove")
    if book_id is None:
        return
    book = lib.get_book(book_id)
    if book and not Confirm.ask(f"🗑️ Remove '{escape(book.title)}'?", default=False):
        console.print("[blue]🚫 Removal cancelled.[/]")
        return
    _run_action(lambda: lib.remove_book(book_id))


def search_interactive(lib: Library) -> None:
    term = Prompt.ask("Search term", default="")
    if TextValidator.is_blank(term):
        console.print("[bold red]✗ The search term cannot be empty.[/]")
        return
    print_book_list(lib.search_books(term), title=f"Search results for '{term}'",
                    empty_message=f"No books match '{term}'.")


def filter_interactive(lib: Library) -> None:
    genre = Prompt.ask("Genre (Enter for all)", default="")
    available = InputParser.parse_bool(Prompt.ask("Available? (true/false, Enter for all)", default=""))
    print_book_list(lib.filter_books(genre=genre or None, is_available=available),
                    title="Filtered books", empty_message="No books found.")


def sort_interactive(lib: Library) -> None:
    choice = Prompt.ask("Sort by 1) title 2) author 3) year", choices=["1", "2", "3"], default="1")
    criterion = {"1": "title", "2": "author", "3": "year"}[choice]
    print_book_list(lib.sort_books(criterion), title=f"Books sorted by {criterion}")


def books_menu(lib: Library) -> None:
    items = [
        ("1", "Add a book", "➕"),
        ("2", "Remove a book", "🗑️"),
        ("3", "Show all books", "📚"),
        ("4", "Search books", "🔎"),
        ("5", "Filter books", "🧮"),
        ("6", "Sort books", "↕️"),
        ("0", "Back", "↩️"),
    ]
    actions = {
        "1": add_book_interactive,
        "2": remove_book_interactive,
        "3": lambda l: print_book_list(l.list_books(), empty_message="No books yet. Add the first one!"),
        "4": search_interactive,
        "5": filter_interactive,
        "6": sort_interactive,
    }
    while True:
        _render_menu("Books", items)
        choice = _choose(items)
        if choice == "0":
            return
        actions[choice](lib)


def readers_menu(lib: Library) -> None:
    items = [
        ("1", "Add a reader", "➕"),
        ("2", "Show all readers", "👤"),
        ("3", "Books held by a reader", "📖"),
        ("0", "Back", "↩️"),
    ]
    while True:
        _render_menu("Readers", items)
        choice = _choose(items)
        if choice == "0":
            return
        if choice == "1":
            name = Prompt.ask("Name")
            email = Prompt.ask("Email", default="")
            _run_action(lambda: lib.add_reader(name, email))
        elif choice == "2":
            print_reader_list(lib.list_readers(), empty_message="No readers yet. Add the first one!")
        elif choice == "3":
            reader_id = _ask_int("Reader ID")
            if reader_id is None:
                continue
            try:
                print_book_list(lib.get_reader_books(reader_id), empty_message="No books on loan.")
            except LibraryError as e:
                console.print(f"[bold red]✗ {escape(str(e))}[/]")


def borrowing_menu(lib: Library) -> None:
    items = [
        ("1", "Lend a book", "📤"),
        ("2", "Return a book", "📥"),
        ("3", "Borrow history", "🕘"),
        ("0", "Back", "↩️"),
    ]
    while True:
        _render_menu("Borrowing", items)
        choice = _choose(items)
        if choice == "0":
            return
        if choice == "1":
            book_id = _ask_int("Book ID")
            reader_id = _ask_int("Reader ID") if book_id is not None else None
            if book_id is not None and reader_id is not None:
                _run_action(lambda: lib.borrow_book(book_id, reader_id))
        elif choice == "2":
            book_id = _ask_int("Book ID")
            if book_id is not None:
                _run_action(lambda: lib.return_book(book_id))
        elif choice == "3":
            book_id = InputParser.parse_int(Prompt.ask("Book ID (Enter for all)", default=""))
            reader_id = InputParser.parse_int(Prompt.ask("Reader ID (Enter for all)", default=""))
            print_history(lib.get_borrow_history(book_id=book_id, reader_id=reader_id), lib=lib)


def run_menu():
    """Interactive menu for the library CLI."""
    lib = LibraryManager.get_instance()
    items = [
        ("1", "Books", "📚"),
        ("2", "Readers", "👤"),
        ("3", "Lend / return", "🔁"),
        ("4", "Statistics", "📊"),
        ("0", "Exit", "🚪"),
    ]
    while True:
        _render_menu(f"{APP_NAME} v{settings.app_version}", items)
        choice = _choose(items)
        if choice == "1":
            books_menu(lib)
        elif choice == "2":
            readers_menu(lib)
        elif choice == "3":
            borrowing_menu(lib)
        elif choice == "4":
            print_stats_result(lib.get_statistics())
        elif choice == "0":
            console.print("[green]Goodbye! Your data has been saved.[/]")
            break
        print()  # spacing between actions


def main() -> None:
    configure_logging()
    if len(sys.argv) > 1:
        app()
    else:
        set_output_mode(os.environ.get("LIB_CLI_OUTPUT", "rich"))
        run_menu()


if __name__ == "__main__":
    main()
