import pytest

from utils.ui_helpers import (
    print_book_list,
    print_history,
    print_message,
    print_reader_list,
    print_stats_result,
)


@pytest.fixture
def rich_mode(monkeypatch):
    monkeypatch.setenv("LIB_CLI_OUTPUT", "rich")


def test_rich_output_shows_bracketed_text_literally(lib, rich_mode, capsys):
    lib.add_book("Notes [/]", "[bold]Anon", "[red]", 2001)
    lib.add_reader("Eve [/]", "[x]@y.z")
    lib.borrow_book(1, 1)

    print_book_list(lib.list_books(), title="Search [/]")
    print_reader_list(lib.list_readers())
    print_history(lib.get_borrow_history(), lib=lib)
    print_stats_result(lib.get_statistics())
    print_message("Book 'Notes [/]' added")

    out = capsys.readouterr().out
    assert "Notes [/]" in out
    assert "[bold]Anon" in out
    assert "Eve [/]" in out
    assert "Book 'Notes [/]' added" in out
