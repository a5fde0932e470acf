from datetime import datetime, timezone

import pytest

from book import Book
from borrowing import Borrowing, parse_timestamp
from reader import Reader


def test_book_from_dict_ignores_borrow_history():
    book = Book.from_dict({
        "Id": 5, "Title": " Dune ", "Author": None, "Genre": "SciFi", "Year": 1965,
        "IsAvailable": False, "BorrowHistory": [{"Id": 1}],
    })
    assert book.id == 5
    assert book.title == "Dune"
    assert book.author == ""
    assert book.is_available is False
    assert "BorrowHistory" not in book.to_dict()


def test_reader_hold_and_release_keep_ids_unique():
    reader = Reader(1, "Alice")
    reader.hold(3)
    reader.hold(3)
    reader.hold(4)
    assert reader.borrowed_book_ids == [3, 4]
    reader.release(3)
    reader.release(99)
    assert reader.borrowed_book_ids == [4]


def test_reader_from_dict_drops_duplicate_ids():
    reader = Reader.from_dict({"Id": 1, "Name": "Alice", "BorrowedBookIds": [2, 2, 5]})
    assert reader.borrowed_book_ids == [2, 5]
    assert reader.email == ""


def test_is_returned_follows_return_date():
    borrowing = Borrowing(1, 1, 1, datetime(2024, 1, 1, tzinfo=timezone.utc))
    assert borrowing.is_returned is False
    borrowing.close(datetime(2024, 1, 5, tzinfo=timezone.utc))
    assert borrowing.is_returned is True
    with pytest.raises(ValueError):
        borrowing.close(datetime(2024, 1, 6, tzinfo=timezone.utc))


def test_borrowing_from_dict_ignores_stored_is_returned():
    borrowing = Borrowing.from_dict({
        "Id": 1, "BookId": 2, "ReaderId": 3,
        "BorrowDate": "2024-01-01T10:00:00Z", "ReturnDate": None, "IsReturned": True,
    })
    assert borrowing.is_returned is False
    assert borrowing.borrow_date == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def test_parse_timestamp_makes_naive_values_aware():
    parsed = parse_timestamp("2024-01-01T10:00:00")
    assert parsed.tzinfo is not None
    assert parsed.replace(tzinfo=None) == datetime(2024, 1, 1, 10, 0)


@pytest.mark.parametrize(
    "text, micro",
    [
        ("2024-05-01T12:34:56.5+03:00", 500000),
        ("2024-05-01T12:34:56.12345+03:00", 123450),
        ("2024-05-01T12:34:56.1234567+03:00", 123456),
    ],
)
def test_parse_timestamp_accepts_any_fraction_length(text, micro):
    parsed = parse_timestamp(text)
    assert parsed.microsecond == micro
    assert parsed.utcoffset().total_seconds() == 3 * 3600
