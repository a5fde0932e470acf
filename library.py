from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import database
from book import Book
from borrowing import Borrowing
from config import settings
from database import LibraryData, StorageError, load_library_data, save_library_data
from reader import Reader
from utils.validators import TextValidator

logger = logging.getLogger(__name__)

TOP_LIMIT = 5


class LibraryError(Exception):
    """Base class for failures the caller can recover from."""


class ValidationError(LibraryError):
    """Caller-supplied data fails a precondition (e.g. empty title)."""


class NotFoundError(LibraryError):
    """A referenced id does not exist."""


class ConflictError(LibraryError):
    """The operation is impossible in the current state."""


class PersistenceError(Exception):
    """The change was applied in memory but could not be written to disk.

    Not a ``LibraryError``: those leave state unchanged, this one does not.
    """


@dataclass
class OperationResult:
    record: Any
    message: str
    persisted: bool = True


def _local_now() -> datetime:
    return datetime.now().astimezone()


class Library:
    """Manages books, readers and borrowings and keeps them on disk.

    All three collections are insertion-ordered dicts keyed by id. Every
    successful mutation writes the full state back to ``data_file`` before
    returning.
    """

    def __init__(self, data_file: Optional[str] = None, clock: Optional[Callable[[], datetime]] = None,
                 strict_persistence: Optional[bool] = None) -> None:
        self.data_file = data_file or database.DATA_FILE
        self._clock = clock or _local_now
        self.strict_persistence = settings.strict_persistence if strict_persistence is None else strict_persistence
        self._lock = threading.RLock()

        self.books: Dict[int, Book] = {}
        self.readers: Dict[int, Reader] = {}
        self.borrowings: Dict[int, Borrowing] = {}
        self._next_book_id = 1
        self._next_reader_id = 1
        self._next_borrowing_id = 1

        self.load()

    # ------------------------- Persistence ------------------------- #
    def load(self) -> None:
        """Replace in-memory state with the contents of the data file.

        A missing or unreadable file leaves the library empty.
        """
        with self._lock:
            try:
                data = load_library_data(self.data_file)
            except StorageError as e:
                logger.error(f"Failed to load library data, starting empty: {e}")
                data = None

            data = data or LibraryData()
            self.books = {book.id: book for book in data.books}
            self.readers = {reader.id: reader for reader in data.readers}
            self.borrowings = {borrowing.id: borrowing for borrowing in data.borrowings}
            # Stored counters win over max(id) + 1 so removed ids stay retired
            counters = data.counters
            self._next_book_id = max(max(self.books, default=0) + 1, counters.get("Books", 1))
            self._next_reader_id = max(max(self.readers, default=0) + 1, counters.get("Readers", 1))
            self._next_borrowing_id = max(max(self.borrowings, default=0) + 1, counters.get("Borrowings", 1))

            for problem in self.check_integrity():
                logger.warning(f"Integrity problem in {self.data_file}: {problem}")

    def snapshot(self) -> LibraryData:
        return LibraryData(
            books=list(self.books.values()),
            readers=list(self.readers.values()),
            borrowings=list(self.borrowings.values()),
            counters={
                "Books": self._next_book_id,
                "Readers": self._next_reader_id,
                "Borrowings": self._next_borrowing_id,
            },
        )

    def next_ids(self) -> Tuple[int, int, int]:
        """Ids the next book, reader and borrowing will receive."""
        return self._next_book_id, self._next_reader_id, self._next_borrowing_id

    def _save(self) -> bool:
        try:
            save_library_data(self.data_file, self.snapshot())
            return True
        except StorageError as e:
            logger.error(f"Failed to save library data: {e}")
            if self.strict_persistence:
                raise PersistenceError(f"Change applied but not saved: {e}") from e
            return False

    def _commit(self, record: Any, message: str) -> OperationResult:
        persisted = self._save()
        logger.info(message)
        return OperationResult(record=record, message=message, persisted=persisted)

    # ------------------------- Books ------------------------- #
    def add_book(self, title: str, author: str = "", genre: str = "", year: int = 0) -> OperationResult:
        if TextValidator.is_blank(title):
            raise ValidationError("Book title cannot be empty.")
        try:
            year = int(year or 0)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid publication year: {year!r}") from e

        with self._lock:
            book = Book(
                id=self._next_book_id,
                title=title,
                author=TextValidator.clean(author),
                genre=TextValidator.clean(genre),
                year=year,
            )
            self._next_book_id += 1
            self.books[book.id] = book
            return self._commit(book, f"Book '{book.title}' added (ID: {book.id})")

    def remove_book(self, book_id: int) -> OperationResult:
        with self._lock:
            book = self._require_book(book_id)
            if not book.is_available:
                raise ConflictError(f"Cannot remove book '{book.title}': it is on loan.")
            del self.books[book.id]
            # Borrowings stay behind as history
            return self._commit(book, f"Book '{book.title}' removed")

    def get_book(self, book_id: int) -> Optional[Book]:
        return self.books.get(book_id)

    def list_books(self) -> List[Book]:
        return list(self.books.values())

    def search_books(self, term: str) -> List[Book]:
        """Case-insensitive substring search over title, author and genre."""
        if TextValidator.is_blank(term):
            return []
        needle = term.casefold()
        return [
            book for book in self.books.values()
            if needle in book.title.casefold()
            or needle in book.author.casefold()
            or needle in book.genre.casefold()
        ]

    def filter_books(self, genre: Optional[str] = None, is_available: Optional[bool] = None) -> List[Book]:
        result = self.list_books()
        if genre:
            wanted = genre.casefold()
            result = [book for book in result if book.genre.casefold() == wanted]
        if is_available is not None:
            result = [book for book in result if book.is_available == is_available]
        return result

    def sort_books(self, criterion: str) -> List[Book]:
        """Return books ordered by title, author (ascending) or year (newest first).

        Unknown criteria return the books in collection order.
        """
        books = self.list_books()
        key = (criterion or "").strip().lower()
        if key == "title":
            return sorted(books, key=lambda b: b.title.casefold())
        if key == "author":
            return sorted(books, key=lambda b: b.author.casefold())
        if key == "year":
            return sorted(books, key=lambda b: b.year, reverse=True)
        return books

    # ------------------------- Readers ------------------------- #
    def add_reader(self, name: str, email: str = "") -> OperationResult:
        if TextValidator.is_blank(name):
            raise ValidationError("Reader name cannot be empty.")

        with self._lock:
            reader = Reader(id=self._next_reader_id, name=name, email=TextValidator.clean(email))
            self._next_reader_id += 1
            self.readers[reader.id] = reader
            return self._commit(reader, f"Reader '{reader.name}' added (ID: {reader.id})")

    def get_reader(self, reader_id: int) -> Optional[Reader]:
        return self.readers.get(reader_id)

    def list_readers(self) -> List[Reader]:
        return list(self.readers.values())

    def get_reader_books(self, reader_id: int) -> List[Book]:
        """Books currently on loan to a reader."""
        reader = self._require_reader(reader_id)
        return [self.books[book_id] for book_id in reader.borrowed_book_ids if book_id in self.books]

    # ------------------------- Borrowing ------------------------- #
    def borrow_book(self, book_id: int, reader_id: int) -> OperationResult:
        with self._lock:
            book = self._require_book(book_id)
            reader = self._require_reader(reader_id)
            if not book.is_available or self.get_active_borrowing(book.id) is not None:
                raise ConflictError(f"Book '{book.title}' is already on loan.")

            borrowing = Borrowing(
                id=self._next_borrowing_id,
                book_id=book.id,
                reader_id=reader.id,
                borrow_date=self._clock(),
            )
            self._next_borrowing_id += 1
            self.borrowings[borrowing.id] = borrowing
            book.is_available = False
            reader.hold(book.id)
            return self._commit(borrowing, f"Book '{book.title}' borrowed by '{reader.name}'")

    def return_book(self, book_id: int) -> OperationResult:
        with self._lock:
            book = self._require_book(book_id)
            borrowing = self.get_active_borrowing(book.id)
            if borrowing is None:
                raise ConflictError(f"Book '{book.title}' is not on loan.")

            borrowing.close(self._clock())
            book.is_available = True
            reader = self.readers.get(borrowing.reader_id)
            if reader is not None:
                reader.release(book.id)
            return self._commit(borrowing, f"Book '{book.title}' returned to the library")

    def get_active_borrowing(self, book_id: int) -> Optional[Borrowing]:
        for borrowing in self.borrowings.values():
            if borrowing.book_id == book_id and not borrowing.is_returned:
                return borrowing
        return None

    def list_borrowings(self) -> List[Borrowing]:
        return list(self.borrowings.values())

    def get_borrow_history(self, book_id: Optional[int] = None, reader_id: Optional[int] = None) -> List[Borrowing]:
        """Borrowings matching the given ids, most recent first."""
        result = self.list_borrowings()
        if book_id is not None:
            result = [b for b in result if b.book_id == book_id]
        if reader_id is not None:
            result = [b for b in result if b.reader_id == reader_id]
        return sorted(result, key=lambda b: b.borrow_date, reverse=True)

    # ------------------------- Statistics ------------------------- #
    def get_statistics(self) -> Dict[str, Any]:
        books = self.list_books()
        available = sum(1 for book in books if book.is_available)
        return {
            "total_books": len(books),
            "available_books": available,
            "borrowed_books": len(books) - available,
            "total_readers": len(self.readers),
            "total_borrowings": len(self.borrowings),
            "active_borrowings": sum(1 for b in self.borrowings.values() if not b.is_returned),
            "top_genres": _top_counts(book.genre for book in books),
            "top_authors": _top_counts(book.author for book in books),
        }

    def check_integrity(self) -> List[str]:
        """Describe every place where books, readers and borrowings disagree."""
        problems: List[str] = []
        open_by_book: Dict[int, List[Borrowing]] = {}
        for borrowing in self.borrowings.values():
            if not borrowing.is_returned:
                open_by_book.setdefault(borrowing.book_id, []).append(borrowing)

        for book_id, open_loans in open_by_book.items():
            if len(open_loans) > 1:
                problems.append(f"Book {book_id} has {len(open_loans)} open borrowings")
            book = self.books.get(book_id)
            if book is None:
                problems.append(f"Open borrowing {open_loans[0].id} refers to missing book {book_id}")
            elif book.is_available:
                problems.append(f"Book {book_id} is marked available but has an open borrowing")
            for borrowing in open_loans:
                reader = self.readers.get(borrowing.reader_id)
                if reader is None:
                    problems.append(f"Open borrowing {borrowing.id} refers to missing reader {borrowing.reader_id}")
                elif book_id not in reader.borrowed_book_ids:
                    problems.append(f"Reader {reader.id} does not list book {book_id} from borrowing {borrowing.id}")

        for book in self.books.values():
            if not book.is_available and book.id not in open_by_book:
                problems.append(f"Book {book.id} is marked on loan but has no open borrowing")

        for reader in self.readers.values():
            for book_id in reader.borrowed_book_ids:
                holders = [b.reader_id for b in open_by_book.get(book_id, [])]
                if reader.id not in holders:
                    problems.append(f"Reader {reader.id} lists book {book_id} without an open borrowing")
        return problems

    # ------------------------- Utilities ------------------------- #
    def _require_book(self, book_id: int) -> Book:
        book = self.books.get(book_id)
        if book is None:
            raise NotFoundError(f"Book with ID {book_id} not found.")
        return book

    def _require_reader(self, reader_id: int) -> Reader:
        reader = self.readers.get(reader_id)
        if reader is None:
            raise NotFoundError(f"Reader with ID {reader_id} not found.")
        return reader


def _top_counts(values, limit: int = TOP_LIMIT) -> List[Tuple[str, int]]:
    counts: Dict[str, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    # sorted() is stable, so ties keep first-seen order
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)[:limit]
