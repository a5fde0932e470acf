"""JSON file persistence for the library record store.

The whole library (books, readers, borrowings) lives in one pretty-printed
JSON file. Every save rewrites the full state; there are no partial updates.
The file layout matches the one written by earlier versions of the app::

    {
      "Books": [{"Id": 1, "Title": ..., "IsAvailable": true, "BorrowHistory": [...]}],
      "Readers": [{"Id": 1, "Name": ..., "BorrowedBookIds": [1]}],
      "Borrowings": [{"Id": 1, "BookId": 1, "ReaderId": 1, "BorrowDate": ..., "ReturnDate": null}]
    }

``BorrowHistory`` is written for compatibility only. On load the top-level
``Borrowings`` list is the single source of truth.

An extra ``Counters`` object (``{"Books": 4, "Readers": 2, "Borrowings": 3}``)
records the next id of each kind so that ids of removed records are not handed
out again after a restart. Files without it are still accepted.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from book import Book
from borrowing import Borrowing
from config import settings
from reader import Reader

logger = logging.getLogger(__name__)

# Default data file; the store accepts an explicit path to override it.
DATA_FILE = settings.data_file


class StorageError(Exception):
    """Raised when the data file cannot be read, parsed or written."""


COUNTER_KEYS = ("Books", "Readers", "Borrowings")


@dataclass
class LibraryData:
    books: List[Book] = field(default_factory=list)
    readers: List[Reader] = field(default_factory=list)
    borrowings: List[Borrowing] = field(default_factory=list)
    # Next id per kind, keyed like the top-level lists. Empty for files without counters.
    counters: Dict[str, int] = field(default_factory=dict)


def _parse_counters(payload: dict) -> Dict[str, int]:
    raw = payload.get("Counters")
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise StorageError(f"'Counters' must be an object, got {type(raw).__name__}")
    counters = {}
    for key in COUNTER_KEYS:
        if key in raw:
            value = raw[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise StorageError(f"Counters.{key} must be a positive integer, got {value!r}")
            counters[key] = value
    return counters


def _parse_records(payload: dict, key: str, factory) -> list:
    raw = payload.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise StorageError(f"'{key}' must be a list, got {type(raw).__name__}")

    records = []
    seen = set()
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise StorageError(f"{key}[{index}] is not an object")
        try:
            record = factory(item)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StorageError(f"{key}[{index}] is malformed: {e!r}") from e
        if record.id in seen:
            raise StorageError(f"Duplicate id {record.id} in '{key}'")
        seen.add(record.id)
        records.append(record)
    return records


def parse_library_data(payload) -> LibraryData:
    """Build LibraryData from decoded JSON, raising StorageError on a bad shape."""
    if payload is None:
        return LibraryData()
    if not isinstance(payload, dict):
        raise StorageError(f"Expected a JSON object at top level, got {type(payload).__name__}")
    return LibraryData(
        books=_parse_records(payload, "Books", Book.from_dict),
        readers=_parse_records(payload, "Readers", Reader.from_dict),
        borrowings=_parse_records(payload, "Borrowings", Borrowing.from_dict),
        counters=_parse_counters(payload),
    )


def serialize_library_data(data: LibraryData) -> dict:
    history: Dict[int, List[dict]] = {}
    for borrowing in data.borrowings:
        history.setdefault(borrowing.book_id, []).append(borrowing.to_dict())

    books = []
    for book in data.books:
        record = book.to_dict()
        record["BorrowHistory"] = history.get(book.id, [])
        books.append(record)

    payload = {
        "Books": books,
        "Readers": [reader.to_dict() for reader in data.readers],
        "Borrowings": [borrowing.to_dict() for borrowing in data.borrowings],
    }
    if data.counters:
        payload["Counters"] = {key: data.counters[key] for key in COUNTER_KEYS if key in data.counters}
    return payload


def load_library_data(path: str) -> Optional[LibraryData]:
    """Read the data file. Returns None if it does not exist."""
    if not os.path.exists(path):
        logger.info(f"Data file {path} not found, starting with an empty library")
        return None

    try:
        with open(path, "r", encoding="utf-8-sig") as f:
            payload = json.load(f)
    except (ValueError, RecursionError) as e:
        # ValueError covers JSONDecodeError and UnicodeDecodeError
        raise StorageError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise StorageError(f"Could not read {path}: {e}") from e

    data = parse_library_data(payload)
    logger.info(
        f"Loaded {len(data.books)} books, {len(data.readers)} readers, "
        f"{len(data.borrowings)} borrowings from {path}"
    )
    return data


def save_library_data(path: str, data: LibraryData) -> None:
    """Write the full state to ``path``.

    The JSON is written to a temporary file in the same directory and moved
    over the target with ``os.replace``, so an interrupted save leaves the
    previous file intact.
    """
    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".library-", suffix=".tmp", dir=directory)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(serialize_library_data(data), f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        tmp_path = None
    except OSError as e:
        raise StorageError(f"Could not write {path}: {e}") from e
    finally:
        if tmp_path and os.path.exists(tmp_path):
            os.remove(tmp_path)
    logger.debug(f"Saved library state to {path}")
