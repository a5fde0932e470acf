from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

# fromisoformat before 3.11 only takes 3 or 6 fraction digits; .NET writes up to 7
_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into an aware datetime.

    Naive values are taken as local time. A trailing ``Z`` is accepted.
    """
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1).ljust(6, "0")[:6], value.strip(), count=1)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


class Borrowing:
    """One loan of a book to a reader. Open until ``return_date`` is set."""

    def __init__(self, id: int, book_id: int, reader_id: int, borrow_date: datetime,
                 return_date: Optional[datetime] = None) -> None:
        self.id = id
        self.book_id = book_id
        self.reader_id = reader_id
        self.borrow_date = borrow_date
        self.return_date = return_date

    @property
    def is_returned(self) -> bool:
        return self.return_date is not None

    def close(self, when: datetime) -> None:
        if self.return_date is not None:
            raise ValueError(f"Borrowing {self.id} is already closed")
        self.return_date = when

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        status = "Returned" if self.is_returned else "On loan"
        returned = f" | Returned: {self.return_date:%d.%m.%Y}" if self.return_date else ""
        return (f"ID: {self.id} | Book ID: {self.book_id} | Reader ID: {self.reader_id} | "
                f"Borrowed: {self.borrow_date:%d.%m.%Y} | {status}{returned}")

    def __repr__(self) -> str:
        return f"Borrowing(id={self.id!r}, book_id={self.book_id!r}, reader_id={self.reader_id!r}, is_returned={self.is_returned!r})"

    def to_dict(self) -> dict:
        return {
            "Id": self.id,
            "BookId": self.book_id,
            "ReaderId": self.reader_id,
            "BorrowDate": format_timestamp(self.borrow_date),
            "ReturnDate": format_timestamp(self.return_date) if self.return_date else None,
            "IsReturned": self.is_returned,
        }

    @staticmethod
    def from_dict(data: dict) -> "Borrowing":
        # IsReturned is derived from ReturnDate and ignored here
        returned = data.get("ReturnDate")
        return Borrowing(
            id=int(data["Id"]),
            book_id=int(data["BookId"]),
            reader_id=int(data["ReaderId"]),
            borrow_date=parse_timestamp(data["BorrowDate"]),
            return_date=parse_timestamp(returned) if returned else None,
        )
