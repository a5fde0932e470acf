from __future__ import annotations


class Book:
    """Represents a single book in the library."""

    def __init__(self, id: int, title: str, author: str = "", genre: str = "", year: int = 0,
                 is_available: bool = True) -> None:
        self.id = id
        self.title = title.strip()
        self.author = (author or "").strip()
        self.genre = (genre or "").strip()
        self.year = year
        self.is_available = is_available

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        status = "Yes" if self.is_available else "No"
        return f"ID: {self.id} | {self.title} | {self.author} | {self.genre} | {self.year} | Available: {status}"

    def __repr__(self) -> str:
        return f"Book(id={self.id!r}, title={self.title!r}, is_available={self.is_available!r})"

    def to_dict(self) -> dict:
        return {
            "Id": self.id,
            "Title": self.title,
            "Author": self.author,
            "Genre": self.genre,
            "Year": self.year,
            "IsAvailable": self.is_available,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        # BorrowHistory is derived from the top-level borrowings list and is not read back
        return Book(
            id=int(data["Id"]),
            title=data["Title"],
            author=data.get("Author") or "",
            genre=data.get("Genre") or "",
            year=int(data.get("Year") or 0),
            is_available=_read_flag(data.get("IsAvailable", True)),
        )


def _read_flag(value) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"IsAvailable must be true or false, got {value!r}")
    return value
