from __future__ import annotations

from typing import List, Optional


class Reader:
    """A registered library reader and the ids of the books they hold."""

    def __init__(self, id: int, name: str, email: str = "", borrowed_book_ids: Optional[List[int]] = None) -> None:
        self.id = id
        self.name = name.strip()
        self.email = (email or "").strip()
        self.borrowed_book_ids: List[int] = list(borrowed_book_ids or [])

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"ID: {self.id} | {self.name} | {self.email} | Books on loan: {len(self.borrowed_book_ids)}"

    def __repr__(self) -> str:
        return f"Reader(id={self.id!r}, name={self.name!r}, borrowed_book_ids={self.borrowed_book_ids!r})"

    def hold(self, book_id: int) -> None:
        if book_id not in self.borrowed_book_ids:
            self.borrowed_book_ids.append(book_id)

    def release(self, book_id: int) -> None:
        if book_id in self.borrowed_book_ids:
            self.borrowed_book_ids.remove(book_id)

    def to_dict(self) -> dict:
        return {
            "Id": self.id,
            "Name": self.name,
            "Email": self.email,
            "BorrowedBookIds": list(self.borrowed_book_ids),
        }

    @staticmethod
    def from_dict(data: dict) -> "Reader":
        ids = []
        for raw in data.get("BorrowedBookIds") or []:
            book_id = int(raw)
            if book_id not in ids:
                ids.append(book_id)
        return Reader(
            id=int(data["Id"]),
            name=data["Name"],
            email=data.get("Email") or "",
            borrowed_book_ids=ids,
        )
