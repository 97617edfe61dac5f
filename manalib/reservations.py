from __future__ import annotations
from dataclasses import replace
from typing import List, Optional

from .domain import Book
from .errors import DuplicateReservationError


class ReservationQueue:
    """Per-book waiting list kept on ``Book.reserved_by``, oldest first."""

    def reserve(self, book: Book, user_id: str) -> Book:
        if user_id in book.reserved_by:
            raise DuplicateReservationError(book.id, user_id)
        return replace(book, reserved_by=[*book.reserved_by, user_id])

    def waiting(self, book: Book) -> List[str]:
        return list(book.reserved_by)

    def position(self, book: Book, user_id: str) -> Optional[int]:
        """1-based place in the queue, or None if the user is not waiting."""
        try:
            return book.reserved_by.index(user_id) + 1
        except ValueError:
            return None
