"""
Copy availability transitions.

Every function here takes a Book value and returns a new one; the input is
never modified, so a raised error leaves the caller's book exactly as it was.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime, timedelta
from typing import List, NamedTuple, Tuple

from .domain import Book, Copy, CopyId, Loan
from .errors import (
    CopyAlreadyBorrowedError,
    CopyNotBorrowedByUserError,
    CopyNotBorrowedError,
    CopyNotFoundError,
    InvalidExtensionError,
    NoAvailableCopyError,
)

DEFAULT_LOAN_PERIOD = timedelta(days=14)


class CopyTransition(NamedTuple):
    book: Book
    copy: Copy


def _copy_order(copy: Copy) -> Tuple[int, int, str]:
    # numeric ids sort numerically, before any string ids
    if isinstance(copy.id, int) or str(copy.id).isdecimal():
        return (0, int(copy.id), "")
    return (1, 0, str(copy.id))


def _same_id(a: CopyId, b: CopyId) -> bool:
    return str(a) == str(b)


class CopyLedger:
    def __init__(self, loan_period: timedelta = DEFAULT_LOAN_PERIOD) -> None:
        self.loan_period = loan_period

    def find_copy(self, book: Book, copy_id: CopyId) -> Copy:
        for copy in book.copies:
            if _same_id(copy.id, copy_id):
                return copy
        raise CopyNotFoundError(book.id, copy_id)

    def find_available_copy(self, book: Book) -> CopyId:
        for copy in sorted(book.copies, key=_copy_order):
            if copy.is_available:
                return copy.id
        raise NoAvailableCopyError(book.id)

    def mark_borrowed(
        self, book: Book, copy_id: CopyId, user_id: str, now: datetime
    ) -> CopyTransition:
        copy = self.find_copy(book, copy_id)
        if copy.loan is not None:
            raise CopyAlreadyBorrowedError(book.id, copy.id, copy.loan.user_id)
        loan = Loan(user_id=user_id, borrow_date=now, due_date=now + self.loan_period)
        return self._with_copy(book, replace(copy, loan=loan))

    def mark_returned(self, book: Book, copy_id: CopyId, user_id: str) -> CopyTransition:
        copy = self.find_copy(book, copy_id)
        if copy.loan is None or copy.loan.user_id != user_id:
            raise CopyNotBorrowedByUserError(book.id, copy.id, user_id)
        return self._with_copy(book, replace(copy, loan=None))

    def extend(self, book: Book, copy_id: CopyId, days: int) -> CopyTransition:
        """Push the due date back by ``days``, counted from the current due date."""
        if days <= 0:
            raise InvalidExtensionError(f"extension must be at least one day, got {days}")
        copy = self.find_copy(book, copy_id)
        if copy.loan is None:
            raise CopyNotBorrowedError(book.id, copy.id)
        loan = replace(copy.loan, due_date=copy.loan.due_date + timedelta(days=days))
        return self._with_copy(book, replace(copy, loan=loan))

    def active_loans(self, book: Book) -> List[Copy]:
        return [c for c in book.copies if c.loan is not None]

    def count_borrowed(self, book: Book) -> int:
        return len(self.active_loans(book))

    @staticmethod
    def _with_copy(book: Book, updated: Copy) -> CopyTransition:
        copies = [updated if _same_id(c.id, updated.id) else c for c in book.copies]
        return CopyTransition(replace(book, copies=copies), updated)
