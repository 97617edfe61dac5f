from __future__ import annotations


class CirculationError(Exception):
    """Base exception for circulation engine errors."""


# ---- not found


class NotFoundError(CirculationError):
    """A referenced book, copy, user or transaction does not exist."""


class BookNotFoundError(NotFoundError):
    def __init__(self, book_id: str) -> None:
        super().__init__(f"book {book_id!r} not found")
        self.book_id = book_id


class CopyNotFoundError(NotFoundError):
    def __init__(self, book_id: str, copy_id: object) -> None:
        super().__init__(f"copy {copy_id!r} not found in book {book_id!r}")
        self.book_id = book_id
        self.copy_id = copy_id


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"user {user_id!r} not found")
        self.user_id = user_id


class TransactionNotFoundError(NotFoundError):
    def __init__(self, transaction_id: str) -> None:
        super().__init__(f"transaction {transaction_id!r} not found")
        self.transaction_id = transaction_id


# ---- state conflicts


class StateConflictError(CirculationError):
    """The requested change clashes with the current state."""


class CopyAlreadyBorrowedError(StateConflictError):
    def __init__(self, book_id: str, copy_id: object, borrowed_by: str) -> None:
        super().__init__(f"copy {copy_id!r} of book {book_id!r} is already borrowed")
        self.book_id = book_id
        self.copy_id = copy_id
        self.borrowed_by = borrowed_by


class CopyNotBorrowedByUserError(StateConflictError):
    def __init__(self, book_id: str, copy_id: object, user_id: str) -> None:
        super().__init__(
            f"copy {copy_id!r} of book {book_id!r} is not borrowed by user {user_id!r}"
        )
        self.book_id = book_id
        self.copy_id = copy_id
        self.user_id = user_id


class CopyNotBorrowedError(StateConflictError):
    def __init__(self, book_id: str, copy_id: object) -> None:
        super().__init__(f"copy {copy_id!r} of book {book_id!r} is not on loan")
        self.book_id = book_id
        self.copy_id = copy_id


class DuplicateReservationError(StateConflictError):
    def __init__(self, book_id: str, user_id: str) -> None:
        super().__init__(f"user {user_id!r} already reserved book {book_id!r}")
        self.book_id = book_id
        self.user_id = user_id


class InvalidStatusTransitionError(StateConflictError):
    """Only a pending fine may move to paid."""


# ---- validation


class ValidationError(CirculationError):
    """The request cannot be satisfied as asked."""


class NoAvailableCopyError(ValidationError):
    def __init__(self, book_id: str) -> None:
        super().__init__(f"no available copy of book {book_id!r}")
        self.book_id = book_id


class InvalidExtensionError(ValidationError):
    """Loan extensions must be a positive number of days."""


# ---- storage


class PersistenceError(CirculationError):
    """The key-value store could not be read or written."""
