from __future__ import annotations
import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional, Set

from .domain import Transaction, TransactionStatus, TransactionType, as_utc, utcnow
from .errors import InvalidStatusTransitionError, TransactionNotFoundError
from .repositories import BookRepo, LibraryRepo, TransactionRepo

_LOGGER = logging.getLogger(__name__)

# (type, from status) -> allowed target statuses
_ALLOWED_STATUS_CHANGES = {
    (TransactionType.FINE, TransactionStatus.PENDING): {TransactionStatus.PAID},
}


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


class TransactionLog:
    """
    Append-only record of circulation events.

    Records are never deleted and never edited, except that a pending fine
    may be marked paid through ``update_status``.
    """

    def __init__(
        self,
        transactions: TransactionRepo,
        books: BookRepo,
        libraries: LibraryRepo,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.transactions = transactions
        self.books = books
        self.libraries = libraries
        self.clock = clock

    def append(self, tx: Transaction) -> Transaction:
        tx = replace(
            tx,
            id=tx.id or _new_id("tx"),
            date=as_utc(tx.date or self.clock()),
        )
        self.transactions.add(tx)
        _LOGGER.debug("[log] %s %s book=%s user=%s", tx.type.value, tx.id, tx.book_id, tx.user_id)
        return tx

    def get(self, transaction_id: str) -> Transaction:
        tx = self.transactions.get(transaction_id)
        if tx is None:
            raise TransactionNotFoundError(transaction_id)
        return tx

    def query(
        self,
        user_id: Optional[str] = None,
        book_id: Optional[str] = None,
        library_id: Optional[str] = None,
        type: Optional[TransactionType] = None,
        status: Optional[TransactionStatus] = None,
        owner_id: Optional[str] = None,
    ) -> List[Transaction]:
        """
        Return matching transactions, newest first.

        ``library_id`` and ``owner_id`` are resolved against the current book
        and library records, since transactions only carry a book id.
        Transactions with the same date keep the order they were appended in.
        """
        items = self.transactions.list_all()
        if user_id is not None:
            items = [t for t in items if t.user_id == user_id]
        if book_id is not None:
            items = [t for t in items if t.book_id == book_id]
        if type is not None:
            items = [t for t in items if t.type == type]
        if status is not None:
            items = [t for t in items if t.status == status]
        if library_id is not None:
            allowed = self._book_ids_in({library_id})
            items = [t for t in items if t.book_id in allowed]
        if owner_id is not None:
            owned = {lib.id for lib in self.libraries.list_owned_by(owner_id)}
            allowed = self._book_ids_in(owned)
            items = [t for t in items if t.book_id in allowed]
        # sort() is stable, so equal dates stay in insertion order
        return sorted(items, key=lambda t: t.date, reverse=True)

    def update_status(self, transaction_id: str, new_status: TransactionStatus) -> Transaction:
        with self.transactions.lock:
            tx = self.get(transaction_id)
            allowed = _ALLOWED_STATUS_CHANGES.get((tx.type, tx.status), set())
            if new_status not in allowed:
                raise InvalidStatusTransitionError(
                    f"cannot move {tx.type.value} transaction {tx.id} "
                    f"from {tx.status.value} to {new_status.value}"
                )
            updated = replace(tx, status=new_status)
            self.transactions.replace(updated)
        _LOGGER.info("[log] %s %s -> %s", tx.id, tx.status.value, new_status.value)
        return updated

    def _book_ids_in(self, library_ids: Set[str]) -> Set[str]:
        return {b.id for b in self.books.list_books() if b.library_id in library_ids}
