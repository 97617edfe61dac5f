from __future__ import annotations
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Tuple

from .domain import (
    Book,
    Copy,
    CopyId,
    Transaction,
    TransactionStatus,
    TransactionType,
    as_utc,
    utcnow,
)
from .errors import BookNotFoundError, PersistenceError, UserNotFoundError
from .fines import FineCalculator
from .ledger import CopyLedger
from .repositories import BookRepo, UserRepo
from .reservations import ReservationQueue
from .transactions import TransactionLog

_LOGGER = logging.getLogger(__name__)

LOAN_FILTERS = ("all", "active", "overdue")


class BorrowReceipt(NamedTuple):
    book: Book
    copy: Copy
    transaction: Transaction


class ReturnReceipt(NamedTuple):
    book: Book
    transaction: Transaction
    fine: Optional[Transaction]


class ExtensionReceipt(NamedTuple):
    book: Book
    copy: Copy
    transaction: Transaction


class ReservationReceipt(NamedTuple):
    book: Book
    transaction: Transaction
    position: int


class PaymentReceipt(NamedTuple):
    fine: Transaction
    transaction: Transaction


@dataclass
class LoanView:
    book_id: str
    book_title: str
    library_id: Optional[str]
    copy_id: CopyId
    user_id: str
    borrow_date: datetime
    due_date: datetime
    days_overdue: int

    @property
    def status(self) -> str:
        return "overdue" if self.days_overdue > 0 else "active"


@dataclass
class LoanStats:
    total: int
    active: int
    overdue: int


@dataclass
class OutstandingFine:
    book_id: str
    book_title: str
    copy_id: CopyId
    due_date: datetime
    days_overdue: int
    amount: float


class CirculationService:
    """
    Borrow, return, extend, reserve and pay.

    Copy changes for one book are serialised with a per-book lock. The book
    write and the transaction append are paired: if the append fails the
    book is written back as it was before the operation.
    """

    def __init__(
        self,
        books: BookRepo,
        users: UserRepo,
        log: TransactionLog,
        ledger: CopyLedger,
        fines: FineCalculator,
        reservations: ReservationQueue,
        clock: Callable[[], datetime] = utcnow,
        reservation_fee: float = 1.0,
        extension_days: int = 14,
    ) -> None:
        self.books = books
        self.users = users
        self.log = log
        self.ledger = ledger
        self.fines = fines
        self.reservations = reservations
        self.clock = clock
        self.reservation_fee = reservation_fee
        self.extension_days = extension_days

        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ---- helpers
    @contextmanager
    def _book_lock(self, book_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.get(book_id)
            if lock is None:
                if self.books.get_book(book_id) is None:
                    raise BookNotFoundError(book_id)
                lock = self._locks[book_id] = threading.Lock()
        with lock:
            yield

    def _now(self, now: Optional[datetime]) -> datetime:
        return as_utc(now or self.clock())

    def _require_book(self, book_id: str) -> Book:
        book = self.books.get_book(book_id)
        if book is None:
            raise BookNotFoundError(book_id)
        return book

    def _require_user(self, user_id: str) -> None:
        if self.users.get(user_id) is None:
            raise UserNotFoundError(user_id)

    def _commit(self, before: Book, after: Book, tx: Transaction) -> Transaction:
        self.books.save_book(after)
        try:
            return self.log.append(tx)
        except PersistenceError:
            _LOGGER.error(
                "[commit] transaction append failed for book=%s; restoring previous copy state",
                before.id,
            )
            self.books.save_book(before)
            raise

    # ---- circulation
    def borrow(self, book_id: str, user_id: str, now: Optional[datetime] = None) -> BorrowReceipt:
        now = self._now(now)
        self._require_user(user_id)
        with self._book_lock(book_id):
            book = self._require_book(book_id)
            copy_id = self.ledger.find_available_copy(book)
            updated, copy = self.ledger.mark_borrowed(book, copy_id, user_id, now)
            tx = self._commit(
                book,
                updated,
                Transaction(
                    user_id=user_id,
                    book_id=book.id,
                    copy_id=copy.id,
                    type=TransactionType.BORROW,
                    date=now,
                ),
            )
        _LOGGER.info(
            "[borrow] user=%s book=%s copy=%s due=%s",
            user_id,
            book.id,
            copy.id,
            copy.due_date.isoformat(),
        )
        return BorrowReceipt(updated, copy, tx)

    def return_copy(
        self, book_id: str, user_id: str, copy_id: CopyId, now: Optional[datetime] = None
    ) -> ReturnReceipt:
        now = self._now(now)
        self._require_user(user_id)
        with self._book_lock(book_id):
            book = self._require_book(book_id)
            held = self.ledger.find_copy(book, copy_id)
            # validates the borrower before anything is written
            updated, _ = self.ledger.mark_returned(book, copy_id, user_id)

            fine: Optional[Transaction] = None
            if held.loan is not None and held.loan.is_overdue(now):
                days = self.fines.days_overdue(held.loan.due_date, now)
                fine = self.log.append(
                    Transaction(
                        user_id=user_id,
                        book_id=book.id,
                        copy_id=held.id,
                        type=TransactionType.FINE,
                        amount=self.fines.fine_amount(days),
                        status=TransactionStatus.PENDING,
                        reason=f"Overdue {days} day(s)",
                        date=now,
                    )
                )
                _LOGGER.info(
                    "[return] fine assessed: %.2f for %d day(s) user=%s book=%s",
                    fine.amount,
                    days,
                    user_id,
                    book.id,
                )

            tx = self._commit(
                book,
                updated,
                Transaction(
                    user_id=user_id,
                    book_id=book.id,
                    copy_id=held.id,
                    type=TransactionType.RETURN,
                    date=now,
                ),
            )
        _LOGGER.info("[return] user=%s book=%s copy=%s", user_id, book.id, held.id)
        return ReturnReceipt(updated, tx, fine)

    def extend_loan(
        self,
        book_id: str,
        copy_id: CopyId,
        days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ExtensionReceipt:
        now = self._now(now)
        days = self.extension_days if days is None else days
        with self._book_lock(book_id):
            book = self._require_book(book_id)
            updated, copy = self.ledger.extend(book, copy_id, days)
            tx = self._commit(
                book,
                updated,
                Transaction(
                    user_id=copy.borrowed_by,
                    book_id=book.id,
                    copy_id=copy.id,
                    type=TransactionType.EXTENSION,
                    reason=f"Extended by {days} day(s)",
                    date=now,
                ),
            )
        _LOGGER.info(
            "[extend] book=%s copy=%s new_due=%s", book.id, copy.id, copy.due_date.isoformat()
        )
        return ExtensionReceipt(updated, copy, tx)

    def reserve_book(
        self, book_id: str, user_id: str, now: Optional[datetime] = None
    ) -> ReservationReceipt:
        now = self._now(now)
        self._require_user(user_id)
        with self._book_lock(book_id):
            book = self._require_book(book_id)
            updated = self.reservations.reserve(book, user_id)
            tx = self._commit(
                book,
                updated,
                Transaction(
                    user_id=user_id,
                    book_id=book.id,
                    copy_id=None,
                    type=TransactionType.RESERVATION,
                    amount=self.reservation_fee,
                    status=TransactionStatus.ACTIVE,
                    date=now,
                ),
            )
        position = self.reservations.position(updated, user_id) or len(updated.reserved_by)
        _LOGGER.info("[reserve] user=%s book=%s position=%d", user_id, book.id, position)
        return ReservationReceipt(updated, tx, position)

    def pay_fine(self, fine_id: str, now: Optional[datetime] = None) -> PaymentReceipt:
        now = self._now(now)
        fine = self.log.update_status(fine_id, TransactionStatus.PAID)
        payment = self.log.append(
            Transaction(
                user_id=fine.user_id,
                book_id=fine.book_id,
                copy_id=fine.copy_id,
                type=TransactionType.PAYMENT,
                amount=fine.amount,
                reason=f"Payment for {fine.id}",
                date=now,
            )
        )
        _LOGGER.info("[pay] fine=%s amount=%.2f user=%s", fine.id, fine.amount, fine.user_id)
        return PaymentReceipt(fine, payment)

    # ---- reporting
    def list_loans(
        self,
        status: str = "all",
        library_id: Optional[str] = None,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[LoanView]:
        if status not in LOAN_FILTERS:
            raise ValueError(f"status must be one of {LOAN_FILTERS}, got {status!r}")
        now = self._now(now)
        loans: List[LoanView] = []
        for book in self.books.list_books(library_id):
            for copy in self.ledger.active_loans(book):
                loan = copy.loan
                if user_id is not None and loan.user_id != user_id:
                    continue
                view = LoanView(
                    book_id=book.id,
                    book_title=book.title,
                    library_id=book.library_id,
                    copy_id=copy.id,
                    user_id=loan.user_id,
                    borrow_date=loan.borrow_date,
                    due_date=loan.due_date,
                    days_overdue=self.fines.days_overdue(loan.due_date, now),
                )
                if status == "all" or view.status == status:
                    loans.append(view)
        return sorted(loans, key=lambda l: l.due_date)

    def loan_stats(self, now: Optional[datetime] = None) -> LoanStats:
        loans = self.list_loans(now=now)
        overdue = sum(1 for l in loans if l.status == "overdue")
        return LoanStats(total=len(loans), active=len(loans) - overdue, overdue=overdue)

    def outstanding_fines(self, user_id: str, now: Optional[datetime] = None) -> List[OutstandingFine]:
        """Fines accruing on copies the user still holds past their due date."""
        return [
            OutstandingFine(
                book_id=l.book_id,
                book_title=l.book_title,
                copy_id=l.copy_id,
                due_date=l.due_date,
                days_overdue=l.days_overdue,
                amount=self.fines.fine_amount(l.days_overdue),
            )
            for l in self.list_loans(status="overdue", user_id=user_id, now=now)
        ]

    def report_inventory(self) -> List[Tuple[Book, int, int]]:
        """
        Returns tuples of (Book, total_copies, available_copies)
        """
        return [(b, b.total_copies, b.available_copies) for b in self.books.list_books()]
