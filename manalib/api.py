from __future__ import annotations
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple, Union

from .config import Settings, settings as default_settings
from .domain import Book, CopyId, Transaction, TransactionStatus, TransactionType, utcnow
from .fines import FineCalculator, warn_unresolved_policy
from .ledger import CopyLedger
from .repositories import BookRepo, LibraryRepo, TransactionRepo, UserRepo
from .reservations import ReservationQueue
from .seed import seed_store
from .services import (
    BorrowReceipt,
    CirculationService,
    ExtensionReceipt,
    LoanStats,
    LoanView,
    OutstandingFine,
    PaymentReceipt,
    ReservationReceipt,
    ReturnReceipt,
)
from .store import JsonFileStore, KeyValueStore
from .transactions import TransactionLog


class LibrarySystem:
    """
    A simple facade that wires the store, repos and services and offers the
    operations the app screens call.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.settings = settings or default_settings
        self.store = store if store is not None else JsonFileStore(self.settings.data_dir)
        if self.settings.seed_on_start:
            seed_store(self.store)

        # repos
        self.users = UserRepo(self.store)
        self.libraries = LibraryRepo(self.store)
        self.books = BookRepo(self.store)
        self.transactions = TransactionRepo(self.store)

        # services
        policy = self.settings.fine_policy()
        if not self.settings.fine_policy_explicit:
            warn_unresolved_policy(policy)
        self.log = TransactionLog(self.transactions, self.books, self.libraries, clock)
        self.circulation = CirculationService(
            books=self.books,
            users=self.users,
            log=self.log,
            ledger=CopyLedger(timedelta(days=self.settings.loan_period_days)),
            fines=FineCalculator(policy),
            reservations=ReservationQueue(),
            clock=clock,
            reservation_fee=self.settings.reservation_fee,
            extension_days=self.settings.extension_days,
        )

    # ---- catalog (read only)
    def get_book(self, book_id: str) -> Optional[Book]:
        return self.books.get_book(book_id)

    def list_books(self, library_id: Optional[str] = None) -> List[Book]:
        return self.books.list_books(library_id)

    def search_books(self, text: str) -> List[Book]:
        return self.books.search(text)

    # ---- circulation module
    def borrow_book(self, book_id: str, user_id: str) -> BorrowReceipt:
        return self.circulation.borrow(book_id, user_id)

    def return_book(self, book_id: str, user_id: str, copy_id: CopyId) -> ReturnReceipt:
        return self.circulation.return_copy(book_id, user_id, copy_id)

    def extend_loan(
        self, book_id: str, copy_id: CopyId, days: Optional[int] = None
    ) -> ExtensionReceipt:
        return self.circulation.extend_loan(book_id, copy_id, days)

    def reserve_book(self, book_id: str, user_id: str) -> ReservationReceipt:
        return self.circulation.reserve_book(book_id, user_id)

    # ---- transactions and fines
    def get_transactions(
        self,
        user_id: Optional[str] = None,
        book_id: Optional[str] = None,
        library_id: Optional[str] = None,
        type: Union[TransactionType, str, None] = None,
        status: Union[TransactionStatus, str, None] = None,
        owner_id: Optional[str] = None,
    ) -> List[Transaction]:
        return self.log.query(
            user_id=user_id,
            book_id=book_id,
            library_id=library_id,
            type=TransactionType(type) if type is not None else None,
            status=TransactionStatus(status) if status is not None else None,
            owner_id=owner_id,
        )

    def pay_fine(self, fine_id: str) -> PaymentReceipt:
        return self.circulation.pay_fine(fine_id)

    def outstanding_fines(self, user_id: str) -> Tuple[float, List[OutstandingFine]]:
        """
        Returns (total, items) for fines accruing on copies the user still holds.
        """
        items = self.circulation.outstanding_fines(user_id)
        return round(sum(f.amount for f in items), 2), items

    # ---- reporting
    def list_loans(self, status: str = "all", library_id: Optional[str] = None) -> List[LoanView]:
        return self.circulation.list_loans(status=status, library_id=library_id)

    def loan_stats(self) -> LoanStats:
        return self.circulation.loan_stats()

    def report_inventory(self) -> List[Tuple[Book, int, int]]:
        """
        Returns tuples of (Book, total_copies, available_copies)
        """
        return self.circulation.report_inventory()

