"""
Mana library circulation engine.

Exports key modules for convenient imports.
"""

from .domain import (
    Role,
    User,
    Library,
    Book,
    Loan,
    Copy,
    TransactionType,
    TransactionStatus,
    Transaction,
)

from .errors import (
    CirculationError,
    NotFoundError,
    BookNotFoundError,
    CopyNotFoundError,
    UserNotFoundError,
    TransactionNotFoundError,
    StateConflictError,
    CopyAlreadyBorrowedError,
    CopyNotBorrowedByUserError,
    CopyNotBorrowedError,
    DuplicateReservationError,
    InvalidStatusTransitionError,
    ValidationError,
    NoAvailableCopyError,
    InvalidExtensionError,
    PersistenceError,
)

from .store import KeyValueStore, MemoryStore, JsonFileStore

from .repositories import (
    UserRepo,
    LibraryRepo,
    BookRepo,
    TransactionRepo,
)

from .ledger import CopyLedger
from .fines import FinePolicy, FineCalculator, FLAT_POLICY, CAPPED_POLICY
from .reservations import ReservationQueue
from .transactions import TransactionLog
from .services import CirculationService

from .config import Settings
from .api import LibrarySystem
from .seed import seed_store

__all__ = [
    # domain
    "Role",
    "User",
    "Library",
    "Book",
    "Loan",
    "Copy",
    "TransactionType",
    "TransactionStatus",
    "Transaction",
    # errors
    "CirculationError",
    "NotFoundError",
    "BookNotFoundError",
    "CopyNotFoundError",
    "UserNotFoundError",
    "TransactionNotFoundError",
    "StateConflictError",
    "CopyAlreadyBorrowedError",
    "CopyNotBorrowedByUserError",
    "CopyNotBorrowedError",
    "DuplicateReservationError",
    "InvalidStatusTransitionError",
    "ValidationError",
    "NoAvailableCopyError",
    "InvalidExtensionError",
    "PersistenceError",
    # storage
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    # repos
    "UserRepo",
    "LibraryRepo",
    "BookRepo",
    "TransactionRepo",
    # engine
    "CopyLedger",
    "FinePolicy",
    "FineCalculator",
    "FLAT_POLICY",
    "CAPPED_POLICY",
    "ReservationQueue",
    "TransactionLog",
    "CirculationService",
    # api
    "Settings",
    "LibrarySystem",
    # seed
    "seed_store",
]
