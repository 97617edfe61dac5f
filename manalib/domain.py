from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

CopyId = Union[int, str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class Role(Enum):
    ADMIN = "admin"
    PARTNER = "partner"
    USER = "user"


@dataclass
class User:
    id: str
    name: str
    email: str
    role: Role = Role.USER

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "User":
        return cls(
            id=str(raw["id"]),
            name=raw.get("name", ""),
            email=raw.get("email", ""),
            role=Role(raw.get("role", Role.USER.value)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email, "role": self.role.value}


@dataclass
class Library:
    id: str
    name: str
    owner: Optional[str] = None
    description: str = ""
    is_public: bool = True
    location: str = ""
    contact: str = ""

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Library":
        return cls(
            id=str(raw["id"]),
            name=raw.get("name", ""),
            owner=raw.get("owner"),
            description=raw.get("description", ""),
            is_public=raw.get("isPublic", True),
            location=raw.get("location", ""),
            contact=raw.get("contact", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "owner": self.owner,
            "description": self.description,
            "isPublic": self.is_public,
            "location": self.location,
            "contact": self.contact,
        }


@dataclass(frozen=True)
class Loan:
    """The borrowed state of a copy: who holds it and until when."""

    user_id: str
    borrow_date: datetime
    due_date: datetime

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return now > self.due_date


@dataclass(frozen=True)
class Copy:
    """
    One lendable unit of a Book.

    ``loan is None`` means the copy is available. Borrower, borrow date and
    due date live together on the Loan so they are always set or cleared
    as one.
    """

    id: CopyId
    loan: Optional[Loan] = None

    @property
    def is_available(self) -> bool:
        return self.loan is None

    @property
    def borrowed_by(self) -> Optional[str]:
        return self.loan.user_id if self.loan else None

    @property
    def borrow_date(self) -> Optional[datetime]:
        return self.loan.borrow_date if self.loan else None

    @property
    def due_date(self) -> Optional[datetime]:
        return self.loan.due_date if self.loan else None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Copy":
        borrowed_by = raw.get("borrowedBy")
        if borrowed_by is None:
            return cls(id=raw["id"])
        borrow_date = parse_timestamp(raw.get("borrowDate"))
        due_date = parse_timestamp(raw.get("dueDate"))
        if borrow_date is None or due_date is None:
            raise ValueError(
                f"copy {raw['id']!r} is borrowed by {borrowed_by!r} but has no borrow/due date"
            )
        return cls(id=raw["id"], loan=Loan(str(borrowed_by), borrow_date, due_date))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "borrowedBy": self.borrowed_by,
            "borrowDate": format_timestamp(self.borrow_date),
            "dueDate": format_timestamp(self.due_date),
        }


@dataclass(frozen=True)
class Book:
    id: str
    library_id: Optional[str]
    title: str
    author: str = ""
    isbn: str = ""
    publisher: str = ""
    description: str = ""
    cover_image: Optional[str] = None
    copies: List[Copy] = field(default_factory=list)
    reserved_by: List[str] = field(default_factory=list)

    @property
    def total_copies(self) -> int:
        return len(self.copies)

    @property
    def available_copies(self) -> int:
        return sum(1 for c in self.copies if c.is_available)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Book":
        return cls(
            id=str(raw["id"]),
            library_id=raw.get("libraryId"),
            title=raw.get("title", ""),
            author=raw.get("author", ""),
            isbn=raw.get("isbn", ""),
            publisher=raw.get("publisher", ""),
            description=raw.get("description", ""),
            cover_image=raw.get("coverImage"),
            copies=[Copy.from_dict(c) for c in raw.get("copies", [])],
            reserved_by=[str(u) for u in raw.get("reservedBy", [])],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "libraryId": self.library_id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "publisher": self.publisher,
            "description": self.description,
            "coverImage": self.cover_image,
            "copies": [c.to_dict() for c in self.copies],
            "reservedBy": list(self.reserved_by),
        }


class TransactionType(Enum):
    BORROW = "borrow"
    RETURN = "return"
    RESERVATION = "reservation"
    FINE = "fine"
    EXTENSION = "extension"
    PAYMENT = "payment"


class TransactionStatus(Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    PAID = "paid"
    ACTIVE = "active"


@dataclass
class Transaction:
    user_id: Optional[str]
    book_id: str
    copy_id: Optional[CopyId]
    type: TransactionType
    amount: float = 0.0
    status: TransactionStatus = TransactionStatus.COMPLETED
    reason: Optional[str] = None
    id: Optional[str] = None
    date: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"transaction amount must be >= 0, got {self.amount}")

    @property
    def is_paid(self) -> bool:
        return self.status == TransactionStatus.PAID

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Transaction":
        return cls(
            id=raw.get("id"),
            user_id=raw.get("userId"),
            book_id=str(raw["bookId"]),
            copy_id=raw.get("copyId"),
            type=TransactionType(raw["type"]),
            date=parse_timestamp(raw.get("date")),
            amount=float(raw.get("amount", 0)),
            status=TransactionStatus(raw.get("status", TransactionStatus.COMPLETED.value)),
            reason=raw.get("reason"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "userId": self.user_id,
            "bookId": self.book_id,
            "copyId": self.copy_id,
            "type": self.type.value,
            "date": format_timestamp(self.date),
            "amount": self.amount,
            "status": self.status.value,
        }
        if self.reason is not None:
            data["reason"] = self.reason
        return data
