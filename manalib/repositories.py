from __future__ import annotations
import threading
from typing import Any, Dict, List, Optional

from .domain import Book, Library, Transaction, User
from .store import STORAGE_KEYS, KeyValueStore


class _Collection:
    """A JSON array stored under one key, rewritten whole on every change."""

    def __init__(self, store: KeyValueStore, name: str) -> None:
        self.store = store
        self.key = STORAGE_KEYS[name]
        self.lock = threading.RLock()

    def load(self) -> List[Dict[str, Any]]:
        return self.store.get(self.key) or []

    def save(self, items: List[Dict[str, Any]]) -> None:
        self.store.set(self.key, items)


class UserRepo:
    def __init__(self, store: KeyValueStore) -> None:
        self._users = _Collection(store, "users")

    def get(self, user_id: str) -> Optional[User]:
        for raw in self._users.load():
            if str(raw["id"]) == user_id:
                return User.from_dict(raw)
        return None


class LibraryRepo:
    def __init__(self, store: KeyValueStore) -> None:
        self._libraries = _Collection(store, "libraries")

    def list_all(self) -> List[Library]:
        return [Library.from_dict(raw) for raw in self._libraries.load()]

    def list_owned_by(self, owner_id: str) -> List[Library]:
        return [lib for lib in self.list_all() if lib.owner == owner_id]


class BookRepo:
    def __init__(self, store: KeyValueStore) -> None:
        self._books = _Collection(store, "books")

    def get_book(self, book_id: str) -> Optional[Book]:
        for raw in self._books.load():
            if str(raw["id"]) == book_id:
                return Book.from_dict(raw)
        return None

    def list_books(self, library_id: Optional[str] = None) -> List[Book]:
        books = [Book.from_dict(raw) for raw in self._books.load()]
        if library_id:
            return [b for b in books if b.library_id == library_id]
        return books

    def search(self, text: str) -> List[Book]:
        t = text.lower().strip()

        def matches(b: Book) -> bool:
            return t in b.title.lower() or t in b.author.lower() or t in b.isbn.lower()

        return [b for b in self.list_books() if matches(b)]

    def save_book(self, book: Book) -> None:
        """Replace the stored record with the same id, or append a new one."""
        with self._books.lock:
            items = self._books.load()
            for i, raw in enumerate(items):
                if str(raw["id"]) == book.id:
                    items[i] = book.to_dict()
                    break
            else:
                items.append(book.to_dict())
            self._books.save(items)


class TransactionRepo:
    def __init__(self, store: KeyValueStore) -> None:
        self._transactions = _Collection(store, "transactions")

    @property
    def lock(self):
        return self._transactions.lock

    def add(self, tx: Transaction) -> None:
        with self._transactions.lock:
            items = self._transactions.load()
            items.append(tx.to_dict())
            self._transactions.save(items)

    def get(self, transaction_id: str) -> Optional[Transaction]:
        for raw in self._transactions.load():
            if raw.get("id") == transaction_id:
                return Transaction.from_dict(raw)
        return None

    def list_all(self) -> List[Transaction]:
        """All transactions in insertion order."""
        return [Transaction.from_dict(raw) for raw in self._transactions.load()]

    def replace(self, tx: Transaction) -> None:
        with self._transactions.lock:
            items = self._transactions.load()
            for i, raw in enumerate(items):
                if raw.get("id") == tx.id:
                    items[i] = tx.to_dict()
                    break
            else:
                raise KeyError(tx.id)
            self._transactions.save(items)
