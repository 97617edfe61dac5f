import threading
from datetime import datetime, timedelta

import pytest

from conftest import T0, FakeClock
from manalib.domain import TransactionStatus, TransactionType
from manalib.errors import (
    BookNotFoundError,
    CopyNotBorrowedByUserError,
    CopyNotBorrowedError,
    CopyNotFoundError,
    DuplicateReservationError,
    InvalidStatusTransitionError,
    NoAvailableCopyError,
    PersistenceError,
    UserNotFoundError,
)
from manalib.store import STORAGE_KEYS, MemoryStore


def snapshot(store: MemoryStore):
    return {key: store.get(key) for key in STORAGE_KEYS.values()}


def test_lending_scenario(system, circulation, clock):
    first = circulation.borrow("b1", "u1")
    assert first.copy.id == "c1"
    assert first.copy.due_date == T0 + timedelta(days=14)

    second = circulation.borrow("b1", "u2")
    assert second.copy.id == "c2"

    with pytest.raises(NoAvailableCopyError):
        circulation.borrow("b1", "u3")

    clock.advance(days=20)
    receipt = circulation.return_copy("b1", "u1", "c1")
    assert receipt.fine is not None
    assert receipt.fine.amount == 6 * 0.5
    assert receipt.fine.status == TransactionStatus.PENDING

    third = circulation.borrow("b1", "u3")
    assert third.copy.id == "c1"


def test_borrow_records_transaction(system, circulation, clock):
    receipt = circulation.borrow("b1", "u1")
    tx = receipt.transaction
    assert tx.type == TransactionType.BORROW
    assert tx.amount == 0
    assert tx.status == TransactionStatus.COMPLETED
    assert (tx.user_id, tx.book_id, tx.copy_id, tx.date) == ("u1", "b1", "c1", clock.now)

    stored = system.get_book("b1")
    assert stored.copies[0].borrowed_by == "u1"
    assert stored.copies[0].due_date == clock.now + timedelta(days=14)


def test_failed_borrow_leaves_state_unchanged(store, circulation):
    circulation.borrow("b2", "u1")
    before = snapshot(store)
    with pytest.raises(NoAvailableCopyError):
        circulation.borrow("b2", "u2")
    assert snapshot(store) == before


def test_borrow_unknown_book_or_user(circulation):
    with pytest.raises(BookNotFoundError):
        circulation.borrow("nope", "u1")
    with pytest.raises(UserNotFoundError):
        circulation.borrow("b1", "ghost")
    assert "nope" not in circulation._locks


def test_return_on_time_has_no_fine(system, circulation, clock):
    circulation.borrow("b1", "u1")
    clock.advance(days=14)
    receipt = circulation.return_copy("b1", "u1", "c1")

    assert receipt.fine is None
    assert receipt.transaction.type == TransactionType.RETURN
    assert receipt.transaction.status == TransactionStatus.COMPLETED
    assert receipt.book.available_copies == 2
    assert system.get_transactions(type="fine") == []


def test_late_return_logs_fine_before_return(system, circulation, clock):
    circulation.borrow("b1", "u1")
    clock.advance(days=20)
    receipt = circulation.return_copy("b1", "u1", "c1")

    txs = system.get_transactions(user_id="u1")
    # fine and return share a date; the fine was appended first
    assert [t.type for t in txs] == [
        TransactionType.FINE,
        TransactionType.RETURN,
        TransactionType.BORROW,
    ]
    assert txs[0].id == receipt.fine.id
    assert txs[0].reason == "Overdue 6 day(s)"


def test_return_then_borrow_reuses_copy(circulation):
    circulation.borrow("b2", "u1")
    circulation.return_copy("b2", "u1", 1)
    receipt = circulation.borrow("b2", "u2")
    assert receipt.copy.id == 1
    assert receipt.copy.borrowed_by == "u2"


def test_return_rejects_wrong_user(store, circulation):
    circulation.borrow("b1", "u1")
    before = snapshot(store)
    with pytest.raises(CopyNotBorrowedByUserError):
        circulation.return_copy("b1", "u2", "c1")
    with pytest.raises(CopyNotFoundError):
        circulation.return_copy("b1", "u1", "c7")
    assert snapshot(store) == before


def test_extend_twice_adds_to_original_due_date(circulation, clock):
    circulation.borrow("b1", "u1")
    original_due = T0 + timedelta(days=14)

    clock.advance(days=3)
    circulation.extend_loan("b1", "c1", days=14)
    clock.advance(days=3)
    receipt = circulation.extend_loan("b1", "c1", days=14)

    assert receipt.copy.due_date == original_due + timedelta(days=28)
    assert receipt.transaction.type == TransactionType.EXTENSION
    assert receipt.transaction.amount == 0
    assert receipt.transaction.user_id == "u1"


def test_extend_defaults_to_configured_days(circulation):
    circulation.borrow("b1", "u1")
    receipt = circulation.extend_loan("b1", "c1")
    assert receipt.copy.due_date == T0 + timedelta(days=28)


def test_extend_requires_active_loan(circulation):
    with pytest.raises(CopyNotBorrowedError):
        circulation.extend_loan("b1", "c1")


def test_reserve_book(system, circulation):
    receipt = circulation.reserve_book("b1", "u1")
    assert receipt.position == 1
    assert receipt.transaction.type == TransactionType.RESERVATION
    assert receipt.transaction.amount == 1.0
    assert receipt.transaction.status == TransactionStatus.ACTIVE

    with pytest.raises(DuplicateReservationError):
        circulation.reserve_book("b1", "u1")
    assert system.get_book("b1").reserved_by == ["u1"]
    assert len(system.get_transactions(type="reservation")) == 1


def test_return_does_not_fulfil_reservations(system, circulation):
    circulation.borrow("b2", "u1")
    circulation.reserve_book("b2", "u2")
    receipt = circulation.return_copy("b2", "u1", 1)

    assert receipt.book.available_copies == 1
    assert system.get_book("b2").reserved_by == ["u2"]


def test_pay_fine(system, circulation, clock):
    circulation.borrow("b1", "u1")
    clock.advance(days=20)
    fine = circulation.return_copy("b1", "u1", "c1").fine

    clock.advance(days=1)
    receipt = circulation.pay_fine(fine.id)
    assert receipt.fine.status == TransactionStatus.PAID
    assert receipt.transaction.type == TransactionType.PAYMENT
    assert receipt.transaction.amount == fine.amount
    assert system.get_transactions(status="pending") == []

    with pytest.raises(InvalidStatusTransitionError):
        circulation.pay_fine(fine.id)


def test_concurrent_borrows_never_share_a_copy(system, circulation):
    errors = []
    receipts = []

    def worker(user_id):
        try:
            receipts.append(circulation.borrow("b1", user_id))
        except NoAvailableCopyError as exc:
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(u,)) for u in ("u1", "u2", "u3")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(receipts) == 2
    assert len(errors) == 1
    assert {r.copy.id for r in receipts} == {"c1", "c2"}
    assert len(system.get_transactions(type="borrow")) == 2


class FailingTransactionsStore(MemoryStore):
    """Rejects writes to the transaction collection."""

    def set(self, key, value):
        if key == STORAGE_KEYS["transactions"]:
            raise PersistenceError("disk full")
        super().set(key, value)


def test_failed_append_restores_book(store_data, test_settings, clock):
    from manalib import LibrarySystem

    store = FailingTransactionsStore(store_data)
    system = LibrarySystem(store=store, settings=test_settings, clock=clock)

    with pytest.raises(PersistenceError):
        system.borrow_book("b1", "u1")
    assert system.get_book("b1").available_copies == 2


def test_naive_clock_is_treated_as_utc(store, test_settings):
    from manalib import LibrarySystem

    clock = FakeClock(datetime(2025, 3, 1, 9, 0))
    system = LibrarySystem(store=store, settings=test_settings, clock=clock)

    receipt = system.borrow_book("b1", "u1")
    assert receipt.transaction.date == T0
    clock.advance(days=20)
    returned = system.return_book("b1", "u1", receipt.copy.id)

    assert returned.fine.amount == 3.0
    assert returned.transaction.date.tzinfo is not None
    assert [t.type for t in system.get_transactions(user_id="u1")][0] == TransactionType.FINE


def test_naive_now_is_treated_as_utc(circulation):
    receipt = circulation.borrow("b1", "u1", now=datetime(2025, 3, 1))
    returned = circulation.return_copy("b1", "u1", receipt.copy.id, now=datetime(2025, 3, 30))

    # due 2025-03-15, returned 15 days late
    assert returned.fine.amount == 7.5
    assert circulation.loan_stats(now=datetime(2025, 3, 30)).total == 0


def test_loan_views_and_stats(circulation, clock):
    circulation.borrow("b1", "u1")
    clock.advance(days=10)
    circulation.borrow("b2", "u2")
    clock.advance(days=10)

    loans = circulation.list_loans()
    assert [(l.book_id, l.status) for l in loans] == [("b1", "overdue"), ("b2", "active")]
    assert loans[0].days_overdue == 6
    assert [l.book_id for l in circulation.list_loans(status="active")] == ["b2"]
    assert circulation.list_loans(library_id="lib2")[0].user_id == "u2"

    stats = circulation.loan_stats()
    assert (stats.total, stats.active, stats.overdue) == (2, 1, 1)

    with pytest.raises(ValueError):
        circulation.list_loans(status="late")


def test_outstanding_fines_preview_creates_no_transactions(system, circulation, clock):
    circulation.borrow("b1", "u1")
    clock.advance(days=18)

    items = circulation.outstanding_fines("u1")
    assert len(items) == 1
    assert items[0].days_overdue == 4
    assert items[0].amount == 2.0
    assert circulation.outstanding_fines("u2") == []
    assert system.get_transactions(type="fine") == []


def test_report_inventory(circulation):
    circulation.borrow("b1", "u1")
    report = {book.id: (total, available) for book, total, available in circulation.report_inventory()}
    assert report == {"b1": (2, 1), "b2": (1, 1)}
