from __future__ import annotations

from manalib import LibrarySystem, MemoryStore, NoAvailableCopyError, Settings, seed_store
from manalib.config import configure_logging


def demo_flow() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    store = MemoryStore()
    seed_store(store)
    sys = LibrarySystem(store=store, settings=settings)

    # Inventory
    print("\n[demo] inventory:")
    for book, total, available in sys.report_inventory():
        print(f"  - {book.title}: total={total}, available={available}")

    # The seeded loan on Atomic Habits is long overdue
    total, items = sys.outstanding_fines("user3")
    print(f"\n[demo] user3 owes {total:.2f} across {len(items)} overdue copy(ies)")

    # Borrow the last free copy, then try again
    receipt = sys.borrow_book("book1", "user4")
    print(f"\n[demo] user4 borrowed copy {receipt.copy.id}, due {receipt.copy.due_date:%Y-%m-%d}")
    try:
        sys.borrow_book("book1", "user5")
    except NoAvailableCopyError as exc:
        print(f"[demo] user5 denied: {exc}")

    # Return the overdue copy (assesses a fine) and pay it
    returned = sys.return_book("book1", "user3", 1)
    if returned.fine:
        print(f"\n[demo] fine assessed: {returned.fine.amount:.2f} ({returned.fine.reason})")
        sys.pay_fine(returned.fine.id)

    # Extend user4's loan
    extended = sys.extend_loan("book1", receipt.copy.id)
    print(f"[demo] user4 loan now due {extended.copy.due_date:%Y-%m-%d}")

    # Queue up for Psychology of Money
    sys.reserve_book("book2", "user5")

    print("\n[demo] transactions for library lib1:")
    for tx in sys.get_transactions(library_id="lib1"):
        print(f"  - {tx.date:%Y-%m-%d} {tx.type.value:<11} {tx.status.value:<9} {tx.amount:.2f}")

    stats = sys.loan_stats()
    print(f"\n[demo] loans: total={stats.total} active={stats.active} overdue={stats.overdue}")


if __name__ == "__main__":
    demo_flow()
