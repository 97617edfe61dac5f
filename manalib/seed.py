from __future__ import annotations
import json
import logging
from importlib import resources
from typing import Any, List

from .store import STORAGE_KEYS, KeyValueStore

_LOGGER = logging.getLogger(__name__)

FIXTURE_PACKAGE = "manalib.fixtures"


def load_fixture(name: str) -> List[Any]:
    text = resources.files(FIXTURE_PACKAGE).joinpath(f"{name}.json").read_text(encoding="utf-8")
    return json.loads(text)


def seed_store(store: KeyValueStore) -> List[str]:
    """
    Fill every empty collection from the bundled fixtures.

    Collections that already hold data (even an empty list) are left alone,
    so calling this again is a no-op. Transactions always start empty.
    Returns the names of the collections that were seeded.
    """
    seeded: List[str] = []
    for name, key in STORAGE_KEYS.items():
        if store.get(key) is not None:
            continue
        store.set(key, [] if name == "transactions" else load_fixture(name))
        seeded.append(name)
    if seeded:
        _LOGGER.info("[seed] initialised collections: %s", ", ".join(seeded))
    return seeded
