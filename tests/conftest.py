from __future__ import annotations

import copy
import itertools
from collections import defaultdict
from typing import Any, Callable, Optional

import pytest

from services.order_service.repository import DocumentNotFound, StoreError, child_path


class RecordingStore:
    """
    In-memory document store that records every call and can be told to fail.

    ``fail_on("update", "orders")`` makes the next matching calls raise; an
    optional ``when`` predicate narrows the failure to specific payloads, e.g.
    a single notification recipient.
    """

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.calls: list[tuple[str, str]] = []
        self._failures: list[tuple[str, Optional[str], Optional[Callable[[dict], bool]], Exception]] = []
        self._ids = itertools.count(1)

    # --- test helpers ---

    def seed(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        self.collections[collection][doc_id] = copy.deepcopy(fields)

    def fail_on(
        self,
        op: str,
        collection: Optional[str] = None,
        error: Optional[Exception] = None,
        when: Optional[Callable[[dict], bool]] = None,
    ) -> None:
        self._failures.append((op, collection, when, error or StoreError(f"{op} rejected")))

    def docs(self, collection: str) -> list[dict[str, Any]]:
        return list(self.collections[collection].values())

    def children(self, collection: str, doc_id: str, subcollection: str) -> list[dict[str, Any]]:
        return self.docs(child_path(collection, doc_id, subcollection))

    def ops(self) -> list[str]:
        return [op for op, _ in self.calls]

    def _record(self, op: str, collection: str, fields: Optional[dict] = None) -> None:
        self.calls.append((op, collection))
        for f_op, f_collection, when, error in self._failures:
            if f_op != op or (f_collection is not None and f_collection != collection):
                continue
            if when is not None and not when(fields or {}):
                continue
            raise error

    # --- DocumentStore ---

    async def get(self, collection, doc_id):
        self._record("get", collection)
        doc = self.collections[collection].get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def set(self, collection, doc_id, fields):
        self._record("set", collection, fields)
        self.collections[collection][doc_id] = copy.deepcopy(fields)

    async def update(self, collection, doc_id, fields):
        self._record("update", collection, fields)
        if doc_id not in self.collections[collection]:
            raise DocumentNotFound(collection, doc_id)
        self.collections[collection][doc_id].update(copy.deepcopy(fields))

    async def add(self, collection, fields):
        self._record("add", collection, fields)
        doc_id = f"doc{next(self._ids)}"
        self.collections[collection][doc_id] = copy.deepcopy(fields)
        return doc_id

    async def append_child(self, collection, doc_id, subcollection, fields):
        self._record("append_child", subcollection, fields)
        new_id = f"doc{next(self._ids)}"
        self.collections[child_path(collection, doc_id, subcollection)][new_id] = copy.deepcopy(fields)
        return new_id

    async def list_children(self, collection, doc_id, subcollection):
        self._record("list_children", subcollection)
        return copy.deepcopy(self.children(collection, doc_id, subcollection))


class FakeClock:
    """Epoch milliseconds that advance by one second per reading."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1000) -> None:
        self.value = start
        self.step = step

    def __call__(self) -> int:
        current = self.value
        self.value += self.step
        return current


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def order_doc() -> dict[str, Any]:
    return {
        "orderId": "abc123",
        "buyerId": "u1",
        "sellerId": "u2",
        "items": [{"name": "Rice", "quantity": 5, "price": 50.0}],
        "totalAmount": 250.0,
        "status": "PAYMENT_RECEIVED",
        "createdAt": 1_600_000_000_000,
        "updatedAt": 1_600_000_000_000,
    }


@pytest.fixture
def seeded_store(store: RecordingStore, order_doc: dict[str, Any]) -> RecordingStore:
    store.seed("orders", "abc123", order_doc)
    return store
