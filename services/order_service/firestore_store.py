"""
Cloud Firestore backend for the document store.

Subcollections map directly onto Firestore subcollections
(``orders/{id}/statusHistory``). Firestore assigns ids for ``add`` and
``append_child``; it has no insertion order, so ``list_children`` returns
documents in whatever order the query yields and callers sort.
"""
from typing import Any, Optional

from google.api_core.exceptions import GoogleAPICallError, NotFound
from google.cloud.firestore import AsyncClient

from .repository import DocumentNotFound, StoreError


class FirestoreDocumentStore:
    def __init__(self, client: AsyncClient):
        self.client = client

    @classmethod
    def from_project(cls, project_id: Optional[str] = None) -> "FirestoreDocumentStore":
        # Credentials come from ADC (or FIRESTORE_EMULATOR_HOST locally)
        return cls(AsyncClient(project=project_id))

    def _ref(self, collection: str, doc_id: str):
        return self.client.collection(collection).document(doc_id)

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        try:
            snapshot = await self._ref(collection, doc_id).get()
        except GoogleAPICallError as e:
            raise StoreError(f"get {collection}/{doc_id} failed: {e}") from e
        return snapshot.to_dict() if snapshot.exists else None

    async def set(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        try:
            await self._ref(collection, doc_id).set(fields)
        except GoogleAPICallError as e:
            raise StoreError(f"set {collection}/{doc_id} failed: {e}") from e

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        try:
            await self._ref(collection, doc_id).update(fields)
        except NotFound as e:
            raise DocumentNotFound(collection, doc_id) from e
        except GoogleAPICallError as e:
            raise StoreError(f"update {collection}/{doc_id} failed: {e}") from e

    async def add(self, collection: str, fields: dict[str, Any]) -> str:
        try:
            _, ref = await self.client.collection(collection).add(fields)
        except GoogleAPICallError as e:
            raise StoreError(f"add to {collection} failed: {e}") from e
        return ref.id

    async def append_child(
        self, collection: str, doc_id: str, subcollection: str, fields: dict[str, Any]
    ) -> str:
        try:
            _, ref = await self._ref(collection, doc_id).collection(subcollection).add(fields)
        except GoogleAPICallError as e:
            raise StoreError(f"append to {collection}/{doc_id}/{subcollection} failed: {e}") from e
        return ref.id

    async def list_children(
        self, collection: str, doc_id: str, subcollection: str
    ) -> list[dict[str, Any]]:
        try:
            return [
                snapshot.to_dict()
                async for snapshot in self._ref(collection, doc_id).collection(subcollection).stream()
            ]
        except GoogleAPICallError as e:
            raise StoreError(f"list {collection}/{doc_id}/{subcollection} failed: {e}") from e
