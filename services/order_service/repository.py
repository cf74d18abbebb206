"""
Document store capability consumed by the lifecycle service.

The store offers per-document CRUD and per-collection append only. There is
no cross-document transaction: every call below commits on its own, so a
multi-step operation built on top of it can stop half way.
"""
import uuid
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import Document


ORDERS = "orders"


class StoreError(Exception):
    """The store rejected or could not complete a call."""


class DocumentNotFound(StoreError):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} does not exist")
        self.collection = collection
        self.doc_id = doc_id


def child_path(collection: str, doc_id: str, subcollection: str) -> str:
    return f"{collection}/{doc_id}/{subcollection}"


def new_document_id() -> str:
    return uuid.uuid4().hex


class DocumentStore(Protocol):
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None: ...

    async def set(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None: ...

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None: ...

    async def add(self, collection: str, fields: dict[str, Any]) -> str: ...

    async def append_child(
        self, collection: str, doc_id: str, subcollection: str, fields: dict[str, Any]
    ) -> str: ...

    async def list_children(
        self, collection: str, doc_id: str, subcollection: str
    ) -> list[dict[str, Any]]: ...


class SqlDocumentStore:
    """Documents as JSON rows, one short-lived session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    async def _find(db: AsyncSession, collection: str, doc_id: str) -> Document | None:
        result = await db.execute(
            select(Document)
            .where(Document.collection == collection)
            .where(Document.doc_id == doc_id)
        )
        return result.scalars().first()

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        try:
            async with self.session_factory() as db:
                row = await self._find(db, collection, doc_id)
                return dict(row.data) if row else None
        except SQLAlchemyError as e:
            raise StoreError(f"get {collection}/{doc_id} failed: {e}") from e

    async def set(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        try:
            async with self.session_factory() as db:
                row = await self._find(db, collection, doc_id)
                if row:
                    row.data = dict(fields)
                else:
                    db.add(Document(collection=collection, doc_id=doc_id, data=dict(fields)))
                await db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"set {collection}/{doc_id} failed: {e}") from e

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        try:
            async with self.session_factory() as db:
                row = await self._find(db, collection, doc_id)
                if not row:
                    raise DocumentNotFound(collection, doc_id)
                # Assign a fresh dict so the JSON column is flagged dirty
                row.data = {**row.data, **fields}
                await db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"update {collection}/{doc_id} failed: {e}") from e

    async def add(self, collection: str, fields: dict[str, Any]) -> str:
        doc_id = new_document_id()
        try:
            async with self.session_factory() as db:
                db.add(Document(collection=collection, doc_id=doc_id, data=dict(fields)))
                await db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"add to {collection} failed: {e}") from e
        return doc_id

    async def append_child(
        self, collection: str, doc_id: str, subcollection: str, fields: dict[str, Any]
    ) -> str:
        return await self.add(child_path(collection, doc_id, subcollection), fields)

    async def list_children(
        self, collection: str, doc_id: str, subcollection: str
    ) -> list[dict[str, Any]]:
        path = child_path(collection, doc_id, subcollection)
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(Document).where(Document.collection == path).order_by(Document.id)
                )
                return [dict(row.data) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreError(f"list {path} failed: {e}") from e
