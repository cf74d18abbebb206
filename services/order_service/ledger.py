import structlog
from .repository import ORDERS, DocumentStore
from .schemas import StatusHistoryEntry

logger = structlog.get_logger(__name__)

STATUS_HISTORY = "statusHistory"

class StatusHistoryLedger:
    """Append-only audit trail kept under ``orders/{order_id}/statusHistory``."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def append(self, order_id: str, status: str, timestamp: int, notes: str) -> str:
        entry = StatusHistoryEntry(status=status, timestamp=timestamp, notes=notes)
        entry_id = await self.store.append_child(ORDERS, order_id, STATUS_HISTORY, entry.to_document())
        logger.info("status_history_appended", order_id=order_id, status=status, timestamp=timestamp)
        return entry_id

    async def entries(self, order_id: str) -> list[StatusHistoryEntry]:
        docs = await self.store.list_children(ORDERS, order_id, STATUS_HISTORY)
        # sorted() is stable, so equal timestamps keep insertion order
        return sorted(
            (StatusHistoryEntry.model_validate(doc) for doc in docs),
            key=lambda entry: entry.timestamp,
        )
