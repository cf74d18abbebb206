import uuid
from typing import Callable

import structlog

from shared.observability import order_status_transitions_total
from .exceptions import (
    STAGE_APPEND_HISTORY,
    STAGE_DISPATCH,
    STAGE_READ_HISTORY,
    STAGE_READ_ORDER,
    STAGE_WRITE_ORDER,
    InvalidTransitionError,
    OrderLifecycleError,
    OrderNotFoundError,
)
from .ledger import StatusHistoryLedger
from .notifications import NotificationDispatcher, now_ms, resolve_seller_id
from .repository import ORDERS, DocumentStore, StoreError
from .saga import LifecycleChain
from .schemas import OrderCreate, OrderStatus, StatusHistoryEntry, TransitionResponse

logger = structlog.get_logger(__name__)

ESTIMATED_DELIVERY_MS = 3 * 24 * 60 * 60 * 1000
ORDER_CREATED_NOTE = "Payment has been received and order is confirmed"

# Statuses an order can no longer be cancelled from
NOT_CANCELLABLE = {OrderStatus.CANCELLED.value, OrderStatus.COMPLETED.value}


class OrderLifecycleService:
    """
    Status transitions and cancellation for orders.

    Each operation is a chain of independent store writes: order document,
    then status history entry, then notifications. The chain stops at the
    first failure and already-applied writes are left in place.

    With ``strict_transitions`` the order is read first: a missing order fails
    before anything is written, CANCELLED is terminal, and ``updatedAt`` never
    moves backwards. Without it every request is written as-is.
    """

    def __init__(
        self,
        store: DocumentStore,
        ledger: StatusHistoryLedger | None = None,
        dispatcher: NotificationDispatcher | None = None,
        clock: Callable[[], int] = now_ms,
        strict_transitions: bool = True,
    ):
        self.store = store
        self.ledger = ledger or StatusHistoryLedger(store)
        self.dispatcher = dispatcher or NotificationDispatcher(store, clock=clock)
        self.clock = clock
        self.strict_transitions = strict_transitions

    async def _load(self, order_id: str) -> dict:
        try:
            order = await self.store.get(ORDERS, order_id)
        except StoreError as e:
            raise OrderLifecycleError(
                order_id, STAGE_READ_ORDER, f"Could not read order {order_id}: {e}", cause=e
            ) from e
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def _timestamp(self, order: dict | None) -> int:
        now = self.clock()
        previous = (order or {}).get("updatedAt")
        if isinstance(previous, int) and previous > now:
            return previous
        return now

    @staticmethod
    def _parse_status(order_id: str, value) -> OrderStatus:
        try:
            return OrderStatus(value)
        except ValueError:
            raise InvalidTransitionError(order_id, None, str(value)) from None

    async def get_order(self, order_id: str) -> dict:
        order = await self._load(order_id)
        order.setdefault("orderId", order_id)
        order["sellerId"] = resolve_seller_id(order) or None
        return order

    async def history(self, order_id: str) -> list[StatusHistoryEntry]:
        await self._load(order_id)
        try:
            return await self.ledger.entries(order_id)
        except StoreError as e:
            raise OrderLifecycleError(
                order_id, STAGE_READ_HISTORY, f"Could not read history of order {order_id}: {e}", cause=e
            ) from e

    async def create_order(self, data: OrderCreate) -> dict:
        if not data.items:
            raise ValueError("Invalid order: no items to purchase.")

        order_id = str(uuid.uuid4())
        now = self.clock()
        items = [item.to_document() for item in data.items]
        total = data.total_amount
        if total is None:
            total = round(sum(item.price * item.quantity for item in data.items), 2)

        order = {
            "orderId": order_id,
            "buyerId": data.buyer_id,
            "items": items,
            "status": OrderStatus.PAYMENT_RECEIVED.value,
            "paymentMethod": data.payment_method,
            "totalAmount": total,
            "deliveryAddress": data.delivery_address,
            "imageUrl": data.items[0].image_url,
            "createdAt": now,
            "updatedAt": now,
            "estimatedDelivery": now + ESTIMATED_DELIVERY_MS,
        }
        if data.seller_id:
            order["sellerId"] = data.seller_id

        chain = (
            LifecycleChain(order_id)
            .add_step(STAGE_WRITE_ORDER, lambda ctx: self.store.set(ORDERS, order_id, order))
            .add_step(
                STAGE_APPEND_HISTORY,
                lambda ctx: self.ledger.append(
                    order_id, OrderStatus.PAYMENT_RECEIVED.value, now, ORDER_CREATED_NOTE
                ),
            )
        )
        await chain.execute({})
        logger.info("order_created", order_id=order_id, buyer_id=data.buyer_id, items=len(items))
        return order

    async def update_status(
        self, order_id: str, new_status: OrderStatus | str, notes: str | None = None
    ) -> TransitionResponse:
        new_status = self._parse_status(order_id, new_status)
        order = None
        if self.strict_transitions:
            order = await self._load(order_id)
            current = order.get("status")
            if current == OrderStatus.CANCELLED.value or new_status is OrderStatus.CANCELLED:
                # Cancellation has its own write shape and fan-out
                raise InvalidTransitionError(order_id, current, new_status.value)

        now = self._timestamp(order)
        notes = notes or new_status.display_name

        async def dispatch(ctx):
            ctx["dispatch"] = await self.dispatcher.notify_status_update(order_id, new_status)

        chain = (
            LifecycleChain(order_id)
            .add_step(
                STAGE_WRITE_ORDER,
                lambda ctx: self.store.update(
                    ORDERS, order_id, {"status": new_status.value, "updatedAt": now}
                ),
            )
            .add_step(
                STAGE_APPEND_HISTORY,
                lambda ctx: self.ledger.append(order_id, new_status.value, now, notes),
            )
            .add_step(STAGE_DISPATCH, dispatch)
        )
        ctx = {}
        await chain.execute(ctx)

        order_status_transitions_total.labels(status=new_status.value).inc()
        logger.info("order_status_updated", order_id=order_id, status=new_status.value, updated_at=now)
        return TransitionResponse(
            order_id=order_id,
            status=new_status.value,
            updated_at=now,
            notifications=ctx["dispatch"].notification_ids,
        )

    async def cancel_order(self, order_id: str, reason: str) -> TransitionResponse:
        reason = reason or ""
        order = None
        if self.strict_transitions:
            order = await self._load(order_id)
            current = order.get("status")
            if current in NOT_CANCELLABLE:
                raise InvalidTransitionError(order_id, current, OrderStatus.CANCELLED.value)

        now = self._timestamp(order)
        cancelled = OrderStatus.CANCELLED.value

        async def dispatch(ctx):
            ctx["dispatch"] = await self.dispatcher.notify_cancellation(order_id, reason)

        chain = (
            LifecycleChain(order_id)
            .add_step(
                STAGE_WRITE_ORDER,
                lambda ctx: self.store.update(
                    ORDERS,
                    order_id,
                    {
                        "status": cancelled,
                        "cancelReason": reason,
                        "cancelledAt": now,
                        "updatedAt": now,
                    },
                ),
            )
            .add_step(
                STAGE_APPEND_HISTORY,
                lambda ctx: self.ledger.append(order_id, cancelled, now, f"Order cancelled: {reason}"),
            )
            .add_step(STAGE_DISPATCH, dispatch)
        )
        ctx = {}
        await chain.execute(ctx)

        order_status_transitions_total.labels(status=cancelled).inc()
        logger.info("order_cancelled", order_id=order_id, reason=reason, cancelled_at=now)
        return TransitionResponse(
            order_id=order_id,
            status=cancelled,
            updated_at=now,
            notifications=ctx["dispatch"].notification_ids,
        )
