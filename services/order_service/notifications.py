"""
Notification fan-out for order events.

The dispatcher re-reads the order instead of trusting the caller's copy, so it
can be triggered from anywhere. The fields it needs (parties, item snapshot)
do not change after creation, which keeps the extra read safe.

Recipients are resolved into zero or more targets and each target is written
independently. Only the buyer is a primary target: a failed buyer write fails
the dispatch, a failed seller write is logged and reported but not raised.
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import structlog

from shared.observability import order_notifications_total
from .exceptions import NotificationDeliveryError
from .repository import ORDERS, DocumentNotFound, DocumentStore
from .schemas import ORDER_CANCELLED, ORDER_UPDATE, Notification, OrderStatus

logger = structlog.get_logger(__name__)

NOTIFICATIONS = "notifications"
QUANTITY_UNIT = "item(s)"

BUYER = "buyer"
SELLER = "seller"


def now_ms() -> int:
    return int(time.time() * 1000)


def short_order_id(order_id: str) -> str:
    return order_id[-6:]


@dataclass
class Target:
    role: str
    user_id: str
    notification: Notification
    primary: bool = False


@dataclass
class DispatchResult:
    order_id: str
    delivered: dict[str, str] = field(default_factory=dict)  # role -> notification id
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # role -> error

    @property
    def notification_ids(self) -> list[str]:
        return list(self.delivered.values())


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def resolve_seller_id(order: dict) -> str:
    """Seller id, falling back to the legacy ``ownerId`` only when ``sellerId`` is absent."""
    seller_id = order.get("sellerId")
    if seller_id is None:
        seller_id = order.get("ownerId")
    return _text(seller_id)


def _first_item(order: dict) -> dict:
    items = order.get("items")
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def _number(value: Any, default):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return value


class NotificationDispatcher:
    def __init__(self, store: DocumentStore, clock: Callable[[], int] = now_ms):
        self.store = store
        self.clock = clock

    async def _read_order(self, order_id: str) -> dict:
        order = await self.store.get(ORDERS, order_id)
        if order is None:
            raise DocumentNotFound(ORDERS, order_id)
        return order

    def _skip(self, result: DispatchResult, role: str, notif_type: str, reason: str):
        result.skipped.append(role)
        order_notifications_total.labels(type=notif_type, outcome="skipped").inc()
        logger.info("notification_skipped", order_id=result.order_id, recipient=role, reason=reason)

    async def _fan_out(self, result: DispatchResult, targets: list[Target]) -> DispatchResult:
        outcomes = await asyncio.gather(
            *(self.store.add(NOTIFICATIONS, t.notification.to_document()) for t in targets),
            return_exceptions=True,
        )
        primary_failure = None
        for target, outcome in zip(targets, outcomes):
            notif_type = target.notification.type
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                result.failed[target.role] = str(outcome)
                order_notifications_total.labels(type=notif_type, outcome="failed").inc()
                logger.warning(
                    "notification_failed",
                    order_id=result.order_id,
                    recipient=target.role,
                    user_id=target.user_id,
                    error=str(outcome),
                )
                if target.primary and primary_failure is None:
                    primary_failure = (target.role, outcome)
                continue
            result.delivered[target.role] = outcome
            order_notifications_total.labels(type=notif_type, outcome="delivered").inc()
            logger.info(
                "notification_delivered",
                order_id=result.order_id,
                recipient=target.role,
                user_id=target.user_id,
                notification_id=outcome,
            )
        if primary_failure:
            role, error = primary_failure
            raise NotificationDeliveryError(result.order_id, role, error) from error
        return result

    async def notify_status_update(self, order_id: str, status: OrderStatus | str) -> DispatchResult:
        status = OrderStatus(status)
        result = DispatchResult(order_id=order_id)
        order = await self._read_order(order_id)

        buyer_id = _text(order.get("buyerId"))
        if not buyer_id:
            self._skip(result, BUYER, ORDER_UPDATE, "order has no buyerId")
            return result

        notification = Notification(
            user_id=buyer_id,
            type=ORDER_UPDATE,
            title="Order Status Update",
            message=f"Your order #{short_order_id(order_id)} has been updated to: {status.display_name}",
            order_id=order_id,
            timestamp=self.clock(),
        )
        return await self._fan_out(result, [Target(BUYER, buyer_id, notification, primary=True)])

    async def notify_cancellation(self, order_id: str, reason: str) -> DispatchResult:
        result = DispatchResult(order_id=order_id)
        order = await self._read_order(order_id)

        buyer_id = _text(order.get("buyerId"))
        if not buyer_id:
            # Without a buyer there is no cancelling party to report to either
            self._skip(result, BUYER, ORDER_CANCELLED, "order has no buyerId")
            self._skip(result, SELLER, ORDER_CANCELLED, "order has no buyerId")
            return result

        seller_id = resolve_seller_id(order)

        item = _first_item(order)
        snapshot = dict(
            order_id=order_id,
            type=ORDER_CANCELLED,
            name=_text(item.get("name")) or "Order",
            price=float(_number(order.get("totalAmount"), 0.0)),
            quantity=int(_number(item.get("quantity"), 1)),
            quantity_unit=QUANTITY_UNIT,
            image_url=_text(order.get("imageUrl")),
            cancel_reason=reason,
        )
        timestamp = self.clock()

        targets = [
            Target(
                BUYER,
                buyer_id,
                Notification(
                    user_id=buyer_id,
                    title="Order Cancelled",
                    message=f"Your order has been cancelled. Reason: {reason}",
                    timestamp=timestamp,
                    seller_id=seller_id or None,
                    **snapshot,
                ),
                primary=True,
            )
        ]
        if seller_id:
            targets.append(
                Target(
                    SELLER,
                    seller_id,
                    Notification(
                        user_id=seller_id,
                        title="Order Cancelled by Buyer",
                        message=(
                            f"Order #{short_order_id(order_id)} was cancelled by the buyer. "
                            f"Reason: {reason}"
                        ),
                        timestamp=timestamp,
                        buyer_id=buyer_id,
                        **snapshot,
                    ),
                )
            )
        else:
            self._skip(result, SELLER, ORDER_CANCELLED, "no seller identifier on order")

        return await self._fan_out(result, targets)
