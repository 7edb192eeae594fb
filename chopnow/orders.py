"""Order lifecycle: creation, status transitions, cancellation and scoped reads.

Business-rule checks all run before the single write of an operation, so a
rejected request leaves nothing behind. Real-time events go out only after
the commit and can never fail the request.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from . import permissions, schemas
from .errors import BusinessRuleError, NotFoundError, PermissionDenied
from .metrics import ORDER_STATUS_TRANSITIONS, ORDERS_CANCELLED, ORDERS_CREATED
from .models import (
    TERMINAL_STATUSES,
    Delivery,
    DeliveryStatus,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    PaymentStatus,
    Role,
    utcnow,
)
from .notifier import (
    NEW_ORDER,
    ORDER_CANCELLED,
    ORDER_STATUS_UPDATE,
    ORDER_UPDATE,
    Notifier,
    order_channel,
    restaurant_channel,
    rider_channel,
)
from .pricing import compute_totals, generate_order_number, to_money
from .repository import OrderRepository, page_count

logger = logging.getLogger("chopnow.orders")

MAX_PAGE_SIZE = 100


def order_snapshot(order: Order) -> dict:
    return schemas.OrderRead.model_validate(order).model_dump(mode="json", by_alias=True)


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class OrderService:
    def __init__(self, repo: OrderRepository, notifier: Notifier, correlation_id: str = "-"):
        self.repo = repo
        self.notifier = notifier
        self.cid = correlation_id

    # ----- Helpers -----

    def _log(self, msg: str, level: int = logging.INFO) -> None:
        logger.log(level, msg, extra={"correlation_id": self.cid})

    def _broadcast(self, channel: str, event: str, payload: Callable[[], dict]) -> None:
        try:
            self.notifier.notify(channel, event, payload())
        except Exception as e:
            self._log(f"Failed to publish {event} to {channel}: {e}", logging.WARNING)

    def _load(self, order_id: int) -> Order:
        order = self.repo.get_order(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    # ----- Create -----

    def create_order(self, actor, payload: schemas.CreateOrderRequest) -> Order:
        restaurant = self.repo.get_restaurant(payload.restaurant_id)
        if restaurant is None:
            raise NotFoundError("Restaurant not found")
        if not restaurant.is_active:
            raise BusinessRuleError("Restaurant is currently unavailable")
        if not restaurant.is_open:
            raise BusinessRuleError("Restaurant is currently closed and not accepting orders")

        menu = self.repo.get_menu_items(line.menu_item_id for line in payload.items)
        for line in payload.items:
            item = menu.get(line.menu_item_id)
            if item is None:
                raise BusinessRuleError(f"Menu item {line.menu_item_id} does not exist")
            if item.restaurant_id != restaurant.id:
                raise BusinessRuleError(
                    f"Menu item {line.menu_item_id} does not belong to restaurant {restaurant.id}"
                )
            if not item.is_available:
                raise BusinessRuleError(f"Menu item '{item.name}' ({item.id}) is currently unavailable")

        totals = compute_totals(
            [(menu[line.menu_item_id].price, line.quantity) for line in payload.items],
            restaurant.delivery_fee,
        )
        minimum = to_money(restaurant.min_order)
        if totals.subtotal < minimum:
            raise BusinessRuleError(
                f"Minimum order amount is {minimum:.2f}; current subtotal is {totals.subtotal:.2f}"
            )

        now = utcnow()
        order = Order(
            order_number=generate_order_number(),
            customer_id=actor.id,
            restaurant=restaurant,
            delivery_address=payload.delivery_address,
            delivery_notes=payload.delivery_notes,
            subtotal=float(totals.subtotal),
            delivery_fee=float(totals.delivery_fee),
            tax=float(totals.tax),
            total=float(totals.total),
            status=OrderStatus.PENDING,
            estimated_delivery_time=now + timedelta(minutes=restaurant.delivery_time),
            created_at=now,
            updated_at=now,
        )
        order.items = [
            OrderItem(
                menu_item=menu[line.menu_item_id],
                quantity=line.quantity,
                price=menu[line.menu_item_id].price,
                notes=line.notes,
            )
            for line in payload.items
        ]
        order.delivery = Delivery(status=DeliveryStatus.ASSIGNED)
        order.payment = Payment(
            amount=float(totals.total),
            method=payload.payment_method,
            status=PaymentStatus.PENDING,
        )

        self.repo.add_order(order)

        ORDERS_CREATED.labels(OrderStatus.PENDING.value).inc()
        self._log(f"Order {order.order_number} created for restaurant {restaurant.id} total={order.total:.2f}")
        self._broadcast(restaurant_channel(restaurant.id), NEW_ORDER, lambda: order_snapshot(order))
        return order

    # ----- Status transitions -----

    def update_status(
        self,
        actor,
        order_id: int,
        status,
        estimated_delivery_time: Optional[datetime] = None,
    ) -> Order:
        order = self._load(order_id)
        target = OrderStatus(status)
        if not permissions.can_set_status(actor, order, target):
            raise PermissionDenied(f"Not allowed to set order status to {target.value}")

        previous = OrderStatus(order.status)
        changed = previous is not target
        if changed:
            order.status = target
            self._apply_delivery_effects(order, target)
        if estimated_delivery_time is not None:
            order.estimated_delivery_time = _as_naive_utc(estimated_delivery_time)

        if changed or estimated_delivery_time is not None:
            self.repo.save(order)

        if not changed:
            self._log(f"Order {order.order_number} already {target.value}, nothing to do")
            return order

        ORDER_STATUS_TRANSITIONS.labels(previous.value, target.value).inc()
        self._log(f"Order {order.order_number} {previous.value} -> {target.value} by {Role(actor.role).value}")

        self._broadcast(
            order_channel(order.id),
            ORDER_STATUS_UPDATE,
            lambda: {
                "orderId": order.id,
                "orderNumber": order.order_number,
                "status": order.status.value,
                "previousStatus": previous.value,
                "estimatedDeliveryTime": (
                    order.estimated_delivery_time.isoformat() if order.estimated_delivery_time else None
                ),
            },
        )
        rider_id = order.delivery.rider_id if order.delivery else None
        if rider_id is not None:
            self._broadcast(rider_channel(rider_id), ORDER_UPDATE, lambda: order_snapshot(order))
        return order

    @staticmethod
    def _apply_delivery_effects(order: Order, status: OrderStatus) -> None:
        delivery = order.delivery
        if delivery is None:
            return
        now = utcnow()
        if status is OrderStatus.OUT_FOR_DELIVERY:
            delivery.status = DeliveryStatus.IN_TRANSIT
            if delivery.pickup_time is None:
                delivery.pickup_time = now
        elif status is OrderStatus.DELIVERED:
            delivery.status = DeliveryStatus.DELIVERED
            if delivery.delivery_time is None:
                delivery.delivery_time = now

    # ----- Cancellation -----

    def cancel_order(self, actor, order_id: int) -> Order:
        order = self._load(order_id)
        if not permissions.is_party(actor, order):
            raise PermissionDenied("You do not have access to this order")
        if order.status == OrderStatus.CANCELLED:
            raise BusinessRuleError("Order is already cancelled")
        if not permissions.can_cancel(actor, order):
            raise PermissionDenied(f"Order cannot be cancelled once it is {OrderStatus(order.status).value}")

        previous = OrderStatus(order.status)
        order.status = OrderStatus.CANCELLED
        if order.payment is not None:
            # label only: there is no gateway to refund through
            order.payment.status = PaymentStatus.REFUNDED
        self.repo.save(order)

        role = Role(actor.role)
        ORDERS_CANCELLED.labels(role.value).inc()
        ORDER_STATUS_TRANSITIONS.labels(previous.value, OrderStatus.CANCELLED.value).inc()
        self._log(f"Order {order.order_number} cancelled by {role.value} from {previous.value}")

        self._broadcast(
            order_channel(order.id),
            ORDER_CANCELLED,
            lambda: {
                "orderId": order.id,
                "orderNumber": order.order_number,
                "status": OrderStatus.CANCELLED.value,
                "cancelledBy": role.value,
            },
        )
        return order

    # ----- Rider assignment -----

    def assign_rider(self, actor, order_id: int, rider_id: int) -> Order:
        order = self._load(order_id)
        role = Role(actor.role)
        if role not in (Role.ADMIN, Role.RESTAURANT_OWNER) or not permissions.is_party(actor, order):
            raise PermissionDenied("Not allowed to assign a rider to this order")
        if OrderStatus(order.status) in TERMINAL_STATUSES:
            raise BusinessRuleError("Cannot assign a rider to a delivered or cancelled order")

        rider = self.repo.get_user(rider_id)
        if rider is None:
            raise NotFoundError("Rider not found")
        if Role(rider.role) is not Role.RIDER or not rider.is_active:
            raise BusinessRuleError("User is not an active rider")

        if order.delivery is None:
            order.delivery = Delivery()
        order.delivery.rider_id = rider.id
        order.delivery.status = DeliveryStatus.ASSIGNED
        self.repo.save(order)

        self._log(f"Order {order.order_number} assigned to rider {rider.id}")
        self._broadcast(rider_channel(rider.id), ORDER_UPDATE, lambda: order_snapshot(order))
        return order

    # ----- Reads -----

    def get_order(self, actor, order_id: int) -> Order:
        order = self._load(order_id)
        if not permissions.can_view(actor, order):
            raise PermissionDenied("You do not have access to this order")
        return order

    def list_orders(
        self,
        actor,
        page: int = 1,
        limit: int = 10,
        status: Optional[OrderStatus] = None,
        restaurant_id: Optional[int] = None,
        customer_id: Optional[int] = None,
    ) -> Tuple[List[Order], schemas.Pagination]:
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        role = Role(actor.role)
        scope = {}
        if role is Role.CUSTOMER:
            scope["customer_id"] = actor.id
        elif role is Role.RESTAURANT_OWNER:
            restaurant = self.repo.get_restaurant_for_owner(actor.id)
            if restaurant is None:
                return [], schemas.Pagination(page=page, limit=limit, total=0, pages=0)
            scope["restaurant_id"] = restaurant.id
        elif role is Role.RIDER:
            scope["rider_id"] = actor.id
        else:
            scope["restaurant_id"] = restaurant_id
            scope["customer_id"] = customer_id

        orders, total = self.repo.list_orders(status=status, page=page, limit=limit, **scope)
        return orders, schemas.Pagination(page=page, limit=limit, total=total, pages=page_count(total, limit))
