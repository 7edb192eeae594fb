"""Who may see, move and cancel an order.

Rights are split in two: a per-role table of statuses (what a role may do at
all) and a per-order ownership predicate (whether the actor is a party to
this order). Both must pass.
"""
from .models import TERMINAL_STATUSES, OrderStatus, Role

ALL_STATUSES = frozenset(OrderStatus)
NO_STATUSES = frozenset()

# role -> target statuses the role may set through the status endpoint
STATUS_UPDATE_POLICY = {
    Role.ADMIN: ALL_STATUSES,
    Role.RESTAURANT_OWNER: frozenset({
        OrderStatus.CONFIRMED,
        OrderStatus.PREPARING,
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.CANCELLED,
    }),
    Role.RIDER: frozenset({OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED}),
    Role.CUSTOMER: NO_STATUSES,
}

# role -> current statuses from which the role may cancel
CANCEL_POLICY = {
    Role.ADMIN: ALL_STATUSES,
    Role.RESTAURANT_OWNER: ALL_STATUSES,
    Role.CUSTOMER: frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED}),
    Role.RIDER: NO_STATUSES,
}


def _role(actor) -> Role:
    return Role(actor.role)


def is_party(actor, order) -> bool:
    role = _role(actor)
    if role is Role.ADMIN:
        return True
    if role is Role.CUSTOMER:
        return order.customer_id == actor.id
    if role is Role.RESTAURANT_OWNER:
        return order.restaurant is not None and order.restaurant.owner_id == actor.id
    if role is Role.RIDER:
        return order.delivery is not None and order.delivery.rider_id == actor.id
    return False


can_view = is_party


def allowed_statuses(actor) -> frozenset:
    return STATUS_UPDATE_POLICY.get(_role(actor), NO_STATUSES)


def can_set_status(actor, order, status) -> bool:
    # only an admin may move an order out of DELIVERED or CANCELLED
    if _role(actor) is not Role.ADMIN and OrderStatus(order.status) in TERMINAL_STATUSES:
        return False
    return OrderStatus(status) in allowed_statuses(actor) and is_party(actor, order)


def can_cancel(actor, order) -> bool:
    window = CANCEL_POLICY.get(_role(actor), NO_STATUSES)
    return OrderStatus(order.status) in window and is_party(actor, order)


def can_manage_restaurant(actor, restaurant) -> bool:
    role = _role(actor)
    return role is Role.ADMIN or (role is Role.RESTAURANT_OWNER and restaurant.owner_id == actor.id)
