from typing import Optional

from fastapi import APIRouter, Depends, Query

from .. import models, schemas
from ..deps import get_current_user, get_order_service, require_roles
from ..orders import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


def _envelope(order, message=None):
    return schemas.Envelope(message=message, data=schemas.OrderRead.model_validate(order))


# ----- API: List / Get -----

@router.get("", response_model=schemas.Envelope[schemas.OrderPage])
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[models.OrderStatus] = None,
    restaurant_id: Optional[int] = Query(None, alias="restaurantId"),
    customer_id: Optional[int] = Query(None, alias="customerId"),
    user: models.User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    orders, pagination = service.list_orders(
        user,
        page=page,
        limit=limit,
        status=status,
        restaurant_id=restaurant_id,
        customer_id=customer_id,
    )
    page_data = schemas.OrderPage(
        orders=[schemas.OrderRead.model_validate(o) for o in orders],
        pagination=pagination,
    )
    return schemas.Envelope(data=page_data)


@router.get("/{order_id}", response_model=schemas.Envelope[schemas.OrderRead])
def get_order(
    order_id: int,
    user: models.User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return _envelope(service.get_order(user, order_id))


# ----- API: Create Order -----

@router.post("", response_model=schemas.Envelope[schemas.OrderRead], status_code=201)
def create_order(
    payload: schemas.CreateOrderRequest,
    user: models.User = Depends(require_roles(models.Role.CUSTOMER)),
    service: OrderService = Depends(get_order_service),
):
    order = service.create_order(user, payload)
    return _envelope(order, "Order created successfully")


# ----- API: Status / Cancel -----

@router.put("/{order_id}/status", response_model=schemas.Envelope[schemas.OrderRead])
def update_order_status(
    order_id: int,
    payload: schemas.UpdateOrderStatusRequest,
    user: models.User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = service.update_status(user, order_id, payload.status, payload.estimated_delivery_time)
    return _envelope(order, "Order status updated successfully")


@router.delete("/{order_id}", response_model=schemas.Envelope[schemas.OrderRead])
def cancel_order(
    order_id: int,
    user: models.User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = service.cancel_order(user, order_id)
    return _envelope(order, "Order cancelled successfully")
