from fastapi import APIRouter, Depends

from .. import models, schemas
from ..deps import get_order_service, require_roles
from ..orders import OrderService

router = APIRouter(prefix="/api/deliveries", tags=["deliveries"])


@router.put("/{order_id}/assign", response_model=schemas.Envelope[schemas.OrderRead])
def assign_rider(
    order_id: int,
    payload: schemas.AssignRiderRequest,
    user: models.User = Depends(require_roles(models.Role.ADMIN, models.Role.RESTAURANT_OWNER)),
    service: OrderService = Depends(get_order_service),
):
    order = service.assign_rider(user, order_id, payload.rider_id)
    return schemas.Envelope(message="Rider assigned successfully", data=schemas.OrderRead.model_validate(order))
