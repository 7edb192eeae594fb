import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from .. import models, permissions, schemas
from ..deps import get_correlation_id, get_current_user, get_db, require_roles
from ..errors import ConflictError, NotFoundError, PermissionDenied

logger = logging.getLogger("chopnow.restaurants")

router = APIRouter(prefix="/api/restaurants", tags=["restaurants"])


@router.get("", response_model=schemas.Envelope[List[schemas.RestaurantRead]])
def list_restaurants(db_sess: Session = Depends(get_db)):
    rows = db_sess.scalars(
        select(models.Restaurant)
        .where(models.Restaurant.is_active.is_(True))
        .order_by(models.Restaurant.rating.desc(), models.Restaurant.id)
    ).all()
    return schemas.Envelope(data=[schemas.RestaurantRead.model_validate(r) for r in rows])


@router.get("/{restaurant_id}", response_model=schemas.Envelope[schemas.RestaurantDetail])
def get_restaurant(restaurant_id: int, db_sess: Session = Depends(get_db)):
    restaurant = db_sess.scalars(
        select(models.Restaurant)
        .options(selectinload(models.Restaurant.menu_items))
        .where(models.Restaurant.id == restaurant_id)
    ).first()
    if restaurant is None:
        raise NotFoundError("Restaurant not found")
    if not restaurant.is_active:
        raise NotFoundError("Restaurant is currently unavailable")

    detail = schemas.RestaurantDetail.model_validate(restaurant)
    detail.menu_items = [m for m in detail.menu_items if m.is_available]
    return schemas.Envelope(data=detail)


@router.post("", response_model=schemas.Envelope[schemas.RestaurantRead], status_code=201)
def create_restaurant(
    payload: schemas.RestaurantCreate,
    user: models.User = Depends(require_roles(models.Role.RESTAURANT_OWNER)),
    db_sess: Session = Depends(get_db),
    cid: str = Depends(get_correlation_id),
):
    owned = db_sess.scalars(select(models.Restaurant).where(models.Restaurant.owner_id == user.id)).first()
    if owned is not None:
        raise ConflictError("You already own a restaurant")

    restaurant = models.Restaurant(owner_id=user.id, **payload.model_dump())
    db_sess.add(restaurant)
    try:
        db_sess.commit()
    except IntegrityError:
        db_sess.rollback()
        raise ConflictError("You already own a restaurant")
    logger.info(f"Restaurant {restaurant.id} created by owner {user.id}", extra={"correlation_id": cid})
    return schemas.Envelope(
        message="Restaurant created successfully",
        data=schemas.RestaurantRead.model_validate(restaurant),
    )


@router.put("/{restaurant_id}", response_model=schemas.Envelope[schemas.RestaurantRead])
def update_restaurant(
    restaurant_id: int,
    payload: schemas.RestaurantUpdate,
    user: models.User = Depends(get_current_user),
    db_sess: Session = Depends(get_db),
):
    restaurant = db_sess.get(models.Restaurant, restaurant_id)
    if restaurant is None:
        raise NotFoundError("Restaurant not found")
    if not permissions.can_manage_restaurant(user, restaurant):
        raise PermissionDenied("You do not manage this restaurant")

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(restaurant, field, value)
    db_sess.commit()
    return schemas.Envelope(
        message="Restaurant updated successfully",
        data=schemas.RestaurantRead.model_validate(restaurant),
    )
