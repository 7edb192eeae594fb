from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import models, permissions, schemas
from ..deps import get_current_user, get_db
from ..errors import NotFoundError, PermissionDenied

router = APIRouter(prefix="/api/menu", tags=["menu"])


def _managed_restaurant(db_sess: Session, user: models.User, restaurant_id: int) -> models.Restaurant:
    restaurant = db_sess.get(models.Restaurant, restaurant_id)
    if restaurant is None:
        raise NotFoundError("Restaurant not found")
    if not permissions.can_manage_restaurant(user, restaurant):
        raise PermissionDenied("You do not manage this restaurant")
    return restaurant


@router.get("/{restaurant_id}", response_model=schemas.Envelope[List[schemas.MenuItemRead]])
def list_menu(restaurant_id: int, db_sess: Session = Depends(get_db)):
    if db_sess.get(models.Restaurant, restaurant_id) is None:
        raise NotFoundError("Restaurant not found")
    items = db_sess.scalars(
        select(models.MenuItem)
        .where(models.MenuItem.restaurant_id == restaurant_id, models.MenuItem.is_available.is_(True))
        .order_by(models.MenuItem.category, models.MenuItem.name)
    ).all()
    return schemas.Envelope(data=[schemas.MenuItemRead.model_validate(m) for m in items])


@router.post("", response_model=schemas.Envelope[schemas.MenuItemRead], status_code=201)
def create_menu_item(
    payload: schemas.MenuItemCreate,
    user: models.User = Depends(get_current_user),
    db_sess: Session = Depends(get_db),
):
    _managed_restaurant(db_sess, user, payload.restaurant_id)
    item = models.MenuItem(**payload.model_dump())
    db_sess.add(item)
    db_sess.commit()
    return schemas.Envelope(message="Menu item created successfully", data=schemas.MenuItemRead.model_validate(item))


@router.put("/items/{item_id}", response_model=schemas.Envelope[schemas.MenuItemRead])
def update_menu_item(
    item_id: int,
    payload: schemas.MenuItemUpdate,
    user: models.User = Depends(get_current_user),
    db_sess: Session = Depends(get_db),
):
    item = db_sess.get(models.MenuItem, item_id)
    if item is None:
        raise NotFoundError("Menu item not found")
    _managed_restaurant(db_sess, user, item.restaurant_id)

    # price changes never touch existing orders: order items carry their own snapshot
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(item, field, value)
    db_sess.commit()
    return schemas.Envelope(message="Menu item updated successfully", data=schemas.MenuItemRead.model_validate(item))
