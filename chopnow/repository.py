"""Persistence interface of the order lifecycle engine.

``OrderService`` only talks to this class, never to a module-level client, so
tests can hand it a session bound to an in-memory database.
"""
import logging
import math
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from . import models
from .errors import ConflictError

logger = logging.getLogger("chopnow.repository")


def _order_query():
    return select(models.Order).options(
        selectinload(models.Order.items).selectinload(models.OrderItem.menu_item),
        selectinload(models.Order.restaurant),
        selectinload(models.Order.customer),
        selectinload(models.Order.delivery),
        selectinload(models.Order.payment),
    )


class OrderRepository:
    def __init__(self, session: Session):
        self.session = session

    # ----- Lookups -----

    def get_user(self, user_id: int) -> Optional[models.User]:
        return self.session.get(models.User, user_id)

    def get_restaurant(self, restaurant_id: int) -> Optional[models.Restaurant]:
        return self.session.get(models.Restaurant, restaurant_id)

    def get_restaurant_for_owner(self, owner_id: int) -> Optional[models.Restaurant]:
        return self.session.scalars(
            select(models.Restaurant).where(models.Restaurant.owner_id == owner_id)
        ).first()

    def get_menu_items(self, item_ids: Iterable[int]) -> dict:
        ids = set(item_ids)
        if not ids:
            return {}
        rows = self.session.scalars(select(models.MenuItem).where(models.MenuItem.id.in_(ids)))
        return {m.id: m for m in rows}

    def get_order(self, order_id: int) -> Optional[models.Order]:
        return self.session.scalars(_order_query().where(models.Order.id == order_id)).first()

    def list_orders(
        self,
        *,
        customer_id: Optional[int] = None,
        restaurant_id: Optional[int] = None,
        rider_id: Optional[int] = None,
        status: Optional[models.OrderStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[models.Order], int]:
        conditions = []
        if customer_id is not None:
            conditions.append(models.Order.customer_id == customer_id)
        if restaurant_id is not None:
            conditions.append(models.Order.restaurant_id == restaurant_id)
        if status is not None:
            conditions.append(models.Order.status == status)

        stmt = _order_query()
        count_stmt = select(func.count(models.Order.id)).select_from(models.Order)
        if rider_id is not None:
            stmt = stmt.join(models.Order.delivery)
            count_stmt = count_stmt.join(models.Order.delivery)
            conditions.append(models.Delivery.rider_id == rider_id)

        stmt = stmt.where(*conditions)
        count_stmt = count_stmt.where(*conditions)

        total = self.session.scalar(count_stmt) or 0
        orders = self.session.scalars(
            stmt.order_by(models.Order.created_at.desc(), models.Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return list(orders), total

    # ----- Writes -----

    def add_order(self, order: models.Order) -> models.Order:
        """Insert the order with its items, delivery and payment in one transaction."""
        self.session.add(order)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(f"Order insert rejected by constraint: {e.orig}")
            raise ConflictError("Order could not be created, please retry")
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return order

    def save(self, *instances) -> None:
        for obj in instances:
            self.session.add(obj)
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
