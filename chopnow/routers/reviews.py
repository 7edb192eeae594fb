from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .. import models, schemas
from ..deps import get_db, require_roles
from ..errors import BusinessRuleError, ConflictError, NotFoundError, PermissionDenied

router = APIRouter(prefix="/api/reviews", tags=["reviews"])


@router.get("/{restaurant_id}", response_model=schemas.Envelope[List[schemas.ReviewRead]])
def list_reviews(restaurant_id: int, db_sess: Session = Depends(get_db)):
    if db_sess.get(models.Restaurant, restaurant_id) is None:
        raise NotFoundError("Restaurant not found")
    rows = db_sess.scalars(
        select(models.Review)
        .where(models.Review.restaurant_id == restaurant_id)
        .order_by(models.Review.created_at.desc(), models.Review.id.desc())
    ).all()
    return schemas.Envelope(data=[schemas.ReviewRead.model_validate(r) for r in rows])


@router.post("", response_model=schemas.Envelope[schemas.ReviewRead], status_code=201)
def create_review(
    payload: schemas.ReviewCreate,
    user: models.User = Depends(require_roles(models.Role.CUSTOMER)),
    db_sess: Session = Depends(get_db),
):
    order = db_sess.get(models.Order, payload.order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if order.customer_id != user.id:
        raise PermissionDenied("You can only review your own orders")
    if order.status != models.OrderStatus.DELIVERED:
        raise BusinessRuleError("Only delivered orders can be reviewed")
    already = db_sess.scalars(select(models.Review).where(models.Review.order_id == order.id)).first()
    if already is not None:
        raise ConflictError("This order has already been reviewed")

    review = models.Review(
        user_id=user.id,
        restaurant_id=order.restaurant_id,
        order_id=order.id,
        rating=payload.rating,
        comment=payload.comment,
    )
    db_sess.add(review)
    db_sess.flush()

    average = db_sess.scalar(
        select(func.avg(models.Review.rating)).where(models.Review.restaurant_id == order.restaurant_id)
    )
    order.restaurant.rating = round(float(average or 0), 1)
    db_sess.commit()
    return schemas.Envelope(message="Review submitted successfully", data=schemas.ReviewRead.model_validate(review))
