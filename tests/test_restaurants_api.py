from types import SimpleNamespace

from sqlalchemy.orm import Session, sessionmaker

from chopnow import deps, models
from chopnow.main import app
from chopnow.models import OrderStatus

from conftest import auth_headers


def delivered_order(db_session, market, customer=None):
    customer = customer or market.customer
    order = models.Order(
        order_number=f"ORD-1-{customer.id:06d}",
        customer_id=customer.id,
        restaurant_id=market.restaurant.id,
        delivery_address="42 Main Street",
        subtotal=25.0,
        delivery_fee=2.99,
        tax=2.0,
        total=29.99,
        status=OrderStatus.DELIVERED,
    )
    db_session.add(order)
    db_session.commit()
    return order


# ----- Restaurants -----

def test_list_restaurants_hides_inactive(client, market, db_session):
    market.other_restaurant.is_active = False
    db_session.commit()

    resp = client.get("/api/restaurants")
    assert resp.status_code == 200
    names = [r["name"] for r in resp.json()["data"]]
    assert names == ["Delicious Bites"]


def test_restaurant_detail_lists_available_menu(client, market):
    resp = client.get(f"/api/restaurants/{market.restaurant.id}")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["deliveryFee"] == 2.99
    assert data["minOrder"] == 15.0
    assert {m["name"] for m in data["menuItems"]} == {"Classic Burger", "Fries"}


def test_restaurant_detail_missing(client):
    assert client.get("/api/restaurants/9999").status_code == 404


def test_owner_creates_one_restaurant(client, make_user):
    owner = make_user(models.Role.RESTAURANT_OWNER)
    body = {"name": "Noodle Bar", "address": "7 Side Street", "phone": "+15550001111", "minOrder": 10}

    resp = client.post("/api/restaurants", json=body, headers=auth_headers(owner))
    assert resp.status_code == 201
    assert resp.json()["data"]["ownerId"] == owner.id
    assert resp.json()["data"]["minOrder"] == 10.0

    again = client.post("/api/restaurants", json=body, headers=auth_headers(owner))
    assert again.status_code == 409


def test_customer_cannot_create_restaurant(client, market):
    body = {"name": "Noodle Bar", "address": "7 Side Street", "phone": "+15550001111"}
    assert client.post("/api/restaurants", json=body, headers=auth_headers(market.customer)).status_code == 403


def test_owner_closes_own_restaurant(client, market):
    resp = client.put(
        f"/api/restaurants/{market.restaurant.id}",
        json={"isOpen": False},
        headers=auth_headers(market.owner),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["isOpen"] is False
    assert resp.json()["data"]["name"] == "Delicious Bites"

    body = {
        "restaurantId": market.restaurant.id,
        "items": [{"menuItemId": market.burger.id, "quantity": 1}],
        "deliveryAddress": "42 Main Street",
    }
    order = client.post("/api/orders", json=body, headers=auth_headers(market.customer))
    assert order.status_code == 400


def test_owner_cannot_update_other_restaurant(client, market):
    resp = client.put(
        f"/api/restaurants/{market.other_restaurant.id}",
        json={"deliveryFee": 0},
        headers=auth_headers(market.owner),
    )
    assert resp.status_code == 403


# ----- Menu -----

def test_menu_lists_available_items(client, market):
    resp = client.get(f"/api/menu/{market.restaurant.id}")
    assert resp.status_code == 200
    assert [m["name"] for m in resp.json()["data"]] == ["Classic Burger", "Fries"]


def test_owner_adds_menu_item(client, market):
    body = {"restaurantId": market.restaurant.id, "name": "Milkshake", "price": 4.5, "category": "Drinks"}
    resp = client.post("/api/menu", json=body, headers=auth_headers(market.owner))
    assert resp.status_code == 201
    assert resp.json()["data"]["isAvailable"] is True


def test_other_owner_cannot_add_menu_item(client, market):
    body = {"restaurantId": market.restaurant.id, "name": "Milkshake", "price": 4.5, "category": "Drinks"}
    assert client.post("/api/menu", json=body, headers=auth_headers(market.other_owner)).status_code == 403


def test_menu_price_change_keeps_order_snapshot(client, market):
    body = {
        "restaurantId": market.restaurant.id,
        "items": [{"menuItemId": market.burger.id, "quantity": 1}],
        "deliveryAddress": "42 Main Street",
    }
    order_id = client.post("/api/orders", json=body, headers=auth_headers(market.customer)).json()["data"]["id"]

    resp = client.put(
        f"/api/menu/items/{market.burger.id}",
        json={"price": 30.0},
        headers=auth_headers(market.owner),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["price"] == 30.0

    order = client.get(f"/api/orders/{order_id}", headers=auth_headers(market.customer)).json()["data"]
    assert order["items"][0]["price"] == 25.0
    assert order["subtotal"] == 25.0


def test_update_missing_menu_item(client, market):
    resp = client.put("/api/menu/items/9999", json={"price": 1}, headers=auth_headers(market.owner))
    assert resp.status_code == 404


# ----- Reviews -----

def test_review_delivered_order_updates_rating(client, market, db_session, make_user):
    first = delivered_order(db_session, market)
    second_customer = make_user()
    second = delivered_order(db_session, market, second_customer)

    resp = client.post(
        "/api/reviews",
        json={"orderId": first.id, "rating": 5, "comment": "Great"},
        headers=auth_headers(market.customer),
    )
    assert resp.status_code == 201
    client.post(
        "/api/reviews",
        json={"orderId": second.id, "rating": 4},
        headers=auth_headers(second_customer),
    )

    restaurant = client.get(f"/api/restaurants/{market.restaurant.id}").json()["data"]
    assert restaurant["rating"] == 4.5

    reviews = client.get(f"/api/reviews/{market.restaurant.id}").json()["data"]
    assert sorted(r["rating"] for r in reviews) == [4, 5]


def test_review_twice_is_409(client, market, db_session):
    order = delivered_order(db_session, market)
    body = {"orderId": order.id, "rating": 3}
    client.post("/api/reviews", json=body, headers=auth_headers(market.customer))
    resp = client.post("/api/reviews", json=body, headers=auth_headers(market.customer))
    assert resp.status_code == 409


def test_review_requires_delivery(client, market):
    body = {
        "restaurantId": market.restaurant.id,
        "items": [{"menuItemId": market.burger.id, "quantity": 1}],
        "deliveryAddress": "42 Main Street",
    }
    order_id = client.post("/api/orders", json=body, headers=auth_headers(market.customer)).json()["data"]["id"]
    resp = client.post(
        "/api/reviews",
        json={"orderId": order_id, "rating": 5},
        headers=auth_headers(market.customer),
    )
    assert resp.status_code == 400


def test_review_someone_elses_order(client, market, db_session):
    order = delivered_order(db_session, market)
    resp = client.post(
        "/api/reviews",
        json={"orderId": order.id, "rating": 5},
        headers=auth_headers(market.other_customer),
    )
    assert resp.status_code == 403


def test_review_rating_bounds(client, market, db_session):
    order = delivered_order(db_session, market)
    resp = client.post(
        "/api/reviews",
        json={"orderId": order.id, "rating": 6},
        headers=auth_headers(market.customer),
    )
    assert resp.status_code == 400


# ----- Partial updates -----

def test_restaurant_update_rejects_null_for_required_fields(client, market):
    resp = client.put(
        f"/api/restaurants/{market.restaurant.id}",
        json={"minOrder": None},
        headers=auth_headers(market.owner),
    )
    assert resp.status_code == 400
    assert resp.json()["errors"] == [{"field": "minOrder", "message": "minOrder cannot be null"}]


def test_restaurant_update_may_clear_description(client, market):
    resp = client.put(
        f"/api/restaurants/{market.restaurant.id}",
        json={"description": None, "deliveryTime": 45},
        headers=auth_headers(market.owner),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["description"] is None
    assert resp.json()["data"]["deliveryTime"] == 45


def test_menu_item_update_rejects_null_price(client, market):
    resp = client.put(
        f"/api/menu/items/{market.burger.id}",
        json={"price": None},
        headers=auth_headers(market.owner),
    )
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "price"


def test_concurrent_restaurant_create_is_409(client, market, engine):
    class StaleReadSession(Session):
        # the owner's existing restaurant is invisible to the pre-insert check
        def scalars(self, *args, **kwargs):
            super().scalars(*args, **kwargs)
            return SimpleNamespace(first=lambda: None)

    factory = sessionmaker(bind=engine, class_=StaleReadSession, autoflush=False, expire_on_commit=False)

    def stale_db():
        s = factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[deps.get_db] = stale_db
    body = {"name": "Second Site", "address": "9 Other Road", "phone": "+15550002222"}
    resp = client.post("/api/restaurants", json=body, headers=auth_headers(market.owner))

    assert resp.status_code == 409
    assert resp.json()["message"] == "You already own a restaurant"
