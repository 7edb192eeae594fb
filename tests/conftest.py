import itertools

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chopnow import deps, models, security
from chopnow.main import app
from chopnow.orders import OrderService
from chopnow.repository import OrderRepository
from chopnow.store import EphemeralStore

PASSWORD = "Secret123!"


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, channel, event, payload):
        self.events.append((channel, event, payload))

    def on(self, channel):
        return [(event, payload) for ch, event, payload in self.events if ch == channel]


class FailingNotifier:
    def __init__(self):
        self.calls = 0

    def notify(self, channel, event, payload):
        self.calls += 1
        raise RuntimeError("socket server unreachable")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def store():
    return EphemeralStore(fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(db_session, notifier):
    return OrderService(OrderRepository(db_session), notifier)


@pytest.fixture
def client(session_factory, store, notifier):
    def override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_store] = lambda: store
    app.dependency_overrides[deps.get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


# ----- Factories -----

@pytest.fixture
def make_user(db_session):
    counter = itertools.count(1)

    def _make(role=models.Role.CUSTOMER, email=None, password=PASSWORD, is_active=True, name="Test User"):
        n = next(counter)
        user = models.User(
            email=email or f"{role.value.lower()}{n}@chopnow.com",
            name=name,
            role=role,
            password_hash=security.hash_password(password),
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def make_restaurant(db_session):
    def _make(owner, **overrides):
        fields = dict(
            name="Delicious Bites",
            address="123 Food Street",
            phone="+1234567892",
            delivery_fee=2.99,
            min_order=15.00,
            delivery_time=30,
        )
        fields.update(overrides)
        restaurant = models.Restaurant(owner_id=owner.id, **fields)
        db_session.add(restaurant)
        db_session.commit()
        return restaurant

    return _make


@pytest.fixture
def make_menu_item(db_session):
    def _make(restaurant, name="Classic Burger", price=25.00, category="Burgers", is_available=True):
        item = models.MenuItem(
            restaurant_id=restaurant.id,
            name=name,
            price=price,
            category=category,
            is_available=is_available,
        )
        db_session.add(item)
        db_session.commit()
        return item

    return _make


@pytest.fixture
def market(make_user, make_restaurant, make_menu_item):
    """One restaurant with an owner, a customer, two riders, an admin and a small menu."""

    class Market:
        pass

    m = Market()
    m.admin = make_user(models.Role.ADMIN)
    m.owner = make_user(models.Role.RESTAURANT_OWNER)
    m.customer = make_user(models.Role.CUSTOMER)
    m.other_customer = make_user(models.Role.CUSTOMER)
    m.rider = make_user(models.Role.RIDER)
    m.other_rider = make_user(models.Role.RIDER)
    m.restaurant = make_restaurant(m.owner)
    m.burger = make_menu_item(m.restaurant, "Classic Burger", 25.00)
    m.fries = make_menu_item(m.restaurant, "Fries", 5.00, category="Sides")
    m.soup = make_menu_item(m.restaurant, "Soup of the Day", 7.50, category="Soups", is_available=False)

    m.other_owner = make_user(models.Role.RESTAURANT_OWNER)
    m.other_restaurant = make_restaurant(m.other_owner, name="Pizza Place")
    m.pizza = make_menu_item(m.other_restaurant, "Margherita Pizza", 16.99, category="Pizza")
    return m


def auth_headers(user):
    return {"Authorization": f"Bearer {security.create_access_token(user)}"}


def count_rows(session, model):
    return session.scalar(select(func.count()).select_from(model))
