import pytest

from chopnow import config, security

from conftest import PASSWORD, auth_headers


@pytest.fixture
def no_rate_limit(monkeypatch):
    monkeypatch.setattr(config, "AUTH_RATE_LIMIT_MAX", 1000)


def register(client, **overrides):
    body = {"email": "Jane@ChopNow.com", "password": PASSWORD, "name": "Jane Doe", "phone": "+15551234567"}
    body.update(overrides)
    return client.post("/api/auth/register", json=body)


def login(client, email, password=PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


# ----- Register -----

def test_register_returns_user_and_token(client):
    resp = register(client)
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["user"]["email"] == "jane@chopnow.com"
    assert data["user"]["role"] == "CUSTOMER"
    assert data["user"]["isActive"] is True
    assert "passwordHash" not in data["user"]

    claims = security.decode_access_token(data["token"])
    assert claims["sub"] == str(data["user"]["id"])
    assert claims["role"] == "CUSTOMER"


def test_register_as_rider(client):
    resp = register(client, role="RIDER")
    assert resp.json()["data"]["user"]["role"] == "RIDER"


def test_register_cannot_self_promote_to_admin(client):
    resp = register(client, role="ADMIN")
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "role"


def test_register_duplicate_email_is_409(client):
    register(client)
    resp = register(client, email="jane@chopnow.com")
    assert resp.status_code == 409
    assert resp.json()["message"] == "User with this email already exists"


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"password": "short1!"}, "password"),
        ({"password": "alllowercase1!"}, "password"),
        ({"password": "NoSpecials123"}, "password"),
        ({"name": "R2-D2"}, "name"),
        ({"name": "J"}, "name"),
        ({"phone": "0123"}, "phone"),
        ({"email": "not-an-email"}, "email"),
    ],
)
def test_register_validation(client, overrides, field):
    resp = register(client, **overrides)
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Validation error"
    assert [e["field"] for e in body["errors"]] == [field]


def test_register_password_message_is_readable(client):
    resp = register(client, password="short1!")
    assert resp.json()["errors"][0]["message"] == "Password must be at least 8 characters long"


# ----- Login -----

def test_login_success_creates_session(client, market, store):
    resp = login(client, market.customer.email.upper())
    assert resp.status_code == 200
    token = resp.json()["data"]["token"]
    assert security.get_session(store, market.customer.id)["token"] == token


def test_login_wrong_password(client, market):
    resp = login(client, market.customer.email, "Wrong123!")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid email or password"


def test_login_unknown_email_same_message(client):
    resp = login(client, "ghost@chopnow.com")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid email or password"


def test_login_disabled_account(client, make_user):
    user = make_user(is_active=False)
    resp = login(client, user.email)
    assert resp.status_code == 401


def test_lockout_after_repeated_failures(client, market, no_rate_limit):
    for _ in range(config.LOGIN_MAX_FAILURES):
        assert login(client, market.customer.email, "Wrong123!").status_code == 401

    resp = login(client, market.customer.email)
    assert resp.status_code == 423
    assert "temporarily locked" in resp.json()["message"]


def test_successful_login_resets_failure_count(client, market, no_rate_limit, store):
    for _ in range(config.LOGIN_MAX_FAILURES - 1):
        login(client, market.customer.email, "Wrong123!")
    assert login(client, market.customer.email).status_code == 200
    assert store.get(f"failed_attempts:{market.customer.email}") is None

    assert login(client, market.customer.email, "Wrong123!").status_code == 401
    assert login(client, market.customer.email).status_code == 200


def test_auth_endpoints_are_rate_limited(client, market):
    for _ in range(config.AUTH_RATE_LIMIT_MAX):
        login(client, market.customer.email)
    resp = login(client, market.customer.email)
    assert resp.status_code == 429
    assert resp.json()["success"] is False


# ----- Session -----

def test_me(client, market):
    resp = client.get("/api/auth/me", headers=auth_headers(market.rider))
    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == market.rider.id


def test_me_rejects_expired_token(client, market):
    token = security.create_access_token(market.customer, expires_in=-10)
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Token expired"


def test_me_rejects_deactivated_user(client, market, db_session):
    headers = auth_headers(market.customer)
    market.customer.is_active = False
    db_session.commit()
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_logout_blacklists_token(client, market, store):
    token = login(client, market.customer.email).json()["data"]["token"]
    headers = {"Authorization": f"Bearer {token}"}

    resp = client.post("/api/auth/logout", headers=headers)
    assert resp.status_code == 200
    assert security.get_session(store, market.customer.id) is None

    resp = client.get("/api/auth/me", headers=headers)
    assert resp.status_code == 401
    assert resp.json()["message"] == "Token has been invalidated"


def test_change_password(client, market, no_rate_limit):
    headers = auth_headers(market.customer)
    resp = client.put(
        "/api/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "Fresh456$"},
        headers=headers,
    )
    assert resp.status_code == 200

    assert login(client, market.customer.email).status_code == 401
    assert login(client, market.customer.email, "Fresh456$").status_code == 200


def test_change_password_wrong_current(client, market):
    resp = client.put(
        "/api/auth/change-password",
        json={"currentPassword": "Nope1234!", "newPassword": "Fresh456$"},
        headers=auth_headers(market.customer),
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Current password is incorrect"


def test_change_password_enforces_policy(client, market):
    resp = client.put(
        "/api/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "weak"},
        headers=auth_headers(market.customer),
    )
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "newPassword"
