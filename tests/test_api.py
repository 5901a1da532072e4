"""
End-to-end HTTP tests over ASGITransport with the database, cache and
payment gateway overridden.
"""

import re

import pytest
from httpx import ASGITransport, AsyncClient

from conftest import TEST_PASSWORD
from foodorder.core.config import get_settings
from foodorder.database import get_db
from foodorder.main import app
from foodorder.models import UserRole
from foodorder.services.cache import get_cache_service
from foodorder.services.payment import get_payment_service

API = get_settings().api_prefix
TOKEN_RE = re.compile(r'name="token" value="([^"]+)"')


@pytest.fixture
async def client(session_maker, cache, payment):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_service] = lambda: cache
    app.dependency_overrides[get_payment_service] = lambda: payment

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def catalogue(factory):
    owner = await factory.user(role=UserRole.RESTAURANT_OWNER, email="owner@example.com")
    admin = await factory.user(role=UserRole.ADMIN, email="admin@example.com")
    restaurant = await factory.restaurant(owner=owner, delivery_fee="10.00", name="Burger Barn")
    category = await factory.category(restaurant)
    burger = await factory.menu_item(restaurant, category, price="100.00", name="Burger")
    fries = await factory.menu_item(restaurant, category, price="50.00", name="Fries")
    return {
        "owner": owner,
        "admin": admin,
        "restaurant": restaurant,
        "burger": burger,
        "fries": fries,
    }


async def register(client, email="eve@example.com", **extra):
    payload = {
        "email": email,
        "password": TEST_PASSWORD,
        "name": "Eve",
        "address": "9 Elm Street",
        **extra,
    }
    return await client.post(f"{API}/auth/register", json=payload)


async def login(client, email):
    """Log in and return a Bearer header; cookies are cleared so users don't mix."""
    response = await client.post(f"{API}/auth/login", json={"email": email, "password": TEST_PASSWORD})
    assert response.status_code == 200
    token = response.cookies["access_token"]
    client.cookies.clear()
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# PLATFORM
# =============================================================================

async def test_root_and_health(client):
    root = await client.get("/")
    health = await client.get("/health", headers={"X-Correlation-Id": "abc-123"})

    assert root.status_code == 200
    assert root.json()["api"] == API
    assert health.status_code == 200
    assert health.json()["database"] == "healthy"
    assert health.json()["payment_service"] == "healthy"
    assert health.headers["x-correlation-id"] == "abc-123"


async def test_correlation_id_generated(client):
    response = await client.get("/")

    assert response.headers["x-correlation-id"]


# =============================================================================
# AUTH
# =============================================================================

async def test_register_and_duplicate(client):
    created = await register(client)
    duplicate = await register(client)

    assert created.status_code == 201
    assert created.json()["role"] == "customer"
    assert "password_hash" not in created.json()
    assert duplicate.status_code == 409
    assert duplicate.json() == {
        "success": False,
        "error": "Conflict",
        "detail": "Email is already registered",
        "correlation_id": duplicate.headers["x-correlation-id"],
    }


async def test_error_body_carries_correlation_id(client):
    response = await client.get(
        f"{API}/restaurants/999999",
        headers={"X-Correlation-Id": "trace-42"},
    )

    assert response.status_code == 401
    assert response.json()["correlation_id"] == "trace-42"
    assert response.headers["x-correlation-id"] == "trace-42"


async def test_admin_cannot_self_register(client):
    response = await register(client, role="admin")

    assert response.status_code == 422


async def test_login_sets_http_only_cookies(client):
    await register(client)

    response = await client.post(
        f"{API}/auth/login", json={"email": "eve@example.com", "password": TEST_PASSWORD}
    )

    assert response.status_code == 200
    assert response.json()["user"]["email"] == "eve@example.com"
    set_cookies = [v.lower() for v in response.headers.get_list("set-cookie")]
    assert any(v.startswith("access_token=") for v in set_cookies)
    assert any(v.startswith("refresh_token=") for v in set_cookies)
    assert all("httponly" in v and "samesite=strict" in v for v in set_cookies)


async def test_cookie_session_reaches_protected_route(client):
    await register(client)
    await client.post(f"{API}/auth/login", json={"email": "eve@example.com", "password": TEST_PASSWORD})

    response = await client.get(f"{API}/users/me")

    assert response.status_code == 200
    assert response.json()["name"] == "Eve"


async def test_bad_credentials(client):
    await register(client)

    response = await client.post(f"{API}/auth/login", json={"email": "eve@example.com", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


async def test_refresh_with_body_rotates(client):
    await register(client)
    login_response = await client.post(
        f"{API}/auth/login", json={"email": "eve@example.com", "password": TEST_PASSWORD}
    )
    refresh_token = login_response.cookies["refresh_token"]
    client.cookies.clear()

    rotated = await client.post(f"{API}/auth/refresh", json={"refresh_token": refresh_token})
    client.cookies.clear()
    replayed = await client.post(f"{API}/auth/refresh", json={"refresh_token": refresh_token})

    assert rotated.status_code == 200
    assert rotated.json()["refresh_token"] != refresh_token
    assert replayed.status_code == 401


async def test_logout_clears_cookies(client):
    await register(client)
    await client.post(f"{API}/auth/login", json={"email": "eve@example.com", "password": TEST_PASSWORD})

    response = await client.post(f"{API}/auth/logout")

    assert response.status_code == 200
    assert (await client.get(f"{API}/users/me")).status_code == 401


async def test_protected_route_requires_token(client):
    response = await client.get(f"{API}/cart")

    assert response.status_code == 401
    assert response.json()["success"] is False


async def test_update_profile(client):
    await register(client)
    headers = await login(client, "eve@example.com")

    response = await client.patch(f"{API}/users/me", json={"address": "10 Oak Avenue"}, headers=headers)

    assert response.status_code == 200
    assert response.json()["address"] == "10 Oak Avenue"


# =============================================================================
# CATALOGUE
# =============================================================================

async def test_browse_catalogue(client, catalogue):
    await register(client)
    headers = await login(client, "eve@example.com")
    restaurant_id = catalogue["restaurant"].id

    listing = await client.get(f"{API}/restaurants", headers=headers)
    menu = await client.get(f"{API}/restaurants/{restaurant_id}/menu", headers=headers)
    item = await client.get(f"{API}/restaurants/menu-items/{catalogue['burger'].id}", headers=headers)
    search = await client.get(f"{API}/restaurants/search", params={"q": "burger"}, headers=headers)
    missing = await client.get(f"{API}/restaurants/9999", headers=headers)

    assert listing.status_code == 200
    assert [r["name"] for r in listing.json()["restaurants"]] == ["Burger Barn"]
    assert listing.json()["restaurants"][0]["delivery_fee"] == 10.0
    assert [i["name"] for i in menu.json()["categories"][0]["items"]] == ["Burger", "Fries"]
    assert item.json()["restaurant"]["name"] == "Burger Barn"
    assert [r["name"] for r in search.json()["restaurants"]] == ["Burger Barn"]
    assert [i["name"] for i in search.json()["menu_items"]] == ["Burger"]
    assert missing.status_code == 404


async def test_admin_manages_catalogue(client, catalogue):
    await register(client)
    customer_headers = await login(client, "eve@example.com")
    admin_headers = await login(client, "admin@example.com")
    payload = {
        "name": "Taco Truck",
        "cuisine": "Mexican",
        "city": "Istanbul",
        "district": "Sisli",
        "address": "5 Food Court",
        "delivery_fee": "4.50",
    }

    forbidden = await client.post(f"{API}/restaurants", json=payload, headers=customer_headers)
    created = await client.post(f"{API}/restaurants", json=payload, headers=admin_headers)
    restaurant_id = created.json()["id"]
    category = await client.post(
        f"{API}/restaurants/{restaurant_id}/categories", json={"name": "Tacos"}, headers=admin_headers
    )
    item = await client.post(
        f"{API}/restaurants/{restaurant_id}/menu-items",
        json={"name": "Al Pastor", "price": "3.75", "category_id": category.json()["id"]},
        headers=admin_headers,
    )
    deleted = await client.delete(f"{API}/restaurants/{restaurant_id}", headers=admin_headers)

    assert forbidden.status_code == 401
    assert created.status_code == 201
    assert category.status_code == 201
    assert item.status_code == 201
    assert item.json()["price"] == 3.75
    assert item.json()["category"]["name"] == "Tacos"
    assert deleted.status_code == 200


# =============================================================================
# CART → ORDER → PAYMENT
# =============================================================================

async def test_full_order_flow(client, catalogue):
    await register(client)
    headers = await login(client, "eve@example.com")

    for item, quantity in ((catalogue["burger"], 1), (catalogue["fries"], 1)):
        added = await client.post(
            f"{API}/cart/items",
            json={"menu_item_id": item.id, "quantity": quantity},
            headers=headers,
        )
        assert added.status_code == 201

    cart = await client.get(f"{API}/cart", headers=headers)
    assert cart.json()["total"] == 160.0

    checkout = await client.post(f"{API}/orders", json={"note": "Ring twice"}, headers=headers)
    assert checkout.status_code == 200
    body = checkout.json()
    assert body["total_amount"] == 160.0
    token = TOKEN_RE.search(body["checkout_form_content"]).group(1)

    callback = await client.post(f"{API}/orders/callback", data={"token": token})
    assert callback.status_code == 303
    assert callback.headers["location"] == (
        f"{get_settings().payment_success_url}?orderId={body['order_id']}"
    )

    duplicate = await client.get(f"{API}/orders/callback", params={"token": token})
    assert duplicate.status_code == 303
    assert duplicate.headers["location"] == callback.headers["location"]

    order = await client.get(f"{API}/orders/{body['order_id']}", headers=headers)
    assert order.json()["status"] == "paid"
    assert order.json()["note"] == "Ring twice"
    assert [i["name"] for i in order.json()["items"]] == ["Burger", "Fries"]

    assert (await client.get(f"{API}/cart", headers=headers)).json()["items"] == []

    history = await client.get(f"{API}/users/me/orders", headers=headers)
    assert [o["id"] for o in history.json()["orders"]] == [body["order_id"]]

    owner_headers = await login(client, "owner@example.com")
    delivered = await client.patch(
        f"{API}/orders/{body['order_id']}/status",
        json={"status": "delivered"},
        headers=owner_headers,
    )
    assert delivered.status_code == 200
    assert delivered.json()["delivered_at"] is not None

    cancel = await client.post(f"{API}/orders/{body['order_id']}/cancel", headers=headers)
    assert cancel.status_code == 400


async def test_cross_restaurant_add_conflict(client, catalogue, factory):
    other = await factory.restaurant(name="Noodle Bar")
    category = await factory.category(other)
    noodles = await factory.menu_item(other, category, price="20.00")
    await register(client)
    headers = await login(client, "eve@example.com")

    await client.post(f"{API}/cart/items", json={"menu_item_id": catalogue["burger"].id}, headers=headers)
    conflict = await client.post(f"{API}/cart/items", json={"menu_item_id": noodles.id}, headers=headers)
    replaced = await client.post(
        f"{API}/cart/items",
        params={"clear_cart": "true"},
        json={"menu_item_id": noodles.id},
        headers=headers,
    )
    cart = await client.get(f"{API}/cart", headers=headers)

    assert conflict.status_code == 409
    assert replaced.status_code == 201
    assert [line["menu_item_id"] for line in cart.json()["items"]] == [noodles.id]


async def test_cart_quantity_updates(client, catalogue):
    await register(client)
    headers = await login(client, "eve@example.com")
    added = await client.post(
        f"{API}/cart/items", json={"menu_item_id": catalogue["burger"].id}, headers=headers
    )
    line_id = added.json()["item"]["id"]

    negative = await client.patch(f"{API}/cart/items/{line_id}", json={"quantity": -2}, headers=headers)
    updated = await client.patch(f"{API}/cart/items/{line_id}", json={"quantity": 3}, headers=headers)
    removed = await client.patch(f"{API}/cart/items/{line_id}", json={"quantity": 0}, headers=headers)

    assert negative.status_code == 400
    assert updated.json()["item"]["quantity"] == 3
    assert removed.json()["item"] is None
    assert (await client.get(f"{API}/cart", headers=headers)).json()["items_count"] == 0


async def test_callback_failures_redirect(client):
    settings = get_settings()

    missing = await client.get(f"{API}/orders/callback")
    unknown = await client.get(f"{API}/orders/callback", params={"token": "cs_mock_unknown"})

    assert missing.status_code == 303
    assert missing.headers["location"].startswith(f"{settings.payment_failure_url}?reason=")
    assert unknown.status_code == 303
    assert unknown.headers["location"].startswith(f"{settings.payment_failure_url}?reason=")


async def test_checkout_empty_cart(client):
    await register(client)
    headers = await login(client, "eve@example.com")

    response = await client.post(f"{API}/orders", headers=headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Your cart is empty"
