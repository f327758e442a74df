import httpx
import pytest
import pytest_asyncio

from api.dependencies import get_payment_request_service
from main import app


MERCHANT_HEADERS = {"X-Merchant-ID": "m-utc"}


@pytest_asyncio.fixture
async def client(service):
    app.dependency_overrides[get_payment_request_service] = lambda: service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_routes_registered():
    paths = {r.path for r in app.routes}
    assert "/api/v1/payment-requests" in paths
    assert "/api/v1/public/{slug}/payment-requests" in paths
    assert "/api/v1/public/payment/{slug}/{order_date}/{order_number}" in paths
    assert "/api/v1/internal/payment-requests/{payment_request_id}/settlement" in paths


@pytest.mark.asyncio
async def test_merchant_create_and_read(client):
    resp = await client.post(
        "/api/v1/payment-requests",
        json={"amount": "25.00", "currency": "usd", "expiry_minutes": 30},
        headers=MERCHANT_HEADERS,
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["code"] == 0
    data = body["data"]
    assert data["link_id"] == "utc-shop/20251106/0001"
    assert data["amount"] == "25.00"
    assert data["expires_at"] == "2025-11-06T10:30:00Z"

    resp = await client.get(f"/api/v1/payment-requests/{data['id']}", headers=MERCHANT_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "PENDING"

    resp = await client.get("/api/v1/public/payment/utc-shop/20251106/0001")
    assert resp.status_code == 200
    public = resp.json()["data"]
    assert public["link_id"] == "utc-shop/20251106/0001"
    assert "merchant_id" not in public


@pytest.mark.asyncio
async def test_list_endpoint(client):
    for _ in range(2):
        await client.post("/api/v1/payment-requests", json={"amount": "1.00"}, headers=MERCHANT_HEADERS)

    resp = await client.get("/api/v1/payment-requests", params={"status": "PENDING", "size": 1}, headers=MERCHANT_HEADERS)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["total"] == 2
    assert data["pages"] == 2
    assert len(data["items"]) == 1


@pytest.mark.asyncio
async def test_missing_merchant_identity(client):
    resp = await client.post("/api/v1/payment-requests", json={"amount": "1.00"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_invalid_expiry_is_validation_error(client):
    resp = await client.post(
        "/api/v1/payment-requests",
        json={"amount": "1.00", "expiry_minutes": 45},
        headers=MERCHANT_HEADERS,
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["field"] == "expiry_minutes"


@pytest.mark.asyncio
async def test_malformed_link_is_not_found(client):
    resp = await client.get("/api/v1/public/payment/utc-shop/20251306/0001")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_invalid_transition_is_conflict(client):
    created = (await client.post(
        "/api/v1/payment-requests", json={"amount": "3.00"}, headers=MERCHANT_HEADERS
    )).json()["data"]

    resp = await client.post(
        f"/api/v1/payment-requests/{created['id']}/settlement",
        json={"status": "SETTLED"},
        headers=MERCHANT_HEADERS,
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["type"] == "InvalidTransition"


@pytest.mark.asyncio
async def test_buyer_claim_and_system_settlement(client):
    created = (await client.post(
        "/api/v1/payment-requests", json={"amount": "3.00"}, headers=MERCHANT_HEADERS
    )).json()["data"]

    resp = await client.post("/api/v1/public/payment/utc-shop/20251106/0001/claim")
    assert resp.status_code == 200
    assert resp.json()["data"]["settlement_status"] == "CLAIMED_PAID"

    resp = await client.post(
        f"/api/v1/internal/payment-requests/{created['id']}/settlement",
        json={"status": "PAID", "evidence": {"tx_hash": "0x1"}},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["settlement_status"] == "PAID"


@pytest.mark.asyncio
async def test_buyer_rate_limit_returns_retry_after(client):
    resp = await client.post("/api/v1/public/open-shop/payment-requests", json={"amount": "2.00"})
    assert resp.status_code == 201

    resp = await client.post("/api/v1/public/open-shop/payment-requests", json={"amount": "2.00"})
    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "3600"
    assert resp.json()["error"]["details"]["limit"] == 1


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_buyer_rate_limit_ignores_forwarded_for(client):
    statuses = []
    for i in range(5):
        resp = await client.post(
            "/api/v1/public/open-shop/payment-requests",
            json={"amount": "2.00"},
            headers={"X-Forwarded-For": f"10.0.0.{i}"},
        )
        statuses.append(resp.status_code)

    # 限流按连接对端地址计数，伪造的转发头不产生新的计数键
    assert statuses == [201, 429, 429, 429, 429]
