"""
REST API tests.
"""

import pytest
from fastapi import HTTPException

from claimgate.api.deps import get_caller, verify_api_key
from claimgate.config import settings
from claimgate.engine.errors import (
    ConcurrentUpdate,
    PaymentUnavailable,
    QuotaExceeded,
    StoreUnavailable,
    TaskNotFound,
)
from claimgate.main import status_for

CUSTOMER = {"X-Caller-Id": "cust-1", "X-Caller-Role": "customer"}
MECH_A = {"X-Caller-Id": "mech-a", "X-Caller-Role": "provider"}
MECH_B = {"X-Caller-Id": "mech-b", "X-Caller-Role": "provider"}
ADMIN = {"X-Caller-Id": "admin-1", "X-Caller-Role": "admin"}

ORDER_BODY = {
    "items": [{"id": "svc-oil", "name": "Oil change", "price": "49.99"}],
    "total_price": "49.99",
    "description": "Oil change at home",
    "location_details": {
        "address": "1 Main St",
        "city": "Springfield",
        "state": "IL",
        "zip_code": "62701",
        "phone_number": "555-0100",
    },
}


async def create_order(client) -> str:
    response = await client.post("/v1/orders", json=ORDER_BODY, headers=CUSTOMER)
    assert response.status_code == 201
    return response.json()["id"]


async def test_health(client):
    response = await client.get("/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_submit_order(client):
    response = await client.post("/v1/orders", json=ORDER_BODY, headers=CUSTOMER)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "Pending"
    assert data["customer_id"] == "cust-1"
    assert data["version"] == 0


async def test_submit_order_requires_items(client):
    response = await client.post("/v1/orders", json={**ORDER_BODY, "items": []}, headers=CUSTOMER)

    assert response.status_code == 422


async def test_missing_caller_headers(client):
    response = await client.post("/v1/orders", json=ORDER_BODY)

    assert response.status_code == 401


async def test_unknown_caller_role(client):
    response = await client.post(
        "/v1/orders",
        json=ORDER_BODY,
        headers={"X-Caller-Id": "x", "X-Caller-Role": "wizard"},
    )

    assert response.status_code == 400


async def test_system_role_cannot_be_asserted():
    with pytest.raises(HTTPException) as exc_info:
        await get_caller(x_caller_id="sys", x_caller_role="system")

    assert exc_info.value.status_code == 403


async def test_claim_conflict_envelope(client):
    order_id = await create_order(client)

    first = await client.post(f"/v1/orders/{order_id}/claim", headers=MECH_A)
    second = await client.post(f"/v1/orders/{order_id}/claim", headers=MECH_B)

    assert first.status_code == 200
    assert first.json()["provider_id"] == "mech-a"
    assert second.status_code == 409
    assert second.json() == {
        "error": {
            "code": "CLAIM_CONFLICT",
            "message": f"Order {order_id} is not available to claim",
            "retryable": False,
        }
    }


async def test_release_by_non_owner_is_forbidden(client):
    order_id = await create_order(client)
    await client.post(f"/v1/orders/{order_id}/claim", headers=MECH_A)

    response = await client.post(f"/v1/orders/{order_id}/release", headers=MECH_B)

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "NOT_OWNER"


async def test_unknown_order(client):
    response = await client.get("/v1/orders/00000000-0000-0000-0000-000000000001")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TASK_NOT_FOUND"


async def test_job_flow_over_http(client):
    order_id = await create_order(client)

    for action in ("claim", "accept", "start", "complete"):
        response = await client.post(f"/v1/orders/{order_id}/{action}", headers=MECH_A)
        assert response.status_code == 200, response.text

    assert response.json()["status"] == "Completed"

    again = await client.post(f"/v1/orders/{order_id}/cancel", headers=MECH_A)
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "TERMINAL_STATE"

    provider = await client.get("/v1/providers/mech-a")
    assert provider.json()["accepted_job_count"] == 1
    assert provider.json()["completed_job_count"] == 1


async def test_get_order_shows_claim_state(client, clock):
    order_id = await create_order(client)
    await client.post(f"/v1/orders/{order_id}/claim", headers=MECH_A)

    clock.advance(3601)
    response = await client.get(f"/v1/orders/{order_id}")

    data = response.json()
    assert data["order"]["status"] == "Claimed"
    assert data["effective_status"] == "Pending"
    assert data["claim_expired"] is True


async def test_list_claimable_and_claims(client):
    first = await create_order(client)
    second = await create_order(client)
    await client.post(f"/v1/orders/{first}/claim", headers=MECH_A)

    claimable = await client.get("/v1/orders/claimable")
    claims = await client.get("/v1/orders/claims", headers=MECH_A)
    mine = await client.get("/v1/orders", headers=CUSTOMER)

    assert [v["order"]["id"] for v in claimable.json()["orders"]] == [second]
    assert [v["order"]["id"] for v in claims.json()["orders"]] == [first]
    assert len(mine.json()["orders"]) == 2


async def test_cancel_with_reason(client):
    order_id = await create_order(client)

    response = await client.post(
        f"/v1/orders/{order_id}/cancel",
        json={"reason": "found another shop"},
        headers=CUSTOMER,
    )

    assert response.status_code == 200
    assert response.json()["cancellation_reason"] == "found another shop"


async def test_admin_assign(client):
    order_id = await create_order(client)

    response = await client.post(
        f"/v1/orders/{order_id}/assign",
        json={"provider_id": "mech-b"},
        headers=ADMIN,
    )

    assert response.status_code == 200
    assert response.json()["assigned_by_admin"] is True


async def test_charge_flow_over_http(client, payments):
    created = await client.post(
        "/v1/charges",
        json={"customer_id": "cust-1", "description": "Cabin air filter", "price": "35.00"},
        headers=MECH_A,
    )
    assert created.status_code == 201
    charge_id = created.json()["id"]

    approved = await client.post(f"/v1/charges/{charge_id}/approve", headers=CUSTOMER)
    assert approved.status_code == 200
    intent_ref = approved.json()["payment_intent_ref"]
    assert intent_ref == payments.intents[0]["id"]

    failed = await client.post(
        "/v1/payments/failed",
        json={"payment_intent_ref": intent_ref, "reason": "card_declined"},
    )
    assert failed.json()["status"] == "ApprovedAndPendingPayment"

    confirmed = await client.post("/v1/payments/confirmed", json={"payment_intent_ref": intent_ref})
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "Accepted"

    listed = await client.get("/v1/charges", headers=CUSTOMER)
    assert [c["id"] for c in listed.json()["charges"]] == [charge_id]


async def test_charge_price_must_be_positive(client):
    response = await client.post(
        "/v1/charges",
        json={"customer_id": "cust-1", "description": "Nothing", "price": "0"},
        headers=MECH_A,
    )

    assert response.status_code == 422


async def test_payment_gateway_down_is_retryable(client, payments):
    created = await client.post(
        "/v1/charges",
        json={"customer_id": "cust-1", "description": "Spark plugs", "price": "60.00"},
        headers=MECH_A,
    )
    payments.fail = True

    response = await client.post(f"/v1/charges/{created.json()['id']}/approve", headers=CUSTOMER)

    assert response.status_code == 502
    assert response.json()["error"]["code"] == "PAYMENT_UNAVAILABLE"
    assert response.json()["error"]["retryable"] is True


@pytest.mark.parametrize(
    "error,status_code",
    [
        (TaskNotFound("t"), 404),
        (QuotaExceeded("p", 2), 409),
        (ConcurrentUpdate("Claimed", "accept"), 409),
        (StoreUnavailable("timeout"), 503),
        (PaymentUnavailable("timeout"), 502),
    ],
)
def test_error_status_mapping(error, status_code):
    assert status_for(error) == status_code


async def test_api_key_required_outside_dev_mode(monkeypatch):
    monkeypatch.setattr(settings, "allow_insecure_dev", False)
    monkeypatch.setattr(settings, "api_key", "s3cret")

    with pytest.raises(HTTPException) as missing:
        await verify_api_key(authorization=None, x_api_key=None)
    with pytest.raises(HTTPException) as wrong:
        await verify_api_key(authorization="Bearer nope", x_api_key=None)

    assert missing.value.status_code == 401
    assert wrong.value.status_code == 401
    assert await verify_api_key(authorization="Bearer s3cret", x_api_key=None) is None
    assert await verify_api_key(authorization=None, x_api_key="s3cret") is None


async def test_api_key_misconfiguration_fails_closed(monkeypatch):
    monkeypatch.setattr(settings, "allow_insecure_dev", False)
    monkeypatch.setattr(settings, "api_key", None)

    with pytest.raises(HTTPException) as exc_info:
        await verify_api_key(authorization="Bearer anything", x_api_key=None)

    assert exc_info.value.status_code == 503
