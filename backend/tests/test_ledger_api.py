"""
Integration tests for the ledger HTTP API.

Tests permission checks, error mapping and the fresh customer view carried
by every mutation response.
"""

import logging
import pytest

from backend.app.core.jwt import staff_token
from backend.app.core.observability import CorrelationIdFilter

# Note: Client and DB setup are in conftest.py


@pytest.fixture
async def customer_id(customer):
    return customer.id


# TEST 1: Authentication and permissions

@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client, customer_id):
    response = await client.get(f"/v1/customers/{customer_id}")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client, customer_id):
    response = await client.get(
        f"/v1/customers/{customer_id}",
        headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_staff_without_permission_gets_403(client, staff_headers, customer_id):
    created = await client.post(
        f"/v1/customers/{customer_id}/bills",
        json={"bill_type": "CUSTOM_AMOUNT", "gross_amount": 1000},
        headers=staff_headers
    )
    assert created.status_code == 201

    response = await client.delete(f"/v1/bills/{created.json()['bill']['id']}", headers=staff_headers)
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"
    assert response.json()["details"]["permission"] == "bill_delete"


@pytest.mark.asyncio
async def test_coach_cannot_list_customers(client, customer_id):
    token = staff_token(3, "coach", "coach", ["pt_session_consume"])
    response = await client.get("/v1/customers", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403


# TEST 2: Bills and payments

@pytest.mark.asyncio
async def test_bill_lifecycle(client, admin_headers, customer_id):
    response = await client.post(
        f"/v1/customers/{customer_id}/bills",
        json={"bill_type": "CUSTOM_AMOUNT", "gross_amount": 1000, "discount_percentage": "10"},
        headers=admin_headers
    )
    assert response.status_code == 201
    data = response.json()
    bill_id = data["bill"]["id"]
    assert data["bill"]["net_amount"] == 900
    assert data["bill"]["status"] == "ACTIVE"
    assert data["customer"]["balance"] == 900
    assert data["view_may_be_stale"] is False

    response = await client.post(
        f"/v1/bills/{bill_id}/payments",
        json={"amount": 500, "method": "gcash", "reference_number": "GC-1"},
        headers=admin_headers
    )
    assert response.status_code == 201
    assert response.json()["bill"]["status"] == "PARTIAL"
    assert response.json()["customer"]["balance"] == 400

    response = await client.post(f"/v1/bills/{bill_id}/payments", json={"amount": 400}, headers=admin_headers)
    assert response.json()["bill"]["status"] == "PAID"
    assert response.json()["customer"]["balance"] == 0

    response = await client.post(f"/v1/bills/{bill_id}/payments", json={"amount": 1}, headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_OVERPAYMENT"

    response = await client.delete(f"/v1/bills/{bill_id}", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_BILL_LOCKED"

    payments = await client.get(f"/v1/bills/{bill_id}/payments", headers=admin_headers)
    assert payments.status_code == 200
    assert sorted(p["amount"] for p in payments.json()) == [400, 500]


@pytest.mark.asyncio
async def test_bill_list_reflects_mutations(client, admin_headers, customer_id):
    response = await client.get(f"/v1/customers/{customer_id}/bills", headers=admin_headers)
    assert response.json()["bills"] == []

    await client.post(
        f"/v1/customers/{customer_id}/bills",
        json={"bill_type": "REACTIVATION_FEE", "gross_amount": 50000},
        headers=admin_headers
    )

    response = await client.get(f"/v1/customers/{customer_id}/bills", headers=admin_headers)
    data = response.json()
    assert len(data["bills"]) == 1
    assert data["bills"][0]["bill_type"] == "REACTIVATION_FEE"
    assert data["balance"] == 50000


@pytest.mark.asyncio
async def test_patch_rules(client, admin_headers, customer_id):
    created = await client.post(
        f"/v1/customers/{customer_id}/bills",
        json={"bill_type": "CUSTOM_AMOUNT", "gross_amount": 1000},
        headers=admin_headers
    )
    bill_id = created.json()["bill"]["id"]

    response = await client.patch(f"/v1/bills/{bill_id}", json={"bill_type": "REACTIVATION_FEE"}, headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_IMMUTABLE_FIELD"

    response = await client.patch(f"/v1/bills/{bill_id}", json={"paid_amount": 1000}, headers=admin_headers)
    assert response.status_code == 422

    response = await client.patch(f"/v1/bills/{bill_id}", json={"discount_percentage": 150}, headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_INVALID_DISCOUNT"

    response = await client.patch(f"/v1/bills/{bill_id}", json={"discount_percentage": "33.335"}, headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_INVALID_DISCOUNT"

    response = await client.patch(
        f"/v1/bills/{bill_id}", json={"bill_type": None, "gross_amount": 2000}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["bill"]["net_amount"] == 2000
    assert response.json()["customer"]["balance"] == 2000


@pytest.mark.asyncio
async def test_membership_bill_without_membership(client, admin_headers, customer_id):
    response = await client.post(
        f"/v1/customers/{customer_id}/bills",
        json={"bill_type": "MEMBERSHIP_SUBSCRIPTION", "gross_amount": 150000},
        headers=admin_headers
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_INVALID_BILL_TYPE"


@pytest.mark.asyncio
async def test_delete_payment_unpays_bill(client, admin_headers, customer_id):
    created = await client.post(
        f"/v1/customers/{customer_id}/bills",
        json={"bill_type": "CUSTOM_AMOUNT", "gross_amount": 1000},
        headers=admin_headers
    )
    bill_id = created.json()["bill"]["id"]
    paid = await client.post(f"/v1/bills/{bill_id}/payments", json={"amount": 1000}, headers=admin_headers)
    payment_id = paid.json()["payment"]["id"]

    response = await client.delete(f"/v1/payments/{payment_id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["bill"]["status"] == "ACTIVE"
    assert response.json()["customer"]["balance"] == 1000

    response = await client.delete(f"/v1/bills/{bill_id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["bill"] is None
    assert response.json()["customer"]["balance"] == 0

    response = await client.get(f"/v1/bills/{bill_id}", headers=admin_headers)
    assert response.status_code == 404


# TEST 3: Entitlements

@pytest.mark.asyncio
async def test_membership_assignment_and_plan_stats(client, admin_headers, customer_id, plans):
    monthly, annual = plans

    response = await client.post(
        f"/v1/customers/{customer_id}/membership",
        json={"membership_plan_id": monthly.id},
        headers=admin_headers
    )
    assert response.status_code == 201
    data = response.json()
    assert data["membership"]["status"] == "ACTIVE"
    assert data["bill"]["bill_type"] == "MEMBERSHIP_SUBSCRIPTION"
    assert data["customer"]["membership_status"] == "ACTIVE"

    response = await client.post(
        f"/v1/customers/{customer_id}/membership",
        json={"membership_plan_id": annual.id, "create_bill": False},
        headers=admin_headers
    )
    assert response.json()["superseded"]["status"] == "EXPIRED"

    current = await client.get(f"/v1/customers/{customer_id}/membership", headers=admin_headers)
    assert current.json()["status"] == "ACTIVE"
    assert current.json()["membership"]["membership_plan_id"] == annual.id

    history = await client.get(f"/v1/customers/{customer_id}/membership/history", headers=admin_headers)
    assert len(history.json()) == 2

    catalog = await client.get("/v1/membership-plans", headers=admin_headers)
    data = catalog.json()
    assert data["total_plans"] == 2
    assert data["total_active_members"] == 1
    by_id = {plan["id"]: plan for plan in data["plans"]}
    assert by_id[monthly.id]["active_members_count"] == 0
    assert by_id[annual.id]["monthly_revenue"] == 100000
    assert data["most_popular_plan_id"] == annual.id


@pytest.mark.asyncio
async def test_unknown_plan_is_404(client, admin_headers, customer_id):
    response = await client.post(
        f"/v1/customers/{customer_id}/membership",
        json={"membership_plan_id": 999},
        headers=admin_headers
    )
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_PLAN_NOT_FOUND"


@pytest.mark.asyncio
async def test_pt_package_flow(client, admin_headers, customer_id, pt_package):
    response = await client.post(
        f"/v1/customers/{customer_id}/pt-packages",
        json={"pt_package_id": pt_package.id, "coach_id": 5},
        headers=admin_headers
    )
    assert response.status_code == 201
    data = response.json()
    allocation_id = data["allocation"]["id"]
    assert data["allocation"]["sessions_remaining"] == 10
    assert data["bill"]["bill_type"] == "PT_PACKAGE"
    assert data["customer"]["balance"] == 500000
    assert data["customer"]["pt_sessions_remaining"] == 10

    response = await client.post(f"/v1/pt-packages/{allocation_id}/consume", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["allocation"]["sessions_remaining"] == 9
    assert response.json()["customer"]["pt_sessions_remaining"] == 9

    response = await client.delete(
        f"/v1/customers/{customer_id}/pt-packages/{allocation_id}", headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["allocation"]["status"] == "CANCELLED"
    assert response.json()["bill"]["status"] == "VOIDED"
    assert response.json()["customer"]["balance"] == 0

    response = await client.delete(
        f"/v1/customers/{customer_id}/pt-packages/{allocation_id}", headers=admin_headers
    )
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_ALREADY_CANCELLED"

    listed = await client.get(f"/v1/customers/{customer_id}/pt-packages?status=CANCELLED", headers=admin_headers)
    assert [a["id"] for a in listed.json()] == [allocation_id]


@pytest.mark.asyncio
async def test_pt_package_direct_bill_is_rejected(client, admin_headers, customer_id):
    response = await client.post(
        f"/v1/customers/{customer_id}/bills",
        json={"bill_type": "PT_PACKAGE", "gross_amount": 500000},
        headers=admin_headers
    )
    assert response.status_code == 422


# TEST 4: Read side

@pytest.mark.asyncio
async def test_customer_detail_and_list(client, staff_headers, customer_id):
    response = await client.get(f"/v1/customers/{customer_id}", headers=staff_headers)
    assert response.status_code == 200
    assert response.json()["full_name"] == "Maria Santos"
    assert response.json()["membership_status"] == "NONE"

    response = await client.get("/v1/customers", headers=staff_headers)
    assert [c["id"] for c in response.json()] == [customer_id]

    response = await client.get("/v1/customers/999", headers=staff_headers)
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_CUSTOMER_NOT_FOUND"


@pytest.mark.asyncio
async def test_audit_log_and_notifications(client, admin_headers, customer_id):
    await client.post(
        f"/v1/customers/{customer_id}/bills",
        json={"bill_type": "CUSTOM_AMOUNT", "gross_amount": 1000},
        headers=admin_headers
    )

    audit = await client.get(f"/v1/customers/{customer_id}/audit-log", headers=admin_headers)
    assert audit.status_code == 200
    entry = audit.json()[0]
    assert entry["action"] == "BILL_CREATED"
    assert entry["actor_username"] == "admin"

    feed = await client.get("/v1/notifications", headers=admin_headers)
    assert feed.json()["notifications"][0]["message"] == "Bill created successfully"


@pytest.mark.asyncio
async def test_correlation_id_follows_a_rejected_payment(client, admin_headers, customer_id, caplog):
    caplog.handler.addFilter(CorrelationIdFilter())
    created = await client.post(
        f"/v1/customers/{customer_id}/bills",
        json={"bill_type": "CUSTOM_AMOUNT", "gross_amount": 1000},
        headers=admin_headers
    )
    bill_id = created.json()["bill"]["id"]

    with caplog.at_level(logging.INFO):
        response = await client.post(
            f"/v1/bills/{bill_id}/payments",
            json={"amount": 5000},
            headers={**admin_headers, "X-Correlation-ID": "desk-42"}
        )

    assert response.status_code == 409
    assert response.headers["X-Correlation-ID"] == "desk-42"

    feed = await client.get("/v1/notifications", headers=admin_headers)
    latest = feed.json()["notifications"][0]
    assert latest["type"] == "ERROR"
    assert latest["correlation_id"] == "desk-42"

    notice_logs = [r for r in caplog.records if r.name.endswith("notification_service")]
    assert notice_logs and all(r.correlation_id == "desk-42" for r in notice_logs)

    # Requests without the header get a generated ID
    assert created.headers["X-Correlation-ID"] not in ("", "desk-42")
