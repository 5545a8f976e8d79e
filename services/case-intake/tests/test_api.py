"""
Tests for the HTTP surface
"""
from datetime import datetime, timedelta

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from case_intake.api.v1 import cases as cases_api
from case_intake.api.v1 import shopify as shopify_api
from case_intake.core.config import settings
from case_intake.core.database import get_db
from case_intake.core.errors import OrderNotFoundError
from case_intake.core.security import Principal, get_current_user
from case_intake.main import app
from case_intake.models import Case
from case_intake.schemas.order import Order
from case_intake.services.shopify_client import get_shopify_client


class FakeShopify:
    def __init__(self, orders):
        self.orders = orders

    async def fetch_order_payload_by_number(self, order_number):
        if order_number not in self.orders:
            raise OrderNotFoundError(order_number)
        return self.orders[order_number]

    async def fetch_order_by_number(self, order_number):
        return Order.model_validate(await self.fetch_order_payload_by_number(order_number))


@pytest.fixture
def dispatched(monkeypatch):
    calls = []
    monkeypatch.setattr(cases_api, "dispatch_ticket_notifications", lambda notifications: calls.append(notifications))
    monkeypatch.setattr(shopify_api, "dispatch_ticket_notifications", lambda notifications: calls.append(notifications))
    return calls


@pytest.fixture
def client(db_engine, db_session, reference_data, order_payload):
    Session = sessionmaker(bind=db_engine, autoflush=False)

    def override_get_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: Principal(user_id=42, user_name="jdoe")
    app.dependency_overrides[get_shopify_client] = lambda: FakeShopify({"88675969": order_payload})

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy", "service": "case-intake"}


def test_create_case(client, order_payload, db_session, dispatched):
    response = client.post("/v1/cases", json={"orderData": order_payload})

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "success"
    assert body["message"] == "Case created successfully"
    assert body["data"]["caseId"] == "88675969"
    assert body["data"]["orderNumber"] == "88675969"
    assert body["data"]["itemsCreated"] == 1
    assert db_session.get(Case, "88675969") is not None
    assert dispatched == []


def test_create_case_twice_conflicts(client, order_payload):
    client.post("/v1/cases", json={"orderData": order_payload})
    response = client.post("/v1/cases", json={"orderData": order_payload})

    assert response.status_code == 409
    assert response.json() == {
        "status": "error",
        "message": "Case has already been imported",
        "code": "CASE_ALREADY_EXISTS",
    }


def test_create_case_without_order_data(client):
    response = client.post("/v1/cases", json={})

    assert response.status_code == 400
    assert response.json()["code"] == "MISSING_CASE_DATA"
    assert response.json()["message"] == "orderData is required"


def test_create_case_with_unusable_order(client, order_payload):
    order_payload["customer"] = None
    order_payload["email"] = None

    response = client.post("/v1/cases", json={"orderData": order_payload})

    assert response.status_code == 400
    assert "Missing customer email" in response.json()["message"]


def test_review_ticket_notification_is_dispatched(client, order_payload, dispatched):
    order_payload["lineItems"] = [{"sku": "PLAIN", "title": "Plain"}]

    response = client.post("/v1/cases", json={"orderData": order_payload})

    assert response.status_code == 201
    assert response.json()["data"]["needsItemReview"] is True
    assert len(dispatched) == 1
    assert dispatched[0][0].to_address == "review@example.com"


def test_receive_case(client, order_payload):
    missing = client.post("/v1/cases/receive", json={"caseId": "88675969"})
    client.post("/v1/cases", json={"orderData": order_payload})
    found = client.post("/v1/cases/receive", json={"caseId": "88675969"})

    assert missing.json()["data"]["exists"] is False
    assert missing.json()["data"]["shopifyRequired"] is True
    assert found.json()["data"]["exists"] is True
    assert found.json()["data"]["shopifyRequired"] is False
    assert found.json()["data"]["caseData"]["statusStreamlineOptions"] == "Received"


@pytest.mark.parametrize("case_id, message, code", [
    (None, "Case ID is required", "MISSING_CASE_ID"),
    ("12ab", "Case ID must contain numerals only", "INVALID_CASE_ID"),
])
def test_receive_case_validation(client, case_id, message, code):
    response = client.post("/v1/cases/receive", json={"caseId": case_id})

    assert response.status_code == 400
    assert response.json()["message"] == message
    assert response.json()["code"] == code


def test_get_unknown_case(client):
    response = client.get("/v1/cases/424242")

    assert response.status_code == 404
    assert response.json()["code"] == "CASE_NOT_FOUND"


def test_create_ticket(client, order_payload, dispatched):
    client.post("/v1/cases", json={"orderData": order_payload})

    response = client.post("/v1/cases/88675969/tickets", json={
        "subject": "Case @@CASE_ID shipped",
        "toAddress": "doc@example.com",
        "ticketStatus": "Open",
    })

    assert response.status_code == 201
    assert response.json()["data"]["ticketNumber"] == "88675969-1-1"
    assert dispatched[-1][0].subject == "Case 88675969 shipped"
    assert dispatched[-1][0].to_address == "doc@example.com"


def test_fetch_order(client, order_payload):
    response = client.post("/v1/shopify/fetch-order", json={"orderId": "88675969"})

    assert response.status_code == 200
    assert response.json()["data"]["orderData"]["name"] == "88675969"


def test_fetch_unknown_order(client):
    response = client.post("/v1/shopify/fetch-order", json={"orderId": "1"})

    assert response.status_code == 404
    assert response.json()["code"] == "ORDER_NOT_FOUND"


def test_fetch_order_validation(client):
    response = client.post("/v1/shopify/fetch-order", json={"orderId": "abc"})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ORDER_ID"


def test_import_order(client, db_session):
    response = client.post("/v1/shopify/import-order", json={"orderId": "88675969"})

    assert response.status_code == 201
    assert response.json()["data"]["caseId"] == "88675969"
    assert db_session.get(Case, "88675969") is not None


def test_bearer_token_required(client):
    app.dependency_overrides.pop(get_current_user)

    response = client.post("/v1/cases/receive", json={"caseId": "1"})

    assert response.status_code == 401
    assert response.json() == {"status": "error", "message": "Missing authorization header"}


def test_bearer_token_is_verified(client):
    app.dependency_overrides.pop(get_current_user)
    token = jwt.encode(
        {"UserId": 42, "UserName": "jdoe", "exp": datetime.utcnow() + timedelta(hours=1)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    expired = jwt.encode(
        {"UserId": 42, "exp": datetime.utcnow() - timedelta(hours=1)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )

    ok = client.post("/v1/cases/receive", json={"caseId": "1"}, headers={"Authorization": f"Bearer {token}"})
    stale = client.post("/v1/cases/receive", json={"caseId": "1"}, headers={"Authorization": f"Bearer {expired}"})
    malformed = client.post("/v1/cases/receive", json={"caseId": "1"}, headers={"Authorization": token})

    assert ok.status_code == 200
    assert stale.json()["message"] == "Token has expired"
    assert malformed.json()["message"] == "Invalid authorization header format. Expected: Bearer <token>"
