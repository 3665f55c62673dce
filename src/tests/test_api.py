import uuid

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from core.config import settings
from services import affiliate_ledger

API = settings.API_V1_STR


@pytest.fixture
def user_headers():
    return {"X-User-Id": str(uuid.uuid4())}


@pytest.fixture
def enrolled(client: TestClient, user_headers):
    response = client.post(f"{API}/affiliate/opt-in", headers=user_headers)
    assert response.status_code == 201
    return response.json()


def test_opt_in(client: TestClient, user_headers, enrolled):
    assert enrolled["user_id"] == user_headers["X-User-Id"]
    assert enrolled["referral_code"].startswith("WHITECOAT-")
    assert enrolled["customer_discount"] == 10
    assert enrolled["affiliate_reward"] == 5

    response = client.post(f"{API}/affiliate/opt-in", headers=user_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "duplicate_affiliate"


def test_missing_identity(client: TestClient):
    response = client.get(f"{API}/affiliate/dashboard")
    assert response.status_code == 401


def test_dashboard_requires_enrolment(client: TestClient, user_headers):
    response = client.get(f"{API}/affiliate/dashboard", headers=user_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_update_allocation(client: TestClient, user_headers, enrolled):
    response = client.post(
        f"{API}/affiliate/update-allocation",
        headers=user_headers,
        json={"customer_discount": 12},
    )
    assert response.status_code == 200
    assert response.json() == {
        "customer_discount": 12,
        "affiliate_reward": 3,
        "total_discount_pool": 15,
    }

    response = client.post(
        f"{API}/affiliate/update-allocation",
        headers=user_headers,
        json={"customer_discount": 20},
    )
    assert response.status_code == 422
    assert response.json()["error"] == "pool_mismatch"

    response = client.post(
        f"{API}/affiliate/update-allocation",
        headers=user_headers,
        json={"customer_discount": -1},
    )
    assert response.status_code == 422
    assert response.json()["error"] == "pool_mismatch"

    dashboard = client.get(f"{API}/affiliate/dashboard", headers=user_headers).json()
    assert dashboard["affiliate"]["customer_discount"] == 12


def test_referral_flow(client: TestClient, user_headers, enrolled):
    referred_user_id = str(uuid.uuid4())
    response = client.post(
        f"{API}/referrals",
        json={
            "referral_code": enrolled["referral_code"],
            "referred_user_id": referred_user_id,
            "source": "landing-page",
        },
    )
    assert response.status_code == 201
    referral = response.json()
    assert referral["status"] == "pending"
    assert referral["source"] == "landing-page"

    response = client.post(
        f"{API}/referrals",
        json={"referral_code": enrolled["referral_code"], "referred_user_id": referred_user_id},
    )
    assert response.status_code == 409
    assert response.json()["error"] == "duplicate_referral"

    complete_url = f"{API}/referrals/{referral['id']}/complete"
    body = {"first_order_id": "order-1", "discount_eligible_amount": 300}
    response = client.post(complete_url, json=body)
    assert response.status_code == 200
    assert response.json()["reward_paid"] is True
    assert response.json()["reward_amount"] == 15

    response = client.post(complete_url, json=body)
    assert response.status_code == 409
    assert response.json()["error"] == "already_processed"

    dashboard = client.get(f"{API}/affiliate/dashboard", headers=user_headers).json()
    assert dashboard["affiliate"]["available_balance"] == 15
    assert dashboard["recent_earnings"] == 15
    assert len(dashboard["referrals"]) == 1

    page = client.get(f"{API}/affiliate/referrals?page=1", headers=user_headers).json()
    assert page["total_referrals"] == 1
    assert page["total_pages"] == 1

    earnings = client.get(f"{API}/affiliate/earnings", headers=user_headers).json()
    assert earnings["total_earnings"] == 15
    assert earnings["monthly_earnings"][0]["order_count"] == 1


def test_cancel_referral_endpoint(client: TestClient, enrolled):
    referral = client.post(
        f"{API}/referrals",
        json={"referral_code": enrolled["referral_code"], "referred_user_id": str(uuid.uuid4())},
    ).json()

    response = client.post(f"{API}/referrals/{referral['id']}/cancel", json={"reason": "test"})
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


def test_payout_flow(client: TestClient, db_session: Session, user_headers, enrolled):
    response = client.post(f"{API}/affiliate/request-payout", headers=user_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "below_minimum"
    assert response.json()["message"] == "Minimum payout amount is $25"

    affiliate_ledger.credit_earnings(db_session, uuid.UUID(enrolled["id"]), 30, "order-1")

    response = client.post(f"{API}/affiliate/request-payout", headers=user_headers)
    assert response.status_code == 200
    requested = response.json()
    assert requested["success"] is True
    assert requested["new_balance"] == 0
    assert requested["payout"]["amount"] == 30

    payout_id = requested["payout"]["payout_id"]
    response = client.post(f"{API}/payouts/{payout_id}/failed", json={"reason": "bounced"})
    assert response.status_code == 200
    assert response.json()["status"] == "failed"

    dashboard = client.get(f"{API}/affiliate/dashboard", headers=user_headers).json()
    assert dashboard["affiliate"]["available_balance"] == 30
    assert dashboard["affiliate"]["pending_balance"] == 0

    response = client.post(f"{API}/payouts/{payout_id}/completed")
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_transition"

    history = client.get(f"{API}/affiliate/payouts", headers=user_headers).json()
    assert [p["payout_id"] for p in history] == [payout_id]


def test_update_payout_method(client: TestClient, user_headers, enrolled):
    response = client.post(
        f"{API}/affiliate/payout-method",
        headers=user_headers,
        json={"payout_method": "crypto", "payout_details": {"wallet": "0xabc"}},
    )
    assert response.status_code == 200
    assert response.json()["payout_method"] == "crypto"
    assert response.json()["payout_details"] == {"wallet": "0xabc"}
