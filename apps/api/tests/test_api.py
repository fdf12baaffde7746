from unittest.mock import patch

import httpx
import pytest

from conftest import auth_headers, create_account
from main import app
from routers.payments import get_payment_client
from services.exceptions import LLMProviderError
from services.payment_provider import RazorpayClient
from services.payment_verification import compute_payment_signature


@pytest.mark.asyncio
async def test_requests_without_token_are_unauthorized(api_client):
    response = await api_client.get("/coins")

    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "error": "Missing authorization header",
        "error_code": "AUTHENTICATION_ERROR",
    }


@pytest.mark.asyncio
async def test_garbage_token_is_unauthorized(api_client):
    response = await api_client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


@pytest.mark.asyncio
async def test_first_sync_creates_account_with_welcome_bonus(api_client):
    headers = auth_headers("user_new")

    created = await api_client.post("/auth/sync", json={"full_name": "Ada"}, headers=headers)
    again = await api_client.post("/auth/sync", json={"full_name": "Ada L."}, headers=headers)
    history = await api_client.get("/coins/transactions", headers=headers)

    assert created.status_code == 200
    assert created.json()["created"] is True
    assert created.json()["coin_balance"] == 10
    assert again.json()["created"] is False
    assert again.json()["coin_balance"] == 10
    assert again.json()["full_name"] == "Ada L."
    assert history.json()["count"] == 1
    assert history.json()["transactions"][0]["transaction_type"] == "bonus"


@pytest.mark.asyncio
async def test_profile_update_cannot_touch_balance(api_client, session_maker):
    await create_account(session_maker, "user_a", coins=5)
    headers = auth_headers("user_a")

    rejected = await api_client.patch("/auth/me", json={"coin_balance": 9999}, headers=headers)
    renamed = await api_client.patch("/auth/me", json={"full_name": "Chef A"}, headers=headers)

    assert rejected.status_code == 400
    assert rejected.json()["success"] is False
    assert renamed.status_code == 200
    assert renamed.json()["full_name"] == "Chef A"
    assert renamed.json()["coin_balance"] == 5


@pytest.mark.asyncio
async def test_charge_endpoint_reports_insufficient_coins(api_client, session_maker):
    await create_account(session_maker, "user_a", coins=2)
    headers = auth_headers("user_a")

    ok = await api_client.post("/coins/charge", json={"amount": 1, "description": "Meal plan"}, headers=headers)
    short = await api_client.post("/coins/charge", json={"amount": 5, "description": "Meal plan"}, headers=headers)
    summary = await api_client.get("/coins", headers=headers)
    audit = await api_client.get("/coins/reconcile", headers=headers)

    assert ok.json() == {"success": True, "balance": 1, "transaction_id": ok.json()["transaction_id"]}
    assert short.status_code == 402
    assert short.json()["error"] == "Insufficient coins"
    assert short.json()["balance"] == 1
    assert summary.json()["balance"] == 1
    assert summary.json()["costs"] == {"chat_message": 1, "recipe_generation": 3}
    assert audit.json()["consistent"] is True


@pytest.mark.asyncio
async def test_charge_endpoint_validates_body(api_client, session_maker):
    await create_account(session_maker, "user_a", coins=2)

    response = await api_client.post("/coins/charge", json={"description": "x"}, headers=auth_headers("user_a"))

    assert response.status_code == 400
    assert response.json()["error"] == "Missing required fields"


@pytest.mark.asyncio
async def test_verify_endpoint_credits_coins(api_client, session_maker, monkeypatch):
    from config import settings

    monkeypatch.setattr(settings, "RAZORPAY_KEY_SECRET", "rzp_test_secret")
    await create_account(session_maker, "user_a")
    body = {
        "razorpay_order_id": "order_1",
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": compute_payment_signature("rzp_test_secret", "order_1", "pay_1"),
        "tier": "ultra",
    }

    first = await api_client.post("/payments/verify", json=body, headers=auth_headers("user_a"))
    replay = await api_client.post("/payments/verify", json=body, headers=auth_headers("user_a"))
    tampered = await api_client.post(
        "/payments/verify",
        json={**body, "razorpay_payment_id": "pay_2"},
        headers=auth_headers("user_a"),
    )

    assert first.status_code == 200
    assert first.json()["success"] is True
    assert first.json()["coins"] == 500
    assert first.json()["subscription"] == "ultra"
    assert replay.status_code == 409
    assert tampered.status_code == 400
    assert tampered.json()["error"] == "Invalid payment signature"


@pytest.mark.asyncio
async def test_verify_endpoint_requires_all_fields(api_client):
    response = await api_client.post(
        "/payments/verify",
        json={"razorpay_order_id": "order_1"},
        headers=auth_headers("user_a"),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Missing required fields"


@pytest.mark.asyncio
async def test_order_endpoint_uses_injected_client(api_client, session_maker):
    await create_account(session_maker, "user_a")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "order_abc", "amount": 999, "currency": "INR"})

    app.dependency_overrides[get_payment_client] = lambda: RazorpayClient(
        "rzp_test_key", "rzp_test_secret", transport=httpx.MockTransport(handler)
    )
    try:
        created = await api_client.post(
            "/payments/orders", json={"amount": 999, "tier": "pro"}, headers=auth_headers("user_a")
        )
        invalid = await api_client.post("/payments/orders", json={"amount": 0}, headers=auth_headers("user_a"))
    finally:
        app.dependency_overrides.pop(get_payment_client, None)

    assert created.status_code == 200
    assert created.json()["order_id"] == "order_abc"
    assert created.json()["key_id"] == "rzp_test_key"
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "Invalid amount"


@pytest.mark.asyncio
async def test_plans_are_public(api_client):
    response = await api_client.get("/payments/plans")

    assert response.status_code == 200
    assert [plan["tier"] for plan in response.json()["plans"]] == ["free", "plus", "pro", "ultra"]


@pytest.mark.asyncio
async def test_ai_chat_charges_one_coin(api_client, session_maker):
    await create_account(session_maker, "user_a", coins=2)

    with patch("routers.ai.generate_chat_reply", return_value="Try smoked paprika.") as reply:
        response = await api_client.post(
            "/ai/chat",
            json={"messages": [{"role": "user", "text": "What goes with chickpeas?"}]},
            headers=auth_headers("user_a"),
        )

    assert reply.await_count == 1
    assert response.status_code == 200
    assert response.json()["message"] == "Try smoked paprika."
    assert response.json()["coinCost"] == 1
    assert response.json()["balance"] == 1


@pytest.mark.asyncio
async def test_ai_recipe_without_coins_is_payment_required(api_client, session_maker):
    await create_account(session_maker, "user_a", coins=2)

    with patch("routers.ai.generate_recipe") as generate:
        response = await api_client.post(
            "/ai/generate-recipe",
            json={"ingredients": ["rice", "egg"]},
            headers=auth_headers("user_a"),
        )

    generate.assert_not_called()
    assert response.status_code == 402
    assert response.json()["error"] == "Insufficient coins. Please purchase more coins to continue."


@pytest.mark.asyncio
async def test_ai_failure_refunds_the_charge(api_client, session_maker):
    await create_account(session_maker, "user_a", coins=5)
    headers = auth_headers("user_a")

    with patch("routers.ai.generate_recipe", side_effect=LLMProviderError(detail="timeout")):
        response = await api_client.post("/ai/generate-recipe", json={"ingredients": ["tofu"]}, headers=headers)

    history = await api_client.get("/coins/transactions", headers=headers)
    audit = await api_client.get("/coins/reconcile", headers=headers)

    assert response.status_code == 502
    assert response.json()["error"] == "AI service unavailable. Your coins have been refunded."
    assert audit.json() == {"balance": 5, "ledger_total": 5, "consistent": True}
    descriptions = [entry["description"] for entry in history.json()["transactions"]]
    assert descriptions[:2] == ["Refund: Recipe generation", "Recipe generation"]


@pytest.mark.asyncio
async def test_ai_calls_are_rate_limited(api_client, session_maker):
    await create_account(session_maker, "user_a", coins=20)
    app.state.disable_rate_limits = False
    headers = auth_headers("user_a")

    with patch("routers.ai.generate_chat_reply", return_value="ok"):
        statuses = []
        for _ in range(6):
            response = await api_client.post(
                "/ai/chat",
                json={"messages": [{"role": "user", "text": "hi"}]},
                headers=headers,
            )
            statuses.append(response.status_code)

    assert statuses == [200, 200, 200, 200, 200, 429]
    balance = await api_client.get("/coins", headers=headers)
    assert balance.json()["balance"] == 15


@pytest.mark.asyncio
async def test_cancel_subscription_endpoint(api_client, session_maker):
    await create_account(session_maker, "user_a", coins=3)
    headers = auth_headers("user_a")

    cancelled = await api_client.post("/payments/subscription/cancel", headers=headers)
    status = await api_client.get("/payments/subscription", headers=headers)

    assert cancelled.json() == {"success": True, "tier": "free", "cancelled": True}
    assert status.json()["active"] is False


@pytest.mark.asyncio
async def test_liveness_probe(api_client):
    response = await api_client.get("/health/live")
    assert response.json() == {"alive": True}


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [True, "3", 2.0])
async def test_charge_endpoint_rejects_non_integer_amounts(api_client, session_maker, amount):
    await create_account(session_maker, "user_a", coins=10)
    headers = auth_headers("user_a")

    response = await api_client.post(
        "/coins/charge", json={"amount": amount, "description": "Meal plan"}, headers=headers
    )
    summary = await api_client.get("/coins", headers=headers)

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert summary.json()["balance"] == 10


@pytest.mark.asyncio
async def test_charge_endpoint_always_records_a_spend(api_client, session_maker):
    await create_account(session_maker, "user_a", coins=10)
    headers = auth_headers("user_a")

    response = await api_client.post(
        "/coins/charge",
        json={"amount": 2, "description": "Meal plan", "transaction_type": "subscription"},
        headers=headers,
    )
    history = await api_client.get("/coins/transactions", headers=headers)

    assert response.status_code == 200
    latest = history.json()["transactions"][0]
    assert latest["amount"] == -2
    assert latest["transaction_type"] == "spent"


@pytest.mark.asyncio
async def test_sync_without_email_returns_error_body(api_client):
    from services.identity import issue_access_token

    token = issue_access_token("user_no_email")["token"]
    response = await api_client.post("/auth/sync", json={}, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Email is required to create an account",
        "error_code": "VALIDATION_ERROR",
    }


@pytest.mark.asyncio
async def test_sync_with_taken_email_is_a_conflict(api_client, session_maker):
    await create_account(session_maker, "user_a", email="shared@example.com")

    response = await api_client.post(
        "/auth/sync", json={}, headers=auth_headers("user_b", email="shared@example.com")
    )

    assert response.status_code == 409
    assert response.json()["success"] is False
    assert response.json()["error_code"] == "ACCOUNT_CONFLICT"


@pytest.mark.asyncio
async def test_unexpected_errors_return_json_body(api_client, session_maker):
    await create_account(session_maker, "user_a", coins=1)

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        with patch("routers.coins.list_transactions", side_effect=RuntimeError("boom")):
            response = await client.get("/coins/transactions", headers=auth_headers("user_a"))

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "Internal server error",
        "error_code": "INTERNAL_ERROR",
    }
