from datetime import datetime, timezone

from aluda.main import app
from aluda.models.user import UserPlan
from aluda.services.limits import Actor
from aluda.services.usage_tracker import QuotaGate, UsageStore, get_quota_gate


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


async def test_guest_gets_session_and_limits(client):
    resp = await client.get("/api/tokens")
    assert resp.status_code == 200
    body = resp.json()
    assert body["actor"]["type"] == "guest"
    assert body["usage"] == {"daily": 0, "monthly": 0, "images": 0}
    assert body["limits"] == {"daily": 1500, "monthly": 10000, "images": 2}
    assert "aluda_session" in resp.cookies

    again = await client.get("/api/tokens")
    assert again.json()["actor"]["id"] == body["actor"]["id"]


async def test_tampered_session_cookie_gets_new_guest(client):
    first = (await client.get("/api/tokens")).json()["actor"]["id"]

    client.cookies.clear()
    client.cookies.set("aluda_session", "not-a-valid-token")
    resp = await client.get("/api/tokens")

    assert resp.json()["actor"]["id"] != first
    assert resp.cookies.get("aluda_session") not in (None, "not-a-valid-token")


async def test_user_plan_is_read_fresh(client, db, make_user, auth_header):
    user = await make_user(plan=UserPlan.FREE)
    headers = auth_header(user)

    body = (await client.get("/api/tokens", headers=headers)).json()
    assert body["actor"] == {"type": "user", "id": user.id, "plan": "FREE"}
    assert body["limits"]["daily"] == 7500

    # 支付成功后升级
    user.plan = UserPlan.PREMIUM
    await db.commit()

    body = (await client.get("/api/tokens", headers=headers)).json()
    assert body["actor"]["plan"] == "PREMIUM"
    assert body["limits"] == {"daily": 25000, "monthly": 300000, "images": 60}


async def test_invalid_bearer_falls_back_to_guest(client):
    resp = await client.get("/api/tokens", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 200
    assert resp.json()["actor"]["type"] == "guest"


async def test_record_then_check(client):
    resp = await client.post("/api/tokens/usage", json={"tokens": 1400})
    assert resp.status_code == 200
    assert resp.json()["usage"]["daily"] == 1400

    resp = await client.post("/api/tokens/check", json={"tokens": 100})
    assert resp.status_code == 200
    assert resp.json()["allowed"] is True
    assert resp.json()["usage"]["daily"] == 1400

    resp = await client.post("/api/tokens/check", json={"tokens": 101})
    assert resp.status_code == 402
    body = resp.json()
    assert body["allowed"] is False
    assert body["error"] == "ტოკენების ლიმიტი ამოიწურა"
    assert body["redirect"] == "/auth/signin"
    assert body["limits"]["daily"] == 1500


async def test_denied_user_is_sent_to_buy_page_in_english(client, make_user, auth_header):
    user = await make_user()
    headers = {**auth_header(user), "Accept-Language": "en-US,en;q=0.9"}

    await client.post("/api/tokens/usage", json={"tokens": 7500}, headers=headers)
    resp = await client.post("/api/tokens/check", json={"tokens": 1}, headers=headers)

    assert resp.status_code == 402
    assert resp.json()["error"] == "Token limit reached"
    assert resp.json()["redirect"] == "/buy"


async def test_check_estimates_tokens_from_message(client):
    resp = await client.post("/api/tokens/check", json={"message": "x" * 10})
    assert resp.status_code == 200
    assert resp.json()["tokens"] == 3

    resp = await client.post("/api/tokens/check", json={"message": "x" * 6001})
    assert resp.status_code == 402


async def test_negative_tokens_rejected(client):
    resp = await client.post("/api/tokens/usage", json={"tokens": -3})
    assert resp.status_code == 422


async def test_image_quota(client):
    resp = await client.get("/api/images/quota")
    assert resp.status_code == 200
    assert resp.json()["allowed"] is True

    resp = await client.post("/api/images/usage", json={"images": 2})
    assert resp.status_code == 200
    assert resp.json()["usage"]["images"] == 2

    resp = await client.get("/api/images/quota")
    assert resp.status_code == 402
    assert resp.json()["allowed"] is False
    assert resp.json()["usage"]["images"] == 2
    assert resp.json()["redirect"] == "/auth/signin"


async def test_check_is_rate_limited(client):
    for _ in range(30):
        resp = await client.post("/api/tokens/check", json={"tokens": 0})
        assert resp.status_code == 200

    resp = await client.post("/api/tokens/check", json={"tokens": 0})
    assert resp.status_code == 429
    assert int(resp.headers["Retry-After"]) >= 0


async def test_disabled_tracking_override(client):
    app.dependency_overrides[get_quota_gate] = lambda: QuotaGate(None, tracking_enabled=False)

    resp = await client.post("/api/tokens/usage", json={"tokens": 999999})
    assert resp.status_code == 200
    assert resp.json()["usage"] == {"daily": 0, "monthly": 0, "images": 0}

    resp = await client.post("/api/tokens/check", json={"tokens": 999999})
    assert resp.status_code == 200
    assert resp.json()["allowed"] is True


async def test_api_and_store_share_buckets(client, db, make_user, auth_header):
    user = await make_user(plan=UserPlan.PREMIUM)
    await client.post("/api/tokens/usage", json={"tokens": 42}, headers=auth_header(user))

    usage = await UsageStore(db).get_usage(
        Actor.user(user.id, UserPlan.PREMIUM), now=datetime.now(timezone.utc)
    )
    assert (usage.daily, usage.monthly) == (42, 42)
