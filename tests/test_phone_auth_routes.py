from datetime import datetime, timedelta, timezone
import pytest
from vapeshop.auth.constants import ACCESS_COOKIE_NAME, REFRESH_COOKIE_NAME
from vapeshop.auth.repository import PhoneCodeStore

url_prefix = "/api/v1"


def without_request_id(body):
    return {k: v for k, v in body.items() if k != "request_id"}


@pytest.fixture
async def known_user(make_user):
    return await make_user(phone="+7 (999) 123-45-67", telegram_id=424242, first_name="Ivan", username="ivan")


async def test_send_and_verify_code(ac_client, notifier, known_user):

    resp = await ac_client.post(f"{url_prefix}/auth/phone/send-code", json={"phone": "+7 999 123 45 67"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"] == {"sent": True, "expiresIn": 10}
    assert resp.headers.get("X-Request-ID")

    code = notifier.last_code()
    assert code is not None
    assert code not in resp.text

    resp = await ac_client.post(f"{url_prefix}/auth/phone/verify-code",
                                json={"phone": "89991234567", "code": code})
    assert resp.status_code == 200
    data = resp.json()["data"]

    assert data["user"]["id"] == str(known_user.public_id)
    assert data["user"]["telegram_id"] == 424242
    assert "normalized_phone" not in data["user"]
    assert data["tokens"]["accessToken"]
    assert data["tokens"]["refreshToken"]

    assert resp.cookies.get(ACCESS_COOKIE_NAME) == data["tokens"]["accessToken"]
    assert resp.cookies.get(REFRESH_COOKIE_NAME) == data["tokens"]["refreshToken"]

    replay = await ac_client.post(f"{url_prefix}/auth/phone/verify-code",
                                  json={"phone": "89991234567", "code": code})
    assert replay.status_code == 400
    assert replay.json()["errors"] == ["Invalid or expired code"]


async def test_failure_payloads_do_not_reveal_the_reason(ac_client, notifier, known_user, session_maker):
    phone = "79991234567"
    past = datetime.now(timezone.utc) - timedelta(minutes=1)
    async with session_maker() as session:
        store = PhoneCodeStore(session)
        await store.create(phone, "222222", past)  # expired
        used = await store.create(phone, "333333", datetime.now(timezone.utc) + timedelta(minutes=5))
        assert await store.mark_used(used, datetime.now(timezone.utc))

    payloads = []
    for code in ("111111", "222222", "333333"):
        resp = await ac_client.post(f"{url_prefix}/auth/phone/verify-code", json={"phone": phone, "code": code})
        assert resp.status_code == 400
        payloads.append(without_request_id(resp.json()))

    assert payloads[0] == payloads[1] == payloads[2]
    assert payloads[0]["success"] is False
    assert payloads[0]["errors"] == ["Invalid or expired code"]


async def test_send_code_unknown_phone(ac_client, notifier):

    resp = await ac_client.post(f"{url_prefix}/auth/phone/send-code", json={"phone": "+7 900 000 00 00"})

    assert resp.status_code == 404
    body = resp.json()
    assert body["success"] is False
    assert body["errors"] == ["User not found"]
    assert notifier.sent == []


async def test_send_code_delivery_failure(ac_client, notifier, known_user):
    notifier.result = False

    resp = await ac_client.post(f"{url_prefix}/auth/phone/send-code", json={"phone": "79991234567"})

    assert resp.status_code == 502
    code = notifier.last_code()

    resp = await ac_client.post(f"{url_prefix}/auth/phone/verify-code", json={"phone": "79991234567", "code": code})
    assert resp.status_code == 400


@pytest.mark.parametrize("phone", ["123", "", "+7 999 123 45 67 89 00"])
async def test_send_code_rejects_bad_phone_format(ac_client, notifier, phone):

    resp = await ac_client.post(f"{url_prefix}/auth/phone/send-code", json={"phone": phone})

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert notifier.sent == []


@pytest.mark.parametrize("payload", [{}, {"phone": None}, {"phone": "   "}])
async def test_send_code_without_phone_is_a_bad_request(ac_client, notifier, payload):

    resp = await ac_client.post(f"{url_prefix}/auth/phone/send-code", json=payload)

    assert resp.status_code == 400
    assert resp.json()["message"] == "Phone number is required"
    assert notifier.sent == []


@pytest.mark.parametrize("code", ["12345", "1234567", "abcdef", ""])
async def test_verify_code_requires_six_digits(ac_client, code):

    resp = await ac_client.post(f"{url_prefix}/auth/phone/verify-code", json={"phone": "79991234567", "code": code})

    assert resp.status_code == 422
    assert resp.json()["success"] is False


async def test_tokens_open_protected_routes(ac_client, notifier, known_user):
    await ac_client.post(f"{url_prefix}/auth/phone/send-code", json={"phone": "79991234567"})
    resp = await ac_client.post(f"{url_prefix}/auth/phone/verify-code",
                                json={"phone": "79991234567", "code": notifier.last_code()})
    tokens = resp.json()["data"]["tokens"]
    ac_client.cookies.clear()

    me = await ac_client.get(f"{url_prefix}/auth/me", headers={"Authorization": f"Bearer {tokens['accessToken']}"})
    assert me.status_code == 200
    assert me.json()["data"]["user"]["id"] == str(known_user.public_id)

    verify = await ac_client.get(f"{url_prefix}/auth/verify",
                                 headers={"Authorization": f"Bearer {tokens['accessToken']}"})
    assert verify.status_code == 200
    assert verify.json()["data"]["tokenExpiration"]

    # refresh tokens are not access tokens
    wrong = await ac_client.get(f"{url_prefix}/auth/me", headers={"Authorization": f"Bearer {tokens['refreshToken']}"})
    assert wrong.status_code == 401

    refreshed = await ac_client.post(f"{url_prefix}/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert refreshed.status_code == 200
    new_tokens = refreshed.json()["data"]["tokens"]
    assert new_tokens["accessToken"]
    assert new_tokens["refreshToken"]

    logout = await ac_client.post(f"{url_prefix}/auth/logout")
    assert logout.status_code == 200


async def test_access_cookie_authenticates(ac_client, notifier, known_user):
    await ac_client.post(f"{url_prefix}/auth/phone/send-code", json={"phone": "79991234567"})
    await ac_client.post(f"{url_prefix}/auth/phone/verify-code",
                         json={"phone": "79991234567", "code": notifier.last_code()})

    # the client cookie jar now carries access_token
    me = await ac_client.get(f"{url_prefix}/auth/me")
    assert me.status_code == 200


async def test_protected_route_without_token(ac_client):

    resp = await ac_client.get(f"{url_prefix}/auth/me")

    assert resp.status_code == 401
    assert resp.json()["success"] is False


async def test_refresh_rejects_garbage(ac_client):

    missing = await ac_client.post(f"{url_prefix}/auth/refresh")
    assert missing.status_code == 401

    bad = await ac_client.post(f"{url_prefix}/auth/refresh", json={"refreshToken": "not-a-jwt"})
    assert bad.status_code == 401


async def test_health(ac_client):

    resp = await ac_client.get(f"{url_prefix}/health")

    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "healthy"


async def test_request_id_is_propagated(ac_client):

    resp = await ac_client.get(f"{url_prefix}/health", headers={"X-Request-ID": "req-123"})

    assert resp.headers["X-Request-ID"] == "req-123"
    assert resp.json()["request_id"] == "req-123"
