from urllib.parse import parse_qsl

import pytest
from structlog.testing import capture_logs

from app.core.config import settings
from app.core.exceptions import ConfigurationError
from app.core.security import build_data_check_string, derive_secret_key
from app.domain.repositories.memory_user_store import InMemoryUserStore
from app.main import app, lifespan

pytestmark = pytest.mark.anyio("asyncio")


@pytest.mark.anyio
async def test_validate_creates_profile(async_client, make_init_data, user_store):
    init_data = make_init_data(user={"id": 42, "first_name": "Ann", "username": "ann"})

    response = await async_client.post("/api/auth/validate", json={"initData": init_data})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "User validated and profile retrieved/created."
    user = body["user"]
    assert user["userId"] == "42"
    assert user["firstName"] == "Ann"
    assert user["username"] == "ann"
    assert user["tokens"] == 0
    assert len(user["referralCode"]) == 8
    assert user_store.get_document("42")["referralCode"] == user["referralCode"]


@pytest.mark.anyio
async def test_validate_twice_returns_same_referral_code(async_client, make_init_data):
    init_data = make_init_data(user={"id": 7, "first_name": "Bo"})

    first = await async_client.post("/api/auth/validate", json={"initData": init_data})
    second = await async_client.post("/api/auth/validate", json={"initData": init_data})

    assert first.status_code == second.status_code == 200
    assert first.json()["user"]["referralCode"] == second.json()["user"]["referralCode"]
    assert first.json()["user"]["createdAt"] == second.json()["user"]["createdAt"]


@pytest.mark.anyio
@pytest.mark.parametrize("body", [{}, {"initData": ""}, {"initData": None}])
async def test_missing_init_data_is_400(async_client, body):
    response = await async_client.post("/api/auth/validate", json=body)

    assert response.status_code == 400
    assert response.json()["message"] == "Missing initData"


@pytest.mark.anyio
async def test_missing_body_is_400(async_client):
    response = await async_client.post("/api/auth/validate")

    assert response.status_code == 400


@pytest.mark.anyio
@pytest.mark.parametrize("init_data", [123, True, ["auth_date=1"], {"user": "x"}])
async def test_non_string_init_data_is_400(async_client, init_data):
    response = await async_client.post("/api/auth/validate", json={"initData": init_data})

    assert response.status_code == 400
    assert response.json()["message"] == "Missing initData"


@pytest.mark.anyio
async def test_tampered_init_data_is_401_with_reason(async_client, make_init_data, user_store):
    init_data = make_init_data(user={"id": 42, "first_name": "Ann"}).replace("Ann", "Eve")

    response = await async_client.post("/api/auth/validate", json={"initData": init_data})

    assert response.status_code == 401
    assert response.json() == {
        "message": "Invalid or expired initData",
        "error": "hash_mismatch",
    }
    assert len(user_store) == 0


@pytest.mark.anyio
async def test_missing_user_is_401(async_client, make_init_data):
    response = await async_client.post(
        "/api/auth/validate", json={"initData": make_init_data()}
    )

    assert response.status_code == 401
    assert response.json()["error"] == "missing_user_data"


@pytest.mark.anyio
async def test_missing_bot_token_is_500(async_client, make_init_data, monkeypatch):
    init_data = make_init_data(user={"id": 42})
    monkeypatch.setattr(settings, "TELEGRAM_BOT_TOKEN", None)

    response = await async_client.post("/api/auth/validate", json={"initData": init_data})

    assert response.status_code == 500
    assert response.json()["message"] == "Server configuration error"
    assert "S3cr3t" not in response.text


@pytest.mark.anyio
async def test_store_failure_is_500_with_generic_message(async_client, make_init_data, monkeypatch):
    async def broken_get(self, user_id):
        raise RuntimeError("connection reset by peer at 10.0.0.5")

    monkeypatch.setattr(InMemoryUserStore, "get", broken_get)

    response = await async_client.post(
        "/api/auth/validate", json={"initData": make_init_data(user={"id": 42})}
    )

    assert response.status_code == 500
    assert response.json()["message"] == "Internal server error interacting with database."
    assert "10.0.0.5" not in response.text


@pytest.mark.anyio
async def test_foreign_origin_is_rejected(async_client, make_init_data):
    response = await async_client.post(
        "/api/auth/validate",
        json={"initData": make_init_data(user={"id": 42})},
        headers={"Origin": "https://evil.example"},
    )

    assert response.status_code == 403
    assert response.json()["message"] == "Origin not allowed by CORS policy."


@pytest.mark.anyio
async def test_whitelisted_origin_gets_cors_headers(async_client, make_init_data):
    origin = settings.ALLOWED_ORIGINS[0]

    response = await async_client.post(
        "/api/auth/validate",
        json={"initData": make_init_data(user={"id": 42})},
        headers={"Origin": origin},
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == origin


@pytest.mark.anyio
async def test_api_root_and_health(async_client):
    root = await async_client.get("/api")
    health = await async_client.get("/health")

    assert root.json() == {"message": f"Hello from {settings.APP_NAME}!"}
    assert health.json()["status"] == "healthy"
    assert health.json()["bot_token_configured"] is True
    assert "S3cr3t" not in health.text


@pytest.mark.anyio
async def test_startup_fails_fast_without_bot_token(monkeypatch):
    monkeypatch.setattr(settings, "TELEGRAM_BOT_TOKEN", None)

    with pytest.raises(ConfigurationError):
        async with lifespan(app):
            pass


@pytest.mark.anyio
async def test_request_logs_never_carry_key_material(async_client, make_init_data, bot_token):
    init_data = make_init_data(user={"id": 42, "first_name": "Ann"})
    fields = dict(parse_qsl(init_data, keep_blank_values=True))
    received_hash = fields.pop("hash")
    sensitive = [
        bot_token,
        derive_secret_key(bot_token).hex(),
        build_data_check_string(fields),
        received_hash,
    ]

    with capture_logs() as entries:
        await async_client.post("/api/auth/validate", json={"initData": init_data})
        await async_client.post(
            "/api/auth/validate", json={"initData": init_data.replace("Ann", "Eve")}
        )

    assert any(entry["event"] == "HTTP request completed" for entry in entries)
    rendered = repr(entries)
    for value in sensitive:
        assert value not in rendered
