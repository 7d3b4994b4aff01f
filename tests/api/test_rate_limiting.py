from middleware.rate_limiter import get_actor_key, limiter
from core.config import settings
from starlette.requests import Request
from tests.factories import COURIER_ID, CUSTOMER_ID, auth_headers, order_payload


def make_request(headers=None):
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "headers": raw_headers, "client": ("10.0.0.7", 5000)})


def test_rate_limiter_disabled_in_testing():
    """Verify rate limiter is disabled during tests."""

    assert settings.ENV == "testing"
    assert limiter.enabled is False


def test_limit_key_is_the_acting_user():
    assert get_actor_key(make_request(auth_headers(COURIER_ID, "courier"))) == COURIER_ID


def test_limit_key_falls_back_to_client_address():
    assert get_actor_key(make_request()) == "10.0.0.7"
    assert get_actor_key(make_request({"Authorization": "Bearer garbage"})) == "10.0.0.7"


async def test_can_make_multiple_requests_in_tests(client):
    """Verify rate limiting doesn't interfere with tests."""
    for i in range(10):
        response = await client.post("/orders", json=order_payload(), headers=auth_headers(CUSTOMER_ID, "customer"))
        assert response.status_code == 201
