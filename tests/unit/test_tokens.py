from datetime import timedelta

import pytest
from jose import jwt

from core.config import settings
from core.enums import Role
from core.exceptions import UnauthorizedError
from utils.tokens import decode_actor
from tests.factories import CUSTOMER_ID, make_token


def test_decode_access_token():
    actor = decode_actor(make_token(CUSTOMER_ID, "customer"))

    assert actor.user_id == CUSTOMER_ID
    assert actor.role == Role.CUSTOMER


def test_decode_user_id_claim():
    """Tokens that carry userId instead of id are accepted."""
    token = jwt.encode({"userId": "u-7", "role": "vendor"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    actor = decode_actor(token)

    assert actor.user_id == "u-7"
    assert actor.role == Role.VENDOR


def test_expired_token_rejected():
    token = make_token(CUSTOMER_ID, "customer", expires_delta=timedelta(seconds=-1))

    with pytest.raises(UnauthorizedError) as exc_info:
        decode_actor(token)

    assert exc_info.value.status_code == 401
    assert exc_info.value.error_code == "AUTH_FAILED"


def test_wrong_signature_rejected():
    token = jwt.encode({"id": CUSTOMER_ID, "role": "customer"}, "another-key", algorithm=settings.ALGORITHM)

    with pytest.raises(UnauthorizedError):
        decode_actor(token)


def test_refresh_token_rejected():
    with pytest.raises(UnauthorizedError):
        decode_actor(make_token(CUSTOMER_ID, "customer", token_type="refresh"))


def test_missing_role_rejected():
    token = jwt.encode({"id": CUSTOMER_ID}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    with pytest.raises(UnauthorizedError):
        decode_actor(token)


def test_unknown_role_rejected():
    with pytest.raises(UnauthorizedError) as exc_info:
        decode_actor(make_token(CUSTOMER_ID, "superuser"))

    assert exc_info.value.error_code == "INVALID_ROLE"
