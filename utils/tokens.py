from jose import JWTError, jwt
from pydantic import ValidationError

from core.config import settings
from core.exceptions import UnauthorizedError
from schemas.order_schemas import Actor


def decode_actor(token: str) -> Actor:
    """
    Turn an upstream-issued access token into an Actor.

    Credentials were already checked by the auth service; this only verifies
    the signature and reads the ``id``/``role`` claims.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")

    # auth-service tokens carry userId; older ones carry id
    user_id = payload.get("id") or payload.get("userId")
    role = payload.get("role")
    token_type = payload.get("type", "access")

    if user_id is None or role is None:
        raise UnauthorizedError("Could not validate credentials.")

    if token_type != "access":
        raise UnauthorizedError("Invalid token type. Access token required.")

    try:
        return Actor(user_id=str(user_id), role=role)
    except ValidationError:
        raise UnauthorizedError("Unknown role in token", error_code="INVALID_ROLE")
