from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from core.config import settings
from core.exceptions import UnauthorizedError
from utils.tokens import decode_actor


def get_actor_key(request: Request):
    """
    Rate-limit bucket for a request: the acting user when known, else the client address.

    Route dependencies run before the limit check, so the actor decoded by
    ``get_current_actor`` is normally already on ``request.state``.
    """
    actor = getattr(request.state, "actor", None)
    if actor is not None:
        return actor.user_id

    header = request.headers.get("Authorization")
    if header and header.startswith("Bearer "):
        try:
            return decode_actor(header[len("Bearer "):]).user_id
        except UnauthorizedError:
            pass

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_actor_key,
    default_limits=["200/hour"],
    enabled=settings.ENV != "testing"
)
