"""
Middleware package exports.
"""

from middleware.request_id import RequestIDMiddleware, get_request_id, install_log_record_factory
from middleware.rate_limiter import limiter, get_actor_key

__all__ = ["RequestIDMiddleware", "get_request_id", "install_log_record_factory", "limiter", "get_actor_key"]
