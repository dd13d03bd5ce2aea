"""API middlewares."""

from mlm_api.middlewares.auth import auth_middleware
from mlm_api.middlewares.database import database_middleware
from mlm_api.middlewares.error_handler import error_middleware

__all__ = ["auth_middleware", "database_middleware", "error_middleware"]
