"""HTTP middleware."""
from sepei.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
