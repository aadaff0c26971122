"""API package exports."""

from account_service.api.middleware import CorrelationIdMiddleware
from account_service.api.users import router

__all__ = ["router", "CorrelationIdMiddleware"]
