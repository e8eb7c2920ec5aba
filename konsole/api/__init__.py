"""API package exports."""

from konsole.api.middleware import CorrelationIdMiddleware
from konsole.api.routes import router

__all__ = ["router", "CorrelationIdMiddleware"]
