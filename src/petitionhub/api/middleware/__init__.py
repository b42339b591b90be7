"""Middleware for the PetitionHub API.

- CORS headers on every response and preflight handling
- Correlation context for request tracing
"""

from petitionhub.api.middleware.correlation import CorrelationMiddleware
from petitionhub.api.middleware.cors import CORSConfig, CORSHeadersMiddleware

__all__ = [
    "CORSConfig",
    "CORSHeadersMiddleware",
    "CorrelationMiddleware",
]
