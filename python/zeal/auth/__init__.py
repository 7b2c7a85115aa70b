"""Authentication module.

This module provides:
- Token verification (HS256 shared-secret verifier)
- Auth middleware for FastAPI
- Request state with viewer identity

Tests mint tokens for this verifier with tests/helpers.py.
"""

from zeal.auth.middleware import AuthMiddleware, Viewer, get_viewer
from zeal.auth.verifier import HmacTokenVerifier, TokenVerifier

__all__ = [
    "AuthMiddleware",
    "Viewer",
    "get_viewer",
    "HmacTokenVerifier",
    "TokenVerifier",
]
