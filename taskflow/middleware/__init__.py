"""
Middleware package.
"""

from taskflow.middleware.auth import get_bearer_token, get_current_identity

__all__ = [
    "get_bearer_token",
    "get_current_identity",
]
