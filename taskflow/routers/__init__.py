"""
API routers package.
"""

from taskflow.routers import health, presence

__all__ = [
    "health",
    "presence",
]
