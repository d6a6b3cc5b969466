"""
SQLAlchemy models package.
All models inherit from the Base class defined in database.py.
"""

from taskflow.models.user import User
from taskflow.models.project import Project, ProjectMember

__all__ = [
    "User",
    "Project",
    "ProjectMember",
]
