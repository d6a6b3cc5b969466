"""
Services package for business logic.
"""

from taskflow.services.auth import Identity, TokenVerifier
from taskflow.services.membership import (
    Membership,
    MembershipResolver,
    ProjectSummary,
    SqlMembershipResolver,
)

__all__ = [
    "Identity",
    "TokenVerifier",
    "Membership",
    "MembershipResolver",
    "ProjectSummary",
    "SqlMembershipResolver",
]
