# src/accesscore/repositories/__init__.py
from .user_repository import UserRepository
from .membership_repository import MembershipRepository, SiteMembershipRepository

__all__ = [
    "UserRepository",
    "MembershipRepository",
    "SiteMembershipRepository",
]
