"""Membership persistence adapters."""

from querybridge.adapters.rbac.members_repository import MembersRepository

__all__ = ["MembersRepository"]
