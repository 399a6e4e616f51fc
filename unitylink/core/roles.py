"""
Role model — the closed set of community roles, their labels and ranks.

Lower rank means more authority and sorts first. Capability checks are
"at least" comparisons on rank, so a super admin holds every board-member
and community-member capability, and a board member holds every
community-member capability.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Protocol, TypeVar


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    BOARD_MEMBER = "board_member"
    COMMUNITY_MEMBER = "community_member"


_LABELS: dict[Role, str] = {
    Role.SUPER_ADMIN: "Super Admin",
    Role.BOARD_MEMBER: "Board Member",
    Role.COMMUNITY_MEMBER: "Community Member",
}

_RANKS: dict[Role, int] = {
    Role.SUPER_ADMIN: 0,
    Role.BOARD_MEMBER: 1,
    Role.COMMUNITY_MEMBER: 2,
}

# (value, label) pairs in rank order, for role pickers.
ROLE_CHOICES: list[tuple[str, str]] = [
    (role.value, _LABELS[role]) for role in sorted(_RANKS, key=_RANKS.__getitem__)
]


def label_for(role: Role) -> str:
    return _LABELS[role]


def rank_for(role: Role) -> int:
    return _RANKS[role]


def at_least(role: Role | None, threshold: Role) -> bool:
    """True if *role* carries every capability of *threshold*."""
    if role is None:
        return False
    return _RANKS[role] <= _RANKS[threshold]


class _Ranked(Protocol):
    role: Role
    name: str


R = TypeVar("R", bound=_Ranked)


def sort_key(user: _Ranked) -> tuple[int, str]:
    return (_RANKS[user.role], user.name.casefold())


def sort_users(users: Iterable[R]) -> list[R]:
    """Order by rank, then case-insensitive name."""
    return sorted(users, key=sort_key)
