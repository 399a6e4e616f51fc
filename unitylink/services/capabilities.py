"""Role capability resolver — capability flags derived from the current role."""

from __future__ import annotations

from unitylink.core.roles import Role, at_least
from unitylink.schemas.session import Capabilities


def resolve_capabilities(role: Role | None) -> Capabilities:
    """All flags are False when nobody is signed in."""
    return Capabilities(
        is_super_admin=at_least(role, Role.SUPER_ADMIN),
        is_board_member=at_least(role, Role.BOARD_MEMBER),
        is_community_member=at_least(role, Role.COMMUNITY_MEMBER),
    )
