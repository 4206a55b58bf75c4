from enum import StrEnum


class MemberRole(StrEnum):
    OWNER = "OWNER"
    MODERATOR = "MODERATOR"
    GUEST = "GUEST"

    @property
    def authority(self) -> int:
        return _AUTHORITY[self]

    def outranks(self, other: "MemberRole") -> bool:
        return self.authority > other.authority

    def is_moderator_or_above(self) -> bool:
        return self.authority >= MemberRole.MODERATOR.authority


_AUTHORITY = {
    MemberRole.OWNER: 3,
    MemberRole.MODERATOR: 2,
    MemberRole.GUEST: 1,
}

# Roles an owner may hand out; OWNER itself only comes from creating a server.
ASSIGNABLE_ROLES = frozenset({MemberRole.MODERATOR, MemberRole.GUEST})


def compare_roles(a: MemberRole, b: MemberRole) -> int:
    """Order two roles by authority: negative if ``a`` is weaker, 0 if equal, positive if stronger."""
    return a.authority - b.authority
