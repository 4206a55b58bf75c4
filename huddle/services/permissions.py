"""Role-based access decisions for servers, members and messages.

Every predicate takes records that were already looked up (``None`` when the
lookup found nothing) and returns a :class:`Decision`. Decisions are truthy
when the action is allowed and carry a :class:`DenyReason` otherwise, so the
HTTP layer can treat every denial uniformly as "forbidden" while tests can
still tell the reasons apart. Nothing in here touches the database or raises.
"""

from dataclasses import dataclass
from enum import StrEnum

from huddle.models import Message, Server, ServerMember
from huddle.models.enums import ASSIGNABLE_ROLES, MemberRole


class DenyReason(StrEnum):
    NOT_A_MEMBER = "not_a_member"
    NOT_FOUND = "not_found"
    CROSS_SERVER = "cross_server"
    SELF_TARGET = "self_target"
    TARGET_IS_OWNER = "target_is_owner"
    INSUFFICIENT_ROLE = "insufficient_role"
    NOT_AUTHOR = "not_author"
    RESTRICTED_SERVER = "restricted_server"
    INVALID_ROLE = "invalid_role"


@dataclass(frozen=True, slots=True)
class Decision:
    allowed: bool
    reason: DenyReason | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(allowed=True)


def deny(reason: DenyReason) -> Decision:
    return Decision(allowed=False, reason=reason)


def can_view_server(actor: ServerMember | None, server: Server | None) -> Decision:
    if actor is None:
        return deny(DenyReason.NOT_A_MEMBER)
    if server is None:
        return deny(DenyReason.NOT_FOUND)
    if actor.server_id != server.id:
        return deny(DenyReason.CROSS_SERVER)
    return ALLOW


def can_post(actor: ServerMember | None, server: Server | None) -> Decision:
    """Any member may post, except guests while the server is restricted."""
    membership = can_view_server(actor, server)
    if not membership:
        return membership
    if server.is_restricted and actor.role == MemberRole.GUEST:
        return deny(DenyReason.RESTRICTED_SERVER)
    return ALLOW


def can_edit_message(actor: ServerMember | None, message: Message | None) -> Decision:
    """Only the member who wrote a message may edit it, whatever their role."""
    if actor is None:
        return deny(DenyReason.NOT_A_MEMBER)
    if message is None:
        return deny(DenyReason.NOT_FOUND)
    if message.server_id != actor.server_id:
        return deny(DenyReason.CROSS_SERVER)
    if message.member_id != actor.id:
        return deny(DenyReason.NOT_AUTHOR)
    return ALLOW


def can_delete_message(actor: ServerMember | None, message: Message | None) -> Decision:
    """Authors may always delete their own messages.

    Otherwise the actor must be a moderator or the owner, and the author's
    current role must not outrank the actor's: moderators remove guest and
    moderator messages, only the owner removes owner messages.
    """
    if actor is None:
        return deny(DenyReason.NOT_A_MEMBER)
    if message is None:
        return deny(DenyReason.NOT_FOUND)
    if message.server_id != actor.server_id:
        return deny(DenyReason.CROSS_SERVER)
    if message.member_id == actor.id:
        return ALLOW

    author = message.author
    if author is None:
        return deny(DenyReason.NOT_FOUND)
    if not actor.role.is_moderator_or_above():
        return deny(DenyReason.INSUFFICIENT_ROLE)
    if author.role.outranks(actor.role):
        return deny(DenyReason.INSUFFICIENT_ROLE)
    return ALLOW


def can_kick_member(actor: ServerMember | None, target: ServerMember | None) -> Decision:
    """The owner kicks moderators and guests, moderators kick guests, guests kick no one."""
    if actor is None:
        return deny(DenyReason.NOT_A_MEMBER)
    if target is None:
        return deny(DenyReason.NOT_FOUND)
    if target.server_id != actor.server_id:
        return deny(DenyReason.CROSS_SERVER)
    if target.id == actor.id or target.user_id == actor.user_id:
        return deny(DenyReason.SELF_TARGET)
    if target.role == MemberRole.OWNER:
        return deny(DenyReason.TARGET_IS_OWNER)
    if not actor.role.outranks(target.role):
        return deny(DenyReason.INSUFFICIENT_ROLE)
    return ALLOW


def can_change_role(actor: ServerMember | None, target: ServerMember | None, role: MemberRole | str) -> Decision:
    """Only the owner assigns roles, only MODERATOR or GUEST, never to the owner."""
    if actor is None:
        return deny(DenyReason.NOT_A_MEMBER)
    if actor.role != MemberRole.OWNER:
        return deny(DenyReason.INSUFFICIENT_ROLE)
    if target is None:
        return deny(DenyReason.NOT_FOUND)
    if target.server_id != actor.server_id:
        return deny(DenyReason.CROSS_SERVER)
    if target.role == MemberRole.OWNER:
        return deny(DenyReason.TARGET_IS_OWNER)
    if role not in ASSIGNABLE_ROLES:
        return deny(DenyReason.INVALID_ROLE)
    return ALLOW


def can_generate_invite(actor: ServerMember | None) -> Decision:
    if actor is None:
        return deny(DenyReason.NOT_A_MEMBER)
    if not actor.role.is_moderator_or_above():
        return deny(DenyReason.INSUFFICIENT_ROLE)
    return ALLOW


def can_manage_server(actor: ServerMember | None, server: Server | None) -> Decision:
    """Editing and deleting a server is reserved to its owner."""
    membership = can_view_server(actor, server)
    if not membership:
        return membership
    if actor.role != MemberRole.OWNER or server.owner_id != actor.user_id:
        return deny(DenyReason.INSUFFICIENT_ROLE)
    return ALLOW
