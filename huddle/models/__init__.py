from huddle.models.enums import MemberRole
from huddle.models.message import Message
from huddle.models.server import Server, ServerMember
from huddle.models.user import User

__all__ = ["User", "Server", "ServerMember", "Message", "MemberRole"]
