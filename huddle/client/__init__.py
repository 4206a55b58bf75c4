from huddle.client.session import ChatSession, build_http_client
from huddle.client.state import LocalMessage, MessageStatus, merge_older, merge_page
from huddle.core.errors import UnknownMessageError

__all__ = [
    "ChatSession",
    "LocalMessage",
    "MessageStatus",
    "UnknownMessageError",
    "build_http_client",
    "merge_older",
    "merge_page",
]
