from datetime import datetime, timedelta
from uuid import UUID


class HuddleError(Exception):
    """Base class for domain errors raised by the service layer."""


class ClockSkewError(HuddleError):
    def __init__(self, sent_at: datetime, skew: timedelta, limit: timedelta) -> None:
        self.sent_at = sent_at
        self.skew = skew
        self.limit = limit
        super().__init__(
            f"sent_at is {abs(skew.total_seconds()):.0f}s away from server time "
            f"(limit {limit.total_seconds():.0f}s); resync the client clock"
        )


class IdempotencyConflictError(HuddleError):
    def __init__(self, client_id: UUID) -> None:
        self.client_id = client_id
        super().__init__(f"client_id {client_id} was already used for a different message")


class InviteCodeExhaustedError(HuddleError):
    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Could not allocate a unique invite code after {attempts} attempts")


class UnknownMessageError(HuddleError):
    def __init__(self, client_id: UUID) -> None:
        self.client_id = client_id
        super().__init__(f"No local message with client_id {client_id}")
