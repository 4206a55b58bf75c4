from datetime import UTC, datetime
from uuid import UUID

from pydantic import AliasChoices, AwareDatetime, BaseModel, ConfigDict, Field, field_validator

from huddle.models.enums import MemberRole
from huddle.schemas.common import RequestModel, UserSummaryOut, UtcDatetime

MAX_MESSAGE_LENGTH = 2000
# messages.sequence is a 32-bit INTEGER column.
MAX_SEQUENCE = 2**31 - 1


class CreateMessageIn(RequestModel):
    client_id: UUID
    content: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)
    sent_at: AwareDatetime
    sequence: int = Field(ge=1, le=MAX_SEQUENCE, strict=True)

    @field_validator("sent_at")
    @classmethod
    def normalize_sent_at(cls, value: datetime) -> datetime:
        return value.astimezone(UTC)


class UpdateMessageIn(RequestModel):
    content: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)


class MessageAuthorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    role: MemberRole
    user: UserSummaryOut


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    server_id: UUID
    content: str
    sent_at: UtcDatetime
    sequence: int
    created_at: UtcDatetime
    edited_at: UtcDatetime | None
    member: MessageAuthorOut = Field(validation_alias=AliasChoices("author", "member"))
