from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from huddle.models.enums import ASSIGNABLE_ROLES, MemberRole
from huddle.schemas.common import RequestModel, UserSummaryOut, UtcDatetime


class CreateServerIn(RequestModel):
    # Whitespace is stripped before the length check, so blank names are rejected.
    name: str = Field(min_length=3, max_length=100)
    is_restricted: bool = False


class UpdateServerIn(RequestModel):
    name: str | None = Field(default=None, min_length=3, max_length=100)
    is_restricted: bool | None = None

    @model_validator(mode="after")
    def require_a_field(self) -> "UpdateServerIn":
        if self.name is None and self.is_restricted is None:
            raise ValueError("At least one field must be provided")
        return self


class ServerOut(BaseModel):
    id: UUID
    name: str
    owner_id: UUID
    is_restricted: bool
    created_at: UtcDatetime
    role: MemberRole | None = None
    invite_code: str | None = None


class ServerMemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    server_id: UUID
    user_id: UUID
    role: MemberRole
    created_at: UtcDatetime
    user: UserSummaryOut


class UpdateMemberRoleIn(RequestModel):
    role: MemberRole

    @field_validator("role")
    @classmethod
    def assignable_only(cls, value: MemberRole) -> MemberRole:
        if value not in ASSIGNABLE_ROLES:
            raise ValueError("Role must be MODERATOR or GUEST")
        return value
