from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from huddle.models.enums import MemberRole
from huddle.schemas.common import UserOut, UtcDatetime


class ExportMembershipOut(BaseModel):
    server_id: UUID
    server_name: str
    role: MemberRole
    joined_at: UtcDatetime
    message_count: int


class ExportOwnedServerOut(BaseModel):
    id: UUID
    name: str
    is_restricted: bool
    created_at: UtcDatetime
    member_count: int
    message_count: int


class ExportMessageOut(BaseModel):
    server_id: UUID
    server_name: str
    content: str
    sent_at: UtcDatetime


class AccountExportOut(BaseModel):
    export_date: datetime
    user: UserOut
    memberships: list[ExportMembershipOut]
    owned_servers: list[ExportOwnedServerOut]
    messages: list[ExportMessageOut]
