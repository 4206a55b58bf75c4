from uuid import UUID

from pydantic import BaseModel

from huddle.models.enums import MemberRole


class InviteOut(BaseModel):
    server_id: UUID
    invite_code: str


class InviteJoinOut(BaseModel):
    server_id: UUID
    server_name: str
    member_id: UUID
    role: MemberRole
    joined: bool
