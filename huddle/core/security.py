from __future__ import annotations

import base64
import binascii
import json
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from huddle.core.config import get_settings

logger = logging.getLogger(__name__)


class ClientPrincipal(BaseModel):
    """Identity asserted by the upstream principal provider.

    The provider authenticates the caller and forwards this record as
    Base64-encoded JSON in a request header; it is trusted as-is.
    """

    model_config = ConfigDict(populate_by_name=True)

    identity_provider: str = Field(default="", alias="identityProvider")
    external_id: str = Field(alias="userId", min_length=1)
    display_identity: str = Field(alias="userDetails", min_length=1)
    roles: list[str] = Field(default_factory=list, alias="userRoles")

    @property
    def email(self) -> str:
        return self.display_identity.strip().lower()

    @property
    def display_name(self) -> str:
        return self.display_identity.split("@", 1)[0]

    def is_authenticated(self) -> bool:
        return get_settings().authenticated_role in self.roles


def encode_client_principal(principal: ClientPrincipal) -> str:
    raw = principal.model_dump_json(by_alias=True).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def decode_client_principal(header: str | None) -> ClientPrincipal | None:
    if not header:
        return None

    try:
        decoded = base64.b64decode(header, validate=True)
        principal = ClientPrincipal.model_validate(json.loads(decoded))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
        logger.warning("Rejected undecodable client principal header: %s", exc.__class__.__name__)
        return None

    if not principal.is_authenticated():
        return None
    return principal
