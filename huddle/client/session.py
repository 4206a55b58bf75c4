from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import httpx

from huddle.client.state import ECHO_GRACE, LocalMessage, MessageStatus, merge_older, merge_page, sort_messages
from huddle.core.errors import UnknownMessageError
from huddle.core.security import ClientPrincipal, encode_client_principal
from huddle.schemas.message import MessageOut

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
OLDER_PAGE_SIZE = 50
POLL_INTERVAL_SECONDS = 3.0


def build_http_client(
    base_url: str,
    principal: ClientPrincipal,
    *,
    principal_header: str = "x-ms-client-principal",
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float = 10.0,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        headers={principal_header: encode_client_principal(principal)},
        transport=transport,
        timeout=timeout,
    )


def _error_detail(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            payload = exc.response.json()
        except ValueError:
            payload = None
        detail = payload.get("detail") if isinstance(payload, dict) else None
        return f"{exc.response.status_code}: {detail or exc.response.reason_phrase}"
    return str(exc) or exc.__class__.__name__


class ChatSession:
    """Optimistic, polling view of one server's messages.

    ``http`` must already carry the caller's principal and point at the API
    prefix (see :func:`build_http_client`).
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        server_id: UUID,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        older_page_size: int = OLDER_PAGE_SIZE,
        echo_grace: timedelta = ECHO_GRACE,
    ) -> None:
        self._http = http
        self.server_id = server_id
        self.page_size = page_size
        self.older_page_size = older_page_size
        self.echo_grace = echo_grace
        self.has_more = True
        self._sequence = 0
        self._messages: dict[UUID, LocalMessage] = {}

    @property
    def _path(self) -> str:
        return f"/servers/{self.server_id}/messages"

    @property
    def messages(self) -> list[LocalMessage]:
        return sort_messages(self._messages.values())

    def _replace(self, messages: list[LocalMessage]) -> None:
        self._messages = {message.client_id: message for message in messages}

    async def send(self, content: str, *, now: datetime | None = None) -> LocalMessage:
        self._sequence += 1
        local = LocalMessage(
            client_id=uuid4(),
            content=content.strip(),
            sent_at=now or datetime.now(UTC),
            sequence=self._sequence,
            status=MessageStatus.PENDING,
        )
        self._messages[local.client_id] = local
        return await self._submit(local)

    async def retry(self, client_id: UUID) -> LocalMessage:
        local = self._messages.get(client_id)
        if local is None:
            raise UnknownMessageError(client_id)
        if local.status != MessageStatus.FAILED:
            return local
        local.status = MessageStatus.PENDING
        local.error = None
        local.retry_count += 1
        return await self._submit(local)

    async def _submit(self, local: LocalMessage) -> LocalMessage:
        body = {
            "client_id": str(local.client_id),
            "content": local.content,
            "sent_at": local.sent_at.isoformat(),
            "sequence": local.sequence,
        }
        try:
            response = await self._http.post(self._path, json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            local.status = MessageStatus.FAILED
            local.error = _error_detail(exc)
            logger.warning("Message %s failed: %s", local.client_id, local.error)
            return local

        confirmed = LocalMessage.from_server(MessageOut.model_validate(response.json()))
        confirmed.retry_count = local.retry_count
        confirmed.confirmed_at = datetime.now(UTC)
        self._messages[confirmed.client_id] = confirmed
        return confirmed

    async def poll(self) -> list[LocalMessage]:
        response = await self._http.get(self._path, params={"limit": self.page_size})
        response.raise_for_status()
        page = [MessageOut.model_validate(item) for item in response.json()]
        now = datetime.now(UTC)
        full = len(page) >= self.page_size

        def settled(message: LocalMessage) -> bool:
            return message.is_confirmed and not message.awaiting_echo(now, self.echo_grace)

        local = list(self._messages.values())
        seen = {message.client_id for message in local if settled(message)}
        if full and seen and seen.isdisjoint(message.client_id for message in page):
            # More than a page arrived since the last poll. History behind the gap is
            # dropped so load_older pages it in again from the new page.
            logger.info("Poll of server %s skipped past known history, reloading older pages", self.server_id)
            local = [message for message in local if not settled(message)]
            self.has_more = True

        merged = merge_page(local, page, covers_history=not full, now=now, echo_grace=self.echo_grace)
        self._replace(merged)
        if not full:
            self.has_more = False
        return merged

    async def load_older(self) -> int:
        if not self.has_more:
            return 0
        oldest = next((message for message in self.messages if message.is_confirmed), None)
        if oldest is None:
            return 0

        response = await self._http.get(
            self._path,
            params={"before": str(oldest.id), "limit": self.older_page_size},
        )
        response.raise_for_status()
        page = [MessageOut.model_validate(item) for item in response.json()]

        before = len(self._messages)
        self._replace(merge_older(self._messages.values(), page))
        if len(page) < self.older_page_size:
            self.has_more = False
        return len(self._messages) - before

    async def run(self, interval: float = POLL_INTERVAL_SECONDS) -> None:
        """Poll until the task is cancelled."""
        while True:
            try:
                await self.poll()
            except httpx.HTTPError as exc:
                logger.warning("Poll of server %s failed: %s", self.server_id, _error_detail(exc))
            await asyncio.sleep(interval)
