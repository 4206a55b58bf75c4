from datetime import UTC, datetime, timedelta
from uuid import uuid4

from huddle.client.state import ECHO_GRACE, LocalMessage, MessageStatus, merge_older, merge_page, sort_messages
from huddle.schemas.message import MessageOut

T0 = datetime(2026, 5, 4, 9, 0, tzinfo=UTC)
SERVER_ID = uuid4()
MEMBER_ID = uuid4()


def server_message(content: str, seconds: int = 0, sequence: int = 1, client_id=None) -> MessageOut:
    return MessageOut(
        id=uuid4(),
        client_id=client_id or uuid4(),
        server_id=SERVER_ID,
        content=content,
        sent_at=T0 + timedelta(seconds=seconds),
        sequence=sequence,
        created_at=T0 + timedelta(seconds=seconds),
        edited_at=None,
        member={"id": MEMBER_ID, "role": "GUEST", "user": {"id": uuid4(), "display_name": "pat", "email": "pat@x.io"}},
    )


def local_message(content: str, seconds: int = 0, sequence: int = 1, status=MessageStatus.PENDING) -> LocalMessage:
    return LocalMessage(
        client_id=uuid4(),
        content=content,
        sent_at=T0 + timedelta(seconds=seconds),
        sequence=sequence,
        status=status,
    )


def contents(messages):
    return [message.content for message in messages]


class TestFromServer:
    def test_copies_author_details(self):
        message = LocalMessage.from_server(server_message("hi"))

        assert message.status == MessageStatus.SENT
        assert message.is_confirmed
        assert message.member_id == MEMBER_ID
        assert message.author_name == "pat"
        assert message.author_role == "GUEST"


class TestSortMessages:
    def test_orders_by_sent_at_then_sequence(self):
        messages = [local_message("c", 5), local_message("b", 0, sequence=2), local_message("a", 0, sequence=1)]
        assert contents(sort_messages(messages)) == ["a", "b", "c"]

    def test_client_id_breaks_ties(self):
        messages = [local_message("x"), local_message("y")]
        ordered = sort_messages(messages)
        assert [str(message.client_id) for message in ordered] == sorted(str(m.client_id) for m in messages)


class TestMergePage:
    def test_server_copy_replaces_pending(self):
        pending = local_message("hello")
        confirmed = server_message("hello", client_id=pending.client_id)

        merged = merge_page([pending], [confirmed])

        assert len(merged) == 1
        assert merged[0].status == MessageStatus.SENT
        assert merged[0].id == confirmed.id

    def test_unconfirmed_messages_survive(self):
        pending = local_message("waiting", 30)
        failed = local_message("broken", 40, status=MessageStatus.FAILED)

        merged = merge_page([pending, failed], [server_message("from server", 10)])

        assert contents(merged) == ["from server", "waiting", "broken"]

    def test_pending_interleaves_by_sent_at(self):
        pending = local_message("typed between", 15)
        page = [server_message("before", 10), server_message("after", 20)]

        assert contents(merge_page([pending], page)) == ["before", "typed between", "after"]

    def test_older_history_is_kept(self):
        history = LocalMessage.from_server(server_message("ancient", -600))
        page = [server_message("recent", 0)]

        assert contents(merge_page([history], page)) == ["ancient", "recent"]

    def test_message_deleted_inside_window_is_dropped(self):
        kept = server_message("kept", 0)
        deleted = LocalMessage.from_server(server_message("deleted", 5))
        latest = server_message("latest", 10)

        assert contents(merge_page([deleted], [kept, latest])) == ["kept", "latest"]

    def test_full_history_page_drops_everything_missing(self):
        stale = LocalMessage.from_server(server_message("stale", -600))

        merged = merge_page([stale], [server_message("only", 0)], covers_history=True)

        assert contents(merged) == ["only"]

    def test_empty_page_keeps_only_unconfirmed(self):
        confirmed = LocalMessage.from_server(server_message("gone"))
        pending = local_message("mine")

        assert contents(merge_page([confirmed, pending], [])) == ["mine"]

    def test_edits_replace_local_copy(self):
        original = server_message("draft", client_id=uuid4())
        local = [LocalMessage.from_server(original)]
        edited = original.model_copy(update={"content": "final", "edited_at": T0 + timedelta(minutes=1)})

        merged = merge_page(local, [edited])

        assert contents(merged) == ["final"]
        assert merged[0].edited_at is not None

    def test_own_send_survives_page_that_predates_it(self):
        sent = LocalMessage.from_server(server_message("just sent"))
        sent.confirmed_at = T0

        merged = merge_page([sent], [], covers_history=True, now=T0 + timedelta(seconds=2))

        assert contents(merged) == ["just sent"]

    def test_own_send_missing_after_grace_was_deleted(self):
        sent = LocalMessage.from_server(server_message("just sent"))
        sent.confirmed_at = T0

        merged = merge_page([sent], [], covers_history=True, now=T0 + ECHO_GRACE + timedelta(seconds=1))

        assert merged == []

    def test_page_copy_ends_the_grace(self):
        original = server_message("echoed")
        sent = LocalMessage.from_server(original)
        sent.confirmed_at = T0

        merged = merge_page([sent], [original], now=T0)

        assert merged[0].confirmed_at is None
        assert not merged[0].awaiting_echo(T0)


class TestMergeOlder:
    def test_prepends_older_page(self):
        current = [LocalMessage.from_server(server_message("now", 100))]
        older = [server_message("then", 0), server_message("later", 50)]

        assert contents(merge_older(current, older)) == ["then", "later", "now"]

    def test_known_messages_are_not_duplicated(self):
        known = server_message("known", 10)
        current = [LocalMessage.from_server(known)]

        merged = merge_older(current, [server_message("older", 0), known])

        assert contents(merged) == ["older", "known"]
