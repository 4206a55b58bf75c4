from uuid import uuid4

import pytest

from huddle.models import Message, ServerMember


@pytest.fixture
async def crew(api, alice, bob, carol, dave):
    """alice owns the server, bob moderates, carol and dave are guests."""
    server = await api.create_server(alice, "Crew")
    for headers in (bob, carol, dave):
        await api.join(headers, server)

    ids = {
        name: await api.member_id(alice, server["id"], f"{name}@example.com")
        for name in ("alice", "bob", "carol", "dave")
    }
    response = await api.set_role(alice, server["id"], ids["bob"], "MODERATOR")
    assert response.status_code == 200
    return server, ids


class TestListMembers:
    async def test_sorted_by_authority(self, api, carol, crew):
        server, _ = crew

        members = await api.members(carol, server["id"])

        assert [member["role"] for member in members] == ["OWNER", "MODERATOR", "GUEST", "GUEST"]
        assert members[0]["user"]["email"] == "alice@example.com"
        assert members[1]["user"]["email"] == "bob@example.com"
        assert {member["user"]["email"] for member in members[2:]} == {"carol@example.com", "dave@example.com"}

    async def test_non_member_cannot_list(self, api, as_user, crew):
        server, _ = crew
        response = await api.http.get(f"/servers/{server['id']}/members", headers=as_user("eve@example.com"))
        assert response.status_code == 403


class TestChangeRole:
    async def test_owner_promotes_and_demotes(self, api, alice, crew):
        server, ids = crew

        promoted = await api.set_role(alice, server["id"], ids["carol"], "MODERATOR")
        assert promoted.status_code == 200
        assert promoted.json()["role"] == "MODERATOR"

        demoted = await api.set_role(alice, server["id"], ids["bob"], "GUEST")
        assert demoted.status_code == 200
        assert demoted.json()["role"] == "GUEST"

    async def test_setting_same_role_is_allowed(self, api, alice, crew):
        server, ids = crew
        response = await api.set_role(alice, server["id"], ids["carol"], "GUEST")
        assert response.status_code == 200

    @pytest.mark.parametrize("actor", ["bob", "carol"])
    async def test_only_owner_changes_roles(self, api, request, crew, actor):
        server, ids = crew
        headers = request.getfixturevalue(actor)

        response = await api.set_role(headers, server["id"], ids["dave"], "MODERATOR")

        assert response.status_code == 403
        roles = {member["id"]: member["role"] for member in await api.members(headers, server["id"])}
        assert roles[ids["dave"]] == "GUEST"

    async def test_owner_role_cannot_be_granted(self, api, alice, crew):
        server, ids = crew
        response = await api.set_role(alice, server["id"], ids["carol"], "OWNER")
        assert response.status_code == 400

    async def test_unknown_role_rejected(self, api, alice, crew):
        server, ids = crew
        response = await api.set_role(alice, server["id"], ids["carol"], "ADMIN")
        assert response.status_code == 400

    async def test_owner_cannot_demote_self(self, api, alice, crew):
        server, ids = crew
        response = await api.set_role(alice, server["id"], ids["alice"], "GUEST")
        assert response.status_code == 403

    async def test_unknown_member_is_404(self, api, alice, crew):
        server, _ = crew
        response = await api.set_role(alice, server["id"], str(uuid4()), "MODERATOR")
        assert response.status_code == 404

    async def test_member_of_other_server_is_404(self, api, alice, bob, crew):
        server, _ = crew
        other = await api.create_server(bob, "Bob's place")
        bob_elsewhere = await api.member_id(bob, other["id"], "bob@example.com")

        response = await api.set_role(alice, server["id"], bob_elsewhere, "GUEST")

        assert response.status_code == 404


class TestKickMember:
    # (actor, target, expected status)
    MATRIX = [
        ("alice", "bob", 204),
        ("alice", "carol", 204),
        ("bob", "carol", 204),
        ("bob", "alice", 403),
        ("carol", "dave", 403),
        ("carol", "bob", 403),
        ("carol", "alice", 403),
    ]

    @pytest.mark.parametrize("actor,target,expected", MATRIX)
    async def test_matrix(self, api, request, crew, actor, target, expected):
        server, ids = crew
        headers = request.getfixturevalue(actor)

        response = await api.http.delete(f"/servers/{server['id']}/members/{ids[target]}", headers=headers)

        assert response.status_code == expected
        remaining = await api.count(ServerMember)
        assert remaining == (3 if expected == 204 else 4)

    async def test_moderator_cannot_kick_moderator(self, api, alice, bob, crew):
        server, ids = crew
        await api.set_role(alice, server["id"], ids["carol"], "MODERATOR")

        response = await api.http.delete(f"/servers/{server['id']}/members/{ids['carol']}", headers=bob)

        assert response.status_code == 403

    @pytest.mark.parametrize("actor", ["alice", "bob", "carol"])
    async def test_nobody_kicks_themselves(self, api, request, crew, actor):
        server, ids = crew
        headers = request.getfixturevalue(actor)

        response = await api.http.delete(f"/servers/{server['id']}/members/{ids[actor]}", headers=headers)

        assert response.status_code == 403

    async def test_kick_removes_messages(self, api, alice, carol, crew):
        server, ids = crew
        await api.post_message(carol, server["id"], "bye")
        await api.post_message(alice, server["id"], "stays")

        await api.http.delete(f"/servers/{server['id']}/members/{ids['carol']}", headers=alice)

        assert [message["content"] for message in await api.messages(alice, server["id"])] == ["stays"]
        assert await api.count(Message) == 1

    async def test_kicked_member_loses_access_and_can_rejoin(self, api, alice, carol, crew):
        server, ids = crew
        await api.http.delete(f"/servers/{server['id']}/members/{ids['carol']}", headers=alice)

        denied = await api.http.get(f"/servers/{server['id']}/messages", headers=carol)
        assert denied.status_code == 403

        rejoined = await api.join(carol, server)
        assert rejoined["joined"] is True
        assert rejoined["role"] == "GUEST"

    async def test_unknown_member_is_404(self, api, alice, crew):
        server, _ = crew
        response = await api.http.delete(f"/servers/{server['id']}/members/{uuid4()}", headers=alice)
        assert response.status_code == 404
