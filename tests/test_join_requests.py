"""Tests for join requests: asking to join, admin suggestions, approve / reject."""

import pytest

from conftest import auth_headers, reload
from family_graph.core import join_requests
from family_graph.core.errors import (
    AlreadyLinked,
    AlreadyMember,
    DuplicateJoinRequest,
    InvalidJoinRequest,
    JoinRequestClosed,
    NameMismatch,
    NotFound,
)
from family_graph.core.family_access import is_family_user
from family_graph.models.user import User


@pytest.fixture
def requester(db):
    user = User(id="user-an", email="an.nguyen@example.com", name="Nguyễn Văn An")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def pending(db, family, requester):
    return join_requests.create_join_request(db, family, requester, message="  Hi, I'm An  ")


def handle(db, family, request, action="approve", **kwargs):
    return join_requests.handle_join_request(db, family.id, request.id, family.admin_user_id, action, **kwargs)


# ============================================================================
# Create
# ============================================================================

class TestCreate:
    def test_creates_pending_request(self, pending, requester):
        assert pending.status == "pending"
        assert pending.user_id == requester.id
        assert pending.message == "Hi, I'm An"

    def test_second_pending_request_refused(self, db, family, requester, pending):
        with pytest.raises(DuplicateJoinRequest):
            join_requests.create_join_request(db, family, requester)

    def test_family_user_cannot_ask(self, db, family, admin):
        with pytest.raises(AlreadyMember):
            join_requests.create_join_request(db, family, admin)

    def test_can_ask_again_after_rejection(self, db, family, requester, pending):
        handle(db, family, pending, action="reject")

        again = join_requests.create_join_request(db, family, requester)

        assert again.status == "pending"
        assert [r.id for r in join_requests.list_join_requests(db, family.id)] == [again.id]

    def test_list_filters_by_status(self, db, family, pending):
        assert len(join_requests.list_join_requests(db, family.id, status="pending")) == 1
        assert join_requests.list_join_requests(db, family.id, status="approved") == []


# ============================================================================
# Suggestions
# ============================================================================

def test_suggestions_rank_similar_unlinked_members(db, family, make_member, pending):
    an = make_member("Nguyen Van An")
    make_member("Tran Minh Quan")
    make_member("Nguyen Van An Taken", linked_user_id="someone-else")

    request, result = join_requests.join_request_suggestions(db, family.id, pending.id)

    assert request.id == pending.id
    assert [c.member.id for c in result.possible_matches] == [an.id]
    assert result.auto_match is None


def test_suggestions_for_unknown_request(db, family):
    with pytest.raises(NotFound):
        join_requests.join_request_suggestions(db, family.id, "missing")


# ============================================================================
# Approve / reject
# ============================================================================

class TestApprove:
    def test_auto_links_member_with_same_email(self, db, family, make_member, requester, pending):
        member = make_member("Anh Nguyen", email="AN.NGUYEN@example.com")

        request, linked = handle(db, family, pending, link_option="auto")

        assert request.status == "approved"
        assert request.link_option == "auto"
        assert request.linked_member_id == member.id
        assert request.handled_by == family.admin_user_id
        assert request.handled_at is not None
        assert linked.linked_user_id == requester.id
        assert is_family_user(db, family, requester.id)

    def test_auto_without_email_hit(self, db, family, make_member, requester, pending):
        make_member("Nguyen Van An")

        with pytest.raises(NotFound):
            handle(db, family, pending, link_option="auto")

        assert reload_request(db, family, pending).status == "pending"
        assert not is_family_user(db, family, requester.id)

    def test_manual_link_with_close_name(self, db, family, make_member, requester, pending):
        member = make_member("Nguyen Van An")

        request, linked = handle(db, family, pending, link_option="manual", member_id=member.id)

        assert request.linked_member_id == member.id
        assert linked.linked_user_id == requester.id
        # the account's email fills an empty member email
        assert linked.email == requester.email

    def test_manual_link_with_distant_name(self, db, family, make_member, requester, pending):
        member = make_member("Tran Minh Quan")

        with pytest.raises(NameMismatch):
            handle(db, family, pending, link_option="manual", member_id=member.id)

        # nothing from the approval is kept
        assert reload(db, member.id).linked_user_id is None
        assert reload_request(db, family, pending).status == "pending"
        assert not is_family_user(db, family, requester.id)

    def test_manual_link_needs_member(self, db, family, pending):
        with pytest.raises(InvalidJoinRequest):
            handle(db, family, pending, link_option="manual")

    def test_manual_link_to_member_bound_elsewhere(self, db, family, make_member, pending):
        member = make_member("Nguyen Van An", linked_user_id="someone-else")

        with pytest.raises(AlreadyLinked):
            handle(db, family, pending, link_option="manual", member_id=member.id)

    def test_new_joins_without_link(self, db, family, requester, pending):
        request, linked = handle(db, family, pending, link_option="new")

        assert request.status == "approved"
        assert request.linked_member_id is None
        assert linked is None
        assert is_family_user(db, family, requester.id)

    def test_unknown_link_option(self, db, family, pending):
        with pytest.raises(InvalidJoinRequest):
            handle(db, family, pending, link_option="guess")


def test_reject(db, family, requester, pending):
    request, linked = handle(db, family, pending, action="reject")

    assert request.status == "rejected"
    assert request.handled_by == family.admin_user_id
    assert linked is None
    assert not is_family_user(db, family, requester.id)


def test_request_is_handled_once(db, family, pending):
    handle(db, family, pending, link_option="new")

    with pytest.raises(JoinRequestClosed):
        handle(db, family, pending, action="reject")


def reload_request(db, family, request):
    db.expire_all()
    return join_requests.load_join_request(db, family.id, request.id)


# ============================================================================
# HTTP
# ============================================================================

@pytest.fixture
def api_family(client, db):
    db.add_all(
        [
            User(id="u-admin", email="admin@example.com", name="Admin Person"),
            User(id="u-an", email="an@example.com", name="Nguyễn Văn An"),
        ]
    )
    db.commit()
    res = client.post("/families", json={"name": "Nguyen"}, headers=auth_headers("u-admin"))
    return res.json()["id"]


def test_join_flow_over_http(client, api_family):
    admin_h = auth_headers("u-admin")
    an_h = auth_headers("u-an")
    base = f"/families/{api_family}/join-requests"

    member = client.post(
        f"/families/{api_family}/members",
        json={"name": "Nguyen Van An", "gender": "male", "generation": 1},
        headers=admin_h,
    ).json()

    res = client.post(base, json={"message": "It's me"}, headers=an_h)
    assert res.status_code == 200
    request_id = res.json()["id"]

    res = client.post(base, json={}, headers=an_h)
    assert res.status_code == 409
    assert res.json()["code"] == "duplicate_join_request"

    # only the admin reviews requests
    assert client.get(base, headers=an_h).status_code == 404

    res = client.get(base, params={"status": "pending"}, headers=admin_h)
    assert [r["id"] for r in res.json()] == [request_id]

    res = client.get(f"{base}/{request_id}/suggestions", headers=admin_h)
    assert res.status_code == 200
    assert res.json()["request"]["user_id"] == "u-an"
    assert res.json()["possible_matches"][0]["member"]["id"] == member["id"]

    res = client.post(
        f"{base}/{request_id}/handle",
        json={"action": "approve", "link_option": "manual", "member_id": member["id"]},
        headers=admin_h,
    )
    assert res.status_code == 200, res.text
    assert res.json()["request"]["status"] == "approved"
    assert res.json()["linked_member"]["linked_user_id"] == "u-an"

    res = client.get(f"/families/{api_family}", headers=an_h)
    assert res.json()["my_member_id"] == member["id"]

    res = client.post(f"{base}/{request_id}/handle", json={"action": "reject"}, headers=admin_h)
    assert res.status_code == 409
    assert res.json()["code"] == "join_request_closed"


def test_join_request_for_unknown_family(client, api_family):
    res = client.post("/families/missing/join-requests", json={}, headers=auth_headers("u-an"))
    assert res.status_code == 404


def test_handle_rejects_unknown_action(client, api_family):
    res = client.post(f"/families/{api_family}/join-requests", json={}, headers=auth_headers("u-an"))
    request_id = res.json()["id"]

    res = client.post(
        f"/families/{api_family}/join-requests/{request_id}/handle",
        json={"action": "maybe"},
        headers=auth_headers("u-admin"),
    )
    assert res.status_code == 422
