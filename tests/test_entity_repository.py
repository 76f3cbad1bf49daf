from datetime import datetime, timezone

import pytest

from learnchat.core.exceptions import (
    DuplicateIdentityException,
    DuplicateResponseException,
    EntityNotFoundException,
    StorageFailureException,
)
from learnchat.domain.models.partition import Partition
from learnchat.domain.schemas.group import GroupCreate
from learnchat.domain.schemas.message import MCQPayload, MCQResponse, MessageDraft, MessageType
from learnchat.domain.schemas.user import UserRead
from learnchat.infrastructure.repositories.entity_repository import StoreEntityRepository
from learnchat.infrastructure.store import MESSAGES, SESSION, USERS

from conftest import make_draft, make_store


def _mcq_draft(group_id, sender_id="admin"):
    payload = MCQPayload(question="2 + 2?", options=["3", "4", "5"], correct_answer="4")
    return MessageDraft(
        sender_id=sender_id,
        sender_name="Admin",
        content=payload.to_content(),
        type=MessageType.MCQ,
        group_id=group_id,
    )


def _response(message, user_id, answer="4", rid="r1"):
    return MCQResponse(
        id=rid,
        message_id=message.id,
        user_id=user_id,
        user_name="Someone",
        user_email="someone@company.com",
        group_id=message.group_id,
        selected_answer=answer,
        timestamp=datetime.now(timezone.utc),
        is_correct=answer == "4",
    )


# ── Users ────────────────────────────────────────────────────────────


def test_create_user_assigns_id_and_created_at(repo):
    user = repo.create_user(make_draft(1, email="  Mixed.Case@Company.com "))
    assert user.id
    assert user.created_at is not None
    assert user.email == "mixed.case@company.com"
    assert user.groups == []


def test_duplicate_email_is_case_insensitive(repo):
    repo.create_user(make_draft(1, email="ana@company.com"))
    with pytest.raises(DuplicateIdentityException):
        repo.create_user(make_draft(2, email="ANA@Company.COM"))
    assert len(repo.list_users()) == 1


def test_duplicate_employee_id_is_rejected(repo):
    repo.create_user(make_draft(1, employee_id="EMP-9"))
    with pytest.raises(DuplicateIdentityException):
        repo.create_user(make_draft(2, employee_id="EMP-9"))


def test_employee_id_lookup_is_case_sensitive(repo):
    repo.create_user(make_draft(1, employee_id="emp001"))
    assert repo.find_user_by_employee_id("emp001") is not None
    assert repo.find_user_by_employee_id("EMP001") is None
    # Different case is a different employee id
    repo.create_user(make_draft(2, employee_id="EMP001"))


def test_find_user_by_email_ignores_case(repo):
    user = repo.create_user(make_draft(1))
    assert repo.find_user_by_email("USER1@COMPANY.COM").id == user.id


def test_bulk_create_skips_internal_and_existing_duplicates(repo):
    repo.create_user(make_draft(1))
    drafts = [
        make_draft(2),
        make_draft(3),
        make_draft(4, email="USER2@company.com"),  # collides with draft 2
        make_draft(5, employee_id="EMP001"),  # collides with the existing user
        make_draft(6),
    ]
    result = repo.create_users_bulk(drafts)

    assert [u.email for u in result.created] == [
        "user2@company.com",
        "user3@company.com",
        "user6@company.com",
    ]
    assert [d.name for d in result.skipped] == ["User 4", "User 5"]
    assert len(repo.list_users(fresh=True)) == 4


def test_update_user(repo):
    user = repo.create_user(make_draft(1))
    updated = repo.update_user(user.id, {"name": "Renamed", "location": "Porto"})
    assert updated.name == "Renamed"
    assert repo.get_user(user.id, fresh=True).location == "Porto"


def test_update_user_cannot_steal_an_email(repo):
    repo.create_user(make_draft(1))
    other = repo.create_user(make_draft(2))
    with pytest.raises(DuplicateIdentityException):
        repo.update_user(other.id, {"email": "USER1@company.com"})


def test_update_missing_user(repo):
    with pytest.raises(EntityNotFoundException):
        repo.update_user("missing", {"name": "x"})


def test_set_password_stamps_generation_time(repo):
    user = repo.create_user(make_draft(1, password_generated_at=None))
    rotated = repo.set_password(user.id, "new-hash")
    assert rotated.password_hash == "new-hash"
    assert rotated.password_generated_at is not None


def test_delete_user_removes_membership_everywhere(repo):
    user = repo.create_user(make_draft(1))
    keeper = repo.create_user(make_draft(2))
    g1 = repo.create_group(GroupCreate(name="One"), created_by="admin")
    g2 = repo.create_group(GroupCreate(name="Two"), created_by="admin")
    for g in (g1, g2):
        repo.add_member(g.id, user.id)
        repo.add_member(g.id, keeper.id)

    repo.delete_user(user.id)

    groups = repo.list_groups(fresh=True)
    assert all(user.id not in g.members for g in groups)
    assert all(keeper.id in g.members for g in groups)
    assert repo.get_user(user.id, fresh=True) is None


def test_delete_user_clears_matching_session_and_notifies(repo):
    user = repo.create_user(make_draft(1))
    repo.save_session(user.public())
    deleted = []
    repo.add_user_deleted_listener(deleted.append)

    repo.delete_user(user.id)

    assert repo.load_session() is None
    assert deleted == [user.id]


def test_delete_other_user_keeps_session(repo):
    me = repo.create_user(make_draft(1))
    other = repo.create_user(make_draft(2))
    repo.save_session(me.public())
    repo.delete_user(other.id)
    assert repo.load_session().id == me.id


def test_delete_missing_user(repo):
    with pytest.raises(EntityNotFoundException):
        repo.delete_user("missing")


# ── Groups ───────────────────────────────────────────────────────────


def test_membership_is_bidirectional(repo):
    user = repo.create_user(make_draft(1))
    group = repo.create_group(GroupCreate(name="Cohort A", description="First"), created_by="admin")

    repo.add_member(group.id, user.id)
    assert user.id in repo.get_group(group.id, fresh=True).members
    assert group.id in repo.get_user(user.id, fresh=True).groups

    repo.remove_member(group.id, user.id)
    assert user.id not in repo.get_group(group.id, fresh=True).members
    assert group.id not in repo.get_user(user.id, fresh=True).groups


def test_add_member_is_idempotent(repo):
    user = repo.create_user(make_draft(1))
    group = repo.create_group(GroupCreate(name="A"), created_by="admin")
    repo.add_member(group.id, user.id)
    repo.add_member(group.id, user.id)
    assert repo.get_group(group.id).members == [user.id]
    assert repo.get_user(user.id).groups == [group.id]


def test_add_member_unknown_ids(repo):
    user = repo.create_user(make_draft(1))
    group = repo.create_group(GroupCreate(name="A"), created_by="admin")
    with pytest.raises(EntityNotFoundException):
        repo.add_member("missing", user.id)
    with pytest.raises(EntityNotFoundException):
        repo.add_member(group.id, "missing")
    assert repo.get_group(group.id, fresh=True).members == []


def test_failed_membership_write_leaves_both_sides_untouched(db_url):
    store = make_store(db_url)
    repo = StoreEntityRepository(store)
    user = repo.create_user(make_draft(1))
    group = repo.create_group(GroupCreate(name="A"), created_by="admin")

    store.max_partition_bytes = 10
    with pytest.raises(StorageFailureException):
        repo.add_member(group.id, user.id)

    store.max_partition_bytes = 5_000_000
    assert repo.get_group(group.id, fresh=True).members == []
    assert repo.get_user(user.id, fresh=True).groups == []


def test_groups_for_user_includes_created_groups(repo):
    user = repo.create_user(make_draft(1))
    member_of = repo.create_group(GroupCreate(name="Member"), created_by="admin")
    created = repo.create_group(GroupCreate(name="Mine"), created_by=user.id)
    repo.create_group(GroupCreate(name="Other"), created_by="admin")
    repo.add_member(member_of.id, user.id)

    names = sorted(g.name for g in repo.groups_for_user(user.id))
    assert names == ["Member", "Mine"]
    assert created.created_by == user.id


# ── Messages & responses ─────────────────────────────────────────────


def test_append_message_requires_existing_group(repo):
    with pytest.raises(EntityNotFoundException):
        repo.append_message(MessageDraft(sender_id="a", sender_name="A", content="hi", group_id="nope"))


def test_messages_are_listed_per_group_in_order(repo):
    g1 = repo.create_group(GroupCreate(name="One"), created_by="admin")
    g2 = repo.create_group(GroupCreate(name="Two"), created_by="admin")
    for text in ("first", "second"):
        repo.append_message(MessageDraft(sender_id="a", sender_name="A", content=text, group_id=g1.id))
    repo.append_message(MessageDraft(sender_id="a", sender_name="A", content="elsewhere", group_id=g2.id))

    assert [m.content for m in repo.list_messages_for_group(g1.id)] == ["first", "second"]
    assert repo.list_messages_for_group(g1.id)[0].type == "text"


def test_message_timestamp_survives_the_store(repo, other_repo):
    group = repo.create_group(GroupCreate(name="One"), created_by="admin")
    message = repo.append_message(_mcq_draft(group.id))

    other_repo.reload([MESSAGES])
    loaded = other_repo.get_message(message.id)
    assert loaded.timestamp == message.timestamp
    assert loaded.mcq().correct_answer == "4"


def test_second_response_for_same_pair_is_rejected(repo):
    group = repo.create_group(GroupCreate(name="One"), created_by="admin")
    message = repo.append_message(_mcq_draft(group.id))

    repo.append_response(_response(message, "u1", answer="4", rid="r1"))
    with pytest.raises(DuplicateResponseException):
        repo.append_response(_response(message, "u1", answer="3", rid="r2"))

    responses = repo.responses_for_message(message.id)
    assert len(responses) == 1
    assert responses[0].selected_answer == "4"


def test_duplicate_check_sees_other_actor_writes(repo, other_repo):
    group = repo.create_group(GroupCreate(name="One"), created_by="admin")
    message = repo.append_message(_mcq_draft(group.id))

    other_repo.append_response(_response(message, "u1", rid="r1"))
    # repo's snapshot has not been refreshed, the write path still reads fresh
    with pytest.raises(DuplicateResponseException):
        repo.append_response(_response(message, "u1", rid="r2"))


def test_responses_for_group_and_find_response(repo):
    group = repo.create_group(GroupCreate(name="One"), created_by="admin")
    message = repo.append_message(_mcq_draft(group.id))
    repo.append_response(_response(message, "u1", rid="r1"))
    repo.append_response(_response(message, "u2", answer="5", rid="r2"))

    assert len(repo.responses_for_group(group.id)) == 2
    assert repo.find_response(message.id, "u2").is_correct is False
    assert repo.find_response(message.id, "u3") is None


# ── Snapshots & failures ─────────────────────────────────────────────


def test_snapshot_reads_are_stale_until_reload(repo, other_repo):
    other_repo.create_user(make_draft(1))
    assert repo.list_users() == []
    assert repo.reload([USERS]) is True
    assert len(repo.list_users()) == 1


def test_read_failure_falls_back_to_last_snapshot(repo, store):
    repo.create_user(make_draft(1))
    db = store.session_factory()
    db.get(Partition, USERS).payload = "garbage"
    db.commit()
    db.close()

    assert [u.email for u in repo.list_users(fresh=True)] == ["user1@company.com"]
    assert repo.reload([USERS]) is False
    assert len(repo.list_users()) == 1


def test_write_failure_leaves_snapshot_unchanged(repo, store):
    repo.create_user(make_draft(1))
    store.max_partition_bytes = 10
    with pytest.raises(StorageFailureException):
        repo.create_user(make_draft(2))
    assert len(repo.list_users()) == 1


def test_session_round_trip(repo):
    user = repo.create_user(make_draft(1))
    repo.save_session(user.public())
    restored = repo.load_session()
    assert isinstance(restored, UserRead)
    assert restored.id == user.id
    assert "password_hash" not in repo.store.read(SESSION)[0]
    repo.clear_session()
    assert repo.load_session() is None


def test_reset_clears_everything(repo):
    repo.create_user(make_draft(1))
    repo.create_group(GroupCreate(name="A"), created_by="admin")
    repo.reset()
    assert repo.list_users(fresh=True) == []
    assert repo.list_groups(fresh=True) == []
