import pytest

from learnchat.application.services.auth_service import (
    SessionManager,
    SessionState,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from learnchat.application.services.user_service import (
    create_user_with_password,
    regenerate_password,
)
from learnchat.core.exceptions import EntityNotFoundException
from learnchat.domain.schemas.user import UserCreate
from learnchat.infrastructure.store import USERS

from conftest import make_draft


def test_empty_store_gets_the_seed_admin(sessions, repo):
    users = repo.list_users(fresh=True)
    assert len(users) == 1
    admin = users[0]
    assert admin.email == "admin@company.com"
    assert admin.is_admin
    assert admin.employee_id == "ADMIN001"
    assert admin.created_by == "system"
    assert verify_password("admin123", admin.password_hash)


def test_seed_admin_runs_only_on_empty_store(sessions, repo):
    sessions.seed_admin()
    SessionManager(repo).bootstrap()
    assert len(repo.list_users(fresh=True)) == 1


def test_seed_admin_skipped_when_users_exist(repo):
    repo.create_user(make_draft(1))
    SessionManager(repo).bootstrap()
    assert repo.find_user_by_email("admin@company.com", fresh=True) is None


def test_login_is_case_insensitive_and_hides_the_hash(sessions):
    assert sessions.login("ADMIN@COMPANY.COM", "admin123") is True
    assert sessions.state == SessionState.AUTHENTICATED

    user = sessions.current_user()
    assert user.email == "admin@company.com"
    assert not hasattr(user, "password_hash")
    assert "password_hash" not in user.model_dump()


def test_wrong_password_and_unknown_email_fail_the_same_way(sessions):
    assert sessions.login("admin@company.com", "nope") is False
    assert sessions.login("ghost@company.com", "admin123") is False
    assert sessions.current_user() is None
    assert sessions.state == SessionState.ANONYMOUS


def test_failed_login_keeps_the_existing_session(sessions):
    sessions.login("admin@company.com", "admin123")
    assert sessions.login("admin@company.com", "wrong") is False
    assert sessions.current_user().email == "admin@company.com"
    assert sessions.state == SessionState.AUTHENTICATED


def test_login_sees_users_created_by_another_actor(sessions, other_repo):
    other_repo.create_user(make_draft(5))
    assert sessions.login("user5@company.com", "secret5") is True


def test_session_survives_restart(sessions, repo):
    sessions.login("admin@company.com", "admin123")

    restarted = SessionManager(repo)
    restarted.bootstrap()
    assert restarted.current_user().email == "admin@company.com"
    assert restarted.state == SessionState.AUTHENTICATED


def test_restore_discards_session_of_deleted_user(sessions, repo, other_repo):
    user = repo.create_user(make_draft(1))
    sessions.login("user1@company.com", "secret1")
    other_repo.delete_user(user.id)
    # Simulate a stale persisted record left behind
    repo.save_session(user.public())

    restarted = SessionManager(repo)
    restarted.restore()
    assert restarted.current_user() is None
    assert repo.load_session() is None


def test_deleting_the_active_user_ends_the_session(sessions, repo):
    user = repo.create_user(make_draft(1))
    sessions.login("user1@company.com", "secret1")

    repo.delete_user(user.id)

    assert sessions.current_user() is None
    assert sessions.state == SessionState.ANONYMOUS
    assert repo.load_session() is None


def test_logout(sessions, repo):
    sessions.login("admin@company.com", "admin123")
    sessions.logout()
    assert sessions.current_user() is None
    assert repo.load_session() is None


def test_reset_leaves_only_the_seed_admin(sessions, repo):
    repo.create_user(make_draft(1))
    sessions.login("admin@company.com", "admin123")
    sessions.reset()
    assert [u.email for u in repo.list_users(fresh=True)] == ["admin@company.com"]
    assert sessions.current_user() is None


def test_verify_password_rejects_missing_or_malformed_hash():
    assert verify_password("x", None) is False
    assert verify_password("x", "") is False
    assert verify_password("x", "not-a-bcrypt-hash") is False
    assert verify_password("x", hash_password("x")) is True


def test_access_token_round_trip():
    token = create_access_token({"sub": "abc", "admin": True})
    payload = decode_access_token(token)
    assert payload["sub"] == "abc"
    assert payload["admin"] is True
    assert decode_access_token("not.a.token") is None


def test_create_user_with_password_returns_cleartext_once(repo, issuer):
    body = UserCreate(email="New@Company.com", name="New", employee_id="EMP100")
    user, generated = create_user_with_password(repo, issuer, body, "secure", created_by="admin")

    assert generated.email == "new@company.com"
    assert len(generated.password) == 12
    assert verify_password(generated.password, user.password_hash)
    stored = repo.store.read(USERS)[0]
    assert generated.password not in stored.values()


def test_regenerate_password(repo, issuer):
    body = UserCreate(email="a@company.com", name="A", employee_id="EMP100")
    user, first = create_user_with_password(repo, issuer, body, "simple", created_by="admin")

    second = regenerate_password(repo, issuer, user.id, "simple")
    stored = repo.get_user(user.id, fresh=True)
    assert verify_password(second.password, stored.password_hash)
    assert stored.password_generated_at >= user.password_generated_at


def test_regenerate_password_unknown_user(repo, issuer):
    with pytest.raises(EntityNotFoundException):
        regenerate_password(repo, issuer, "missing", "simple")
