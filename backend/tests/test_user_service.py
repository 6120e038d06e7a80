"""Identity service: registration, login, status, profile and search."""

import hashlib
from datetime import timedelta

import pytest

from partnerhub.auth.models import CallerContext, User, UserStatus, UserUpdate
from partnerhub.errors import (
    AuthError,
    ConflictError,
    ErrorCode,
    InternalError,
    LockedError,
    NotFoundError,
    ValidationError,
)

PASSWORD = "Passw0rd1"


def _stored_user(database, user_id):
    with database.session() as session:
        return session.get(User, user_id)


class TestRegister:

    def test_returns_new_id(self, user_service):
        first = user_service.register("alice", PASSWORD, PASSWORD)
        second = user_service.register("bob_1", PASSWORD, PASSWORD)
        assert first != second

    def test_stores_salted_md5_hex(self, user_service, database):
        user_id = user_service.register("alice", PASSWORD, PASSWORD)
        expected = hashlib.md5(("symm" + PASSWORD).encode()).hexdigest()
        assert _stored_user(database, user_id).password == expected

    def test_password_mismatch(self, user_service):
        with pytest.raises(ValidationError) as exc:
            user_service.register("alice", PASSWORD, PASSWORD + "x")
        assert exc.value.code == ErrorCode.PASSWORD_ERROR

    def test_duplicate_username(self, user_service):
        user_service.register("alice", PASSWORD, PASSWORD)
        with pytest.raises(ConflictError):
            user_service.register("alice", PASSWORD, PASSWORD)

    @pytest.mark.parametrize("username", ["abc", "a" * 21, "bad name", "dash-ed", ""])
    def test_malformed_username(self, user_service, username):
        with pytest.raises(ValidationError):
            user_service.register(username, PASSWORD, PASSWORD)


class TestLogin:

    def test_round_trip_returns_sanitized_identity(self, user_service):
        user_id = user_service.register("alice", PASSWORD, PASSWORD)
        user = user_service.login("alice", PASSWORD)
        assert user.id == user_id
        assert user.username == "alice"
        assert "password" not in user.model_dump()

    def test_unknown_username(self, user_service):
        with pytest.raises(NotFoundError) as exc:
            user_service.login("nobody", PASSWORD)
        assert exc.value.code == ErrorCode.ACCOUNT_NOT_FOUND

    def test_wrong_password(self, user_service, alice):
        with pytest.raises(AuthError) as exc:
            user_service.login("alice", "Wrong1234")
        assert exc.value.code == ErrorCode.PASSWORD_ERROR

    def test_disabled_account(self, user_service, alice):
        user_service.set_account_status(alice.user_id, UserStatus.DISABLED)
        with pytest.raises(LockedError):
            user_service.login("alice", PASSWORD)

    def test_credentials_checked_before_status(self, user_service, alice):
        user_service.set_account_status(alice.user_id, UserStatus.DISABLED)
        with pytest.raises(AuthError):
            user_service.login("alice", "Wrong1234")

    def test_refreshes_last_login(self, user_service, alice):
        assert user_service.get_user(alice.user_id).last_login_at is None
        user_service.login("alice", PASSWORD)
        assert user_service.get_user(alice.user_id).last_login_at is not None


class TestTokens:

    def test_token_resolves_to_caller(self, user_service, alice):
        token = user_service.create_access_token(user_service.login("alice", PASSWORD))
        caller = user_service.resolve_caller(token)
        assert caller == CallerContext(user_id=alice.user_id, username="alice", is_admin=False)

    def test_claims_carry_id_and_username(self, user_service, alice):
        token = user_service.create_access_token(user_service.get_user(alice.user_id))
        payload = user_service.verify_token(token)
        assert payload["sub"] == str(alice.user_id)
        assert payload["username"] == "alice"

    def test_expired_token(self, user_service, alice):
        user = user_service.get_user(alice.user_id)
        token = user_service.create_access_token(user, expires_delta=timedelta(seconds=-10))
        assert user_service.resolve_caller(token) is None

    def test_garbage_token(self, user_service):
        assert user_service.resolve_caller("not-a-jwt") is None

    def test_disabled_account_token(self, user_service, alice):
        token = user_service.create_access_token(user_service.get_user(alice.user_id))
        user_service.set_account_status(alice.user_id, UserStatus.DISABLED)
        assert user_service.resolve_caller(token) is None


class TestAccountStatus:

    def test_is_idempotent(self, user_service, alice):
        user_service.set_account_status(alice.user_id, UserStatus.DISABLED)
        user_service.set_account_status(alice.user_id, UserStatus.DISABLED)
        assert user_service.get_user(alice.user_id).status == UserStatus.DISABLED

    def test_unknown_user(self, user_service):
        with pytest.raises(InternalError):
            user_service.set_account_status(999, UserStatus.ENABLED)

    def test_unknown_status(self, user_service, alice):
        with pytest.raises(ValidationError):
            user_service.set_account_status(alice.user_id, 7)


class TestUpdateUser:

    def test_updates_only_supplied_fields(self, user_service, alice):
        user_service.update_user(UserUpdate(id=alice.user_id, phone="123"), alice)
        user_service.update_user(UserUpdate(id=alice.user_id, profile="hi"), alice)
        user = user_service.get_user(alice.user_id)
        assert user.phone == "123"
        assert user.profile == "hi"

    def test_other_user_rejected(self, user_service, alice, bob):
        with pytest.raises(AuthError):
            user_service.update_user(UserUpdate(id=bob.user_id, phone="123"), alice)

    def test_admin_may_edit_others(self, user_service, alice, admin):
        user_service.update_user(UserUpdate(id=alice.user_id, tags=["java"]), admin)
        assert user_service.get_user(alice.user_id).tags == ["java"]

    def test_empty_patch(self, user_service, alice):
        with pytest.raises(ValidationError):
            user_service.update_user(UserUpdate(id=alice.user_id), alice)


class TestSearch:

    @pytest.fixture
    def tagged(self, user_service, make_user):
        users = {
            "alice": ["java", "python"],
            "bob_1": ["python"],
            "carol": ["java", "男"],
        }
        for username, tags in users.items():
            caller = make_user(username)
            user_service.update_user(UserUpdate(id=caller.user_id, tags=tags), caller)

    def test_by_tags_requires_every_tag(self, user_service, tagged):
        page = user_service.search_by_tags(["java", "python"])
        assert [u.username for u in page.records] == ["alice"]

    def test_by_single_tag(self, user_service, tagged):
        page = user_service.search_by_tags(["java"])
        assert {u.username for u in page.records} == {"alice", "carol"}

    def test_by_non_ascii_tag(self, user_service, tagged):
        page = user_service.search_by_tags(["男"])
        assert [u.username for u in page.records] == ["carol"]

    def test_tag_is_not_substring_matched(self, user_service, tagged):
        assert user_service.search_by_tags(["jav"]).records == []

    def test_by_tags_empty(self, user_service):
        with pytest.raises(ValidationError):
            user_service.search_by_tags([])

    def test_results_are_sanitized(self, user_service, tagged):
        for user in user_service.search_by_tags(["python"]).records:
            assert "password" not in user.model_dump()

    def test_by_username(self, user_service, make_user):
        for name in ["alice", "alison", "bob_1"]:
            make_user(name)
        page = user_service.search_by_username("ali", page=1, page_size=1)
        assert page.total == 2
        assert page.pages == 2
        assert [u.username for u in page.records] == ["alice"]

    def test_by_username_blank(self, user_service):
        with pytest.raises(ValidationError):
            user_service.search_by_username("", page=1, page_size=10)

    def test_paginate(self, user_service, make_user):
        for name in ["alice", "bob_1", "carol"]:
            make_user(name)
        page = user_service.paginate(page=2, page_size=2)
        assert page.total == 3
        assert page.current == 2
        assert [u.username for u in page.records] == ["carol"]

    def test_paginate_requires_positive_page(self, user_service):
        with pytest.raises(ValidationError):
            user_service.paginate(page=0, page_size=10)
