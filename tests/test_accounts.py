from __future__ import annotations

import pytest

from panelbridge.core.accounts import AccountStore, SessionStore, generate_password, verify_password
from panelbridge.core.types import Role


def test_create_and_authenticate_case_insensitive() -> None:
    store = AccountStore()
    account, password = store.create_account("Alice", Role.ADMIN, "hunter22")

    assert password == "hunter22"
    assert store.authenticate("alice", "hunter22") is account
    assert store.authenticate("ALICE", "wrong") is None
    assert store.authenticate("nobody", "hunter22") is None
    assert "hunter22" not in account.password_hash


def test_duplicate_names_rejected() -> None:
    store = AccountStore()
    store.create_account("Bob")
    with pytest.raises(ValueError):
        store.create_account("bob")


def test_owner_bootstrap_only_once() -> None:
    store = AccountStore()
    password = store.ensure_owner("Owner")
    assert password and len(password) == 16
    assert store.get("owner").role is Role.OWNER
    assert store.ensure_owner("Owner") is None
    assert len(store) == 1


def test_generated_passwords_avoid_lookalikes() -> None:
    for _ in range(20):
        assert not set(generate_password()) & set("0O1lI")


def test_verify_password_handles_garbage_hash() -> None:
    assert verify_password("x", "not-a-hash") is False


def test_sessions_resolve_and_revoke() -> None:
    store = AccountStore()
    account, _ = store.create_account("Mod", password="pw")
    sessions = SessionStore(ttl_hours=1)

    token = sessions.create_session(account)
    assert sessions.resolve(token) is account
    assert sessions.resolve("") is None
    assert sessions.resolve("bogus") is None

    sessions.revoke(token)
    assert sessions.resolve(token) is None


def test_expired_session_rejected() -> None:
    store = AccountStore()
    account, _ = store.create_account("Mod", password="pw")
    sessions = SessionStore(ttl_hours=-1)
    token = sessions.create_session(account)
    assert sessions.resolve(token) is None
