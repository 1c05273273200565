import logging

import pytest

from vigenere_notes.cipher import InvalidKeyError
from vigenere_notes.domain import AuthError, NotFoundError, ValidationError
from vigenere_notes.services import Storage
from vigenere_notes.utils import extract_bearer_token, hash_password, verify_password

# ── Utilities ─────────────────────────────────────────────────────────────────
def test_password_hash_roundtrip():
    stored = hash_password("hunter22", iterations=1000)
    assert stored.startswith("pbkdf2_sha256$1000$")
    assert verify_password("hunter22", stored)
    assert not verify_password("hunter23", stored)


def test_password_hash_is_salted():
    assert hash_password("same", iterations=1000) != hash_password("same", iterations=1000)


def test_verify_password_rejects_garbage():
    assert not verify_password("x", "not-a-hash")


@pytest.mark.parametrize("header, expected", [
    ("Bearer abc123", "abc123"),
    ("bearer   abc123  ", "abc123"),
    ("abc123", "abc123"),
    ("", None),
    ("   ", None),
    (None, None),
    ("Bearer ", None),
])
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected

# ── Storage ───────────────────────────────────────────────────────────────────
def test_storage_text_crud(db_path):
    store = Storage(db_path)
    user = store.add_user("carol", "hash", "tok")
    item = store.add_text(user.id, "hello")
    assert store.get_text(user.id, item.id).content == "hello"
    assert store.update_text(user.id, item.id, "bye")
    assert [t.content for t in store.list_texts(user.id)] == ["bye"]
    assert store.delete_text(user.id, item.id)
    assert store.get_text(user.id, item.id) is None
    assert not store.delete_text(user.id, item.id)


def test_storage_persists_across_instances(db_path):
    user = Storage(db_path).add_user("dave", "hash", "tok")
    Storage(db_path).add_text(user.id, "kept")
    reopened = Storage(db_path)
    assert reopened.get_user_by_token("tok").username == "dave"
    assert [t.content for t in reopened.list_texts(user.id)] == ["kept"]


def test_storage_duplicate_username(db_path):
    store = Storage(db_path)
    store.add_user("erin", "hash", "t1")
    with pytest.raises(AuthError):
        store.add_user("erin", "hash", "t2")


def test_duplicate_username_is_not_logged_as_error(db_path, caplog):
    store = Storage(db_path)
    store.add_user("erin", "hash", "t1")
    with caplog.at_level(logging.ERROR):
        with pytest.raises(AuthError):
            store.add_user("erin", "hash", "t2")
    assert not [r for r in caplog.records if r.levelno >= logging.ERROR]


def test_storage_history_newest_first(db_path):
    store = Storage(db_path)
    user = store.add_user("frank", "hash", "tok")
    store.add_request(user.id, "GET /text")
    store.add_request(user.id, "POST /text")
    assert [r.endpoint for r in store.list_requests(user.id)] == ["POST /text", "GET /text"]
    assert store.clear_requests(user.id) == 2
    assert store.list_requests(user.id) == []

# ── Auth ──────────────────────────────────────────────────────────────────────
def test_register_and_validate(pim):
    user_id, token = pim.register("alice", "secret1")
    assert pim.auth.validate(f"Bearer {token}") == user_id
    assert pim.auth.validate(token) == user_id


@pytest.mark.parametrize("username, password", [("", "pw"), ("bob", ""), ("  ", "pw"), ("bob", "   ")])
def test_register_requires_credentials(pim, username, password):
    with pytest.raises(ValidationError):
        pim.register(username, password)


def test_login_errors(pim):
    pim.register("alice", "secret1")
    with pytest.raises(AuthError, match="User not found"):
        pim.login("nobody", "secret1")
    with pytest.raises(AuthError, match="Wrong password"):
        pim.login("alice", "wrong")


def test_login_rotates_token(pim):
    _, first = pim.register("alice", "secret1")
    second = pim.login("alice", "secret1")
    assert first != second
    with pytest.raises(AuthError):
        pim.auth.validate(first)
    pim.auth.validate(second)


def test_validate_rejects_missing_and_unknown(pim):
    with pytest.raises(AuthError):
        pim.auth.validate(None)
    with pytest.raises(AuthError):
        pim.auth.validate("Bearer nope")


def test_change_password(pim):
    _, token = pim.register("alice", "secret1")
    new_token = pim.change_password(token, "secret2")
    with pytest.raises(AuthError):
        pim.auth.validate(token)
    pim.auth.validate(new_token)
    with pytest.raises(AuthError):
        pim.login("alice", "secret1")
    pim.login("alice", "secret2")


def test_logout_invalidates_token(pim):
    _, token = pim.register("alice", "secret1")
    pim.logout(token)
    with pytest.raises(AuthError):
        pim.auth.validate(token)

# ── Service facade ────────────────────────────────────────────────────────────
def test_texts_are_isolated_per_user(pim):
    _, alice = pim.register("alice", "secret1")
    _, bob = pim.register("bob", "secret1")
    item = pim.add_text(alice, "private")
    with pytest.raises(NotFoundError):
        pim.get_text(bob, item.id)
    with pytest.raises(NotFoundError):
        pim.update_text(bob, item.id, "hijack")
    with pytest.raises(NotFoundError):
        pim.delete_text(bob, item.id)
    with pytest.raises(NotFoundError):
        pim.encrypt_text(bob, item.id, "key")
    assert pim.list_texts(bob) == []
    assert pim.get_text(alice, item.id).content == "private"


def test_blank_content_rejected(pim):
    _, token = pim.register("alice", "secret1")
    with pytest.raises(ValidationError):
        pim.add_text(token, "   ")
    item = pim.add_text(token, "ok")
    with pytest.raises(ValidationError):
        pim.update_text(token, item.id, "")


def test_encrypt_and_decrypt_text(pim):
    _, token = pim.register("alice", "secret1")
    item = pim.add_text(token, "HELLO")
    assert pim.encrypt_text(token, item.id, "key") == "RIJVS"
    # stored content is never modified
    assert pim.get_text(token, item.id).content == "HELLO"
    stored = pim.add_text(token, "RIJVS")
    assert pim.decrypt_text(token, stored.id, "key") == "HELLO"


def test_cipher_key_checks(pim):
    _, token = pim.register("alice", "secret1")
    item = pim.add_text(token, "HELLO")
    with pytest.raises(ValidationError, match="Key is required"):
        pim.encrypt_text(token, item.id, "  ")
    # blank key is reported before the text lookup
    with pytest.raises(ValidationError):
        pim.decrypt_text(token, 9999, "")
    with pytest.raises(InvalidKeyError):
        pim.encrypt_text(token, item.id, "k3y")


def test_history_records_each_call(pim):
    _, token = pim.register("alice", "secret1")
    item = pim.add_text(token, "hello")
    pim.list_texts(token)
    pim.get_text(token, item.id)
    pim.encrypt_text(token, item.id, "abc")
    endpoints = [r.endpoint for r in pim.history(token)]
    assert endpoints == [
        "POST /encrypt",
        f"GET /text/{item.id}",
        "GET /text",
        "POST /text",
    ]
    assert pim.history(token)[0].endpoint == "GET /requests_history"


def test_clear_history_leaves_only_its_own_record(pim):
    _, token = pim.register("alice", "secret1")
    pim.add_text(token, "hello")
    pim.clear_history(token)
    assert [r.endpoint for r in pim.history(token)] == ["DELETE /requests_history"]
