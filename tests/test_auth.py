from datetime import datetime, timedelta, timezone

import jwt
import pytest

from bookshare.auth import AuthService, TokenService, hash_password, verify_password
from bookshare.errors import AuthenticationError, ValidationError


@pytest.fixture
def auth(store, test_settings):
    return AuthService(store, config=test_settings)


def test_password_hash_round_trip():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password(hashed, "secret123")
    assert not verify_password(hashed, "wrong")


def test_token_carries_user_id(test_settings):
    tokens = TokenService(test_settings)
    assert tokens.decode_token(tokens.generate_token("u42")) == "u42"


def test_expired_token_is_rejected(test_settings):
    expired = jwt.encode({"userId": "u42", "exp": datetime.now(timezone.utc) - timedelta(seconds=5)},
                         test_settings.jwt_secret_key, algorithm="HS256")
    with pytest.raises(jwt.ExpiredSignatureError):
        TokenService(test_settings).decode_token(expired)


def test_token_signed_with_other_secret_is_rejected(test_settings):
    forged = jwt.encode({"userId": "u42"}, "other-secret", algorithm="HS256")
    with pytest.raises(jwt.InvalidTokenError):
        TokenService(test_settings).decode_token(forged)


def test_register_and_login(auth):
    token, user = auth.register("alice", "alice@example.com", "secret123")
    assert user.password is None
    assert auth.resolve_user(token).id == user.id

    _, logged_in = auth.login("alice@example.com", "secret123")
    assert logged_in.id == user.id


@pytest.mark.parametrize("username,email,password,message", [
    ("", "a@example.com", "secret123", "All fields are required"),
    ("alice", "a@example.com", "123", "Password should be at least 6"),
    ("al", "a@example.com", "secret123", "Username should be at least 3"),
])
def test_register_validation(auth, username, email, password, message):
    with pytest.raises(ValidationError, match=message):
        auth.register(username, email, password)


def test_register_checks_email_before_username(auth):
    auth.register("alice", "alice@example.com", "secret123")
    with pytest.raises(ValidationError, match="Email already exists"):
        auth.register("alice", "alice@example.com", "secret123")
    with pytest.raises(ValidationError, match="Username already exists"):
        auth.register("alice", "other@example.com", "secret123")


def test_login_with_wrong_password(auth):
    auth.register("alice", "alice@example.com", "secret123")
    with pytest.raises(ValidationError, match="Invalid credentials"):
        auth.login("alice@example.com", "nope-nope")
    with pytest.raises(ValidationError, match="Invalid credentials"):
        auth.login("ghost@example.com", "secret123")


def test_update_password(auth):
    _, user = auth.register("alice", "alice@example.com", "secret123")
    with pytest.raises(AuthenticationError, match="Current password is incorrect"):
        auth.update_password(user.id, "wrong-one", "newsecret", "newsecret")
    with pytest.raises(ValidationError, match="do not match"):
        auth.update_password(user.id, "secret123", "newsecret", "different")

    token, _ = auth.update_password(user.id, "secret123", "newsecret", "newsecret")
    assert token
    auth.login("alice@example.com", "newsecret")


def test_token_for_deleted_user_is_rejected(auth, test_settings):
    token = TokenService(test_settings).generate_token("no-such-user")
    with pytest.raises(AuthenticationError):
        auth.resolve_user(token)
