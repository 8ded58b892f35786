import asyncio
import json

import httpx
import pytest

from bookshare.api import create_app
from bookshare.client.api_client import (
    BookshareClient,
    ClientError,
    format_image_data,
    media_type_for,
    validate_book_data,
    validate_password,
)
from bookshare.client.feed import FeedController, FeedReconciler
from bookshare.user import User

DATA_URL = "data:image/png;base64,iVBORw0KGgo="


@pytest.fixture
def asgi_client(db_file, media_host, test_settings):
    """Client talking to an in-process app."""
    app = create_app(config=test_settings, db_file=db_file, media_host=media_host)

    def _make(token=None):
        return BookshareClient(base_url="http://testserver/api", token=token, config=test_settings,
                               transport=httpx.ASGITransport(app=app))
    return _make


def mock_client(handler, test_settings, token="t0k"):
    return BookshareClient(base_url="http://testserver/api/", token=token, config=test_settings,
                           transport=httpx.MockTransport(handler))


def test_validate_book_data():
    assert validate_book_data("Dune", "good", 5, DATA_URL) is None
    assert validate_book_data("Dune", "", 5, DATA_URL)["message"] == "Please fill in all fields"
    assert validate_book_data("Dune", "good", 0, DATA_URL) is not None


@pytest.mark.parametrize("current,new,confirm,field", [
    ("", "newsecret", "newsecret", "all"),
    ("old", "short", "short", "password"),
    ("old", "newsecret", "other123", "passwordConfirm"),
])
def test_validate_password(current, new, confirm, field):
    assert validate_password(current, new, confirm)["field"] == field


def test_validate_password_ok():
    assert validate_password("old", "newsecret", "newsecret") is None


def test_image_helpers():
    assert media_type_for("cover.png") == "image/png"
    assert media_type_for("notes.unknown") == "image/jpeg"
    assert format_image_data("cover.png", b"") is None
    data = format_image_data("cover.png", b"\x89PNG")
    assert data["uri"] == "cover.png"
    assert data["dataUrl"].startswith("data:image/png;base64,")


def test_fetch_page_sends_query_and_parses_page(test_settings):
    seen = {}

    def handler(request):
        seen["url"] = request.url
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"status": "success", "data": {
            "books": [{"_id": "b1", "title": "Dune", "caption": "c", "rating": 5, "image": "i",
                       "user": {"_id": "u1", "username": "alice", "profileImage": "p"},
                       "createdAt": "2024-01-01T00:00:00+00:00"}],
            "currentPage": 2, "totalBooks": 3, "totalPages": 2}})

    client = mock_client(handler, test_settings)
    page = asyncio.run(client.fetch_page(2, 2, search="du", sort="-rating"))

    assert seen["url"].path == "/api/books"
    assert dict(seen["url"].params) == {"page": "2", "limit": "2", "title": "du", "sort": "-rating"}
    assert seen["auth"] == "Bearer t0k"
    assert page.page == 2
    assert page.total_pages == 2
    assert page.books[0].username == "alice"


def test_fetch_page_omits_empty_search(test_settings):
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"status": "success", "data": {"books": []}})

    page = asyncio.run(mock_client(handler, test_settings).fetch_page(1, 2))
    assert seen["params"] == {"page": "1", "limit": "2"}
    assert page.page == 1
    assert page.total_pages == 0


def test_error_envelope_becomes_client_error(test_settings):
    def handler(request):
        return httpx.Response(401, json={"status": "error", "message": "Unauthorized"})

    with pytest.raises(ClientError) as exc:
        asyncio.run(mock_client(handler, test_settings).delete_book("b1"))
    assert exc.value.message == "Unauthorized"
    assert exc.value.status_code == 401


def test_unreadable_error_uses_fallback_message(test_settings):
    def handler(request):
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(ClientError, match="Failed to fetch profile"):
        asyncio.run(mock_client(handler, test_settings).get_profile())


def test_network_failure_uses_fallback_message(test_settings):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ClientError, match="Failed to fetch books"):
        asyncio.run(mock_client(handler, test_settings).fetch_page(1, 2))


def test_create_book_validates_before_sending(test_settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(201, json={})

    with pytest.raises(ClientError, match="Please fill in all fields"):
        asyncio.run(mock_client(handler, test_settings).create_book("Dune", "", 5, DATA_URL))
    assert calls == []


def test_update_profile_sends_only_changed_fields(test_settings, tmp_path):
    seen = {}

    def handler(request):
        seen["body"] = request.content.decode("latin-1")
        return httpx.Response(200, json={"status": "success", "data": {"user": {
            "_id": "u1", "username": "alice", "email": "new@example.com"}}})

    photo = tmp_path / "me.png"
    photo.write_bytes(b"\x89PNG-bytes")
    current = User(id="u1", username="alice", email="alice@example.com")

    user = asyncio.run(mock_client(handler, test_settings).update_profile(
        current, username="alice", email="new@example.com", photo_path=str(photo)))

    assert user.email == "new@example.com"
    assert 'name="email"' in seen["body"]
    assert 'name="username"' not in seen["body"]
    assert 'filename="me.png"' in seen["body"]


def test_update_password_stores_new_token(test_settings):
    def handler(request):
        assert json.loads(request.content) == {
            "passwordCurrent": "secret123", "password": "newsecret", "passwordConfirm": "newsecret"}
        return httpx.Response(200, json={"status": "success", "token": "fresh", "user": {
            "id": "u1", "username": "alice", "email": "alice@example.com"}})

    client = mock_client(handler, test_settings)
    token, _ = asyncio.run(client.update_password("secret123", "newsecret", "newsecret"))
    assert token == "fresh"
    assert client.token == "fresh"


def test_round_trip_against_app(asgi_client):
    async def scenario():
        async with asgi_client() as client:
            token, user = await client.register("alice", "alice@example.com", "secret123")
            assert client.token == token
            for title in ["one", "two", "three"]:
                await client.create_book(title, "nice", 4, DATA_URL)
            mine = await client.fetch_user_books()
            profile = await client.get_profile()
            return user, mine, profile

    user, mine, profile = asyncio.run(scenario())
    assert [b.title for b in mine] == ["three", "two", "one"]
    assert profile.id == user.id


def test_feed_controller_pages_through_app(asgi_client):
    async def scenario():
        async with asgi_client() as client:
            await client.register("alice", "alice@example.com", "secret123")
            for title in ["one", "two", "three"]:
                await client.create_book(title, "nice", 3, DATA_URL)
            controller = FeedController(FeedReconciler(client.fetch_page, page_size=2), debounce_seconds=0)
            await controller.start()
            await controller.load_more()
            return controller.state

    state = asyncio.run(scenario())
    assert [b.title for b in state.books] == ["three", "two", "one"]
    assert state.page == 2
    assert state.has_more is False
