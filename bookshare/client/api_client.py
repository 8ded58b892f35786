import logging
import mimetypes
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx

from bookshare.book import Book, FeedPage
from bookshare.config import Settings, settings as default_settings
from bookshare.services.http_client import OptimizedHTTPClient
from bookshare.services.media_host import to_data_url
from bookshare.user import User
from bookshare.utils.validators import UserValidator

logger = logging.getLogger(__name__)


class ClientError(Exception):
    """API çağrısı başarısız oldu. message, sunucu zarfındaki mesajdır."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def validate_book_data(title: Optional[str], caption: Optional[str], rating: Any,
                       image: Optional[str]) -> Optional[Dict[str, str]]:
    if not title or not caption or not image or not rating:
        return {"field": "all", "message": "Please fill in all fields"}
    return None


def validate_password(password_current: Optional[str], password: Optional[str],
                      password_confirm: Optional[str], min_length: int = 6) -> Optional[Dict[str, str]]:
    if not password_current or not password or not password_confirm:
        return {"field": "all", "message": "Please fill in all password fields"}
    if not UserValidator.is_valid_password(password, min_length):
        return {"field": "password", "message": f"Password should be at least {min_length} characters long"}
    if password != password_confirm:
        return {"field": "passwordConfirm", "message": "Password and password confirmation do not match"}
    return None


def media_type_for(path: str) -> str:
    """Dosya uzantısından görsel türü; bilinmiyorsa image/jpeg."""
    guessed, _ = mimetypes.guess_type(path)
    return guessed if guessed and guessed.startswith("image") else "image/jpeg"


def format_image_data(path: str, data: bytes) -> Optional[Dict[str, str]]:
    """Seçilen görselden yükleme için data URL hazırla."""
    if not data:
        return None
    return {"uri": path, "dataUrl": to_data_url(data, media_type_for(path))}


class BookshareClient:
    """Bookshare REST API'si için asenkron istemci."""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 config: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        config = config or default_settings
        self.base_url = (base_url or config.client_api_url).rstrip("/")
        self.token = token
        self.min_password_length = config.min_password_length
        self._http = OptimizedHTTPClient(timeout=config.client_timeout, transport=transport)

    async def close(self) -> None:
        await self._http.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def _request(self, method: str, path: str, fallback: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._http.request(method, f"{self.base_url}{path}", headers=self._headers(), **kwargs)
        except httpx.RequestError as exc:
            logger.warning("%s %s başarısız: %s", method, path, exc)
            raise ClientError(fallback) from exc
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400:
            raise ClientError(body.get("message") or body.get("error") or fallback, response.status_code)
        return body

    # ------------------------- Kimlik ------------------------- #
    async def register(self, username: str, email: str, password: str) -> Tuple[str, User]:
        body = await self._request("POST", "/auth/register", "Registration failed",
                                   json={"username": username, "email": email, "password": password})
        self.token = body["token"]
        return self.token, User.from_dict(body["user"])

    async def login(self, email: str, password: str) -> Tuple[str, User]:
        body = await self._request("POST", "/auth/login", "Login failed",
                                   json={"email": email, "password": password})
        self.token = body["token"]
        return self.token, User.from_dict(body["user"])

    # ------------------------- Kitaplar ------------------------- #
    async def fetch_page(self, page: int, page_size: int, search: Optional[str] = None,
                         sort: Optional[str] = None) -> FeedPage:
        params: Dict[str, Any] = {"page": page, "limit": page_size}
        if search:
            params["title"] = search
        if sort:
            params["sort"] = sort
        body = await self._request("GET", "/books", "Failed to fetch books", params=params)
        return FeedPage.from_dict(body.get("data") or {}, default_page=page)

    async def fetch_user_books(self) -> List[Book]:
        body = await self._request("GET", "/books/user", "Failed to fetch user books")
        return [Book.from_dict(b) for b in body.get("data") or []]

    async def create_book(self, title: str, caption: str, rating: int, image: str) -> Book:
        problem = validate_book_data(title, caption, rating, image)
        if problem:
            raise ClientError(problem["message"])
        body = await self._request("POST", "/books", "Something went wrong",
                                   json={"title": title, "caption": caption, "rating": str(rating), "image": image})
        return Book.from_dict(body["data"])

    async def delete_book(self, book_id: str) -> None:
        await self._request("DELETE", f"/books/{book_id}", "Failed to delete book")

    # ------------------------- Profil ------------------------- #
    async def get_profile(self) -> User:
        body = await self._request("GET", "/users/profile", "Failed to fetch profile")
        return User.from_dict(body["data"])

    async def update_profile(self, current_user: User, username: Optional[str] = None,
                             email: Optional[str] = None, photo_path: Optional[str] = None) -> User:
        """Yalnızca değişen alanları gönder."""
        form: Dict[str, str] = {}
        if username and username != current_user.username:
            form["username"] = username
        if email and email != current_user.email:
            form["email"] = email
        files = None
        if photo_path:
            path = Path(photo_path)
            files = {"photo": (path.name, path.read_bytes(), media_type_for(photo_path))}
        body = await self._request("PATCH", "/users/update-me", "Failed to update profile",
                                   data=form, files=files)
        return User.from_dict(body["data"]["user"])

    async def update_password(self, password_current: str, password: str, password_confirm: str) -> Tuple[str, User]:
        problem = validate_password(password_current, password, password_confirm, self.min_password_length)
        if problem:
            raise ClientError(problem["message"])
        body = await self._request("PATCH", "/users/updateMyPassword", "Failed to update password",
                                   json={"passwordCurrent": password_current, "password": password,
                                         "passwordConfirm": password_confirm})
        self.token = body["token"]
        return self.token, User.from_dict(body["user"])
