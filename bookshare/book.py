from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


class Book:
    """Akıştaki tek bir kitap önerisini temsil eder."""

    def __init__(self, id: str, title: str, caption: str, rating: int, image: str,
                 user_id: str, username: str | None = None, profile_image: str | None = None,
                 created_at: str | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.caption = caption.strip()
        self.rating = int(rating)
        self.image = image
        # Oluşturan kullanıcı (görünen ad ve avatar akış için kopyalanır)
        self.user_id = user_id
        self.username = username
        self.profile_image = profile_image
        self.created_at = created_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} ({self.rating}/5) by {self.username or self.user_id}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Book):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:  # pragma: no cover
        return f"Book(id={self.id!r}, title={self.title!r})"

    def to_dict(self) -> dict:
        """API'nin JSON biçimi."""
        return {
            "_id": self.id,
            "title": self.title,
            "caption": self.caption,
            "rating": self.rating,
            "image": self.image,
            "user": {
                "_id": self.user_id,
                "username": self.username,
                "profileImage": self.profile_image,
            },
            "createdAt": self.created_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        # "user" alanı doldurulmamışsa yalnızca kimlik olarak gelebilir
        user = data.get("user") or {}
        if isinstance(user, str):
            user = {"_id": user}
        return Book(
            id=data["_id"],
            title=data["title"],
            caption=data["caption"],
            rating=data["rating"],
            image=data["image"],
            user_id=user.get("_id"),
            username=user.get("username"),
            profile_image=user.get("profileImage"),
            created_at=data.get("createdAt"),
        )

    @staticmethod
    def from_row(row: dict) -> "Book":
        """SQLite satırından (users tablosuyla birleştirilmiş) bir Kitap oluştur."""
        return Book(
            id=row["id"],
            title=row["title"],
            caption=row["caption"],
            rating=row["rating"],
            image=row["image"],
            user_id=row["user_id"],
            username=row.get("username"),
            profile_image=row.get("profile_image"),
            created_at=row.get("created_at"),
        )


@dataclass(frozen=True)
class FeedPage:
    """Sayfalandırılmış listeleme uç noktasının tek bir sayfası."""
    books: List[Book] = field(default_factory=list)
    page: int = 1
    total_pages: int = 0
    total_books: int = 0

    def to_dict(self) -> dict:
        return {
            "books": [b.to_dict() for b in self.books],
            "currentPage": self.page,
            "totalBooks": self.total_books,
            "totalPages": self.total_pages,
        }

    @staticmethod
    def from_dict(data: dict, default_page: int = 1) -> "FeedPage":
        return FeedPage(
            books=[Book.from_dict(b) for b in data.get("books") or []],
            page=int(data.get("currentPage") or default_page),
            total_pages=int(data.get("totalPages") or 0),
            total_books=int(data.get("totalBooks") or 0),
        )
