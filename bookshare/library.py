import logging
import math
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional

from bookshare import database
from bookshare.book import Book, FeedPage
from bookshare.config import Settings, settings as default_settings
from bookshare.database import get_db_connection, initialize_database
from bookshare.errors import AuthenticationError, NotFoundError, ValidationError
from bookshare.services.media_host import MediaHost, destroy_quietly
from bookshare.user import User
from bookshare.utils.validators import BookValidator

logger = logging.getLogger(__name__)

# Genel sıralama anahtarı -> SQL ORDER BY. rowid (ekleme sırası) eşitlikleri bozar; sayfalar kararlı kalır.
SORT_COLUMNS = {
    "-createdAt": "b.created_at DESC, b.rowid DESC",
    "createdAt": "b.created_at ASC, b.rowid ASC",
    "-rating": "b.rating DESC, b.created_at DESC, b.rowid DESC",
    "rating": "b.rating ASC, b.created_at DESC, b.rowid DESC",
}
DEFAULT_SORT = "-createdAt"

_BOOK_SELECT = """
    SELECT b.id, b.title, b.caption, b.rating, b.image, b.user_id, b.created_at,
           u.username, u.profile_image
    FROM books b JOIN users u ON u.id = b.user_id
"""


class Library:
    """Kitap önerilerini ve veri kalıcılığını yönetir."""

    def __init__(self, media_host: MediaHost, db_file: Optional[str] = None,
                 config: Optional[Settings] = None) -> None:
        self.db_file = db_file or database.DATABASE_FILE
        self.config = config or default_settings
        self.media_host = media_host
        initialize_database(self.db_file)

    def _connect(self) -> sqlite3.Connection:
        return get_db_connection(self.db_file)

    # ------------------------- Çekirdek işlemler ------------------------- #
    def add_book(self, user: User, title: Optional[str], caption: Optional[str],
                 rating: Any, image: Optional[str]) -> Book:
        """Görseli barındırıcıya yükle ve yeni bir öneri kaydet."""
        if any(BookValidator.is_blank(v) for v in (title, caption, image)) or rating in (None, ""):
            raise ValidationError("Please provide all fields")
        parsed_rating = BookValidator.parse_rating(rating)
        if parsed_rating is None:
            raise ValidationError("Rating must be a whole number between 1 and 5")

        image_url = self.media_host.upload(image)

        book = Book(
            id=uuid.uuid4().hex,
            title=BookValidator.sanitize_text(title),
            caption=BookValidator.sanitize_text(caption),
            rating=parsed_rating,
            image=image_url,
            user_id=user.id,
            username=user.username,
            profile_image=user.profile_image,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO books (id, title, caption, rating, image, user_id, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (book.id, book.title, book.caption, book.rating, book.image, book.user_id, book.created_at),
            )
            conn.commit()
        finally:
            conn.close()
        return book

    def find_book(self, book_id: str) -> Optional[Book]:
        conn = self._connect()
        try:
            row = conn.execute(f"{_BOOK_SELECT} WHERE b.id = ?", (book_id,)).fetchone()
        finally:
            conn.close()
        return Book.from_row(dict(row)) if row else None

    def list_books(self, page: int = 1, limit: Optional[int] = None, title: Optional[str] = None,
                   sort: Optional[str] = None) -> FeedPage:
        """Başlık filtresi ve sıralama ile akışın bir sayfasını döndür."""
        sort = sort or DEFAULT_SORT
        if sort not in SORT_COLUMNS:
            raise ValidationError(f"Invalid sort. Allowed: {', '.join(SORT_COLUMNS)}")
        if page < 1:
            raise ValidationError("Page must be at least 1")
        limit = limit or self.config.default_page_size
        if limit < 1 or limit > self.config.max_page_size:
            raise ValidationError(f"Limit must be between 1 and {self.config.max_page_size}")

        where, params = "", []
        if title and title.strip():
            # Büyük/küçük harfe duyarsız alt dize araması
            where = " WHERE b.title LIKE ? ESCAPE '\\'"
            escaped = title.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            params.append(f"%{escaped}%")

        conn = self._connect()
        try:
            total = conn.execute(
                f"SELECT COUNT(*) FROM books b JOIN users u ON u.id = b.user_id{where}", params
            ).fetchone()[0]
            rows = conn.execute(
                f"{_BOOK_SELECT}{where} ORDER BY {SORT_COLUMNS[sort]} LIMIT ? OFFSET ?",
                params + [limit, (page - 1) * limit],
            ).fetchall()
        finally:
            conn.close()

        return FeedPage(
            books=[Book.from_row(dict(r)) for r in rows],
            page=page,
            total_pages=math.ceil(total / limit),
            total_books=total,
        )

    def list_user_books(self, user_id: str) -> List[Book]:
        """Kullanıcının kendi önerileri, en yeniden eskiye."""
        conn = self._connect()
        try:
            rows = conn.execute(
                f"{_BOOK_SELECT} WHERE b.user_id = ? ORDER BY {SORT_COLUMNS['-createdAt']}", (user_id,)
            ).fetchall()
        finally:
            conn.close()
        return [Book.from_row(dict(r)) for r in rows]

    def remove_book(self, book_id: str, user_id: str) -> None:
        """Kitabı yalnızca oluşturan kullanıcı silebilir; barındırılan görsel de silinir."""
        book = self.find_book(book_id)
        if not book:
            raise NotFoundError("Book not found")
        if book.user_id != user_id:
            raise AuthenticationError("Unauthorized")

        destroy_quietly(self.media_host, book.image)

        conn = self._connect()
        try:
            conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Kitap silindi: %s", book_id)
