import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bookshare import database
from bookshare.config import Settings, settings as default_settings
from bookshare.database import get_db_connection, initialize_database
from bookshare.errors import ConflictError, ValidationError
from bookshare.user import DEFAULT_AVATAR, User
from bookshare.utils.validators import UserValidator

# find_by_id_and_update ile güncellenebilen sütunlar
UPDATABLE_FIELDS = ("username", "email", "profile_image")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserStore:
    """Kullanıcı kayıtlarının kalıcılığını yönetir."""

    def __init__(self, db_file: Optional[str] = None, config: Optional[Settings] = None) -> None:
        self.db_file = db_file or database.DATABASE_FILE
        self.config = config or default_settings
        initialize_database(self.db_file)

    def _connect(self) -> sqlite3.Connection:
        return get_db_connection(self.db_file)

    def validate_fields(self, fields: Dict[str, Any]) -> None:
        """Alan kısıtlamalarını kontrol et; ilk ihlalde ValidationError yükselt."""
        if "username" in fields and not UserValidator.is_valid_username(
                fields["username"], self.config.min_username_length):
            raise ValidationError(
                f"Username should be at least {self.config.min_username_length} characters long")
        if "email" in fields and not UserValidator.is_valid_email(fields["email"]):
            raise ValidationError("Please provide a valid email")

    # ------------------------- Okuma ------------------------- #
    def find_by_id(self, user_id: str, include_password: bool = False) -> Optional[User]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        return User.from_row(dict(row), include_password) if row else None

    def find_one(self, *, username: Optional[str] = None, email: Optional[str] = None,
                 exclude_id: Optional[str] = None, include_password: bool = False) -> Optional[User]:
        """Verilen kullanıcı adı VEYA e-posta ile eşleşen ilk kullanıcıyı bul.

        exclude_id verilirse o kimliğe sahip kayıt yok sayılır (ör. kullanıcının kendisi).
        """
        clauses, params = [], []
        if username is not None:
            clauses.append("username = ?")
            params.append(username)
        if email is not None:
            clauses.append("email = ?")
            params.append(email)
        if not clauses:
            return None

        sql = f"SELECT * FROM users WHERE ({' OR '.join(clauses)})"
        if exclude_id is not None:
            sql += " AND id != ?"
            params.append(exclude_id)
        sql += " ORDER BY created_at LIMIT 1"

        conn = self._connect()
        try:
            row = conn.execute(sql, params).fetchone()
        finally:
            conn.close()
        return User.from_row(dict(row), include_password) if row else None

    # ------------------------- Yazma ------------------------- #
    def create(self, username: str, email: str, password_hash: str,
               profile_image: Optional[str] = None) -> User:
        fields = {"username": username, "email": email}
        self.validate_fields(fields)
        user = User(
            id=uuid.uuid4().hex,
            username=username,
            email=email,
            password=password_hash,
            profile_image=profile_image or DEFAULT_AVATAR.format(seed=username),
            created_at=_now(),
        )
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO users (id, username, email, password, profile_image, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (user.id, user.username, user.email, user.password, user.profile_image, user.created_at),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise self._conflict_from(e) from e
        finally:
            conn.close()
        user.password = None
        return user

    def find_by_id_and_update(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        """Alanları tek bir UPDATE ile uygula ve güncel kaydı döndür (parolasız).

        Kayıt yoksa None döner. Alanlar yazmadan önce yeniden doğrulanır.
        """
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        self.validate_fields(fields)

        if not fields:
            return self.find_by_id(user_id)

        set_clause = ", ".join(f"{name} = ?" for name in fields)
        params = list(fields.values()) + [user_id]

        conn = self._connect()
        try:
            cursor = conn.execute(f"UPDATE users SET {set_clause} WHERE id = ?", params)
            conn.commit()
            if cursor.rowcount == 0:
                return None
        except sqlite3.IntegrityError as e:
            # Eşzamanlı iki istek benzersizlik kontrolünü birlikte geçerse son savunma hattı
            raise self._conflict_from(e) from e
        finally:
            conn.close()
        return self.find_by_id(user_id)

    def set_password(self, user_id: str, password_hash: str) -> bool:
        conn = self._connect()
        try:
            cursor = conn.execute("UPDATE users SET password = ? WHERE id = ?", (password_hash, user_id))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    @staticmethod
    def _conflict_from(error: sqlite3.IntegrityError) -> ConflictError:
        text = str(error)
        if "users.username" in text:
            return ConflictError("Username already exists")
        if "users.email" in text:
            return ConflictError("Email already exists")
        return ConflictError(f"Duplicate field value: {text}. Please use another!")
