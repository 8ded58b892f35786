import re
from typing import Any, Optional

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class UserValidator:
    """Field checks for user records, shared by registration and profile updates."""

    @staticmethod
    def is_valid_email(email: Optional[str]) -> bool:
        if not email:
            return False
        return bool(EMAIL_PATTERN.match(email.strip()))

    @staticmethod
    def is_valid_username(username: Optional[str], min_length: int = 3) -> bool:
        if username is None:
            return False
        t = username.strip()
        # no whitespace inside usernames
        return len(t) >= min_length and not any(c.isspace() for c in t)

    @staticmethod
    def is_valid_password(password: Optional[str], min_length: int = 6) -> bool:
        return bool(password) and len(password) >= min_length


class BookValidator:
    """Checks for book recommendation payloads."""

    @staticmethod
    def parse_rating(raw: Any) -> Optional[int]:
        """Return the rating as an int in 1..5, or None if it is not one.

        The mobile client sends the rating as a string ("4"), so numeric
        strings are accepted; floats with a fractional part are not.
        """
        if raw is None or isinstance(raw, bool):
            return None
        try:
            value = float(str(raw).strip())
        except ValueError:
            return None
        if not value.is_integer():
            return None
        value = int(value)
        return value if 1 <= value <= 5 else None

    @staticmethod
    def is_blank(text: Optional[str]) -> bool:
        return text is None or not str(text).strip()

    @staticmethod
    def sanitize_text(text: str) -> str:
        if text is None:
            return ""
        # strip HTML tags
        return re.sub(r"<[^>]*>", "", text).strip()
