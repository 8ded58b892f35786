from __future__ import annotations


DEFAULT_AVATAR = "https://api.dicebear.com/9.x/avataaars/svg?seed={seed}"


class User:
    """Kayıtlı bir kullanıcı. Parola özeti asla dışarı verilmez."""

    def __init__(self, id: str, username: str, email: str, password: str | None = None,
                 profile_image: str | None = None, created_at: str | None = None) -> None:
        self.id = id
        self.username = username
        self.email = email
        self.password = password
        self.profile_image = profile_image or DEFAULT_AVATAR.format(seed=username)
        self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover
        return f"User(id={self.id!r}, username={self.username!r})"

    def to_dict(self) -> dict:
        return {
            "_id": self.id,
            "username": self.username,
            "email": self.email,
            "profileImage": self.profile_image,
            "createdAt": self.created_at,
        }

    def to_auth_dict(self) -> dict:
        """Oturum açma yanıtlarında kullanılan kısa biçim."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "profileImage": self.profile_image,
            "createdAt": self.created_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "User":
        return User(
            id=data.get("_id") or data.get("id"),
            username=data["username"],
            email=data["email"],
            profile_image=data.get("profileImage"),
            created_at=data.get("createdAt"),
        )

    @staticmethod
    def from_row(row: dict, include_password: bool = False) -> "User":
        return User(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            password=row.get("password") if include_password else None,
            profile_image=row.get("profile_image"),
            created_at=row.get("created_at"),
        )
