from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from bookshare.config import Settings, settings as default_settings
from bookshare.errors import AuthenticationError, NotFoundError, ValidationError
from bookshare.user import User
from bookshare.users import UserStore
from bookshare.utils.validators import UserValidator


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return bool(password_hash) and check_password_hash(password_hash, password)


class TokenService:
    """Kullanıcı kimliği taşıyan HS256 JWT'leri üretir ve çözer."""

    def __init__(self, config: Optional[Settings] = None) -> None:
        config = config or default_settings
        self.secret = config.jwt_secret_key
        self.algorithm = config.jwt_algorithm
        self.lifetime = timedelta(days=config.jwt_expiration_days)

    def generate_token(self, user_id: str) -> str:
        payload = {"userId": user_id, "exp": datetime.now(timezone.utc) + self.lifetime}
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode_token(self, token: str) -> str:
        """Belirteci doğrula ve kullanıcı kimliğini döndür.

        jwt.ExpiredSignatureError / jwt.InvalidTokenError çağırana bırakılır;
        API katmanı bunları 401'e çevirir.
        """
        payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        user_id = payload.get("userId")
        if not user_id:
            raise jwt.InvalidTokenError("Token carries no user id")
        return user_id


class AuthService:
    """Kayıt, oturum açma ve parola değiştirme."""

    def __init__(self, store: UserStore, tokens: Optional[TokenService] = None,
                 config: Optional[Settings] = None) -> None:
        self.store = store
        self.config = config or default_settings
        self.tokens = tokens or TokenService(self.config)

    def register(self, username: Optional[str], email: Optional[str],
                 password: Optional[str]) -> Tuple[str, User]:
        if not username or not email or not password:
            raise ValidationError("All fields are required")
        if not UserValidator.is_valid_password(password, self.config.min_password_length):
            raise ValidationError(
                f"Password should be at least {self.config.min_password_length} characters long")
        if len(username.strip()) < self.config.min_username_length:
            raise ValidationError(
                f"Username should be at least {self.config.min_username_length} characters long")

        # E-posta, kullanıcı adından önce kontrol edilir
        if self.store.find_one(email=email):
            raise ValidationError("Email already exists")
        if self.store.find_one(username=username):
            raise ValidationError("Username already exists")

        user = self.store.create(username=username.strip(), email=email.strip(),
                                 password_hash=hash_password(password))
        return self.tokens.generate_token(user.id), user

    def login(self, email: Optional[str], password: Optional[str]) -> Tuple[str, User]:
        if not email or not password:
            raise ValidationError("All fields are required")
        user = self.store.find_one(email=email.strip(), include_password=True)
        if not user or not verify_password(user.password, password):
            raise ValidationError("Invalid credentials")
        user.password = None
        return self.tokens.generate_token(user.id), user

    def update_password(self, user_id: str, password_current: Optional[str],
                        password: Optional[str], password_confirm: Optional[str]) -> Tuple[str, User]:
        user = self.store.find_by_id(user_id, include_password=True)
        if not user:
            raise NotFoundError("User not found.")
        if not password_current or not password or not password_confirm:
            raise ValidationError("All password fields are required.")
        if not UserValidator.is_valid_password(password, self.config.min_password_length):
            raise ValidationError(
                f"Password should be at least {self.config.min_password_length} characters long.")
        if password != password_confirm:
            raise ValidationError("Password and password confirmation do not match.")
        if not verify_password(user.password, password_current):
            raise AuthenticationError("Current password is incorrect.")

        self.store.set_password(user_id, hash_password(password))
        user.password = None
        return self.tokens.generate_token(user.id), user

    def resolve_user(self, token: str) -> User:
        """Taşıyıcı belirteci oturumdaki kullanıcıya çözümle."""
        user = self.store.find_by_id(self.tokens.decode_token(token))
        if not user:
            raise AuthenticationError("The user belonging to this token no longer exists.")
        return user
