"""Kısmi profil güncellemesi.

Bir düzenleme isteği önce bir ``ProfilePatch`` değerine dönüştürülür: yalnızca
gönderilen VE saklanan değerden farklı olan alanlar girer. Yama doğrulanır,
gerekiyorsa yeni görsel yüklenir, sonra tek bir atomik güncellemeyle yazılır.
Eski görsel yalnızca yazma başarılı olduktan sonra silinir.

Bilinen boşluk: yükleme başarılı olup veritabanı yazması başarısız olursa yeni
yüklenen görsel barındırıcıda sahipsiz kalır. Saklanan referans eskisi olarak kalır.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from bookshare.errors import ConflictError, ExternalServiceError, NotFoundError, ValidationError
from bookshare.services.images import is_image_type
from bookshare.services.media_host import MediaHost, destroy_quietly
from bookshare.user import User
from bookshare.users import UserStore

logger = logging.getLogger(__name__)

PASSWORD_FIELDS = ("password", "password_confirm", "passwordConfirm")
PROFILE_FIELDS = ("username", "email")


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    media_type: str = "image/jpeg"


@dataclass
class ProfilePatch:
    """Kalıcı hale getirilecek en küçük alan kümesi."""
    fields: Dict[str, Any] = field(default_factory=dict)
    image: Optional[ImagePayload] = None

    def __bool__(self) -> bool:
        return bool(self.fields) or self.image is not None

    @property
    def changes_identity(self) -> bool:
        return "username" in self.fields or "email" in self.fields


class ProfilePatchBuilder:
    def __init__(self, store: UserStore, media_host: MediaHost) -> None:
        self.store = store
        self.media_host = media_host

    @staticmethod
    def build(requested: Mapping[str, Any], current_user: User) -> ProfilePatch:
        """İstekten yamayı hesapla. Yan etkisi yoktur."""
        if any(requested.get(name) for name in PASSWORD_FIELDS):
            raise ValidationError("This route is not for password updates. Please use /updateMyPassword.")

        patch = ProfilePatch()
        for name in PROFILE_FIELDS:
            value = requested.get(name)
            if isinstance(value, str):
                value = value.strip()
            if value and value != getattr(current_user, name):
                patch.fields[name] = value

        image = requested.get("image")
        if image is not None:
            patch.image = image
        return patch

    def check_unique(self, user_id: str, patch: ProfilePatch) -> None:
        """Başka bir kayıt yeni kullanıcı adını veya e-postayı kullanıyor mu?

        Kontrol ile yazma arasında kilit yoktur; eşzamanlı iki istek ikisi de
        geçebilir. O durumda veritabanının UNIQUE kısıtı devreye girer.
        """
        if not patch.changes_identity:
            return
        new_username = patch.fields.get("username")
        new_email = patch.fields.get("email")
        # Kullanıcı adı önce: ikisi birden çakışırsa hep aynı hata döner
        if new_username is not None and self.store.find_one(username=new_username, exclude_id=user_id):
            raise ConflictError("Username already exists")
        if new_email is not None and self.store.find_one(email=new_email, exclude_id=user_id):
            raise ConflictError("Email already exists")

    def build_and_apply_patch(self, user_id: str, requested: Mapping[str, Any],
                              current_user: Optional[User] = None) -> User:
        if current_user is None:
            current_user = self.store.find_by_id(user_id)
        if current_user is None:
            raise NotFoundError("User not found")

        patch = self.build(requested, current_user)
        self.check_unique(user_id, patch)
        self.store.validate_fields(patch.fields)

        updates = dict(patch.fields)
        previous_image = current_user.profile_image
        if patch.image is not None:
            if not is_image_type(patch.image.media_type):
                raise ValidationError("Not an image! Please upload an image.")
            try:
                updates["profile_image"] = self.media_host.upload(patch.image.data, patch.image.media_type)
            except ExternalServiceError:
                logger.error("Profil görseli yüklenemedi (kullanıcı %s)", user_id)
                raise
            except Exception as exc:
                logger.exception("Profil görseli yüklenemedi (kullanıcı %s)", user_id)
                raise ExternalServiceError("Could not upload profile image.") from exc

        updated = self.store.find_by_id_and_update(user_id, updates)
        if updated is None:
            raise NotFoundError("User not found")

        if "profile_image" in updates and previous_image != updates["profile_image"]:
            destroy_quietly(self.media_host, previous_image)
        return updated
