import base64
import logging
from typing import Any, Dict, Optional, Protocol, Union

import cloudinary.exceptions
import cloudinary.uploader

from bookshare.config import Settings, settings as default_settings
from bookshare.errors import ExternalServiceError

logger = logging.getLogger(__name__)

# Barındırılan bir görselin URL'sinde geçen işaret
HOST_MARKER = "cloudinary"


class MediaHost(Protocol):
    """Görsel barındırma yeteneği: yükle -> URL, genel kimlikle sil."""

    def upload(self, file: Union[bytes, str], media_type: str = "image/jpeg") -> str:
        ...

    def destroy(self, public_id: str) -> None:
        ...


def is_hosted(url: Optional[str]) -> bool:
    """URL bu barındırıcı tarafından mı sunuluyor? (alt dize eşleşmesi)"""
    return bool(url) and HOST_MARKER in url


def public_id_from_url(url: str) -> str:
    """.../v1712345/abc123.jpg -> abc123"""
    return url.rstrip("/").split("/")[-1].split(".")[0]


def to_data_url(data: bytes, media_type: str = "image/jpeg") -> str:
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


class CloudinaryMediaHost:
    """Cloudinary SDK üzerinden görsel yükleme ve silme."""

    def __init__(self, config: Optional[Settings] = None):
        config = config or default_settings
        self.cloud_name = config.cloudinary_cloud_name
        self.api_key = config.cloudinary_api_key
        self.api_secret = config.cloudinary_api_secret
        self.timeout = config.cloudinary_timeout

    def is_available(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def _options(self) -> Dict[str, Any]:
        """Her çağrıya kimlik bilgilerini ver; SDK'nın global yapılandırmasına dokunma."""
        if not self.is_available():
            raise ExternalServiceError("Media hosting is not configured.")
        return {
            "cloud_name": self.cloud_name,
            "api_key": self.api_key,
            "api_secret": self.api_secret,
            "timeout": self.timeout,
        }

    def upload(self, file: Union[bytes, str], media_type: str = "image/jpeg") -> str:
        """Görseli yükler ve güvenli (https) URL'sini döndürür.

        ``file`` ham bayt, bir data URL ya da uzak bir URL olabilir.
        """
        payload = to_data_url(file, media_type) if isinstance(file, (bytes, bytearray)) else file
        options = self._options()
        try:
            result = cloudinary.uploader.upload(payload, **options)
        except cloudinary.exceptions.Error as exc:
            raise ExternalServiceError(f"Media host error: {exc}") from exc
        secure_url = result.get("secure_url")
        if not secure_url:
            raise ExternalServiceError("Media host returned no URL.")
        logger.info("Görsel yüklendi: %s", result.get("public_id"))
        return secure_url

    def destroy(self, public_id: str) -> None:
        options = self._options()
        try:
            cloudinary.uploader.destroy(public_id, **options)
        except cloudinary.exceptions.Error as exc:
            raise ExternalServiceError(f"Media host error: {exc}") from exc
        logger.info("Görsel silindi: %s", public_id)


def destroy_quietly(media_host: MediaHost, url: Optional[str]) -> bool:
    """Barındırılan görseli en iyi çaba ile sil; hatalar günlüğe yazılır ve yutulur."""
    if not is_hosted(url):
        return False
    try:
        media_host.destroy(public_id_from_url(url))
        return True
    except Exception:
        logger.warning("Eski görsel barındırıcıdan silinemedi: %s", url, exc_info=True)
        return False
