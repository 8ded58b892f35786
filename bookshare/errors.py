"""Uygulama hataları.

Her hata bir HTTP durum kodu taşır; API katmanı bunları
``{"status": "error", "message": ...}`` zarfına çevirir.
"""


class AppError(Exception):
    """İstemciye gösterilebilen (operasyonel) hataların tabanı."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Eksik veya hatalı girdi."""
    status_code = 400


class ConflictError(AppError):
    """Kullanıcı adı / e-posta başka bir kayıtta zaten var."""
    status_code = 400


class AuthenticationError(AppError):
    status_code = 401


class NotFoundError(AppError):
    status_code = 404


class ExternalServiceError(AppError):
    """Medya barındırma gibi harici bir bağımlılık başarısız oldu."""
    status_code = 500
