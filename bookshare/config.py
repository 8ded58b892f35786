import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # API Ayarları
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    # Veritabanı Ayarları
    database_file: str = os.getenv("BOOKSHARE_DB_FILE", "bookshare.db")

    # Güvenlik Ayarları
    jwt_secret_key: str = os.getenv("JWT_SECRET", "your-secret-key-change-this-in-production")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_expiration_days: int = int(os.getenv("JWT_EXPIRATION_DAYS", "15"))
    min_password_length: int = int(os.getenv("MIN_PASSWORD_LENGTH", "6"))
    min_username_length: int = int(os.getenv("MIN_USERNAME_LENGTH", "3"))

    # Cloudinary (medya barındırma) Ayarları
    cloudinary_cloud_name: Optional[str] = os.getenv("CLOUDINARY_CLOUD_NAME")
    cloudinary_api_key: Optional[str] = os.getenv("CLOUDINARY_API_KEY")
    cloudinary_api_secret: Optional[str] = os.getenv("CLOUDINARY_API_SECRET")
    cloudinary_timeout: float = float(os.getenv("CLOUDINARY_TIMEOUT", "15"))

    # Uygulama Ayarları
    app_name: str = os.getenv("APP_NAME", "Bookshare")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _env_bool("DEBUG", "False")
    environment: str = os.getenv("ENVIRONMENT", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Sayfalama Ayarları
    default_page_size: int = int(os.getenv("DEFAULT_PAGE_SIZE", "100"))
    max_page_size: int = int(os.getenv("MAX_PAGE_SIZE", "100"))

    # Yükleme Ayarları
    max_upload_size: int = int(os.getenv("MAX_UPLOAD_SIZE", "10485760"))  # 10MB
    profile_image_size: int = int(os.getenv("PROFILE_IMAGE_SIZE", "500"))
    profile_image_quality: int = int(os.getenv("PROFILE_IMAGE_QUALITY", "90"))

    # İstemci Ayarları
    client_api_url: str = os.getenv("BOOKSHARE_API_URL", "http://127.0.0.1:8000/api")
    client_timeout: float = float(os.getenv("BOOKSHARE_CLIENT_TIMEOUT", "10"))
    feed_page_size: int = int(os.getenv("FEED_PAGE_SIZE", "2"))
    search_debounce_seconds: float = float(os.getenv("SEARCH_DEBOUNCE_SECONDS", "0.5"))
    cli_config_dir: str = os.getenv("BOOKSHARE_CLI_DIR", str(Path.home() / ".bookshare"))


settings = Settings()
