import io
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from bookshare.errors import ValidationError


def is_image_type(media_type: str | None) -> bool:
    return bool(media_type) and media_type.startswith("image")


def prepare_profile_photo(data: bytes, size: int = 500, quality: int = 90) -> Tuple[bytes, str]:
    """Profil fotoğrafını size x size JPEG'e dönüştür. (bayt, medya türü) döndürür."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = img.convert("RGB").resize((size, size))
            out = io.BytesIO()
            img.save(out, format="JPEG", quality=quality)
    except (UnidentifiedImageError, OSError) as exc:
        raise ValidationError("Not an image! Please upload an image.") from exc
    return out.getvalue(), "image/jpeg"
