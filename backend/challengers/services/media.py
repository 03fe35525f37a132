from __future__ import annotations
import io
from PIL import Image, UnidentifiedImageError
from challengers.errors import InvalidUpload


ALLOWED_MIME = {"image/jpeg", "image/png"}
EXT_FOR_MIME = {"image/jpeg": "jpg", "image/png": "png"}

def sniff_mime(data: bytes) -> str | None:
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.format == "JPEG":
                return "image/jpeg"
            elif img.format == "PNG":
                return "image/png"
            return None
    except (UnidentifiedImageError, OSError):
        return None

def validate_image(data: bytes) -> str:
    """Returns the detected content-type; raises InvalidUpload for anything but intact JPEG/PNG."""
    mime = sniff_mime(data)
    if mime not in ALLOWED_MIME:
        raise InvalidUpload("Only JPEG and PNG images are accepted")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()  # basic integrity
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InvalidUpload("Image file is corrupted") from e
    return mime

def ext_for_mime(mime: str) -> str:
    return EXT_FOR_MIME.get(mime, "bin")
