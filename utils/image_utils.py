"""Secure image handling for complaint photos and resolution proof."""
import io
import os
import uuid
from typing import Dict, Tuple

from PIL import Image, UnidentifiedImageError
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from utils.security import hash_bytes

ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "gif"}
# Pillow format name -> extensions accepted for it
PILLOW_FORMATS = {
    "JPEG": {"jpg", "jpeg"},
    "PNG": {"png"},
    "WEBP": {"webp"},
    "GIF": {"gif"},
}
DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5 MB
UPLOAD_URL_PREFIX = "/uploads/"
SIGNIFICANT_SIZE_CHANGE = 0.2


def _fail_if(condition: bool, message: str) -> None:
    if condition:
        raise ValueError(message)


def validate_image_file(file: FileStorage, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> Tuple[bytes, str]:
    _fail_if(not file, "No file provided")
    filename = secure_filename(file.filename or "")
    _fail_if(not filename or "." not in filename, "Unsupported file name")
    ext = filename.rsplit(".", 1)[1].lower()
    _fail_if(ext not in ALLOWED_IMAGE_EXTENSIONS, "File type not allowed")

    file.stream.seek(0, os.SEEK_END)
    size = file.stream.tell()
    file.stream.seek(0)
    _fail_if(size == 0, "Empty file")
    _fail_if(size > max_bytes, "File exceeds size limits")

    content = file.read()
    _fail_if(len(content) > max_bytes, "File exceeds size limits")

    try:
        with Image.open(io.BytesIO(content)) as img:
            detected = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValueError("Image validation failed") from exc
    _fail_if(ext not in PILLOW_FORMATS.get(detected or "", set()), "Invalid image data")

    file.stream.seek(0)
    return content, ext


def save_image_bytes(image_bytes: bytes, upload_dir: str, extension: str) -> Tuple[str, str]:
    os.makedirs(upload_dir, exist_ok=True)
    unique_name = f"{uuid.uuid4().hex}.{extension}"
    safe_name = secure_filename(unique_name)
    path = os.path.join(upload_dir, safe_name)
    with open(path, "wb") as f:
        f.write(image_bytes)
    return path, safe_name


def persist_image(file: FileStorage, upload_dir: str, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> Dict:
    image_bytes, ext = validate_image_file(file, max_bytes=max_bytes)
    stored_path, stored_name = save_image_bytes(image_bytes, upload_dir, ext)
    return {
        "path": stored_path,
        "file_name": stored_name,
        "url": f"{UPLOAD_URL_PREFIX}{stored_name}",
        "extension": ext,
        "image_hash": hash_bytes(image_bytes),
    }


def resolve_upload_path(url: str | None, upload_dir: str) -> str | None:
    """Map an ``/uploads/<name>`` reference back to a file inside ``upload_dir``."""
    if not url:
        return None
    name = secure_filename(url.rsplit("/", 1)[-1])
    if not name:
        return None
    return os.path.join(upload_dir, name)


def _read_if_exists(path: str | None) -> bytes | None:
    if not path or not os.path.isfile(path):
        return None
    with open(path, "rb") as f:
        return f.read()


def verify_resolution(before: bytes | None, after: bytes | None) -> Dict:
    """Compare the original photo with the proof photo.

    The verdict is advisory: callers record it next to the closure but never
    let it block the closure itself.
    """
    if not after:
        return {"resolved": False, "confidence": "low"}
    if not before:
        return {"resolved": True, "confidence": "medium"}
    if hash_bytes(before) == hash_bytes(after):
        return {"resolved": False, "confidence": "low"}

    bigger = max(len(before), len(after))
    smaller = min(len(before), len(after))
    change_ratio = (bigger - smaller) / bigger if bigger else 0
    if change_ratio >= SIGNIFICANT_SIZE_CHANGE:
        return {"resolved": True, "confidence": "high"}
    return {"resolved": True, "confidence": "medium"}


def verify_resolution_files(before_path: str | None, after_path: str | None) -> Dict:
    try:
        return verify_resolution(_read_if_exists(before_path), _read_if_exists(after_path))
    except OSError:
        return {"resolved": False, "confidence": "low"}
