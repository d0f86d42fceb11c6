from typing import Optional
from PIL import Image
import io

from app.errors import InvalidInput

def validate_image(image_bytes: bytes) -> bool:
    """Check if bytes are a valid image."""
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.verify()
        return True
    except Exception:
        return False

def validate_upload(image_bytes: Optional[bytes], mime_type: Optional[str], max_bytes: int) -> None:
    """Reject uploads that should never reach the queue."""
    if not image_bytes:
        raise InvalidInput("No file uploaded")
    if not mime_type or not mime_type.startswith("image/"):
        raise InvalidInput("Uploaded file must be an image")
    if len(image_bytes) > max_bytes:
        raise InvalidInput(f"Image size must be less than {max_bytes // (1024 * 1024)}MB")
    if not validate_image(image_bytes):
        raise InvalidInput("Invalid image file.")
