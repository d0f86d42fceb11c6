import hashlib

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

def calculate_image_hash(image_bytes: bytes) -> str:
    """Calculate SHA-256 hash of image bytes."""
    return hashlib.sha256(image_bytes).hexdigest()

def image_object_name(image_bytes: bytes, mime_type: str, folder: str = "crops") -> str:
    """Content-addressed object key, so the same upload always lands on the same object."""
    extension = _EXTENSIONS.get(mime_type, "bin")
    return f"{folder}/{calculate_image_hash(image_bytes)}.{extension}"
