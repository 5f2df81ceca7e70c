"""
Event logo storage on Cloudinary.
"""
import cloudinary
import cloudinary.uploader

from config.settings import CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET
from constants import MAX_LOGO_BYTES

cloudinary.config(
    cloud_name=CLOUDINARY_CLOUD_NAME,
    api_key=CLOUDINARY_API_KEY,
    api_secret=CLOUDINARY_API_SECRET
)

ALLOWED_LOGO_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp", "image/svg+xml")
LOGO_FOLDER = "event_logos"


class ImageUploadError(Exception):
    pass


def logo_problem(content_type: str, image_data: bytes):
    """Describe why a file cannot be used as an event logo, or None when it can."""
    if content_type not in ALLOWED_LOGO_TYPES:
        return "Logo must be a JPEG, PNG, GIF, WebP or SVG image"
    if not image_data:
        return "Logo file is empty"
    if len(image_data) > MAX_LOGO_BYTES:
        return f"Logo must be at most {MAX_LOGO_BYTES // (1024 * 1024)}MB"
    return None


def upload_image_to_cloudinary(image_data: bytes, folder: str = LOGO_FOLDER, public_id: str = None) -> dict:
    """
    Store an image and return Cloudinary's upload result (secure_url among others).

    Uploading again with the same public_id replaces the previous image, so an
    event keeps a single logo. Raises ImageUploadError when credentials are
    missing or Cloudinary rejects the upload.
    """
    if not all([CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET]):
        raise ImageUploadError("Cloudinary credentials are not configured")

    try:
        return cloudinary.uploader.upload(
            image_data,
            folder=folder,
            public_id=public_id,
            resource_type="image",
            overwrite=True,
            invalidate=True
        )
    except Exception as e:
        raise ImageUploadError(f"Cloudinary upload failed: {e}")
