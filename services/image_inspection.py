# services/image_inspection.py
from io import BytesIO
from typing import NamedTuple

from PIL import Image as PILImage, UnidentifiedImageError

# Formats accepted for upload, keyed by Pillow's format name
ALLOWED_FORMATS = {"JPEG": "image/jpeg", "PNG": "image/png"}
# Declared content types accepted from the client (image/jpg is a common alias)
ALLOWED_MIME_TYPES = ["image/jpeg", "image/jpg", "image/png"]
MIME_TYPE_TO_EXTENSION = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
}


class ImageValidationError(Exception):
    """Custom exception for uploads whose content is not a supported image."""
    pass


class ImageInfo(NamedTuple):
    mime_type: str
    width: int
    height: int


def inspect_image(contents: bytes) -> ImageInfo:
    """Decodes the header of an uploaded file and returns its real type and dimensions."""
    try:
        with PILImage.open(BytesIO(contents)) as image:
            image.verify()
            img_format = image.format
            width, height = image.size
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ImageValidationError(f"Cannot process image file. It may be corrupt: {e}")

    if img_format not in ALLOWED_FORMATS:
        raise ImageValidationError(f"Unsupported image format '{img_format}'. Only JPG, JPEG, and PNG files are allowed")
    return ImageInfo(mime_type=ALLOWED_FORMATS[img_format], width=width, height=height)
