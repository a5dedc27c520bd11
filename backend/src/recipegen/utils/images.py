"""
Image normalization for the ingredient-recognition upload.

Every upload is decoded and re-encoded through Pillow as a bounded JPEG, which
caps the payload sent to the vision model and drops anything that is not a
real raster image.
"""

from io import BytesIO

from PIL import Image, UnidentifiedImageError

from recipegen.core.errors import ValidationFailed

MAX_FILE_SIZE = 10 * 1024 * 1024


def normalize_image(
    data: bytes,
    max_side: int = 1024,
    quality: int = 85,
    max_bytes: int = MAX_FILE_SIZE,
) -> bytes:
    """Return ``data`` as a JPEG that fits inside ``max_side`` x ``max_side``.

    Smaller images are not enlarged. Transparent images are flattened onto white.

    Raises:
        ValidationFailed: empty, oversized, or undecodable input.
    """
    if not data:
        raise ValidationFailed("No image file provided")
    if len(data) > max_bytes:
        raise ValidationFailed(
            f"Image too large: {len(data)} bytes (max {max_bytes})", code="IMAGE_TOO_LARGE"
        )

    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        raise ValidationFailed("Invalid or corrupted image", code="INVALID_IMAGE", details=str(exc)) from exc

    if img.width > max_side or img.height > max_side:
        img.thumbnail((max_side, max_side), Image.Resampling.LANCZOS)

    if img.mode in ("RGBA", "LA", "P"):
        img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        img = background
    elif img.mode != "RGB":
        img = img.convert("RGB")

    out = BytesIO()
    img.save(out, "JPEG", quality=quality, optimize=True)
    return out.getvalue()
