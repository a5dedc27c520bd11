from io import BytesIO

import pytest
from PIL import Image

from recipegen.core.errors import ValidationFailed
from recipegen.utils.images import normalize_image


def _png(size, mode="RGB", color=(200, 30, 30)):
    buf = BytesIO()
    Image.new(mode, size, color).save(buf, "PNG")
    return buf.getvalue()


def test_large_image_is_shrunk_into_bounding_box():
    out = normalize_image(_png((2048, 1024)), max_side=1024)
    img = Image.open(BytesIO(out))
    assert img.format == "JPEG"
    assert img.size == (1024, 512)


def test_small_image_is_not_enlarged():
    img = Image.open(BytesIO(normalize_image(_png((300, 200)))))
    assert img.size == (300, 200)


def test_transparent_image_is_flattened_to_rgb():
    out = normalize_image(_png((50, 50), mode="RGBA", color=(0, 0, 0, 0)))
    img = Image.open(BytesIO(out))
    assert img.mode == "RGB"
    r, g, b = img.getpixel((25, 25))
    assert min(r, g, b) > 240


def test_empty_input_is_rejected():
    with pytest.raises(ValidationFailed):
        normalize_image(b"")


def test_garbage_input_is_rejected():
    with pytest.raises(ValidationFailed) as err:
        normalize_image(b"definitely not an image")
    assert err.value.code == "INVALID_IMAGE"


def test_oversized_input_is_rejected():
    with pytest.raises(ValidationFailed) as err:
        normalize_image(_png((10, 10)), max_bytes=10)
    assert err.value.code == "IMAGE_TOO_LARGE"
