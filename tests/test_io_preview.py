from __future__ import annotations

import io

from PIL import Image

from verilens.io.preview import PreviewHandle, make_preview
from verilens.io.sources import ImageSource


def _png_source(width: int, height: int) -> ImageSource:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 10, 10)).save(buffer, format="PNG")
    return ImageSource(name="red.png", data=buffer.getvalue(), mime_type="image/png")


def test_make_preview_scales_to_requested_size():
    handle = make_preview(_png_source(800, 400), size=100)

    data = handle.png_bytes()
    assert data is not None
    with Image.open(io.BytesIO(data)) as rendered:
        assert rendered.size == (100, 50)


def test_make_preview_returns_empty_handle_for_undecodable_bytes():
    source = ImageSource(name="fake.jpg", data=b"not an image", mime_type="image/jpeg")

    handle = make_preview(source)

    assert handle.png_bytes() is None
    assert handle.dispose() is True


def test_make_preview_returns_empty_handle_for_oversized_image(monkeypatch):
    source = _png_source(10, 10)
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)

    handle = make_preview(source)

    assert handle.png_bytes() is None
    assert not handle.released


def test_dispose_releases_once():
    handle = make_preview(_png_source(32, 32))

    assert handle.dispose() is True
    assert handle.released
    assert handle.dispose() is False
    assert handle.png_bytes() is None


def test_empty_handle_is_not_released_until_disposed():
    handle = PreviewHandle()
    assert not handle.released
    handle.dispose()
    assert handle.released
