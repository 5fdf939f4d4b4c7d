from __future__ import annotations

import pytest

from verilens.io.sources import ImageSource, UnsupportedMediaError, load_image_source


def test_load_image_source_declares_mime_from_extension(tmp_path):
    path = tmp_path / "Photo.JPEG"
    path.write_bytes(b"\xff\xd8\xff")

    source = load_image_source(path)

    assert source.name == "Photo.JPEG"
    assert source.mime_type == "image/jpeg"
    assert source.size == 3
    assert source.path == path


def test_load_image_source_accepts_explicit_mime(tmp_path):
    path = tmp_path / "upload.bin"
    path.write_bytes(b"data")

    assert load_image_source(path, mime_type="image/png").mime_type == "image/png"


def test_load_image_source_rejects_unknown_extension(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("hello", encoding="utf-8")

    with pytest.raises(UnsupportedMediaError):
        load_image_source(path)


def test_image_source_rejects_non_image_media():
    with pytest.raises(UnsupportedMediaError):
        ImageSource(name="clip.mp4", data=b"x", mime_type="video/mp4")


def test_image_source_repr_hides_bytes():
    source = ImageSource(name="a.png", data=b"secret-bytes", mime_type="image/png")
    assert "secret-bytes" not in repr(source)
