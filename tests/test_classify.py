"""Tests for the image classifier and probe."""

import pytest
from PIL import Image

from matrix_consume.classify import Candidate, classify, detect_mimetype, probe

from .conftest import make_image


@pytest.mark.parametrize(
    "name,fmt,mimetype",
    [
        ("a.png", "PNG", "image/png"),
        ("b.JPG", "JPEG", "image/jpeg"),
        ("c.jpeg", "JPEG", "image/jpeg"),
        ("d.gif", "GIF", "image/gif"),
        ("e.webp", "WEBP", "image/webp"),
    ],
)
def test_images_are_accepted(source_dir, name, fmt, mimetype):
    path = make_image(source_dir / name, fmt)
    assert classify(path) == Candidate(path, mimetype)


def test_txt_is_rejected_even_with_image_content(source_dir):
    path = make_image(source_dir / "disguised.txt", "PNG")
    assert detect_mimetype(path) == "image/png"
    assert classify(path) is None


def test_image_extension_with_text_content_is_rejected(source_dir):
    path = source_dir / "fake.png"
    path.write_text("hello")
    assert classify(path) is None


def test_content_type_comes_from_bytes_not_extension(source_dir):
    path = make_image(source_dir / "actually_jpeg.png", "JPEG")
    assert classify(path).mimetype == "image/jpeg"


def test_missing_and_non_regular_paths_are_rejected(source_dir):
    assert classify(source_dir / "gone.png") is None
    (source_dir / "folder.png").mkdir()
    assert classify(source_dir / "folder.png") is None


def test_probe_reads_dimensions_and_size(source_dir):
    path = make_image(source_dir / "a.png", "PNG", size=(17, 9))
    info = probe(path, "image/png")
    assert (info.width, info.height) == (17, 9)
    assert info.size == path.stat().st_size
    assert info.mimetype == "image/png"


def test_oversized_image_is_rejected(source_dir, monkeypatch):
    path = make_image(source_dir / "panorama.png", "PNG", size=(40, 40))
    # 1600 pixels is over twice the limit, which Pillow refuses to open
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
    assert detect_mimetype(path) is None
    assert classify(path) is None


def test_multi_picture_jpeg_is_reported_as_jpeg(source_dir):
    path = source_dir / "camera.jpg"
    left = Image.new("RGB", (8, 6), (255, 0, 0))
    right = Image.new("RGB", (8, 6), (0, 0, 255))
    left.save(path, format="MPO", save_all=True, append_images=[right])
    with Image.open(path) as img:
        assert img.format == "MPO"
    assert classify(path) == Candidate(path, "image/jpeg")


def test_partially_written_image_is_rejected(source_dir):
    path = source_dir / "copying.jpg"
    Image.effect_noise((64, 64), 80).convert("RGB").save(path, format="JPEG", quality=95)
    data = path.read_bytes()
    path.write_bytes(data[: len(data) // 2])
    assert classify(path) is None
