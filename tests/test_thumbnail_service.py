from __future__ import annotations

import base64
import io

from PIL import Image

from infrastructure.thumbnail_service import generate_thumbnail


def _decode(uri: str) -> Image.Image:
    header, payload = uri.split(",", 1)
    assert header == "data:image/jpeg;base64"
    return Image.open(io.BytesIO(base64.b64decode(payload)))


def test_long_edge_is_limited(jpeg_factory):
    uri = generate_thumbnail(jpeg_factory("wide.jpg", size=(800, 400)))

    assert _decode(uri).size == (300, 150)


def test_custom_size(jpeg_factory):
    uri = generate_thumbnail(jpeg_factory("tall.jpg", size=(200, 400)), max_size=100)

    assert _decode(uri).size == (50, 100)


def test_small_images_are_not_upscaled(jpeg_factory):
    uri = generate_thumbnail(jpeg_factory("small.jpg", size=(64, 48)))

    assert _decode(uri).size == (64, 48)


def test_png_with_alpha(tmp_path):
    path = tmp_path / "alpha.png"
    Image.new("RGBA", (40, 40), (0, 0, 255, 128)).save(path)

    assert _decode(generate_thumbnail(path)).mode == "RGB"


def test_undecodable_file(tmp_path):
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"\x00" * 32)

    assert generate_thumbnail(path) is None
