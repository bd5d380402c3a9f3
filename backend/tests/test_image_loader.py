import base64
import io
import unittest
from unittest import mock

import requests
from PIL import Image

from adcompositor.core.errors import DecodeError, FetchError
from adcompositor.services.image_loader import decode_image, load_image


def _encode(img: Image.Image, fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


class TestDecode(unittest.TestCase):
    def test_png_rgba(self):
        img = Image.new("RGBA", (3, 2), (10, 20, 30, 40))
        r = decode_image(_encode(img))
        self.assertEqual(r.size, (3, 2))
        self.assertEqual(r.pixels[1, 2].tolist(), [10, 20, 30, 40])

    def test_grayscale_normalized_to_rgba(self):
        r = decode_image(_encode(Image.new("L", (2, 2), 77)))
        self.assertEqual(r.pixels[0, 0].tolist(), [77, 77, 77, 255])

    def test_palette_transparency_becomes_alpha(self):
        img = Image.new("P", (2, 1), 0)
        img.putpalette([255, 255, 255, 200, 0, 0] + [0, 0, 0] * 254)
        img.putpixel((1, 0), 1)
        img.info["transparency"] = 0
        r = decode_image(_encode(img))
        self.assertEqual(int(r.alpha[0, 0]), 0)
        self.assertEqual(r.pixels[0, 1].tolist(), [200, 0, 0, 255])

    def test_jpeg(self):
        r = decode_image(_encode(Image.new("RGB", (8, 8), (0, 128, 255)), "JPEG"))
        self.assertEqual(r.size, (8, 8))
        self.assertEqual(int(r.alpha.min()), 255)

    def test_empty_and_garbage(self):
        with self.assertRaises(DecodeError):
            decode_image(b"")
        with self.assertRaises(DecodeError):
            decode_image(b"definitely not an image")

    def test_unsupported_format(self):
        with self.assertRaises(DecodeError):
            decode_image(_encode(Image.new("RGB", (2, 2)), "GIF"))


class TestLoadImage(unittest.TestCase):
    def setUp(self):
        self.png = _encode(Image.new("RGB", (4, 4), (1, 2, 3)))

    def test_data_url_and_bare_base64(self):
        b64 = base64.b64encode(self.png).decode("ascii")
        self.assertEqual(load_image(f"data:image/png;base64,{b64}").size, (4, 4))
        self.assertEqual(load_image(b64).size, (4, 4))

    def test_bytes(self):
        self.assertEqual(load_image(self.png).pixels[0, 0].tolist(), [1, 2, 3, 255])

    def test_blank_source(self):
        with self.assertRaises(DecodeError):
            load_image("   ")

    def test_remote_fetch_uses_timeout(self):
        resp = mock.Mock()
        resp.content = self.png
        resp.headers = {"content-type": "image/png"}
        resp.raise_for_status.return_value = None

        with mock.patch("adcompositor.services.image_loader.requests.get", return_value=resp) as get:
            r = load_image("https://cdn.example.com/p.png", timeout=5)

        self.assertEqual(r.size, (4, 4))
        self.assertEqual(get.call_args.kwargs["timeout"], 5)

    def test_remote_failure_is_fetch_error(self):
        with mock.patch(
            "adcompositor.services.image_loader.requests.get",
            side_effect=requests.ConnectionError("boom"),
        ):
            with self.assertRaises(FetchError):
                load_image("https://cdn.example.com/missing.png")

    def test_remote_http_error_is_fetch_error(self):
        resp = mock.Mock()
        resp.raise_for_status.side_effect = requests.HTTPError("404")
        with mock.patch("adcompositor.services.image_loader.requests.get", return_value=resp):
            with self.assertRaises(FetchError):
                load_image("http://cdn.example.com/404.png")


if __name__ == "__main__":
    unittest.main()
