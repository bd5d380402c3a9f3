from __future__ import annotations

import base64
import binascii
import io
import os
from typing import Union
from urllib.parse import urlparse

import requests
from PIL import Image, UnidentifiedImageError

from adcompositor.core.errors import DecodeError, FetchError
from adcompositor.domain.raster import RasterImage

# MPO is the multi-picture JPEG variant many phone cameras write.
SUPPORTED_FORMATS = {"PNG", "JPEG", "MPO"}

ImageSource = Union[bytes, bytearray, str]


def _fetch_timeout() -> float:
    try:
        return float(os.getenv("ADC_FETCH_TIMEOUT") or 20)
    except ValueError:
        return 20.0


def _is_remote(source: str) -> bool:
    return urlparse(source).scheme in {"http", "https"}


def _b64_to_bytes(b64: str) -> bytes:
    # Accept both data URLs and bare base64 payloads.
    if b64.startswith("data:"):
        if "," not in b64:
            raise DecodeError("malformed data URL")
        b64 = b64.split(",", 1)[1]
    try:
        return base64.b64decode(b64, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"invalid base64 image payload: {exc}") from exc


def fetch_image_bytes(url: str, timeout: float | None = None) -> tuple[bytes, str]:
    """Download a remote image. Returns (data, content_type)."""
    if not _is_remote(url):
        raise FetchError(f"unsupported image url scheme: {url[:64]}")

    headers = {
        "User-Agent": os.getenv("ADC_USER_AGENT", "adcompositor/1.0"),
        "Accept": "image/png,image/jpeg,image/*;q=0.8",
    }
    try:
        r = requests.get(url, headers=headers, timeout=timeout or _fetch_timeout())
        r.raise_for_status()
    except requests.RequestException as exc:
        raise FetchError(f"failed to fetch image {url[:128]}: {exc}") from exc

    ctype = (r.headers.get("content-type") or "application/octet-stream").split(";", 1)[0].strip()
    return r.content or b"", ctype


def read_source_bytes(source: ImageSource, timeout: float | None = None) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if not isinstance(source, str):
        raise DecodeError(f"unsupported image source type: {type(source).__name__}")

    src = source.strip()
    if not src:
        raise DecodeError("empty image source")
    if _is_remote(src):
        data, _ = fetch_image_bytes(src, timeout=timeout)
        return data
    return _b64_to_bytes(src)


def decode_image(data: bytes) -> RasterImage:
    if not data:
        raise DecodeError("empty image data")
    try:
        img = Image.open(io.BytesIO(data))
        fmt = img.format
        if fmt not in SUPPORTED_FORMATS:
            raise DecodeError(f"unsupported image format: {fmt}")
        img.load()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"cannot decode image: {exc}") from exc

    # Palette/grayscale/CMYK/RGB all normalize to straight-alpha RGBA.
    return RasterImage.from_pil(img)


def load_image(source: ImageSource, timeout: float | None = None) -> RasterImage:
    """Decode an embedded (bytes, data URL, base64) or remote (http/https) image."""
    return decode_image(read_source_bytes(source, timeout=timeout))
