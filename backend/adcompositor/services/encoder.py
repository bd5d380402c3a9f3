from __future__ import annotations

import io
import os

import numpy as np
from PIL import Image

from adcompositor.domain.raster import EncodedImage, RasterImage

DEFAULT_JPEG_QUALITY = 95


def _jpeg_quality() -> int:
    try:
        q = int(os.getenv("ADC_JPEG_QUALITY") or DEFAULT_JPEG_QUALITY)
    except ValueError:
        return DEFAULT_JPEG_QUALITY
    return max(1, min(q, 100))


def flatten_on_white(img: RasterImage) -> Image.Image:
    """Composite over opaque white and drop alpha: rgb*a + 255*(1-a)."""
    arr = img.pixels.astype(np.float32)
    a = arr[..., 3:4] / 255.0
    rgb = arr[..., :3] * a + 255.0 * (1.0 - a)
    rgb = np.clip(np.floor(rgb + 0.5), 0, 255).astype(np.uint8)
    return Image.fromarray(rgb, mode="RGB")


def encode_jpeg(img: Image.Image, quality: int | None = None) -> EncodedImage:
    if img.mode != "RGB":
        raise ValueError(f"JPEG output must be RGB, got {img.mode}")
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality or _jpeg_quality())
    return EncodedImage(data=buf.getvalue(), mime_type="image/jpeg")


def finalize(img: RasterImage, quality: int | None = None) -> EncodedImage:
    """Flatten the buffer on white and encode as JPEG; the result has no alpha."""
    return encode_jpeg(flatten_on_white(img), quality=quality)
