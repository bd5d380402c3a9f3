from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np
from PIL import Image

from adcompositor.domain.raster import RasterImage, Rect


def _round_px(v: float) -> int:
    return int(math.floor(v + 0.5))


def _to_u8(arr: np.ndarray) -> np.ndarray:
    return np.clip(np.floor(arr * 255.0 + 0.5), 0, 255).astype(np.uint8)


def resample(
    src: RasterImage,
    size: Tuple[int, int],
    *,
    box: Optional[Tuple[float, float, float, float]] = None,
    straight_alpha: bool = True,
) -> np.ndarray:
    """Bilinear resize of src to size=(w, h); returns an HxWx4 uint8 array.

    Pillow resizes RGBA through premultiplied alpha, so transparent pixels do
    not bleed their color into the edge. ``box`` restricts the source region
    (in source pixel coordinates, fractional allowed) that maps onto size.
    """
    if box is None and src.size == size:
        return src.pixels
    mode = "RGBA" if straight_alpha else "RGBa"
    img = Image.fromarray(src.pixels, mode=mode)
    return np.array(img.resize(size, Image.Resampling.BILINEAR, box=box), dtype=np.uint8)


class Compositor:
    @staticmethod
    def new_canvas(width: int, height: int, color: Tuple[int, int, int, int] = (255, 255, 255, 255)) -> RasterImage:
        return RasterImage.blank(width, height, color)

    @staticmethod
    def draw_over(
        dest: RasterImage,
        src: RasterImage,
        rect: Rect,
        src_uses_straight_alpha: bool = True,
    ) -> RasterImage:
        """Source-over src onto dest inside rect, in place.

        Args:
            dest: straight-alpha canvas (mutated)
            src: layer to draw; resampled to rect's size
            rect: destination rect; any part outside dest is clipped
            src_uses_straight_alpha: False when src RGB is already premultiplied
        """
        x0 = _round_px(rect.x)
        y0 = _round_px(rect.y)
        tw = _round_px(rect.x + rect.width) - x0
        th = _round_px(rect.y + rect.height) - y0
        if tw <= 0 or th <= 0 or src.width == 0 or src.height == 0:
            return dest

        # Clip to canvas
        dx0, dy0 = max(0, x0), max(0, y0)
        dx1, dy1 = min(dest.width, x0 + tw), min(dest.height, y0 + th)
        if dx0 >= dx1 or dy0 >= dy1:
            return dest

        # Resample only the visible window; the full rect may be far larger than dest.
        sx0, sy0 = dx0 - x0, dy0 - y0
        cw, ch = dx1 - dx0, dy1 - dy0
        if (cw, ch) == (tw, th):
            layer = resample(src, (tw, th), straight_alpha=src_uses_straight_alpha)
        else:
            kx, ky = src.width / tw, src.height / th
            box = (sx0 * kx, sy0 * ky, (sx0 + cw) * kx, (sy0 + ch) * ky)
            layer = resample(src, (cw, ch), box=box, straight_alpha=src_uses_straight_alpha)
        s = layer.astype(np.float32) / 255.0
        d = dest.pixels[dy0:dy1, dx0:dx1].astype(np.float32) / 255.0

        sa = s[..., 3:4]
        da = d[..., 3:4]
        out_a = sa + da * (1.0 - sa)

        if src_uses_straight_alpha:
            num = s[..., :3] * sa + d[..., :3] * da * (1.0 - sa)
        else:
            num = s[..., :3] + d[..., :3] * da * (1.0 - sa)
        out_rgb = np.where(out_a > 0, num / np.maximum(out_a, 1e-12), 0.0)

        out = np.concatenate([out_rgb, out_a], axis=-1)
        dest.pixels[dy0:dy1, dx0:dx1] = _to_u8(out)
        return dest

    def draw_full(self, dest: RasterImage, src: RasterImage) -> RasterImage:
        """Stretch src over the whole of dest (scene onto canvas)."""
        return self.draw_over(dest, src, Rect(0, 0, dest.width, dest.height))
