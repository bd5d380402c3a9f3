from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from adcompositor.domain.raster import RasterImage, Rect


@dataclass(frozen=True)
class ShadowLayer:
    """One soft elliptical shadow, sized from the placed product's draw rect.

    The radial gradient is centred on the product's base line (shifted right
    by shift_x * draw width); the ellipse that clips it sits offset_y pixels
    lower. stops are (fraction of radius, black alpha) pairs.
    """

    name: str
    radius: float
    semi_x: float
    semi_y: float
    offset_y: float
    stops: Tuple[Tuple[float, float], ...]
    shift_x: float = 0.0


# Scene compositing: diffuse ambient + key-light contact + hard core.
SCENE_SHADOW_LAYERS: Tuple[ShadowLayer, ...] = (
    ShadowLayer(
        name="ambient",
        radius=0.70,
        semi_x=0.65,
        semi_y=0.06,
        offset_y=4,
        stops=((0.0, 0.10), (0.4, 0.05), (0.7, 0.02), (1.0, 0.0)),
    ),
    ShadowLayer(
        name="contact",
        radius=0.38,
        semi_x=0.38,
        semi_y=0.025,
        offset_y=2,
        stops=((0.0, 0.18), (0.4, 0.08), (1.0, 0.0)),
        # key light from the upper left throws the shadow slightly right
        shift_x=0.03,
    ),
    ShadowLayer(
        name="core",
        radius=0.22,
        semi_x=0.22,
        semi_y=0.012,
        offset_y=1,
        stops=((0.0, 0.28), (0.5, 0.10), (1.0, 0.0)),
    ),
)

# Studio backdrop compositing uses a slightly stronger two-tier shadow.
STUDIO_SHADOW_LAYERS: Tuple[ShadowLayer, ...] = (
    ShadowLayer(
        name="ambient",
        radius=0.70,
        semi_x=0.60,
        semi_y=0.05,
        offset_y=4,
        stops=((0.0, 0.12), (0.4, 0.05), (1.0, 0.0)),
    ),
    ShadowLayer(
        name="contact",
        radius=0.25,
        semi_x=0.25,
        semi_y=0.015,
        offset_y=2,
        stops=((0.0, 0.22), (0.5, 0.08), (1.0, 0.0)),
    ),
)


def shadow_alpha(layer: ShadowLayer, draw_rect: Rect, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """Per-pixel shadow opacity in [0, 1] at sample points (xs, ys)."""
    w, h = draw_rect.width, draw_rect.height
    gx = draw_rect.x + w / 2 + w * layer.shift_x
    gy = draw_rect.y + h
    radius = w * layer.radius
    rx = w * layer.semi_x
    ry = h * layer.semi_y
    if radius <= 0 or rx <= 0 or ry <= 0:
        return np.zeros(np.broadcast(xs, ys).shape, dtype=np.float32)

    ey = gy + layer.offset_y
    inside = ((xs - gx) / rx) ** 2 + ((ys - ey) / ry) ** 2 <= 1.0

    t = np.hypot(xs - gx, ys - gy) / radius
    offsets = [s[0] for s in layer.stops]
    alphas = [s[1] for s in layer.stops]
    # np.interp clamps past the last stop, like a canvas gradient
    a = np.interp(t, offsets, alphas)
    return np.where(inside, a, 0.0).astype(np.float32)


def paint_shadow_layer(dest: RasterImage, draw_rect: Rect, layer: ShadowLayer) -> RasterImage:
    """Composite one black shadow layer over dest, in place, clipped to dest."""
    w, h = draw_rect.width, draw_rect.height
    if w <= 0 or h <= 0:
        return dest

    cx = draw_rect.x + w / 2 + w * layer.shift_x
    cy = draw_rect.y + h + layer.offset_y
    rx = w * layer.semi_x
    ry = h * layer.semi_y

    x0 = max(0, int(math.floor(cx - rx)))
    x1 = min(dest.width, int(math.ceil(cx + rx)))
    y0 = max(0, int(math.floor(cy - ry)))
    y1 = min(dest.height, int(math.ceil(cy + ry)))
    if x0 >= x1 or y0 >= y1:
        return dest

    # sample at pixel centres
    xs = (np.arange(x0, x1, dtype=np.float64) + 0.5)[None, :]
    ys = (np.arange(y0, y1, dtype=np.float64) + 0.5)[:, None]
    a = shadow_alpha(layer, draw_rect, xs, ys)
    if not a.any():
        return dest

    # black "over" a straight-alpha destination
    region = dest.pixels[y0:y1, x0:x1].astype(np.float64) / 255.0
    da = region[..., 3]
    kept = da * (1.0 - a)
    out_a = a + kept
    scale = np.where(out_a > 0, kept / np.maximum(out_a, 1e-12), 1.0)
    region[..., :3] *= scale[..., None]
    region[..., 3] = out_a
    dest.pixels[y0:y1, x0:x1] = np.clip(np.floor(region * 255.0 + 0.5), 0, 255).astype(np.uint8)
    return dest


class ShadowService:
    def paint_shadows(
        self,
        dest: RasterImage,
        draw_rect: Rect,
        layers: Sequence[ShadowLayer] = SCENE_SHADOW_LAYERS,
    ) -> RasterImage:
        """Paint layers in order (widest first) under where the product will be drawn."""
        for layer in layers:
            paint_shadow_layer(dest, draw_rect, layer)
        return dest
