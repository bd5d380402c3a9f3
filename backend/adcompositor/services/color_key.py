from __future__ import annotations

import numpy as np

from adcompositor.domain.raster import RasterImage


def _channels(img: RasterImage) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    rgb = img.pixels[..., :3].astype(np.int32)
    return rgb[..., 0], rgb[..., 1], rgb[..., 2]


def _div_half_up(num: np.ndarray, den) -> np.ndarray:
    # integer num / den rounded half-up; thresholds and ratios stay exact
    return ((2 * num + den) // (2 * den)).astype(np.uint8)


def chroma_key_green(img: RasterImage) -> RasterImage:
    """Make green-screen pixels transparent, in place. RGB is never touched.

    Strong green (g>180, r<120, b<120) goes fully transparent. Weaker green
    dominance (g>150 and g more than 1.4x both r and b) keeps a partial alpha
    of 255 * (1 - greenness) so the product silhouette gets a soft edge.
    """
    r, g, b = _channels(img)

    keyed = (g > 180) & (r < 120) & (b < 120)
    soft = ~keyed & (g > 150) & (5 * g > 7 * r) & (5 * g > 7 * b)

    alpha = img.alpha
    alpha[keyed] = 0
    if soft.any():
        # 255 * (1 - (g - max(r, b)) / g) == 255 * max(r, b) / g
        alpha[soft] = _div_half_up(255 * np.maximum(r[soft], b[soft]), g[soft])
    return img


def remove_white_background(img: RasterImage) -> RasterImage:
    """Make white catalog backdrops transparent, in place.

    Near-white (all channels > 240) goes fully transparent; the 221-240 band
    gets alpha 255 * (1 - whiteness) to anti-alias the product edge.
    """
    r, g, b = _channels(img)

    white = (r > 240) & (g > 240) & (b > 240)
    soft = ~white & (r > 220) & (g > 220) & (b > 220)

    alpha = img.alpha
    alpha[white] = 0
    if soft.any():
        # 255 * (1 - sum / 765) == (765 - sum) / 3
        alpha[soft] = _div_half_up(765 - (r[soft] + g[soft] + b[soft]), 3)
    return img
