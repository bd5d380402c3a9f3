from __future__ import annotations

from adcompositor.domain.raster import Rect

# Studio backdrop layout: product fits inside 60% x 65% of the canvas,
# with its vertical centre at 55% of the canvas height.
STUDIO_MAX_WIDTH_RATIO = 0.60
STUDIO_MAX_HEIGHT_RATIO = 0.65
STUDIO_CENTER_Y_RATIO = 0.55


def _aspect(size: tuple[int, int]) -> float:
    w, h = size
    if w <= 0 or h <= 0:
        raise ValueError(f"product size must be positive, got {size}")
    return w / h


def fit_within(product_size: tuple[int, int], max_w: float, max_h: float) -> tuple[float, float]:
    """Largest (w, h) with the product's aspect ratio that fits in max_w x max_h."""
    aspect = _aspect(product_size)
    if aspect > max_w / max_h:
        return max_w, max_w / aspect
    return max_h * aspect, max_h


def place(product_size: tuple[int, int], target: Rect) -> Rect:
    """Aspect-preserving, bottom-anchored draw rect for a product inside target.

    A relatively wider product fits the box width and keeps the box's left
    edge; a taller (or equal) one fits the box height and is centred
    horizontally. Either way the product's bottom edge sits on the box's
    bottom edge so it rests on the generated surface.
    """
    if target.width <= 0 or target.height <= 0:
        raise ValueError(f"target rect must have positive size, got {target}")

    aspect = _aspect(product_size)
    bottom = target.y + target.height

    if aspect > target.width / target.height:
        draw_w = target.width
        draw_h = target.width / aspect
        draw_x = target.x
    else:
        draw_h = target.height
        draw_w = target.height * aspect
        draw_x = target.x + (target.width - draw_w) / 2

    draw_y = bottom - draw_h
    # Re-derive the height from the rounded y so y + height lands on bottom.
    draw_h = bottom - draw_y
    return Rect(x=draw_x, y=draw_y, width=draw_w, height=draw_h)


def place_on_studio_backdrop(canvas_size: tuple[int, int], product_size: tuple[int, int]) -> Rect:
    """Lower-centre placement used when no scene layout is supplied."""
    cw, ch = canvas_size
    draw_w, draw_h = fit_within(
        product_size,
        cw * STUDIO_MAX_WIDTH_RATIO,
        ch * STUDIO_MAX_HEIGHT_RATIO,
    )
    draw_x = (cw - draw_w) / 2
    draw_y = ch * STUDIO_CENTER_Y_RATIO - draw_h / 2
    return Rect(x=draw_x, y=draw_y, width=draw_w, height=draw_h)
