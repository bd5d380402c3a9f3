from __future__ import annotations

import io
from enum import Enum
from typing import Optional

from adcompositor.core.errors import CompositingError
from adcompositor.core.logger import TaskLogger
from adcompositor.domain.raster import CompositingSpec, EncodedImage, RasterImage
from adcompositor.services.color_key import chroma_key_green, remove_white_background
from adcompositor.services.compositor import Compositor, resample
from adcompositor.services.cutout_client import CutoutClient
from adcompositor.services.encoder import finalize
from adcompositor.services.image_loader import ImageSource, load_image
from adcompositor.services.placement import place, place_on_studio_backdrop
from adcompositor.services.shadow import SCENE_SHADOW_LAYERS, STUDIO_SHADOW_LAYERS, ShadowService

compositor = Compositor()
shadow_service = ShadowService()


class ProductKind(str, Enum):
    """How the product image reached us, which decides how it is isolated."""

    CUTOUT = "cutout"  # already has real alpha
    GREEN_SCREEN = "green_screen"
    WHITE_BACKGROUND = "white_background"
    SEGMENT = "segment"  # opaque photo, sent to the cutout service


def _png_bytes(img: RasterImage) -> bytes:
    buf = io.BytesIO()
    img.to_pil().save(buf, format="PNG")
    return buf.getvalue()


def prepare_product(
    product: RasterImage,
    kind: ProductKind = ProductKind.CUTOUT,
    cutout_client: Optional[CutoutClient] = None,
) -> RasterImage:
    kind = ProductKind(kind)
    if kind is ProductKind.GREEN_SCREEN:
        return chroma_key_green(product)
    if kind is ProductKind.WHITE_BACKGROUND:
        return remove_white_background(product)
    if kind is ProductKind.SEGMENT:
        client = cutout_client or CutoutClient()
        return client.remove_background(_png_bytes(product))
    return product


def composite_scene(
    scene: RasterImage,
    product: RasterImage,
    spec: CompositingSpec,
    *,
    kind: ProductKind = ProductKind.CUTOUT,
    shadow: bool = True,
    cutout_client: Optional[CutoutClient] = None,
    logger: Optional[TaskLogger] = None,
) -> EncodedImage:
    """Place the real product photo into a generated scene.

    The canvas is spec-sized and starts opaque white; the scene is stretched
    over it, the product is drawn bottom-anchored inside productPosition with
    studio shadows underneath, and the result is flattened to JPEG.
    """
    logger = logger or TaskLogger()

    canvas = compositor.new_canvas(spec.canvas_width, spec.canvas_height)
    compositor.draw_full(canvas, scene)

    if not spec.enabled:
        logger.info("compositing disabled; flattening scene only")
        return finalize(canvas)

    target = spec.product_position
    if not target.within(spec.canvas_width, spec.canvas_height):
        # Scene generators sometimes overshoot the canvas a little; clip instead of failing.
        logger.warning(
            "placement out of canvas bounds",
            rect=[target.x, target.y, target.width, target.height],
            canvas=[spec.canvas_width, spec.canvas_height],
        )

    product = prepare_product(product, kind, cutout_client=cutout_client)
    draw_rect = place(product.size, target)

    if shadow:
        shadow_service.paint_shadows(canvas, draw_rect, SCENE_SHADOW_LAYERS)
    compositor.draw_over(canvas, product, draw_rect)

    logger.info(
        "scene composited",
        kind=ProductKind(kind).value,
        draw_rect=[round(draw_rect.x, 2), round(draw_rect.y, 2), round(draw_rect.width, 2), round(draw_rect.height, 2)],
    )
    return finalize(canvas)


def composite_on_backdrop(
    backdrop: RasterImage,
    product: RasterImage,
    *,
    kind: ProductKind = ProductKind.CUTOUT,
    cutout_client: Optional[CutoutClient] = None,
    logger: Optional[TaskLogger] = None,
) -> EncodedImage:
    """Put the product in the lower centre of a studio backdrop, at the backdrop's own size."""
    logger = logger or TaskLogger()

    canvas = backdrop.copy()
    product = prepare_product(product, kind, cutout_client=cutout_client)
    draw_rect = place_on_studio_backdrop(canvas.size, product.size)

    shadow_service.paint_shadows(canvas, draw_rect, STUDIO_SHADOW_LAYERS)
    compositor.draw_over(canvas, product, draw_rect)

    logger.info("backdrop composited", size=list(canvas.size))
    return finalize(canvas)


def strip_transparency(img: RasterImage) -> EncodedImage:
    """Flatten any image on white at its natural size."""
    return finalize(img)


def resize_to_max_dim(img: RasterImage, max_dim: int = 1024, quality: int = 85) -> Optional[EncodedImage]:
    """Shrink an image to fit within max_dim, re-encoded as JPEG.

    Returns None when the image is already small enough, in which case the
    caller should keep the original payload.
    """
    w, h = img.size
    if w <= max_dim and h <= max_dim:
        return None

    scale = min(max_dim / w, max_dim / h)
    nw = max(1, int(round(w * scale)))
    nh = max(1, int(round(h * scale)))

    return finalize(RasterImage(resample(img, (nw, nh))), quality=quality)


def composite_or_fallback(
    scene_source: ImageSource,
    product_source: ImageSource,
    spec: CompositingSpec,
    *,
    kind: ProductKind = ProductKind.CUTOUT,
    shadow: bool = True,
    cutout_client: Optional[CutoutClient] = None,
    logger: Optional[TaskLogger] = None,
) -> tuple[EncodedImage, bool]:
    """Best-effort overlay: composite when possible, else return the bare scene.

    Returns (image, composited). Only a scene that cannot be loaded at all
    raises, since there is nothing left to deliver.
    """
    logger = logger or TaskLogger()
    scene = load_image(scene_source)

    try:
        product = load_image(product_source)
        out = composite_scene(
            scene,
            product,
            spec,
            kind=kind,
            shadow=shadow,
            cutout_client=cutout_client,
            logger=logger,
        )
        return out, True
    except (CompositingError, ValueError, MemoryError) as exc:
        logger.error("compositing failed; delivering uncomposited scene", error=str(exc), error_type=type(exc).__name__)

    return strip_transparency(scene), False
