import asyncio
import json
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from adcompositor.core.errors import CutoutError, DecodeError, FetchError
from adcompositor.core.logger import TaskLogger
from adcompositor.domain.raster import CompositingSpec
from adcompositor.services.image_loader import load_image
from adcompositor.services.pipeline import (
    ProductKind,
    composite_on_backdrop,
    composite_or_fallback,
    strip_transparency,
)

router = APIRouter(tags=["composite"])


def _parse_spec(compositing: str) -> CompositingSpec:
    try:
        return CompositingSpec.from_dict(json.loads(compositing))
    except (json.JSONDecodeError, ValueError, AttributeError) as exc:
        raise HTTPException(status_code=422, detail=f"Invalid compositing: {exc}") from exc


def _parse_kind(product_kind: str) -> ProductKind:
    try:
        return ProductKind((product_kind or "cutout").strip().lower())
    except ValueError as exc:
        allowed = ", ".join(k.value for k in ProductKind)
        raise HTTPException(status_code=422, detail=f"product_kind must be one of: {allowed}") from exc


async def _read_source(upload: Optional[UploadFile], url: Optional[str], name: str):
    if upload is not None:
        return await upload.read()
    if url:
        return url
    raise HTTPException(status_code=400, detail=f"{name} or {name}_url is required")


def _jpeg_response(data: bytes, trace_id: str, composited: bool = True) -> Response:
    return Response(
        content=data,
        media_type="image/jpeg",
        headers={"X-Composited": "true" if composited else "false", "X-Trace-Id": trace_id},
    )


@router.post("/composite")
async def composite(
    compositing: str = Form(...),
    scene_image: Optional[UploadFile] = File(None),
    scene_url: Optional[str] = Form(None),
    product_image: Optional[UploadFile] = File(None),
    product_url: Optional[str] = Form(None),
    product_kind: str = Form("cutout"),
    shadow: bool = Form(True),
):
    """Place the product into the generated scene; falls back to the bare scene."""
    spec = _parse_spec(compositing)
    kind = _parse_kind(product_kind)
    scene_src = await _read_source(scene_image, scene_url, "scene_image")
    product_src = await _read_source(product_image, product_url, "product_image")

    logger = TaskLogger()
    try:
        out, composited = await asyncio.to_thread(
            composite_or_fallback,
            scene_src,
            product_src,
            spec,
            kind=kind,
            shadow=shadow,
            logger=logger,
        )
    except DecodeError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid scene_image: {exc}") from exc
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=f"scene_image unreachable: {exc}") from exc

    return _jpeg_response(out.data, logger.trace_id, composited)


@router.post("/composite/backdrop")
async def composite_backdrop(
    backdrop_image: Optional[UploadFile] = File(None),
    backdrop_url: Optional[str] = Form(None),
    product_image: Optional[UploadFile] = File(None),
    product_url: Optional[str] = Form(None),
    product_kind: str = Form("cutout"),
):
    kind = _parse_kind(product_kind)
    backdrop_src = await _read_source(backdrop_image, backdrop_url, "backdrop_image")
    product_src = await _read_source(product_image, product_url, "product_image")

    logger = TaskLogger()

    def _run():
        backdrop = load_image(backdrop_src)
        product = load_image(product_src)
        return composite_on_backdrop(backdrop, product, kind=kind, logger=logger)

    try:
        out = await asyncio.to_thread(_run)
    except (DecodeError, CutoutError) as exc:
        logger.error("backdrop compositing failed", error=str(exc))
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except FetchError as exc:
        logger.error("backdrop compositing failed", error=str(exc))
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return _jpeg_response(out.data, logger.trace_id)


@router.post("/strip-transparency")
async def strip_transparency_endpoint(
    image: Optional[UploadFile] = File(None),
    image_url: Optional[str] = Form(None),
):
    src = await _read_source(image, image_url, "image")
    logger = TaskLogger()
    try:
        out = await asyncio.to_thread(lambda: strip_transparency(load_image(src)))
    except DecodeError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid image: {exc}") from exc
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return _jpeg_response(out.data, logger.trace_id)
