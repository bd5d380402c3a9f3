import base64
import os

import httpx

from adcompositor.core.errors import CutoutError, DecodeError, FetchError
from adcompositor.domain.raster import RasterImage
from adcompositor.services.image_loader import load_image


def _png_data_url(png_bytes: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


class CutoutClient:
    """Client for the external background-removal service.

    Request:  {"productImageBase64": "data:image/png;base64,..."}
    Response: {"success": true, "cutoutBase64": "<data url or http url>"}
    """

    def __init__(self, base_url: str | None = None, api_key: str | None = None, timeout: float | None = None):
        self.base_url = base_url or (os.getenv("ADC_CUTOUT_URL") or "").strip() or "http://127.0.0.1:8911/remove-background"
        self.api_key = api_key if api_key is not None else (os.getenv("ADC_CUTOUT_API_KEY") or "").strip()
        self.timeout = timeout or float(os.getenv("ADC_CUTOUT_TIMEOUT") or 180)

    def remove_background(self, png_bytes: bytes) -> RasterImage:
        """Return the product cutout (RGBA with real alpha)."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(
                    self.base_url,
                    json={"productImageBase64": _png_data_url(png_bytes)},
                    headers=headers,
                )
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as exc:
            raise CutoutError(f"cutout service returned {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise CutoutError(f"cutout service call failed: {exc}") from exc

        if not isinstance(payload, dict):
            raise CutoutError("malformed cutout service response")
        cutout = payload.get("cutoutBase64")
        if not payload.get("success", True) or not cutout:
            raise CutoutError(payload.get("error") or "no cutout image returned")

        try:
            return load_image(cutout)
        except (DecodeError, FetchError) as exc:
            raise CutoutError(f"cutout image unusable: {exc}") from exc
