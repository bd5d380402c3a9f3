from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

import numpy as np
from PIL import Image


@dataclass
class RasterImage:
    """RGBA raster, 8 bits per channel, straight (non-premultiplied) alpha.

    pixels: uint8 array of shape (height, width, 4), owned by this image.
    """

    pixels: np.ndarray

    def __post_init__(self):
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(f"expected HxWx4 pixels, got shape {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            self.pixels = self.pixels.astype(np.uint8)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[..., 3]

    @classmethod
    def blank(cls, width: int, height: int, color: Tuple[int, int, int, int] = (0, 0, 0, 0)) -> "RasterImage":
        arr = np.empty((max(0, height), max(0, width), 4), dtype=np.uint8)
        arr[...] = color
        return cls(arr)

    @classmethod
    def from_pil(cls, img: Image.Image) -> "RasterImage":
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        return cls(np.array(img, dtype=np.uint8))

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels, mode="RGBA")

    def copy(self) -> "RasterImage":
        return RasterImage(self.pixels.copy())


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def within(self, width: int, height: int) -> bool:
        return self.x >= 0 and self.y >= 0 and self.right <= width and self.bottom <= height


@dataclass(frozen=True)
class CompositingSpec:
    canvas_width: int
    canvas_height: int
    product_position: Rect
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompositingSpec":
        """Parse the scene generator's JSON (camelCase keys)."""
        enabled = data.get("enabled", True)
        if not isinstance(enabled, bool):
            raise ValueError(f"enabled must be a boolean, got {enabled!r}")
        try:
            pos = data["productPosition"]
            rect = Rect(
                x=int(pos["x"]),
                y=int(pos["y"]),
                width=int(pos["width"]),
                height=int(pos["height"]),
            )
            spec = cls(
                canvas_width=int(data["canvasWidth"]),
                canvas_height=int(data["canvasHeight"]),
                product_position=rect,
                enabled=enabled,
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"invalid compositing spec: {exc}") from exc

        if spec.canvas_width <= 0 or spec.canvas_height <= 0:
            raise ValueError("canvasWidth/canvasHeight must be positive")
        if rect.width <= 0 or rect.height <= 0:
            raise ValueError("productPosition width/height must be positive")
        return spec


@dataclass(frozen=True)
class EncodedImage:
    data: bytes
    mime_type: str = "image/jpeg"
