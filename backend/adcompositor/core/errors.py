class CompositingError(Exception):
    """Base class for failures raised by the compositing engine."""


class DecodeError(CompositingError):
    """Source bytes are empty, unreadable, or not a supported raster format."""


class FetchError(CompositingError):
    """A remote image source could not be retrieved."""


class CutoutError(CompositingError):
    """The background-removal collaborator failed or returned no cutout."""
