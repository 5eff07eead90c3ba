from __future__ import annotations


class BackgroundRemovalError(Exception):
    """Base class for errors surfaced to the hosting application."""

    code = "processing_error"


class DecodeError(BackgroundRemovalError):
    """Input bytes are not a valid or supported raster image. Not retryable."""

    code = "decode_error"


class EncodeError(BackgroundRemovalError):
    """The composited image could not be serialized to the requested format."""

    code = "encode_error"


class InvalidParameterError(BackgroundRemovalError, ValueError):
    """Options outside their documented ranges; raised before any pipeline work."""

    code = "invalid_parameter"


class ProcessingCancelledError(BackgroundRemovalError):
    code = "cancelled"
