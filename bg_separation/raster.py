from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, eq=False)
class RasterImage:
    """
    Immutable RGBA image: row-major uint8 buffer of shape (H, W, 4).

    The wrapped array is marked read-only; every stage builds a new image
    instead of writing into its input.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        px = self.pixels
        if px.ndim != 3 or px.shape[2] != 4:
            raise ValueError(f"Expected RGBA buffer (H,W,4), got shape={px.shape}")
        if px.dtype != np.uint8:
            raise ValueError(f"Expected uint8 samples, got dtype={px.dtype}")
        if not px.flags.c_contiguous or px.flags.writeable:
            px = np.ascontiguousarray(px).copy()
            px.setflags(write=False)
            object.__setattr__(self, "pixels", px)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def rgb(self) -> np.ndarray:
        return self.pixels[..., :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[..., 3]

    @classmethod
    def from_buffer(cls, width: int, height: int, buffer: bytes) -> "RasterImage":
        """Build from a flat RGBA byte buffer; length must be width * height * 4."""
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid image size: {(width, height)}")
        if len(buffer) != width * height * 4:
            raise ValueError(
                f"Buffer length {len(buffer)} does not match {width}x{height}x4={width * height * 4}"
            )
        arr = np.frombuffer(buffer, dtype=np.uint8).reshape(height, width, 4)
        return cls(arr)

    @classmethod
    def from_rgba(cls, rgb: np.ndarray, alpha: np.ndarray) -> "RasterImage":
        if rgb.ndim != 3 or rgb.shape[2] != 3:
            raise ValueError(f"Expected RGB image (H,W,3), got {rgb.shape}")
        if alpha.shape != rgb.shape[:2]:
            raise ValueError(f"Alpha shape {alpha.shape} does not match RGB {rgb.shape[:2]}")
        return cls(np.dstack([rgb, alpha]).astype(np.uint8, copy=False))

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()
