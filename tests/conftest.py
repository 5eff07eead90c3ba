from __future__ import annotations

import io
from typing import Tuple

import numpy as np
import pytest
from PIL import Image


def solid_rgba(h: int, w: int, color: Tuple[int, int, int], alpha: int = 255) -> np.ndarray:
    img = np.zeros((h, w, 4), dtype=np.uint8)
    img[..., :3] = color
    img[..., 3] = alpha
    return img


def checkerboard_rgba(h: int, w: int, a: Tuple[int, int, int], b: Tuple[int, int, int]) -> np.ndarray:
    img = solid_rgba(h, w, a)
    ys, xs = np.indices((h, w))
    img[((ys + xs) % 2) == 1, :3] = b
    return img


def interior(arr: np.ndarray, margin: int = 5) -> np.ndarray:
    """Pixels outside the classifier's border band."""
    h, w = arr.shape[:2]
    return arr[margin : h - margin + 1, margin : w - margin + 1]


@pytest.fixture
def png_bytes():
    def _encode(pixels: np.ndarray) -> bytes:
        buf = io.BytesIO()
        Image.fromarray(pixels).save(buf, format="PNG")
        return buf.getvalue()

    return _encode


def decode_png(data: bytes) -> np.ndarray:
    return np.array(Image.open(io.BytesIO(data)).convert("RGBA"), dtype=np.uint8)
