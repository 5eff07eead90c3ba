from __future__ import annotations

import numpy as np
from PIL import Image, ImageOps

from .config import AUTOCONTRAST_CUTOFF, FEATHER_CONTRAST_BOOST
from .raster import RasterImage


def _round_half_up(x: np.ndarray) -> np.ndarray:
    return np.floor(x + 0.5)


def apply_mask(image: RasterImage, mask: np.ndarray, feather_edges: bool) -> RasterImage:
    """
    Scale alpha by mask/255; never raises opacity.

    With feathering, soft-edge pixels (0 < mask < 255) get their RGB boosted by
    1 + (1 - mask/255) * FEATHER_CONTRAST_BOOST, clamped to 255.
    """
    if mask.ndim != 2 or mask.shape != (image.height, image.width):
        raise ValueError(f"Mask shape {mask.shape} does not match image {(image.height, image.width)}")

    m = mask.astype(np.float64) / 255.0
    alpha = _round_half_up(image.alpha.astype(np.float64) * m)
    rgb = image.rgb

    if feather_edges:
        soft = (mask > 0) & (mask < 255)
        if soft.any():
            factor = 1.0 + (1.0 - m) * FEATHER_CONTRAST_BOOST
            boosted = np.minimum(255.0, _round_half_up(rgb.astype(np.float64) * factor[..., None]))
            rgb = np.where(soft[..., None], boosted, rgb)

    return RasterImage.from_rgba(rgb.astype(np.uint8), alpha.astype(np.uint8))


def auto_enhance(image: RasterImage, cutoff: float = AUTOCONTRAST_CUTOFF) -> RasterImage:
    """
    Per-channel autocontrast on RGB; alpha is carried through unchanged.
    """
    rgb = Image.fromarray(np.ascontiguousarray(image.rgb))
    stretched = ImageOps.autocontrast(rgb, cutoff=cutoff)
    return RasterImage.from_rgba(np.asarray(stretched, dtype=np.uint8), image.alpha)
