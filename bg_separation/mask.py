from __future__ import annotations

import cv2
import numpy as np

from .classifier import ConfidenceMap
from .config import FEATHER_RADIUS
from .raster import RasterImage

KEEP = 255
DISCARD = 0


def threshold_mask(confidence: ConfidenceMap, threshold: float) -> np.ndarray:
    """
    Hard keep/discard decision.

    Strict comparison: confidence == threshold is kept.
    """
    discard = confidence.candidate & (confidence.confidence > float(threshold))
    discard |= confidence.transparent
    return np.where(discard, DISCARD, KEEP).astype(np.uint8)


def _window_sum(values: np.ndarray, radius: int) -> np.ndarray:
    # Zero padding outside the image: only in-bounds samples contribute.
    k = 2 * int(radius) + 1
    return cv2.boxFilter(
        values,
        ddepth=-1,
        ksize=(k, k),
        normalize=False,
        borderType=cv2.BORDER_CONSTANT,
    )


def feather_mask(mask: np.ndarray, radius: int = FEATHER_RADIUS) -> np.ndarray:
    """
    Unweighted mean over the (2r+1)^2 window, clamped to in-bounds neighbours
    and truncated to uint8. Output stays within [min, max] of each input window.
    """
    if mask.ndim != 2:
        raise ValueError(f"Expected 2D mask, got shape={mask.shape}")
    m = mask.astype(np.float64)
    sums = np.rint(_window_sum(m, radius)).astype(np.int64)
    counts = np.rint(_window_sum(np.ones_like(m), radius)).astype(np.int64)
    return (sums // counts).astype(np.uint8)


def build_mask(
    confidence: ConfidenceMap,
    image: RasterImage,
    threshold: float,
    feather_edges: bool,
) -> np.ndarray:
    """
    Full-resolution mask (H, W) uint8: 0 discard, 255 keep, in-between = soft edge.

    Alpha-zero pixels stay at 0 after feathering.
    """
    if (confidence.height, confidence.width) != (image.height, image.width):
        raise ValueError(
            f"Confidence map {confidence.width}x{confidence.height} does not match image {image.width}x{image.height}"
        )
    mask = threshold_mask(confidence, threshold)
    if feather_edges:
        mask = feather_mask(mask)
        mask[image.alpha == 0] = DISCARD
    return mask
