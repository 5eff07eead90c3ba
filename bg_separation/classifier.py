from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .config import (
    BRIGHTNESS_HIGH,
    BRIGHTNESS_LOW,
    EDGE_MARGIN,
    SATURATION_LOW,
    UNIFORM_COLOR_DISTANCE,
    UNIFORM_RADIUS,
    WEIGHT_EDGE,
    WEIGHT_EXTREME_BRIGHTNESS,
    WEIGHT_LOW_SATURATION,
    WEIGHT_UNIFORM_NEIGHBORHOOD,
)
from .contracts import ClassificationParams
from .raster import RasterImage


@dataclass(frozen=True, eq=False)
class PixelFlags:
    """Per-pixel boolean heuristics, each (H, W)."""

    edge: np.ndarray
    extreme_brightness: np.ndarray
    low_saturation: np.ndarray
    uniform_neighborhood: np.ndarray

    def any(self) -> np.ndarray:
        return self.edge | self.extreme_brightness | self.low_saturation | self.uniform_neighborhood

    def score(self) -> np.ndarray:
        """Weighted sum in integer percent."""
        return (
            WEIGHT_EDGE * self.edge.astype(np.int32)
            + WEIGHT_EXTREME_BRIGHTNESS * self.extreme_brightness.astype(np.int32)
            + WEIGHT_LOW_SATURATION * self.low_saturation.astype(np.int32)
            + WEIGHT_UNIFORM_NEIGHBORHOOD * self.uniform_neighborhood.astype(np.int32)
        )


@dataclass(frozen=True, eq=False)
class ConfidenceMap:
    """
    Background evidence per pixel.

    - confidence: float64 (H, W) in [0, 1], not thresholded
    - candidate: bool (H, W), at least one flag fired (or alpha == 0)
    - transparent: bool (H, W), alpha == 0 in the source image
    """

    confidence: np.ndarray
    candidate: np.ndarray
    transparent: np.ndarray

    @property
    def width(self) -> int:
        return int(self.confidence.shape[1])

    @property
    def height(self) -> int:
        return int(self.confidence.shape[0])


def edge_band(height: int, width: int, margin: int = EDGE_MARGIN) -> np.ndarray:
    """
    True for pixels near the image border.

    The far side uses `> size - margin`, so the band is `margin` wide on the
    left/top and `margin - 1` wide on the right/bottom.
    """
    ys = np.arange(height)[:, None]
    xs = np.arange(width)[None, :]
    return (xs < margin) | (xs > width - margin) | (ys < margin) | (ys > height - margin)


def _channel_sum(rgb: np.ndarray) -> np.ndarray:
    return rgb.astype(np.int32).sum(axis=2)


def extreme_brightness(rgb: np.ndarray) -> np.ndarray:
    # mean > HIGH or mean < LOW, compared on the channel sum to stay exact.
    s = _channel_sum(rgb)
    return (s > 3 * BRIGHTNESS_HIGH) | (s < 3 * BRIGHTNESS_LOW)


def low_saturation(rgb: np.ndarray) -> np.ndarray:
    c = rgb.astype(np.int32)
    mx = c.max(axis=2)
    mn = c.min(axis=2)
    sat = np.divide((mx - mn).astype(np.float64), mx, out=np.zeros(mx.shape, dtype=np.float64), where=mx > 0)
    return sat < SATURATION_LOW


def uniform_neighborhood(rgb: np.ndarray, threshold: float, radius: int = UNIFORM_RADIUS) -> np.ndarray:
    """
    Fraction of in-bounds samples in the (2r+1)^2 window (centre included) whose
    RGB distance to the centre is below UNIFORM_COLOR_DISTANCE, compared against
    1 - threshold.
    """
    h, w = rgb.shape[:2]
    r = int(radius)
    src = rgb.astype(np.int32)
    padded = np.pad(src, ((r, r), (r, r), (0, 0)), mode="edge")
    valid = np.pad(np.ones((h, w), dtype=bool), r, mode="constant", constant_values=False)
    limit = UNIFORM_COLOR_DISTANCE * UNIFORM_COLOR_DISTANCE

    similar = np.zeros((h, w), dtype=np.int32)
    total = np.zeros((h, w), dtype=np.int32)
    for dy in range(-r, r + 1):
        for dx in range(-r, r + 1):
            win = padded[r + dy : r + dy + h, r + dx : r + dx + w]
            ok = valid[r + dy : r + dy + h, r + dx : r + dx + w]
            d2 = ((win - src) ** 2).sum(axis=2)
            similar += ok & (d2 < limit)
            total += ok

    return similar / total > (1.0 - float(threshold))


def compute_flags(image: RasterImage, params: ClassificationParams) -> PixelFlags:
    rgb = image.rgb
    uniform = uniform_neighborhood(rgb, params.threshold)
    extreme = extreme_brightness(rgb)
    if params.preserve_shadows:
        # Dark, textured regions are likely cast shadows: keep them off the brightness flag.
        dark = _channel_sum(rgb) < 3 * BRIGHTNESS_LOW
        extreme = extreme & ~(dark & ~uniform)
    return PixelFlags(
        edge=edge_band(image.height, image.width),
        extreme_brightness=extreme,
        low_saturation=low_saturation(rgb),
        uniform_neighborhood=uniform,
    )


def classify_pixels(image: RasterImage, params: ClassificationParams) -> ConfidenceMap:
    """
    Score every pixel's background likelihood.

    Two stages:
      1) candidate gate: a pixel is examined only if at least one flag fires
      2) weighted sum of the fired flags (0.4 edge, 0.3 brightness,
         0.2 saturation, 0.1 uniformity)

    Pixels with alpha == 0 skip scoring and are forced to background.
    """
    flags = compute_flags(image, params)
    transparent = image.alpha == 0
    candidate = flags.any() | transparent

    confidence = np.where(candidate, flags.score(), 0).astype(np.float64) / 100.0
    confidence = np.minimum(confidence, 1.0)
    confidence[transparent] = 1.0
    return ConfidenceMap(confidence=confidence, candidate=candidate, transparent=transparent)
