import unittest

import numpy as np

from bg_separation.classifier import ConfidenceMap, classify_pixels
from bg_separation.contracts import ClassificationParams
from bg_separation.mask import build_mask, feather_mask, threshold_mask
from bg_separation.raster import RasterImage


def _cmap(values: np.ndarray, candidate=None, transparent=None) -> ConfidenceMap:
    values = values.astype(np.float64)
    if candidate is None:
        candidate = values > 0
    if transparent is None:
        transparent = np.zeros(values.shape, dtype=bool)
    return ConfidenceMap(confidence=values, candidate=candidate, transparent=transparent)


class TestThresholdMask(unittest.TestCase):
    def test_confidence_equal_to_threshold_is_kept(self):
        conf = np.array([[0.3, 0.5, 0.6]])
        mask = threshold_mask(_cmap(conf), 0.5)
        self.assertEqual(mask.tolist(), [[255, 255, 0]])

    def test_integer_tolerance_boundary_is_exact(self):
        # 0.2 + 0.1 accumulated in floats would exceed 0.3; scores are exact here.
        px = np.zeros((20, 20, 4), dtype=np.uint8)
        px[..., :3] = 128
        px[..., 3] = 255
        img = RasterImage(px)
        params = ClassificationParams(tolerance=30)
        cmap = classify_pixels(img, params)
        mask = threshold_mask(cmap, params.threshold)
        self.assertTrue((mask[5:16, 5:16] == 255).all())

        params = ClassificationParams(tolerance=29)
        mask = threshold_mask(classify_pixels(img, params), params.threshold)
        self.assertTrue((mask[5:16, 5:16] == 0).all())

    def test_non_candidates_are_never_discarded(self):
        conf = np.zeros((3, 3))
        mask = threshold_mask(_cmap(conf), 0.0)
        self.assertTrue((mask == 255).all())

    def test_transparent_pixels_discarded_at_max_tolerance(self):
        conf = np.full((2, 2), 1.0)
        transparent = np.array([[True, False], [False, False]])
        mask = threshold_mask(_cmap(conf, transparent=transparent), 1.0)
        self.assertEqual(mask.tolist(), [[0, 255], [255, 255]])


class TestFeatherMask(unittest.TestCase):
    def test_single_hole_is_spread_over_window(self):
        m = np.full((5, 5), 255, dtype=np.uint8)
        m[2, 2] = 0
        out = feather_mask(m)
        # centre: 24 * 255 / 25 = 244.8 -> 244
        self.assertEqual(int(out[2, 2]), 244)
        # corner: 3x3 in-bounds window, 8 * 255 / 9 = 226.6 -> 226
        self.assertEqual(int(out[0, 0]), 226)
        self.assertEqual(out.dtype, np.uint8)

    def test_uniform_mask_is_unchanged(self):
        for v in (0, 255):
            m = np.full((7, 4), v, dtype=np.uint8)
            self.assertTrue(np.array_equal(feather_mask(m), m))

    def test_smoothing_never_creates_new_extrema(self):
        rng = np.random.default_rng(0)
        m = (rng.integers(0, 2, size=(9, 12)) * 255).astype(np.uint8)
        out = feather_mask(m)
        h, w = m.shape
        for y in range(h):
            for x in range(w):
                win = m[max(0, y - 2) : y + 3, max(0, x - 2) : x + 3]
                self.assertGreaterEqual(int(out[y, x]), int(win.min()))
                self.assertLessEqual(int(out[y, x]), int(win.max()))

    def test_rejects_non_2d(self):
        with self.assertRaises(ValueError):
            feather_mask(np.zeros((2, 2, 1), dtype=np.uint8))


class TestBuildMask(unittest.TestCase):
    def _image(self, h=12, w=12, alpha=255):
        px = np.zeros((h, w, 4), dtype=np.uint8)
        px[..., 0] = 200
        px[..., 1] = 50
        px[..., 2] = 50
        px[..., 3] = alpha
        return px

    def test_alpha_zero_stays_discarded_after_feathering(self):
        px = self._image()
        px[6, 6, 3] = 0
        img = RasterImage(px)
        params = ClassificationParams(tolerance=100)
        mask = build_mask(classify_pixels(img, params), img, params.threshold, feather_edges=True)
        self.assertEqual(int(mask[6, 6]), 0)
        self.assertEqual(mask.shape, (12, 12))

    def test_dimensions_must_match(self):
        img = RasterImage(self._image(4, 4))
        with self.assertRaises(ValueError):
            build_mask(_cmap(np.zeros((3, 4))), img, 0.5, feather_edges=False)

    def test_feathered_values_stay_within_pre_feather_window(self):
        rng = np.random.default_rng(1)
        px = rng.integers(0, 256, size=(16, 16, 4), dtype=np.uint8)
        img = RasterImage(px)
        params = ClassificationParams(tolerance=40)
        cmap = classify_pixels(img, params)
        hard = threshold_mask(cmap, params.threshold)
        mask = build_mask(cmap, img, params.threshold, feather_edges=True)
        self.assertEqual(mask.shape, (16, 16))
        for y in range(16):
            for x in range(16):
                win = hard[max(0, y - 2) : y + 3, max(0, x - 2) : x + 3]
                self.assertGreaterEqual(int(mask[y, x]), int(win.min()))
                self.assertLessEqual(int(mask[y, x]), int(win.max()))


if __name__ == "__main__":
    unittest.main()
