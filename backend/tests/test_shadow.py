import unittest

import numpy as np

from adcompositor.domain.raster import RasterImage, Rect
from adcompositor.services.compositor import Compositor
from adcompositor.services.shadow import (
    SCENE_SHADOW_LAYERS,
    STUDIO_SHADOW_LAYERS,
    ShadowService,
    paint_shadow_layer,
    shadow_alpha,
)


def _luminance(px) -> float:
    r, g, b = (float(v) for v in px[:3])
    return 0.299 * r + 0.587 * g + 0.114 * b


def _layer(name):
    return next(l for l in SCENE_SHADOW_LAYERS if l.name == name)


class TestShadowService(unittest.TestCase):
    def setUp(self):
        self.canvas = RasterImage.blank(400, 400, (255, 255, 255, 255))
        self.rect = Rect(100, 100, 200, 200)

    def test_core_darker_than_ambient_band(self):
        ShadowService().paint_shadows(self.canvas, self.rect)
        core_px = self.canvas.pixels[301, 200]
        ambient_px = self.canvas.pixels[304, 300]

        self.assertLess(_luminance(core_px), _luminance(ambient_px))
        # the ambient-only band is still shaded a little
        self.assertLess(_luminance(ambient_px), 255)

    def test_leaves_pixels_outside_ellipses_alone(self):
        ShadowService().paint_shadows(self.canvas, self.rect)
        self.assertEqual(self.canvas.pixels[0, 0].tolist(), [255, 255, 255, 255])
        self.assertEqual(self.canvas.pixels[250, 200].tolist(), [255, 255, 255, 255])
        self.assertEqual(self.canvas.pixels[304, 390].tolist(), [255, 255, 255, 255])

    def test_layer_order_stacks_darkness(self):
        ambient_only = self.canvas.copy()
        paint_shadow_layer(ambient_only, self.rect, _layer("ambient"))
        ShadowService().paint_shadows(self.canvas, self.rect)

        self.assertLess(int(self.canvas.pixels[301, 200, 0]), int(ambient_only.pixels[301, 200, 0]))

    def test_shadow_is_neutral_black(self):
        ShadowService().paint_shadows(self.canvas, self.rect)
        r, g, b, a = self.canvas.pixels[301, 200].tolist()
        self.assertEqual(r, g)
        self.assertEqual(g, b)
        self.assertEqual(a, 255)

    def test_clips_at_canvas_edges(self):
        small = RasterImage.blank(50, 50, (255, 255, 255, 255))
        ShadowService().paint_shadows(small, Rect(-20, 10, 100, 30))
        self.assertEqual(small.pixels.shape, (50, 50, 4))
        # base line at y=40 falls inside the canvas
        self.assertLess(int(small.pixels[41, 30, 0]), 255)

    def test_offscreen_rect_is_noop(self):
        before = self.canvas.pixels.copy()
        ShadowService().paint_shadows(self.canvas, Rect(1000, 1000, 50, 50))
        np.testing.assert_array_equal(self.canvas.pixels, before)

    def test_degenerate_rect_is_noop(self):
        before = self.canvas.pixels.copy()
        ShadowService().paint_shadows(self.canvas, Rect(100, 100, 0, 0))
        np.testing.assert_array_equal(self.canvas.pixels, before)

    def test_studio_layers_paint(self):
        ShadowService().paint_shadows(self.canvas, self.rect, STUDIO_SHADOW_LAYERS)
        self.assertLess(int(self.canvas.pixels[301, 200, 0]), 255)

    def test_over_transparent_destination_matches_draw_over(self):
        clear = RasterImage.blank(400, 400, (255, 255, 255, 0))
        paint_shadow_layer(clear, self.rect, _layer("core"))

        a = float(shadow_alpha(_layer("core"), self.rect, np.array([[200.5]]), np.array([[300.5]]))[0, 0])
        expected_a = int(np.floor(a * 255.0 + 0.5))
        self.assertGreater(expected_a, 0)
        # nothing opaque underneath, so the pixel is the black shadow itself
        self.assertEqual(clear.pixels[300, 200].tolist(), [0, 0, 0, expected_a])

        reference = RasterImage.blank(1, 1, (255, 255, 255, 0))
        Compositor.draw_over(reference, RasterImage.blank(1, 1, (0, 0, 0, expected_a)), Rect(0, 0, 1, 1))
        self.assertEqual(clear.pixels[300, 200].tolist(), reference.pixels[0, 0].tolist())

    def test_over_translucent_destination(self):
        half = RasterImage.blank(400, 400, (255, 255, 255, 128))
        paint_shadow_layer(half, self.rect, _layer("core"))

        a = float(shadow_alpha(_layer("core"), self.rect, np.array([[200.5]]), np.array([[300.5]]))[0, 0])
        da = 128 / 255.0
        out_a = a + da * (1.0 - a)
        r, g, b, alpha = half.pixels[300, 200].tolist()
        self.assertAlmostEqual(alpha, out_a * 255.0, delta=1)
        self.assertAlmostEqual(r, 255.0 * da * (1.0 - a) / out_a, delta=1)
        self.assertEqual(r, g)
        self.assertEqual(g, b)
        # untouched where the shadow has no coverage
        self.assertEqual(half.pixels[0, 0].tolist(), [255, 255, 255, 128])


class TestShadowAlpha(unittest.TestCase):
    def test_peak_at_gradient_centre(self):
        rect = Rect(100, 100, 200, 200)
        xs = np.array([[200.0]])
        ys = np.array([[300.0]])
        self.assertAlmostEqual(float(shadow_alpha(_layer("core"), rect, xs, ys)[0, 0]), 0.28, places=6)
        self.assertAlmostEqual(float(shadow_alpha(_layer("ambient"), rect, xs, ys)[0, 0]), 0.10, places=6)

    def test_mid_stop_interpolation(self):
        rect = Rect(100, 100, 200, 200)
        core = _layer("core")
        # core radius = 44; 11 px right of centre is t = 0.25, halfway to the 0.5 stop
        a = shadow_alpha(core, rect, np.array([[211.0]]), np.array([[300.0]]))
        self.assertAlmostEqual(float(a[0, 0]), 0.19, places=5)

    def test_zero_outside_ellipse(self):
        rect = Rect(100, 100, 200, 200)
        a = shadow_alpha(_layer("core"), rect, np.array([[200.0]]), np.array([[320.0]]))
        self.assertEqual(float(a[0, 0]), 0.0)


if __name__ == "__main__":
    unittest.main()
