"""Tests for the preview module.

This module tests the preview/display and preview/export functionality including:
- Tone mapping functions (filmic, Reinhard, ACES)
- Gamma correction
- 8-bit conversion and PNG export

Note: Tests avoid displaying actual windows by not calling show_preview
in automated tests. The processing functions are tested directly.
"""

import numpy as np
import pytest
from PIL import Image as PILImage


class TestToneMapFilmic:
    """Test the filmic curve."""

    def test_filmic_preserves_black(self):
        """Test that values below the toe map to zero."""
        from voxeltrace.preview.display import tone_map_filmic

        image = np.full((4, 4, 3), 0.003, dtype=np.float32)
        assert np.allclose(tone_map_filmic(image), 0.0)

    def test_filmic_formula(self):
        """Test the curve at a sample value."""
        from voxeltrace.preview.display import tone_map_filmic

        x = 1.0
        c = x - 0.004
        expected = c * (6.2 * c + 0.5) / (c * (6.2 * c + 1.7) + 0.06)
        result = tone_map_filmic(np.full((2, 2, 3), x, dtype=np.float32))
        assert np.allclose(result, expected, atol=1e-5)

    def test_filmic_is_monotonic_and_bounded(self):
        """Test that brighter input never maps darker and stays below 1."""
        from voxeltrace.preview.display import tone_map_filmic

        values = np.linspace(0.0, 10.0, 100, dtype=np.float32).reshape(1, -1, 1)
        result = tone_map_filmic(np.repeat(values, 3, axis=2))[0, :, 0]
        assert np.all(np.diff(result) >= -1e-7)
        assert np.all(result < 1.0)


class TestToneMapReinhard:
    """Test luminance-based Reinhard tone mapping."""

    def test_reinhard_preserves_black(self):
        """Test that Reinhard preserves black (0 -> 0)."""
        from voxeltrace.preview.display import tone_map_reinhard

        image = np.zeros((10, 10, 3), dtype=np.float32)
        assert np.allclose(tone_map_reinhard(image), 0.0)

    def test_reinhard_grey_formula(self):
        """Test L (1 + L / white^2) / (1 + L) on grey pixels."""
        from voxeltrace.preview.display import tone_map_reinhard

        for val in [0.5, 1.0, 2.0]:
            image = np.full((2, 2, 3), val, dtype=np.float32)
            expected = val * (1.0 + val / 16.0) / (1.0 + val)
            assert np.allclose(tone_map_reinhard(image, white=4.0), expected, atol=1e-5)

    def test_reinhard_white_point_maps_to_one(self):
        """Test that luminance equal to the white point becomes 1."""
        from voxeltrace.preview.display import tone_map_reinhard

        image = np.full((2, 2, 3), 4.0, dtype=np.float32)
        assert np.allclose(tone_map_reinhard(image, white=4.0), 1.0, atol=1e-5)

    def test_reinhard_keeps_hue(self):
        """Test that channel ratios survive the mapping."""
        from voxeltrace.preview.display import tone_map_reinhard

        image = np.array([[[2.0, 1.0, 0.5]]], dtype=np.float32)
        result = tone_map_reinhard(image)
        assert result[0, 0, 0] / result[0, 0, 1] == pytest.approx(2.0, rel=1e-5)
        assert result[0, 0, 1] / result[0, 0, 2] == pytest.approx(2.0, rel=1e-5)

    def test_reinhard_invalid_white(self):
        """Test that the white point must be positive."""
        from voxeltrace.preview.display import tone_map_reinhard

        with pytest.raises(ValueError, match="White point"):
            tone_map_reinhard(np.zeros((1, 1, 3), dtype=np.float32), white=0.0)


class TestToneMapAces:
    """Test the ACES approximation."""

    def test_aces_range(self):
        """Test that ACES output stays in [0, 1] for HDR input."""
        from voxeltrace.preview.display import tone_map_aces

        image = np.full((4, 4, 3), 1000.0, dtype=np.float32)
        result = tone_map_aces(image)
        assert np.all(result >= 0.0)
        assert np.all(result <= 1.05)

    def test_aces_clamps_negative(self):
        """Test that negative input maps to black."""
        from voxeltrace.preview.display import tone_map_aces

        image = np.full((2, 2, 3), -1.0, dtype=np.float32)
        assert np.allclose(tone_map_aces(image), 0.0)


class TestApplyGamma:
    """Test gamma correction."""

    def test_gamma_1_no_change(self):
        """Test that gamma=1.0 produces no change."""
        from voxeltrace.preview.display import apply_gamma

        image = np.random.rand(10, 10, 3).astype(np.float32)
        assert np.allclose(apply_gamma(image, gamma=1.0), image)

    def test_gamma_brightens_midtones(self):
        """Test that gamma correction brightens midtones."""
        from voxeltrace.preview.display import apply_gamma

        image = np.full((10, 10, 3), 0.5, dtype=np.float32)
        # 0.5^(1/2.2) ~ 0.73
        assert np.all(apply_gamma(image, gamma=2.2) > 0.5)

    def test_gamma_clamps_negative(self):
        """Test that gamma clamps negative values."""
        from voxeltrace.preview.display import apply_gamma

        image = np.full((2, 2, 3), -0.5, dtype=np.float32)
        assert np.all(apply_gamma(image, gamma=2.2) >= 0.0)


class TestProcessImageForDisplay:
    """Test the full image processing pipeline."""

    def test_process_with_no_tone_map(self):
        """Test processing with no tone mapping."""
        from voxeltrace.preview.display import process_image_for_display

        image = np.full((10, 10, 3), 0.5, dtype=np.float32)
        result = process_image_for_display(image, tone_map="none", gamma=1.0)
        assert np.allclose(result, 0.5)

    def test_filmic_ignores_gamma(self):
        """Test that the filmic path does not apply gamma twice."""
        from voxeltrace.preview.display import process_image_for_display

        image = np.full((4, 4, 3), 0.7, dtype=np.float32)
        a = process_image_for_display(image, tone_map="filmic", gamma=1.0)
        b = process_image_for_display(image, tone_map="filmic", gamma=2.2)
        assert np.array_equal(a, b)

    def test_process_removes_nan_and_inf(self):
        """Test that invalid radiance becomes black instead of garbage."""
        from voxeltrace.preview.display import process_image_for_display

        image = np.array([[[np.nan, np.inf, -np.inf]]], dtype=np.float32)
        for tone_map in ["filmic", "reinhard", "aces", "none"]:
            result = process_image_for_display(image, tone_map=tone_map)
            assert np.all(np.isfinite(result))
            assert np.allclose(result, 0.0)

    def test_process_output_always_valid(self):
        """Test that processed output is always in valid display range."""
        from voxeltrace.preview.display import process_image_for_display

        rng = np.random.default_rng(5)
        for tone_map in ["filmic", "reinhard", "aces", "none"]:
            image = (rng.random((10, 10, 3)) * 10).astype(np.float32)
            result = process_image_for_display(image, tone_map=tone_map, gamma=2.2)
            assert np.all(result >= 0.0)
            assert np.all(result <= 1.0)

    def test_process_invalid_tone_map_raises(self):
        """Test that invalid tone map method raises ValueError."""
        from voxeltrace.preview.display import process_image_for_display

        image = np.zeros((10, 10, 3), dtype=np.float32)
        with pytest.raises(ValueError, match="Unknown tone mapping"):
            process_image_for_display(image, tone_map="invalid")


class TestImageToUint8:
    """Test conversion to uint8."""

    def test_image_to_uint8_output_type(self):
        """Test that output is uint8 with the input shape."""
        from voxeltrace.preview.export import image_to_uint8

        image = np.random.rand(6, 8, 3).astype(np.float32)
        result = image_to_uint8(image)
        assert result.dtype == np.uint8
        assert result.shape == (6, 8, 3)

    def test_image_to_uint8_black_and_white(self):
        """Test uint8 conversion of black and white."""
        from voxeltrace.preview.export import image_to_uint8

        image = np.array([[[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]]], dtype=np.float32)
        result = image_to_uint8(image, gamma=1.0, tone_map="none")
        assert np.all(result[0, 0] == 0)
        assert np.all(result[0, 1] == 255)

    def test_image_to_uint8_truncates(self):
        """Test that channel values are truncated, not rounded."""
        from voxeltrace.preview.export import image_to_uint8

        image = np.full((1, 1, 3), 0.999, dtype=np.float32)
        result = image_to_uint8(image, gamma=1.0, tone_map="none")
        assert np.all(result == 254)


class TestSavePng:
    """Test PNG export."""

    def test_save_uint8_array(self, tmp_path):
        """Test that a uint8 array is written unchanged."""
        from voxeltrace.preview.export import save_png

        image = np.zeros((32, 64, 3), dtype=np.uint8)
        image[:, :, 0] = np.linspace(0, 255, 64).astype(np.uint8)
        path = tmp_path / "gradient.png"
        save_png(image, path)

        with PILImage.open(path) as loaded:
            assert loaded.size == (64, 32)  # PIL size is (width, height)
            assert loaded.mode == "RGB"
            assert np.array_equal(np.asarray(loaded), image)

    def test_save_float_array(self, tmp_path):
        """Test that float radiance is converted before saving."""
        from voxeltrace.preview.export import save_png

        image = np.full((4, 4, 3), 2.0, dtype=np.float32)
        path = tmp_path / "radiance.png"
        save_png(image, path, tone_map="reinhard")
        with PILImage.open(path) as loaded:
            assert loaded.size == (4, 4)

    def test_save_png_rejects_bad_shape(self, tmp_path):
        """Test that only (H, W, 3) images are accepted."""
        from voxeltrace.preview.export import save_png

        with pytest.raises(ValueError, match="image"):
            save_png(np.zeros((4, 4), dtype=np.uint8), tmp_path / "bad.png")


class TestModuleExports:
    """Test that all expected symbols are exported from the module."""

    def test_preview_exports(self):
        """Test that display and export functions are exported."""
        from voxeltrace.preview import (
            TONE_MAP_METHODS,
            apply_gamma,
            image_to_uint8,
            process_image_for_display,
            save_png,
            show_preview,
            tone_map_aces,
            tone_map_filmic,
            tone_map_reinhard,
        )

        assert TONE_MAP_METHODS == ("filmic", "reinhard", "aces", "none")
        for fn in (
            apply_gamma,
            image_to_uint8,
            process_image_for_display,
            save_png,
            show_preview,
            tone_map_aces,
            tone_map_filmic,
            tone_map_reinhard,
        ):
            assert callable(fn)
