import cv2
import numpy as np
import pytest

from hemocount.config import PreprocessConfig
from hemocount.preprocess import IlluminationNormalizer, linear_luminance

from conftest import make_slide


def test_luminance_endpoints_and_gamma():
    img = np.array([[[0, 0, 0], [255, 255, 255], [128, 128, 128]]], np.uint8)
    luma = linear_luminance(img)
    assert luma.dtype == np.float32
    assert luma[0, 0] == pytest.approx(0.0)
    assert luma[0, 1] == pytest.approx(1.0, abs=1e-5)
    assert luma[0, 2] == pytest.approx((128 / 255) ** 2.2, abs=1e-4)


def test_green_dominates_luminance():
    green = linear_luminance(np.array([[[0, 255, 0]]], np.uint8))[0, 0]
    blue = linear_luminance(np.array([[[255, 0, 0]]], np.uint8))[0, 0]
    assert green > 5 * blue


def test_uniform_frame_flattens_to_one():
    norm = IlluminationNormalizer(PreprocessConfig(equalize=False)).run(make_slide(size=(64, 80)))
    assert norm.flattened.shape == (64, 80)
    assert np.allclose(norm.flattened, 1.0, atol=1e-3)
    # nothing to stretch on a flat frame
    assert np.all(norm.equalized == 0.0)


def test_vignetting_is_removed():
    h, w = 120, 160
    yy, xx = np.mgrid[:h, :w]
    falloff = 1.0 - 0.5 * (((xx - w / 2) / w) ** 2 + ((yy - h / 2) / h) ** 2)
    img = np.repeat((200 * falloff)[..., None], 3, axis=2).astype(np.uint8)

    norm = IlluminationNormalizer(PreprocessConfig(equalize=False)).run(img)
    raw_spread = norm.luminance.max() / norm.luminance.min()
    flat_spread = norm.flattened.max() / norm.flattened.min()
    assert flat_spread < raw_spread


def test_equalized_output_in_unit_range():
    rng = np.random.default_rng(0)
    img = rng.integers(0, 256, size=(90, 70, 3), dtype=np.uint8)
    norm = IlluminationNormalizer().run(img)
    assert norm.equalized.shape == (90, 70)
    assert norm.equalized.dtype == np.float32
    assert norm.equalized.min() >= 0.0
    assert norm.equalized.max() <= 1.0


def test_to_u8_does_not_stretch_tiny_spans():
    normalizer = IlluminationNormalizer()
    flat = np.full((8, 8), 0.7, np.float32)
    flat[0, 0] = 0.7001
    assert normalizer.to_u8(flat).max() <= 1
    ramp = np.linspace(0.0, 1.0, 64, dtype=np.float32).reshape(8, 8)
    u8 = normalizer.to_u8(ramp)
    assert u8.min() == 0 and u8.max() == 255


def test_invalid_config_rejected():
    with pytest.raises(ValueError):
        IlluminationNormalizer(PreprocessConfig(background_sigma=0))
    with pytest.raises(ValueError):
        IlluminationNormalizer(PreprocessConfig(equalize_scale=0))


def test_equalize_failure_falls_back_to_rescaled(monkeypatch, caplog):
    def broken(img):
        raise cv2.error("equalizeHist unavailable")

    monkeypatch.setattr(cv2, "equalizeHist", broken)
    rng = np.random.default_rng(3)
    img = rng.integers(0, 256, size=(40, 50, 3), dtype=np.uint8)
    normalizer = IlluminationNormalizer()

    norm = normalizer.run(img)

    expected = normalizer.to_u8(norm.flattened).astype(np.float32) / 255.0
    np.testing.assert_array_equal(norm.equalized, expected)
    assert "Histogram equalization failed" in caplog.text
