#!/usr/bin/env python3
"""
step4_color_grade.py – Step 4 Color Grading
===========================================

Baseline grade (always):
- modulate: brightness ×1.03, saturation ×1.05 (LAB lightness / chroma)
- linear contrast stretch: 1.03·x − 6
- adaptive local contrast (CLAHE, 32×32 px tiles) run in gamma-decoded light,
  re-encoded with the same gamma (2.2)

Clothing adds a second pass on top of the baseline:
- modulate: brightness ×1.04, saturation ×1.02
- linear contrast boost: 1.05·x − 5

Alpha is carried through untouched.

Dependencies: opencv-python numpy pillow scikit-image
"""

from __future__ import annotations

import logging
from typing import Optional, Union

import numpy as np
import cv2
from PIL import Image
from skimage import exposure

from ..config import Category, GradeConfig
from ..utils.imaging import gamma_decode, gamma_encode, to_uint8

logger = logging.getLogger("storefront.color_grade")

CLAHE_BINS = 256

# ---------------------------------------------------------------------------
# Primitive adjustments (HxWx3 uint8 RGB in, uint8 RGB out)
# ---------------------------------------------------------------------------

def modulate(rgb: np.ndarray, brightness: float = 1.0, saturation: float = 1.0) -> np.ndarray:
    lab = cv2.cvtColor(rgb, cv2.COLOR_RGB2LAB).astype(np.float32)
    lab[..., 0] *= brightness
    lab[..., 1:] = (lab[..., 1:] - 128.0) * saturation + 128.0
    return cv2.cvtColor(to_uint8(lab), cv2.COLOR_LAB2RGB)


def linear(rgb: np.ndarray, slope: float, offset: float) -> np.ndarray:
    return to_uint8(rgb.astype(np.float32) * slope + offset)


def local_contrast(rgb: np.ndarray, tile: int, max_slope: float, gamma: float) -> np.ndarray:
    h, w = rgb.shape[:2]
    kernel = (min(tile, h), min(tile, w))
    lin = gamma_decode(rgb, gamma)
    value = lin.max(axis=2)
    if float(value.max() - value.min()) < 1e-6:
        # equalization runs on HSV value; a flat value plane has nothing to equalize
        return rgb
    equalized = exposure.equalize_adapthist(
        lin,
        kernel_size=kernel,
        clip_limit=max_slope / CLAHE_BINS,
        nbins=CLAHE_BINS,
    )
    return to_uint8(gamma_encode(equalized, gamma))

# ---------------------------------------------------------------------------
# Grade
# ---------------------------------------------------------------------------

def _split(image: Image.Image):
    rgba = np.array(image.convert("RGBA"))
    return np.ascontiguousarray(rgba[..., :3]), rgba[..., 3]


def _merge(rgb: np.ndarray, alpha: np.ndarray) -> Image.Image:
    return Image.fromarray(np.dstack([rgb, alpha]))


def baseline_grade(image: Image.Image, config: Optional[GradeConfig] = None) -> Image.Image:
    cfg = config or GradeConfig()
    rgb, alpha = _split(image)
    rgb = modulate(rgb, cfg.brightness, cfg.saturation)
    rgb = linear(rgb, cfg.contrast_slope, cfg.contrast_offset)
    rgb = local_contrast(rgb, cfg.clahe_tile, cfg.clahe_max_slope, cfg.gamma)
    return _merge(rgb, alpha)


def enhance_clothing(image: Image.Image, config: Optional[GradeConfig] = None) -> Image.Image:
    cfg = config or GradeConfig()
    rgb, alpha = _split(image)
    rgb = modulate(rgb, cfg.clothing_brightness, cfg.clothing_saturation)
    rgb = linear(rgb, cfg.clothing_contrast_slope, cfg.clothing_contrast_offset)
    return _merge(rgb, alpha)


def grade(
    image: Image.Image,
    category: Union[Category, str],
    config: Optional[GradeConfig] = None,
) -> Image.Image:
    category = Category.parse(category)
    graded = baseline_grade(image, config)
    if category is Category.CLOTHING:
        graded = enhance_clothing(graded, config)
    logger.debug(f"Graded {image.size[0]}x{image.size[1]} composite ({category.value})")
    return graded
