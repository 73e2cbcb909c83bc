#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
step1_isolate.py
Step 1 — Subject isolation (foreground/background separation).

Deterministic luma-threshold heuristic tuned for light, evenly lit studio
backdrops:
  luma -> gamma decode -> percentile contrast stretch -> Gaussian blur (σ≈12)
  -> gamma encode -> threshold (170) -> soft edge blur (σ≈4)

Pixels darker than the threshold are the subject (opaque); the bright
backdrop becomes transparent. Busy backgrounds over/under-isolate; there is
no retry or fallback.

The mask builder sits behind MaskBuilder so a learned segmenter can replace
it without touching the compositor.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from PIL import Image
import cv2

from ..config import IsolationConfig
from ..utils.imaging import gamma_decode, gamma_encode, to_uint8
from .step0_intake import ImageMetadata, NormalizedImage

logger = logging.getLogger("storefront.isolate")


def _stretch(x: np.ndarray, low_pct: float, high_pct: float) -> np.ndarray:
    lo, hi = np.percentile(x, [low_pct, high_pct])
    if hi - lo < 1e-6:
        # flat image, nothing to stretch
        return x
    return np.clip((x - lo) / (hi - lo), 0.0, 1.0)


class MaskBuilder:
    """Produces a single-channel (L) mask the size of the input; 255 = subject."""

    def build_mask(self, image: Image.Image, metadata: ImageMetadata) -> Image.Image:
        raise NotImplementedError


class LumaThresholdMasker(MaskBuilder):

    def __init__(self, config: Optional[IsolationConfig] = None):
        self.config = config or IsolationConfig()

    def build_mask(self, image: Image.Image, metadata: ImageMetadata) -> Image.Image:
        w, h = metadata.width, metadata.height
        if not w or not h:
            raise ValueError("Invalid image dimensions")
        if image.size != (w, h):
            raise ValueError(f"Metadata {w}x{h} does not match image {image.size[0]}x{image.size[1]}")

        cfg = self.config
        rgb = np.array(image.convert("RGB"))
        luma = cv2.cvtColor(rgb, cv2.COLOR_RGB2GRAY)

        lin = gamma_decode(luma, cfg.gamma)
        lin = _stretch(lin, cfg.normalize_low, cfg.normalize_high)
        lin = cv2.GaussianBlur(lin.astype(np.float32), (0, 0), sigmaX=cfg.blur_sigma)
        smoothed = gamma_encode(lin, cfg.gamma)

        binary = np.where(smoothed < cfg.threshold, 255, 0).astype(np.uint8)
        soft = cv2.GaussianBlur(binary, (0, 0), sigmaX=cfg.edge_blur_sigma)

        coverage = float(np.count_nonzero(binary)) / binary.size
        logger.debug(f"Mask {w}x{h}: subject coverage {coverage:.1%}")
        return Image.fromarray(soft)


def build_mask(
    image: Image.Image,
    metadata: ImageMetadata,
    config: Optional[IsolationConfig] = None,
) -> Image.Image:
    return LumaThresholdMasker(config).build_mask(image, metadata)


def apply_mask(image: Image.Image, mask: Image.Image) -> Image.Image:
    """Use `mask` as a destination-alpha multiplier; outside the mask becomes transparent."""
    rgba = image.convert("RGBA")
    if mask.size != rgba.size:
        raise ValueError(f"Mask size {mask.size} does not match image size {rgba.size}")

    alpha = np.asarray(rgba.getchannel("A"), dtype=np.float32)
    weight = np.asarray(mask.convert("L"), dtype=np.float32) / 255.0
    isolated = rgba.copy()
    isolated.putalpha(Image.fromarray(to_uint8(alpha * weight)))
    return isolated


def isolate_subject(normalized: NormalizedImage, masker: Optional[MaskBuilder] = None) -> Image.Image:
    masker = masker or LumaThresholdMasker()
    mask = masker.build_mask(normalized.image, normalized.metadata)
    return apply_mask(normalized.image, mask)
