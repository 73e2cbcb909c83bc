#!/usr/bin/env python3
"""
step3_compositor.py – Step 3 Shadow + Layered Composition
=========================================================

Layers, in order, onto the isolated model:
  1. soft elliptical contact shadow at (left, top + 0.75·height)
  2. the isolated product, fit inside the placement box, at (left, top)

Standard alpha "over" blending; the output keeps the model's dimensions.
Layers overflowing the canvas are clipped.

Dependencies: opencv-python numpy pillow
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import cv2
from PIL import Image

from ..config import ShadowConfig
from ..utils.imaging import alpha_over, to_uint8
from .step2_placement import Placement, round_half_up

logger = logging.getLogger("storefront.compositor")

# ---------------------------------------------------------------------------
# Shadow
# ---------------------------------------------------------------------------

def create_shadow(width: int, height: int, config: Optional[ShadowConfig] = None) -> Image.Image:
    """Transparent RGBA canvas of the placement size holding a blurred dark ellipse."""
    cfg = config or ShadowConfig()
    if width < 1 or height < 1:
        raise ValueError(f"Invalid shadow canvas {width}x{height}")

    shadow_w = max(1, round_half_up(width * cfg.width_ratio))
    shadow_h = max(1, round_half_up(height * cfg.height_ratio))
    top = max(0, min(height - shadow_h, round_half_up(height * cfg.vertical_position)))
    left = round_half_up((width - shadow_w) / 2)

    alpha = np.zeros((height, width), dtype=np.float32)
    center = (left + shadow_w // 2, top + shadow_h // 2)
    axes = (max(1, shadow_w // 2), max(1, shadow_h // 2))
    cv2.ellipse(alpha, center, axes, 0, 0, 360, 255.0 * cfg.opacity, thickness=-1)
    alpha = cv2.GaussianBlur(alpha, (0, 0), sigmaX=cfg.blur_sigma)

    rgba = np.zeros((height, width, 4), dtype=np.uint8)
    rgba[..., 3] = to_uint8(alpha)
    return Image.fromarray(rgba)

# ---------------------------------------------------------------------------
# Product layer
# ---------------------------------------------------------------------------

def fit_product(product: Image.Image, placement: Placement) -> Image.Image:
    """Resize to fit inside the placement box, aspect preserved, transparent padding."""
    w, h = product.size
    box_w, box_h = placement.width, placement.height
    scale = min(box_w / w, box_h / h)
    new_w = max(1, round_half_up(w * scale))
    new_h = max(1, round_half_up(h * scale))

    resized = product.convert("RGBA").resize((new_w, new_h), Image.LANCZOS)
    canvas = Image.new("RGBA", (box_w, box_h), (0, 0, 0, 0))
    canvas.paste(resized, ((box_w - new_w) // 2, (box_h - new_h) // 2))
    return canvas

# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

def composite_layers(
    model: Image.Image,
    product_layer: Image.Image,
    placement: Placement,
    shadow: Optional[Image.Image] = None,
    config: Optional[ShadowConfig] = None,
) -> Image.Image:
    cfg = config or ShadowConfig()
    result = model.convert("RGBA")

    if shadow is not None:
        shadow_top = placement.top + round_half_up(placement.height * cfg.layer_offset)
        result = alpha_over(result, shadow, (placement.left, shadow_top))

    result = alpha_over(result, product_layer, (placement.left, placement.top))

    overflow_x = placement.left + placement.width - result.size[0]
    if overflow_x > 0:
        logger.debug(f"Product layer overflows canvas width by {overflow_x}px; clipped")
    return result
