#!/usr/bin/env python3
"""
imaging.py - Small raster helpers shared by the pipeline steps.

Buffers flow between steps as Pillow images; NumPy arrays are only used inside
a step for pixel math and converted back before returning.
"""

from __future__ import annotations

import io
from typing import Tuple

import numpy as np
from PIL import Image


def to_uint8(x: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(x), 0, 255).astype(np.uint8)


def open_image(data: bytes) -> Image.Image:
    """Open an encoded buffer. Pixel data is decoded lazily by Pillow."""
    return Image.open(io.BytesIO(data))


def image_to_bytes(image: Image.Image, format: str, **save_kwargs) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=format, **save_kwargs)
    return buffer.getvalue()


def gamma_decode(values: np.ndarray, gamma: float) -> np.ndarray:
    """0..255 encoded -> 0..1 linear light."""
    return np.power(values.astype(np.float32) / 255.0, gamma)


def gamma_encode(linear: np.ndarray, gamma: float) -> np.ndarray:
    """0..1 linear light -> 0..255 encoded (float)."""
    return np.power(np.clip(linear, 0.0, 1.0), 1.0 / gamma) * 255.0


def alpha_over(base: Image.Image, layer: Image.Image, offset: Tuple[int, int]) -> Image.Image:
    """
    Standard "over" blend of `layer` onto `base` at `offset` (left, top).

    The layer may extend past any canvas edge; the overhang is clipped.
    Returns a new RGBA image the size of `base`.
    """
    base = base.convert("RGBA")
    placed = Image.new("RGBA", base.size, (0, 0, 0, 0))
    placed.paste(layer.convert("RGBA"), offset)
    return Image.alpha_composite(base, placed)


def flatten(image: Image.Image, background: Tuple[int, int, int]) -> Image.Image:
    """Composite onto an opaque canvas of the same size and drop alpha."""
    canvas = Image.new("RGBA", image.size, tuple(background) + (255,))
    return alpha_over(canvas, image, (0, 0)).convert("RGB")
