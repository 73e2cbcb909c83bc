#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
step5_describe.py
Step 5 — Dominant colors + alt text for the graded composite.

Palette = [dominant RGB triple (4096-bin histogram), second-highest-mean
channel as a grey triple], each mapped through a fixed table to one of
charcoal / white / gold / crimson / emerald / sapphire / neutral, then
de-duplicated in first-seen order.

Alt text:
  "{Colors} {descriptors} {accessory|garment} showcased on a {display bust|tailored mannequin}"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image

from ..config import Category

logger = logging.getLogger("storefront.describe")

RGB = Tuple[float, float, float]

DESCRIPTORS = {
    Category.JEWELRY: ("elegant", "refined"),
    Category.CLOTHING: ("tailored", "modern"),
}
SUBJECTS = {Category.JEWELRY: "accessory", Category.CLOTHING: "garment"}
SURFACES = {Category.JEWELRY: "display bust", Category.CLOTHING: "tailored mannequin"}

# max-min channel spread below which a triple reads as a grey
NEUTRAL_SPREAD = 12
HIST_BITS = 4  # 16 levels per channel -> 4096 bins


@dataclass(frozen=True)
class ColorStats:
    means: RGB
    dominant: RGB


# ----------------- stats -----------------
def _visible_pixels(image: Image.Image) -> np.ndarray:
    rgba = np.asarray(image.convert("RGBA"))
    pixels = rgba[..., :3].reshape(-1, 3)
    alpha = rgba[..., 3].reshape(-1)
    visible = pixels[alpha > 0]
    return visible if visible.size else pixels


def _dominant(pixels: np.ndarray) -> RGB:
    shift = 8 - HIST_BITS
    q = (pixels >> shift).astype(np.int32)
    bins = (q[:, 0] << (2 * HIST_BITS)) | (q[:, 1] << HIST_BITS) | q[:, 2]
    top = int(np.argmax(np.bincount(bins, minlength=1 << (3 * HIST_BITS))))
    mask = (1 << HIST_BITS) - 1
    levels = ((top >> (2 * HIST_BITS)) & mask, (top >> HIST_BITS) & mask, top & mask)
    # centre of the bin
    return tuple(float((v << shift) + (1 << (shift - 1))) for v in levels)


def color_stats(image: Image.Image) -> ColorStats:
    pixels = _visible_pixels(image)
    means = tuple(float(m) for m in pixels.mean(axis=0))
    return ColorStats(means=means, dominant=_dominant(pixels))


# ----------------- naming -----------------
def color_name(rgb: Sequence[float]) -> str:
    r, g, b = rgb
    hi = max(r, g, b)
    if hi < 40:
        return "charcoal"
    if r > 200 and g > 200 and b > 200:
        return "white"
    if r > 170 and g > 150 and b < 120:
        return "gold"
    if hi - min(r, g, b) < NEUTRAL_SPREAD:
        return "neutral"
    if hi == r:
        return "crimson"
    if hi == g:
        return "emerald"
    if hi == b:
        return "sapphire"
    return "neutral"


def dominant_colors(image: Image.Image) -> List[str]:
    stats = color_stats(image)
    palette: List[RGB] = [stats.dominant]
    second = sorted(stats.means, reverse=True)[1]
    palette.append((second, second, second))

    names: List[str] = []
    for rgb in palette:
        name = color_name(rgb)
        if name not in names:
            names.append(name)
    logger.debug(f"Dominant {stats.dominant}, means {stats.means} -> {names}")
    return names


# ----------------- alt text -----------------
def build_alt_text(
    category: Union[Category, str],
    colors: Sequence[str],
    descriptors: Optional[Sequence[str]] = None,
) -> str:
    category = Category.parse(category)
    if descriptors is None:
        descriptors = DESCRIPTORS[category]
    color_phrase = f"{' and '.join(colors)} " if colors else ""
    descriptor_phrase = " ".join(descriptors) if descriptors else "polished"
    text = f"{color_phrase}{descriptor_phrase} {SUBJECTS[category]} showcased on a {SURFACES[category]}".strip()
    return text[:1].upper() + text[1:]


def describe(image: Image.Image, category: Union[Category, str]) -> Tuple[List[str], str]:
    colors = dominant_colors(image)
    return colors, build_alt_text(category, colors)
