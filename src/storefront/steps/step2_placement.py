#!/usr/bin/env python3
"""
step2_placement.py
Step 2 — Placement of the product layer on the model canvas.

Pure function of category, model/product dimensions and the user scale
factor. Width/height are NOT clamped to the canvas; only top/left are
floored at zero. An oversized placement is clipped when it is composited.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from typing import Dict, Union

from ..config import Category
from .step0_intake import ImageMetadata

BASE_SCALE = {Category.JEWELRY: 0.34, Category.CLOTHING: 0.62}
JEWELRY_CENTER_Y = 0.28   # jewelry is centred on the neckline
CLOTHING_TOP_Y = 0.24     # clothing hangs from the shoulders


@dataclass(frozen=True)
class Placement:
    width: int
    height: int
    left: int
    top: int

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def calculate_placement(
    category: Union[Category, str],
    model_meta: ImageMetadata,
    product_meta: ImageMetadata,
    scale_factor: float,
) -> Placement:
    category = Category.parse(category)
    width, height = model_meta.width, model_meta.height

    ratio = product_meta.width / max(product_meta.height, 1)
    placement_width = round_half_up(width * BASE_SCALE[category] * scale_factor)
    placement_height = round_half_up(placement_width / ratio)

    if category is Category.JEWELRY:
        top = round_half_up(height * JEWELRY_CENTER_Y - placement_height / 2)
    else:
        top = round_half_up(height * CLOTHING_TOP_Y)
    left = round_half_up(width / 2 - placement_width / 2)

    return Placement(
        width=max(placement_width, 1),
        height=max(placement_height, 1),
        left=max(left, 0),
        top=max(top, 0),
    )
