#!/usr/bin/env python3
"""
step6_delivery.py – Step 6 Multi-Size Export & Archive
======================================================

Produce the storefront variants and bundle them.

Features:
- Three fixed output specs (1x1 2048², 4x5 2000×2500, 3x4 1800×2400)
- Composite fit inside a 5% padded box, centred on a #f7f7f7 canvas
- Each variant encoded as lossless WebP + JPEG (q88)
- Deterministic names: {category}-{timestamp}-{width}x{height}.{ext}
- Single in-memory ZIP with all six files

Dependencies: Pillow
"""

from __future__ import annotations

import io
import base64
import logging
import zipfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from PIL import Image

from ..config import OUTPUT_SPECS, Category, ExportConfig
from ..errors import ArchiveFailure
from ..utils.imaging import flatten, image_to_bytes
from .step2_placement import round_half_up

logger = logging.getLogger("storefront.delivery")

# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProcessedImage:
    """One size variant, encoded in both formats."""
    size_key: str
    dimensions: Tuple[int, int]
    jpeg: bytes
    webp: bytes
    filenames: Dict[str, str]  # {"jpeg": ..., "webp": ...}
    alt_text: str

    @property
    def width(self) -> int:
        return self.dimensions[0]

    @property
    def height(self) -> int:
        return self.dimensions[1]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "sizeKey": self.size_key,
            "dimensions": {"width": self.width, "height": self.height},
            "jpeg": base64.b64encode(self.jpeg).decode("utf-8"),
            "webp": base64.b64encode(self.webp).decode("utf-8"),
            "filenames": dict(self.filenames),
            "altText": self.alt_text,
        }


@dataclass(frozen=True)
class ProcessResponse:
    results: List[ProcessedImage]
    archive: bytes

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready shape with base64 image and archive data."""
        return {
            "results": [r.to_payload() for r in self.results],
            "zipBase64": base64.b64encode(self.archive).decode("utf-8"),
        }

# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def output_filename(category: Union[Category, str], timestamp: int, width: int, height: int, ext: str) -> str:
    category = Category.parse(category)
    return f"{category.value.lower()}-{timestamp}-{width}x{height}.{ext}"


def render_variant(base: Image.Image, width: int, height: int, config: Optional[ExportConfig] = None) -> Image.Image:
    """Fit `base` inside the padded box and centre it on an exact-size canvas."""
    cfg = config or ExportConfig()
    if base.mode != "RGB":
        base = flatten(base, cfg.background)

    pad = round_half_up(cfg.padding_ratio * min(width, height))
    box_w, box_h = width - 2 * pad, height - 2 * pad
    scale = min(box_w / base.size[0], box_h / base.size[1])
    new_w = max(1, round_half_up(base.size[0] * scale))
    new_h = max(1, round_half_up(base.size[1] * scale))
    resized = base.resize((new_w, new_h), Image.LANCZOS)

    canvas = Image.new("RGB", (width, height), tuple(cfg.background))
    canvas.paste(resized, (round_half_up((width - new_w) / 2), round_half_up((height - new_h) / 2)))
    return canvas


def export_variant(
    base: Image.Image,
    size_key: str,
    category: Union[Category, str],
    timestamp: int,
    alt_text: str,
    config: Optional[ExportConfig] = None,
) -> ProcessedImage:
    cfg = config or ExportConfig()
    width, height = OUTPUT_SPECS[size_key]
    canvas = render_variant(base, width, height, cfg)

    webp_kwargs = {"lossless": True} if cfg.webp_lossless else {"quality": cfg.jpeg_quality}
    webp = image_to_bytes(canvas, "WEBP", **webp_kwargs)
    jpeg = image_to_bytes(canvas, "JPEG", quality=cfg.jpeg_quality, optimize=True)

    logger.debug(f"Exported {size_key} {width}x{height}: webp {len(webp)} B, jpeg {len(jpeg)} B")
    return ProcessedImage(
        size_key=size_key,
        dimensions=(width, height),
        jpeg=jpeg,
        webp=webp,
        filenames={
            "jpeg": output_filename(category, timestamp, width, height, "jpg"),
            "webp": output_filename(category, timestamp, width, height, "webp"),
        },
        alt_text=alt_text,
    )


def export_variants(
    base: Image.Image,
    category: Union[Category, str],
    timestamp: int,
    alt_text: str,
    config: Optional[ExportConfig] = None,
) -> List[ProcessedImage]:
    """Export every OUTPUT_SPECS entry; variants are independent and run in parallel."""
    cfg = config or ExportConfig()
    with ThreadPoolExecutor(max_workers=max(1, cfg.workers)) as executor:
        futures = [
            executor.submit(export_variant, base, key, category, timestamp, alt_text, cfg)
            for key in OUTPUT_SPECS
        ]
        return [future.result() for future in futures]

# ---------------------------------------------------------------------------
# Archive
# ---------------------------------------------------------------------------

def create_archive(results: List[ProcessedImage], compression_level: int = 9) -> bytes:
    """ZIP every encoded file under its generated filename; fully built before returning."""
    if not results:
        raise ArchiveFailure("No exported images to package.")
    buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(buffer, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=compression_level) as zf:
            for result in results:
                zf.writestr(result.filenames["jpeg"], result.jpeg)
                zf.writestr(result.filenames["webp"], result.webp)
    except (OSError, ValueError, zipfile.LargeZipFile) as e:
        logger.error(f"Archive packaging failed: {e}")
        raise ArchiveFailure(details={"reason": str(e)}) from e

    data = buffer.getvalue()
    logger.info(f"Packaged {len(results) * 2} files into {len(data) / (1024 * 1024):.2f} MB archive")
    return data
