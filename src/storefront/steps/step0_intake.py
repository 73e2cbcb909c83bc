#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
step0_intake.py
Step 0 — Validate + Normalize the two uploaded buffers.

- validate_image: header-only decode, reads width/height, enforces the
  minimum longest side (800px). Raises InvalidImage / TooSmall.
- normalize_image: applies EXIF orientation, converts embedded ICC profiles
  to sRGB, forces RGB/RGBA and drops every metadata field. Normalizing an
  already-canonical buffer yields the same pixels.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageCms, ImageOps, UnidentifiedImageError

from ..config import MIN_DIMENSION
from ..errors import InvalidImage, TooSmall
from ..utils.imaging import open_image

logger = logging.getLogger("storefront.intake")

_MIME_TYPES = {"PNG": "image/png", "JPEG": "image/jpeg", "WEBP": "image/webp"}


@dataclass(frozen=True)
class ImageMetadata:
    width: int
    height: int
    channels: int
    mode: str
    format: Optional[str] = None
    has_alpha: bool = False

    @property
    def longest_side(self) -> int:
        return max(self.width, self.height)

    @property
    def aspect_ratio(self) -> float:
        return self.width / max(self.height, 1)

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES.get(self.format or "", "image/png")


@dataclass(frozen=True)
class NormalizedImage:
    """Canonical raster plus its metadata. Never mutated after creation."""
    image: Image.Image
    metadata: ImageMetadata


def read_metadata(img: Image.Image, format: Optional[str] = None) -> ImageMetadata:
    bands = img.getbands()
    return ImageMetadata(
        width=img.size[0],
        height=img.size[1],
        channels=len(bands),
        mode=img.mode,
        format=format if format is not None else img.format,
        has_alpha="A" in bands or "transparency" in img.info,
    )


# ----------------- validate -----------------
def validate_image(data: bytes, min_dimension: int = MIN_DIMENSION) -> ImageMetadata:
    if not data:
        raise InvalidImage("Image buffer is empty")
    try:
        with open_image(data) as img:
            meta = read_metadata(img)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise InvalidImage(details={"reason": str(e)}) from e

    if meta.width <= 0 or meta.height <= 0:
        raise InvalidImage()
    if meta.longest_side < min_dimension:
        raise TooSmall(longest_side=meta.longest_side, min_dimension=min_dimension)

    logger.debug(f"Validated {meta.format} {meta.width}x{meta.height} ({meta.mode})")
    return meta


# ----------------- normalize -----------------
def _exif_correct(img: Image.Image) -> Image.Image:
    transposed = ImageOps.exif_transpose(img)
    return transposed if transposed is not None else img


def _to_srgb(img: Image.Image) -> Image.Image:
    icc = img.info.get("icc_profile")
    if not icc:
        return img
    if img.mode not in ("RGB", "RGBA", "CMYK"):
        img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
    out_mode = "RGBA" if img.mode == "RGBA" else "RGB"
    try:
        source = ImageCms.ImageCmsProfile(io.BytesIO(icc))
        return ImageCms.profileToProfile(img, source, ImageCms.createProfile("sRGB"), outputMode=out_mode)
    except (ImageCms.PyCMSError, OSError, ValueError) as e:
        logger.warning(f"ICC conversion failed, assuming sRGB: {e}")
        return img


def _ensure_rgb(img: Image.Image) -> Image.Image:
    if img.mode in ("RGB", "RGBA"):
        return img
    has_alpha = "A" in img.getbands() or "transparency" in img.info
    return img.convert("RGBA" if has_alpha else "RGB")


def normalize_image(data: bytes) -> NormalizedImage:
    try:
        with open_image(data) as src:
            img = _exif_correct(src)
            img = _to_srgb(img)
            img = _ensure_rgb(img)
            # fresh raster: no exif, icc, dpi or format carried over
            canonical = Image.frombytes(img.mode, img.size, img.tobytes())
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise InvalidImage(stage="normalize", details={"reason": str(e)}) from e

    meta = read_metadata(canonical, format=None)
    logger.debug(f"Normalized to {meta.mode} {meta.width}x{meta.height}")
    return NormalizedImage(image=canonical, metadata=meta)
