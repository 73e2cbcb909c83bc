#!/usr/bin/env python3
"""
config.py – Pipeline configuration
==================================

Stage configuration dataclasses, the fixed output table and the category enum.

Every default mirrors the tuned constants of the compositing pipeline; a YAML
file may override individual fields per stage:

    isolation:
      threshold: 160
    export:
      jpeg_quality: 90

Environment:
    GEMINI_API_KEY / GOOGLE_API_KEY   enables the remote compositor
    STOREFRONT_GEMINI_MODEL           overrides the remote model name
"""

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import yaml

logger = logging.getLogger("storefront.config")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIN_DIMENSION = 800
MAX_FILE_SIZE = 10 * 1024 * 1024
ALLOWED_FORMATS = frozenset({"PNG", "JPEG", "WEBP"})
SCALE_RANGE: Tuple[float, float] = (0.5, 1.5)

# sizeKey -> (width, height); order is the export order
OUTPUT_SPECS: Dict[str, Tuple[int, int]] = {
    "1x1": (2048, 2048),
    "4x5": (2000, 2500),
    "3x4": (1800, 2400),
}

DEFAULT_REMOTE_MODEL = "gemini-2.5-flash-image-preview"


class Category(str, Enum):
    """Product category; drives placement ratios and the grading branch."""
    JEWELRY = "Jewelry"
    CLOTHING = "Clothing"

    @classmethod
    def parse(cls, value: Union[str, "Category"]) -> "Category":
        if isinstance(value, cls):
            return value
        for member in cls:
            if str(value).strip().lower() == member.value.lower():
                return member
        raise ValueError(f"Unknown category: {value!r} (expected Jewelry or Clothing)")


# ---------------------------------------------------------------------------
# Stage configuration
# ---------------------------------------------------------------------------

@dataclass
class IsolationConfig:
    """Luma-threshold subject isolation."""
    gamma: float = 2.2
    blur_sigma: float = 12.0
    threshold: int = 170
    edge_blur_sigma: float = 4.0
    # percentiles used for the contrast stretch
    normalize_low: float = 1.0
    normalize_high: float = 99.0


@dataclass
class ShadowConfig:
    width_ratio: float = 0.85
    height_ratio: float = 0.18
    opacity: float = 0.35
    blur_sigma: float = 18.0
    vertical_position: float = 0.78
    layer_offset: float = 0.75  # shadow layer sits this far down the placement box


@dataclass
class GradeConfig:
    """Baseline grade plus the additional Clothing pass."""
    brightness: float = 1.03
    saturation: float = 1.05
    contrast_slope: float = 1.03
    contrast_offset: float = -6.0
    clahe_tile: int = 32
    clahe_max_slope: float = 10.0
    gamma: float = 2.2
    clothing_brightness: float = 1.04
    clothing_saturation: float = 1.02
    clothing_contrast_slope: float = 1.05
    clothing_contrast_offset: float = -5.0


@dataclass
class ExportConfig:
    background: Tuple[int, int, int] = (0xF7, 0xF7, 0xF7)
    padding_ratio: float = 0.05
    jpeg_quality: int = 88
    webp_lossless: bool = True
    zip_compression_level: int = 9
    workers: int = 3


@dataclass
class RemoteConfig:
    """Remote (Gemini) compositor settings."""
    model_name: str = field(default_factory=lambda: os.getenv("STOREFRONT_GEMINI_MODEL", DEFAULT_REMOTE_MODEL))
    api_key: Optional[str] = None
    temperature: float = 0.2

    def resolve_api_key(self) -> Optional[str]:
        return self.api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")


@dataclass
class PipelineConfig:
    isolation: IsolationConfig = field(default_factory=IsolationConfig)
    shadow: ShadowConfig = field(default_factory=ShadowConfig)
    grade: GradeConfig = field(default_factory=GradeConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "PipelineConfig":
        config = cls()
        for section, overrides in (data or {}).items():
            if not hasattr(config, section):
                raise ValueError(f"Unknown config section: {section}")
            target = getattr(config, section)
            known = {f.name for f in fields(target)}
            for key, value in (overrides or {}).items():
                if key not in known:
                    raise ValueError(f"Unknown config key: {section}.{key}")
                if key == "background":
                    value = tuple(value)
                setattr(target, key, value)
        return config

    @classmethod
    def from_yaml(cls, path: Optional[Union[str, Path]]) -> "PipelineConfig":
        if path is None:
            return cls()
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}; using defaults")
            return cls()
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.debug(f"Loaded pipeline config from {path}")
        return cls.from_dict(data)
