"""
Storefront Studio Compositing Pipeline
======================================

A deterministic pipeline that turns a mannequin/display photo and a product
photo into storefront-ready composites at fixed aspect ratios, plus a ZIP of
every output.

Core Pipeline:
0. Validate & Normalize
1. Subject Isolation
2. Placement
3. Shadow & Composition
4. Color Grading
5. Color Description & Alt Text
6. Multi-Size Export & Archive

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Storefront Studio"

from .config import Category, PipelineConfig, OUTPUT_SPECS
from .errors import (
    PipelineError,
    InvalidImage,
    TooSmall,
    CompositionFailure,
    ArchiveFailure,
    ExternalCompositorFailure,
)
from .pipeline import CompositingPipeline, run, run_remote, build_response_from_composite
from .steps.step6_delivery import ProcessedImage, ProcessResponse

__all__ = [
    "Category",
    "PipelineConfig",
    "OUTPUT_SPECS",
    "PipelineError",
    "InvalidImage",
    "TooSmall",
    "CompositionFailure",
    "ArchiveFailure",
    "ExternalCompositorFailure",
    "CompositingPipeline",
    "run",
    "run_remote",
    "build_response_from_composite",
    "ProcessedImage",
    "ProcessResponse",
]
