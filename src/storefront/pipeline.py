#!/usr/bin/env python3
"""
pipeline.py – Compositing pipeline orchestrator
===============================================

run(model, product, category, scale_factor):
  (a) validate both inputs      ┐
  (b) normalize both inputs     ├ per-image stages, the two images run concurrently;
  (c) build + apply masks       ┘ first failure aborts the run
  (d) placement (pure)
  (e) fit product + synthesize shadow
  (f) composite
  (g) grade (+ Clothing pass)
  (h) flatten onto the background canvas
  (i) dominant colors + alt text
  (j) export the three size variants (parallel)
  (k) package the archive

run_remote() swaps (b)–(g) for the remote compositor and re-enters at (h).

All-or-nothing: any stage failure raises a single PipelineError and no
partial output is returned.
"""

from __future__ import annotations

import math
import time
import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from contextlib import contextmanager
from typing import Callable, Optional, Tuple, Type, TypeVar, Union

from PIL import Image

from .config import Category, PipelineConfig
from .errors import (
    ArchiveFailure,
    CompositionFailure,
    ExternalCompositorFailure,
    InvalidImage,
    PipelineError,
    TooSmall,
)
from .remote_compositor import GeminiCompositor
from .steps.step0_intake import NormalizedImage, normalize_image, validate_image
from .steps.step1_isolate import LumaThresholdMasker, MaskBuilder, apply_mask
from .steps.step2_placement import Placement, calculate_placement
from .steps.step3_compositor import composite_layers, create_shadow, fit_product
from .steps.step4_color_grade import grade
from .steps.step5_describe import describe
from .steps.step6_delivery import ProcessResponse, create_archive, export_variants
from .utils.imaging import flatten

logger = logging.getLogger("storefront.pipeline")

T = TypeVar("T")
R = TypeVar("R")


def now_ms() -> int:
    return int(time.time() * 1000)


@contextmanager
def _stage(name: str, failure: Type[PipelineError] = CompositionFailure):
    try:
        yield
    except PipelineError:
        raise
    except Exception as e:
        logger.error(f"Stage '{name}' failed: {e}")
        raise failure(stage=name, details={"reason": str(e)}) from e


def _run_pair(fn: Callable[[T], R], first: T, second: T) -> Tuple[R, R]:
    """Run fn on both inputs concurrently; the first failure is raised as soon as it happens."""
    with ThreadPoolExecutor(max_workers=2) as executor:
        futures = [executor.submit(fn, first), executor.submit(fn, second)]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in futures:
            if future in done and future.exception() is not None:
                for other in pending:
                    other.cancel()
                future.result()
        return futures[0].result(), futures[1].result()


class CompositingPipeline:
    """Turns a model image and a product image into storefront variants + archive."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        masker: Optional[MaskBuilder] = None,
        remote: Optional[GeminiCompositor] = None,
    ):
        self.config = config or PipelineConfig()
        self.masker = masker or LumaThresholdMasker(self.config.isolation)
        self.remote = remote

    # ----------------- stages -----------------
    def _isolate(self, normalized: NormalizedImage) -> Image.Image:
        mask = self.masker.build_mask(normalized.image, normalized.metadata)
        return apply_mask(normalized.image, mask)

    def _shadow(self, placement: Placement) -> Optional[Image.Image]:
        # decorative; a failure degrades to "no shadow"
        try:
            return create_shadow(placement.width, placement.height, self.config.shadow)
        except (ValueError, MemoryError, OSError) as e:
            logger.warning(f"Shadow synthesis failed, continuing without shadow: {e}")
            return None

    # ----------------- entry points -----------------
    def run(
        self,
        model: bytes,
        product: bytes,
        category: Union[Category, str],
        scale_factor: float,
        timestamp: Optional[int] = None,
    ) -> ProcessResponse:
        category = Category.parse(category)
        if not (isinstance(scale_factor, (int, float)) and math.isfinite(scale_factor) and scale_factor > 0):
            raise ValueError(f"scale_factor must be a positive number, got {scale_factor!r}")

        start = time.time()
        logger.info(f"Starting composite run: {category.value}, scale {scale_factor:.2f}")

        with _stage("validate", InvalidImage):
            _run_pair(validate_image, model, product)

        with _stage("normalize"):
            model_norm, product_norm = _run_pair(normalize_image, model, product)

        with _stage("isolate"):
            model_iso, product_iso = _run_pair(self._isolate, model_norm, product_norm)

        placement = calculate_placement(category, model_norm.metadata, product_norm.metadata, scale_factor)
        logger.info(
            f"Placement {placement.width}x{placement.height} at ({placement.left}, {placement.top}) "
            f"on {model_norm.metadata.width}x{model_norm.metadata.height} canvas"
        )

        with _stage("composite"):
            product_layer = fit_product(product_iso, placement)
            shadow = self._shadow(placement)
            composite = composite_layers(model_iso, product_layer, placement, shadow, self.config.shadow)

        with _stage("grade"):
            polished = grade(composite, category, self.config.grade)

        response = self.build_response_from_composite(polished, category, timestamp)
        logger.info(f"Composite run finished in {time.time() - start:.2f}s")
        return response

    def run_remote(
        self,
        model: bytes,
        product: bytes,
        category: Union[Category, str],
        scale_factor: float,
        timestamp: Optional[int] = None,
    ) -> ProcessResponse:
        category = Category.parse(category)
        start = time.time()
        logger.info(f"Starting remote composite run: {category.value}, scale {scale_factor:.2f}")

        with _stage("validate", InvalidImage):
            model_meta, product_meta = _run_pair(validate_image, model, product)

        compositor = self.remote or GeminiCompositor(self.config.remote)
        data = compositor.composite(
            model, product, category, scale_factor,
            model_mime=model_meta.mime_type, product_mime=product_meta.mime_type,
        )

        try:
            validate_image(data)
        except (InvalidImage, TooSmall) as e:
            raise ExternalCompositorFailure(
                "Remote compositor returned an unusable image.", details={"reason": e.message}
            ) from e

        with _stage("normalize"):
            composite = normalize_image(data).image

        response = self.build_response_from_composite(composite, category, timestamp)
        logger.info(f"Remote composite run finished in {time.time() - start:.2f}s")
        return response

    def build_response_from_composite(
        self,
        composite: Image.Image,
        category: Union[Category, str],
        timestamp: Optional[int] = None,
    ) -> ProcessResponse:
        """Stages (h)–(k) for a finished composite."""
        category = Category.parse(category)
        export_cfg = self.config.export

        with _stage("background"):
            on_background = flatten(composite, export_cfg.background)

        with _stage("describe"):
            colors, alt_text = describe(composite, category)
        logger.info(f"Alt text: {alt_text}")

        ts = timestamp if timestamp is not None else now_ms()
        with _stage("export"):
            results = export_variants(on_background, category, ts, alt_text, export_cfg)

        with _stage("archive", ArchiveFailure):
            archive = create_archive(results, export_cfg.zip_compression_level)

        return ProcessResponse(results=results, archive=archive)


# ---------------------------------------------------------------------------
# Module-level conveniences
# ---------------------------------------------------------------------------

def run(
    model: bytes,
    product: bytes,
    category: Union[Category, str],
    scale_factor: float,
    timestamp: Optional[int] = None,
    config: Optional[PipelineConfig] = None,
) -> ProcessResponse:
    return CompositingPipeline(config).run(model, product, category, scale_factor, timestamp)


def run_remote(
    model: bytes,
    product: bytes,
    category: Union[Category, str],
    scale_factor: float,
    timestamp: Optional[int] = None,
    config: Optional[PipelineConfig] = None,
) -> ProcessResponse:
    return CompositingPipeline(config).run_remote(model, product, category, scale_factor, timestamp)


def build_response_from_composite(
    composite: Image.Image,
    category: Union[Category, str],
    timestamp: Optional[int] = None,
    config: Optional[PipelineConfig] = None,
) -> ProcessResponse:
    return CompositingPipeline(config).build_response_from_composite(composite, category, timestamp)
