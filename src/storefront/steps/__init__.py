"""
Pipeline Steps Module
====================

Contains the compositing pipeline steps:
- step0_intake: Input validation & color-space normalization
- step1_isolate: Luma-threshold subject isolation (mask build + apply)
- step2_placement: Product placement on the model canvas
- step3_compositor: Contact shadow + layered alpha composition
- step4_color_grade: Baseline grade and Clothing enhancement pass
- step5_describe: Dominant color naming & alt text
- step6_delivery: Multi-size WebP/JPEG export + ZIP archive
"""

from . import step0_intake
from . import step1_isolate
from . import step2_placement
from . import step3_compositor
from . import step4_color_grade
from . import step5_describe
from . import step6_delivery

__all__ = [
    "step0_intake",
    "step1_isolate",
    "step2_placement",
    "step3_compositor",
    "step4_color_grade",
    "step5_describe",
    "step6_delivery",
]
