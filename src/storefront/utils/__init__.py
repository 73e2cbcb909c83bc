"""
Storefront raster helpers.
"""

from .imaging import (
    to_uint8,
    open_image,
    image_to_bytes,
    gamma_decode,
    gamma_encode,
    alpha_over,
    flatten
)

__all__ = [
    "to_uint8",
    "open_image",
    "image_to_bytes",
    "gamma_decode",
    "gamma_encode",
    "alpha_over",
    "flatten"
]
