#!/usr/bin/env python3
"""
remote_compositor.py – Remote compositor (Gemini image model)
=============================================================

Delegates the whole blend to a remote image model: both input images plus a
category-specific instruction go in, one finished composite comes out. The
result re-enters the local pipeline at the background/export stage.

The API client is process-wide: constructed lazily on first use, then reused
for the lifetime of the process.

Dependencies: google-genai
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional, Union

from google import genai
from google.genai import types

from .config import Category, RemoteConfig
from .errors import ExternalCompositorFailure

logger = logging.getLogger("storefront.remote_compositor")

SYSTEM_INSTRUCTION = (
    "You are an ecommerce photo compositor. Combine the mannequin and product inputs "
    "into a realistic catalog-ready image. Respond with the finished image."
)

_client: Optional[genai.Client] = None
_client_lock = threading.Lock()

# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

def is_available(config: Optional[RemoteConfig] = None) -> bool:
    return bool((config or RemoteConfig()).resolve_api_key())


def get_client(config: Optional[RemoteConfig] = None) -> genai.Client:
    global _client
    api_key = (config or RemoteConfig()).resolve_api_key()
    if not api_key:
        raise ExternalCompositorFailure("Gemini API key is not configured.")
    with _client_lock:
        if _client is None:
            _client = genai.Client(api_key=api_key)
            logger.info("Remote compositor client initialized")
    return _client


def reset_client() -> None:
    global _client
    with _client_lock:
        _client = None

# ---------------------------------------------------------------------------
# Prompt & response handling
# ---------------------------------------------------------------------------

def build_composite_prompt(category: Union[Category, str], scale_factor: float) -> str:
    category = Category.parse(category)
    if category is Category.JEWELRY:
        focus = "Align the jewelry naturally around the mannequin's neckline and collarbone."
        styling = "Preserve metallic highlights and ensure gemstones reflect the studio lighting."
    else:
        focus = "Drape the clothing smoothly along the mannequin's shoulders and torso."
        styling = ("Respect realistic fabric folds and cast subtle shadows wherever the garment "
                   "overlaps the mannequin.")

    return " ".join([
        "Blend the provided product image onto the mannequin reference to create a "
        "studio-quality ecommerce photo.",
        focus,
        styling,
        "Keep the mannequin pose, proportions, and lighting consistent with the reference photo.",
        f"Apply the provided scale factor multiplier of {scale_factor:.2f} to keep the product size believable.",
        "Return a polished PNG composite on a neutral light gray background that is ready for a "
        "storefront listing.",
    ])


def extract_image(response: Any) -> Optional[bytes]:
    """First inline image part of the response; b"" if it is present but empty, None if absent."""
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and "image" in (inline.mime_type or "image/png").lower():
                return inline.data or b""
            text = getattr(part, "text", None)
            if text:
                logger.debug(f"Remote compositor text: {text[:100]}...")
    return None


class GeminiCompositor:
    """Remote compositor backed by a Gemini image model."""

    def __init__(self, config: Optional[RemoteConfig] = None, client: Optional[Any] = None):
        self.config = config or RemoteConfig()
        self._client = client

    @property
    def client(self) -> Any:
        return self._client if self._client is not None else get_client(self.config)

    def composite(
        self,
        model: bytes,
        product: bytes,
        category: Union[Category, str],
        scale_factor: float,
        model_mime: str = "image/png",
        product_mime: str = "image/png",
    ) -> bytes:
        prompt = build_composite_prompt(category, scale_factor)
        client = self.client

        contents = [
            types.Content(
                role="user",
                parts=[
                    types.Part.from_text(text=prompt),
                    types.Part.from_bytes(data=model, mime_type=model_mime),
                    types.Part.from_bytes(data=product, mime_type=product_mime),
                ],
            )
        ]
        gen_config = types.GenerateContentConfig(
            system_instruction=SYSTEM_INSTRUCTION,
            response_modalities=["IMAGE", "TEXT"],
            temperature=self.config.temperature,
        )

        logger.info(f"Requesting remote composite from {self.config.model_name}")
        try:
            response = client.models.generate_content(
                model=self.config.model_name,
                contents=contents,
                config=gen_config,
            )
        except Exception as e:
            logger.error(f"Remote compositor request failed: {e}")
            raise ExternalCompositorFailure(
                "Remote compositor request failed.", details={"reason": str(e)}
            ) from e

        data = extract_image(response)
        if data is None:
            raise ExternalCompositorFailure("Remote compositor did not provide an image result.")
        if not data:
            raise ExternalCompositorFailure("Received an empty composite image from the remote compositor.")
        return data
