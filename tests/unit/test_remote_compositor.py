"""
Unit tests for the remote (Gemini) compositor.
"""

import os
import pytest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from storefront.config import Category, RemoteConfig
from storefront.errors import ExternalCompositorFailure
from storefront.remote_compositor import (
    GeminiCompositor,
    build_composite_prompt,
    extract_image,
    get_client,
    is_available,
)


def _response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def _image_part(data, mime_type="image/png"):
    return SimpleNamespace(text=None, inline_data=SimpleNamespace(mime_type=mime_type, data=data))


def _text_part(text):
    return SimpleNamespace(text=text, inline_data=None)


class TestPrompt:

    def test_jewelry_prompt(self):
        prompt = build_composite_prompt(Category.JEWELRY, 1.0)
        assert "neckline and collarbone" in prompt
        assert "1.00" in prompt

    def test_clothing_prompt(self):
        prompt = build_composite_prompt("Clothing", 1.25)
        assert "shoulders and torso" in prompt
        assert "1.25" in prompt
        assert "neckline" not in prompt


class TestClient:
    """Test key resolution and the process-wide client."""

    def test_unavailable_without_key(self):
        assert not is_available()

    def test_available_with_env_key(self):
        os.environ["GEMINI_API_KEY"] = "test-key"
        assert is_available()

    def test_google_key_fallback(self):
        os.environ["GOOGLE_API_KEY"] = "fallback-key"
        assert RemoteConfig().resolve_api_key() == "fallback-key"

    def test_model_name_from_env(self):
        os.environ["STOREFRONT_GEMINI_MODEL"] = "custom-image-model"
        assert RemoteConfig().model_name == "custom-image-model"

    def test_missing_key_raises(self):
        with pytest.raises(ExternalCompositorFailure) as exc:
            get_client()
        assert "API key" in exc.value.message

    def test_client_created_once(self):
        with patch("storefront.remote_compositor.genai.Client") as mock_client:
            first = get_client(RemoteConfig(api_key="k"))
            second = get_client(RemoteConfig(api_key="k"))
        assert first is second
        mock_client.assert_called_once_with(api_key="k")


class TestExtractImage:

    def test_first_image_part(self):
        response = _response(_text_part("here you go"), _image_part(b"IMG"))
        assert extract_image(response) == b"IMG"

    def test_no_image(self):
        assert extract_image(_response(_text_part("sorry"))) is None
        assert extract_image(SimpleNamespace(candidates=None)) is None

    def test_empty_image(self):
        assert extract_image(_response(_image_part(None))) == b""


class TestGeminiCompositor:
    """Test the request/response contract with a mocked client."""

    def _compositor(self, response=None, error=None):
        client = MagicMock()
        if error is not None:
            client.models.generate_content.side_effect = error
        else:
            client.models.generate_content.return_value = response
        return GeminiCompositor(RemoteConfig(model_name="test-model", api_key="k"), client=client), client

    def test_returns_image_bytes(self):
        compositor, client = self._compositor(_response(_image_part(b"COMPOSITE")))
        data = compositor.composite(b"model", b"product", Category.JEWELRY, 1.0, model_mime="image/jpeg")

        assert data == b"COMPOSITE"
        kwargs = client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "test-model"
        parts = kwargs["contents"][0].parts
        assert len(parts) == 3
        assert "neckline" in parts[0].text
        assert parts[1].inline_data.mime_type == "image/jpeg"
        assert parts[2].inline_data.data == b"product"
        assert kwargs["config"].response_modalities == ["IMAGE", "TEXT"]

    def test_no_image_result(self):
        compositor, _ = self._compositor(_response(_text_part("cannot do that")))
        with pytest.raises(ExternalCompositorFailure) as exc:
            compositor.composite(b"m", b"p", Category.CLOTHING, 1.0)
        assert exc.value.message == "Remote compositor did not provide an image result."

    def test_empty_image_result(self):
        compositor, _ = self._compositor(_response(_image_part(b"")))
        with pytest.raises(ExternalCompositorFailure) as exc:
            compositor.composite(b"m", b"p", Category.CLOTHING, 1.0)
        assert "empty" in exc.value.message

    def test_request_error_is_wrapped(self):
        compositor, _ = self._compositor(error=RuntimeError("quota exceeded"))
        with pytest.raises(ExternalCompositorFailure) as exc:
            compositor.composite(b"m", b"p", Category.JEWELRY, 1.0)
        assert exc.value.details == {"reason": "quota exceeded"}
        assert isinstance(exc.value.__cause__, RuntimeError)
        assert exc.value.to_dict()["error"] == "external_compositor_failed"

    def test_lazy_client_requires_key(self):
        compositor = GeminiCompositor(RemoteConfig())
        with pytest.raises(ExternalCompositorFailure):
            compositor.composite(b"m", b"p", Category.JEWELRY, 1.0)
