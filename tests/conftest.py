"""
Pytest configuration and fixtures for the Storefront compositing pipeline tests.
"""

import io
import os
import tempfile
import pytest
import numpy as np
from pathlib import Path
from PIL import Image

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from storefront.remote_compositor import reset_client
from storefront.steps.step0_intake import ImageMetadata


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def model_image():
    """Light studio backdrop with a darker mannequin torso (1600x2000)."""
    img = Image.new('RGBA', (1600, 2000), color=(235, 235, 235, 255))
    pixels = np.array(img)
    # torso: 900x1200 block at left=350, top=400
    pixels[400:1600, 350:1250] = [140, 140, 140, 255]
    return Image.fromarray(pixels)


@pytest.fixture
def product_image():
    """Solid gold product (900x700)."""
    return Image.new('RGBA', (900, 700), color=(210, 160, 60, 255))


@pytest.fixture
def model_png(model_image):
    return to_png(model_image)


@pytest.fixture
def product_png(product_image):
    return to_png(product_image)


@pytest.fixture
def small_subject_image():
    """400x500 light backdrop with a dark 200x250 subject in the middle."""
    img = Image.new('RGB', (400, 500), color=(240, 240, 240))
    pixels = np.array(img)
    pixels[125:375, 100:300] = [60, 70, 90]
    return Image.fromarray(pixels)


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Isolate tests from real API keys and the process-wide remote client."""
    original_env = os.environ.copy()

    os.environ.pop('GEMINI_API_KEY', None)
    os.environ.pop('GOOGLE_API_KEY', None)
    reset_client()

    yield

    reset_client()
    os.environ.clear()
    os.environ.update(original_env)


# Helper functions for tests
def to_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format='PNG')
    return buf.getvalue()


def create_test_png(width=512, height=512, color=(128, 128, 128)) -> bytes:
    """Encode a solid-color RGB image with the given dimensions."""
    return to_png(Image.new('RGB', (width, height), color=color))


def meta(width: int, height: int) -> ImageMetadata:
    return ImageMetadata(width=width, height=height, channels=3, mode='RGB')