"""
Unit tests for Step 6: Multi-Size Export & Archive.
"""

import io
import base64
import zipfile
import pytest
import numpy as np
from pathlib import Path
from PIL import Image

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from storefront.config import OUTPUT_SPECS, Category
from storefront.errors import ArchiveFailure
from storefront.steps.step6_delivery import (
    ProcessedImage,
    ProcessResponse,
    create_archive,
    export_variant,
    export_variants,
    output_filename,
    render_variant,
)

TS = 1700000000000
BACKGROUND = (247, 247, 247)


@pytest.fixture(scope="module")
def base_image():
    return Image.new("RGB", (400, 500), (10, 20, 30))


@pytest.fixture(scope="module")
def variants(base_image):
    return export_variants(base_image, Category.JEWELRY, TS, "Charcoal elegant refined accessory")


class TestRenderVariant:
    """Test fitting onto the exact-size canvas."""

    def test_exact_dimensions(self, base_image):
        for width, height in OUTPUT_SPECS.values():
            assert render_variant(base_image, width, height).size == (width, height)

    def test_padding_and_centering(self, base_image):
        canvas = render_variant(base_image, 2048, 2048)
        # 5% pad = 102px; 400x500 fits the 1844px box at 1475x1844, x offset 287
        assert canvas.getpixel((0, 0)) == BACKGROUND
        assert canvas.getpixel((1024, 50)) == BACKGROUND
        assert canvas.getpixel((280, 1024)) == BACKGROUND
        assert canvas.getpixel((1024, 1024)) == (10, 20, 30)
        assert canvas.getpixel((2047 - 280, 1024)) == BACKGROUND

    def test_rgba_is_flattened(self):
        base = Image.new("RGBA", (300, 300), (0, 0, 0, 0))
        canvas = render_variant(base, 1800, 2400)
        assert canvas.mode == "RGB"
        assert canvas.getpixel((900, 1200)) == BACKGROUND


class TestExport:
    """Test encoding and naming."""

    def test_output_filename(self):
        assert output_filename(Category.CLOTHING, TS, 2000, 2500, "webp") == "clothing-1700000000000-2000x2500.webp"

    def test_variant_formats(self, variants):
        for result in variants:
            with Image.open(io.BytesIO(result.webp)) as webp:
                assert webp.format == "WEBP"
                assert webp.size == result.dimensions
            with Image.open(io.BytesIO(result.jpeg)) as jpeg:
                assert jpeg.format == "JPEG"
                assert jpeg.size == result.dimensions

    def test_webp_is_lossless(self, base_image):
        result = export_variant(base_image, "3x4", Category.JEWELRY, TS, "alt")
        expected = np.array(render_variant(base_image, 1800, 2400))
        with Image.open(io.BytesIO(result.webp)) as webp:
            assert np.array_equal(np.array(webp.convert("RGB")), expected)

    def test_variant_order_and_keys(self, variants):
        assert [r.size_key for r in variants] == list(OUTPUT_SPECS)
        assert [r.dimensions for r in variants] == list(OUTPUT_SPECS.values())

    def test_filenames(self, variants):
        first = variants[0]
        assert first.filenames == {
            "jpeg": "jewelry-1700000000000-2048x2048.jpg",
            "webp": "jewelry-1700000000000-2048x2048.webp",
        }

    def test_alt_text_shared(self, variants):
        assert {r.alt_text for r in variants} == {"Charcoal elegant refined accessory"}


class TestArchive:
    """Test archive packaging."""

    def test_archive_contains_all_files(self, variants):
        data = create_archive(variants)
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            names = zf.namelist()
            assert len(names) == 6
            expected = {n for r in variants for n in r.filenames.values()}
            assert set(names) == expected
            assert zf.read(variants[1].filenames["jpeg"]) == variants[1].jpeg
            assert zf.testzip() is None

    def test_empty_results(self):
        with pytest.raises(ArchiveFailure) as exc:
            create_archive([])
        assert exc.value.code == "archive_failed"
        assert exc.value.stage == "archive"


class TestPayload:

    def test_processed_image_payload(self):
        item = ProcessedImage(
            size_key="1x1",
            dimensions=(2048, 2048),
            jpeg=b"jpeg-bytes",
            webp=b"webp-bytes",
            filenames={"jpeg": "a.jpg", "webp": "a.webp"},
            alt_text="Alt",
        )
        payload = item.to_payload()
        assert payload["sizeKey"] == "1x1"
        assert payload["dimensions"] == {"width": 2048, "height": 2048}
        assert base64.b64decode(payload["jpeg"]) == b"jpeg-bytes"
        assert payload["altText"] == "Alt"

    def test_response_payload(self, variants):
        archive = create_archive(variants)
        payload = ProcessResponse(results=variants, archive=archive).to_payload()
        assert len(payload["results"]) == 3
        assert base64.b64decode(payload["zipBase64"]) == archive
