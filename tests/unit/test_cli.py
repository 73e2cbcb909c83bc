"""
Unit tests for the CLI boundary checks and entry point.
"""

import json
import argparse
import zipfile
import pytest
from pathlib import Path
from PIL import Image

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from storefront.cli import build_parser, check_scale_factor, check_upload, main
from storefront.config import MAX_FILE_SIZE, Category
from conftest import create_test_png


class TestBoundaryChecks:
    """Test upload and scale-factor checks."""

    @pytest.mark.parametrize("value", ["0.5", "1", "1.5"])
    def test_scale_in_range(self, value):
        assert check_scale_factor(value) == float(value)

    @pytest.mark.parametrize("value", ["0.49", "1.51", "abc"])
    def test_scale_out_of_range(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            check_scale_factor(value)

    def test_accepts_png(self, temp_dir):
        path = temp_dir / "ok.png"
        path.write_bytes(create_test_png(10, 10))
        assert check_upload(path) == path.read_bytes()

    def test_rejects_gif(self, temp_dir):
        path = temp_dir / "anim.gif"
        Image.new("RGB", (10, 10)).save(path, format="GIF")
        with pytest.raises(ValueError, match="Unsupported file type"):
            check_upload(path)

    def test_rejects_non_image(self, temp_dir):
        path = temp_dir / "notes.png"
        path.write_text("hello")
        with pytest.raises(ValueError, match="Unsupported file type"):
            check_upload(path)

    def test_rejects_oversize(self, temp_dir):
        path = temp_dir / "huge.png"
        path.write_bytes(b"\0" * (MAX_FILE_SIZE + 1))
        with pytest.raises(ValueError, match="10MB"):
            check_upload(path)

    def test_missing_file(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            check_upload(temp_dir / "missing.png")

    def test_parser_category(self):
        args = build_parser().parse_args(["--model", "m.png", "--product", "p.png", "--category", "clothing"])
        assert args.category is Category.CLOTHING
        assert args.scale == 1.0
        assert args.route == "local"


class TestMain:
    """Test the CLI end to end."""

    def test_success_writes_outputs(self, temp_dir, model_png, product_png):
        (temp_dir / "model.png").write_bytes(model_png)
        (temp_dir / "product.png").write_bytes(product_png)
        out = temp_dir / "out"

        code = main([
            "--model", str(temp_dir / "model.png"),
            "--product", str(temp_dir / "product.png"),
            "--category", "Jewelry",
            "--out", str(out),
            "--timestamp", "1700000000000",
        ])

        assert code == 0
        assert (out / "jewelry-1700000000000-2048x2048.jpg").exists()
        assert (out / "jewelry-1700000000000-1800x2400.webp").exists()
        with zipfile.ZipFile(out / "jewelry-1700000000000.zip") as zf:
            assert len(zf.namelist()) == 6

        summary = json.loads((out / "pipeline_summary.json").read_text())
        assert summary["status"] == "completed"
        assert summary["category"] == "Jewelry"
        assert [r["size_key"] for r in summary["results"]] == ["1x1", "4x5", "3x4"]

    def test_pipeline_failure_writes_summary(self, temp_dir, product_png):
        (temp_dir / "model.png").write_bytes(create_test_png(400, 300))
        (temp_dir / "product.png").write_bytes(product_png)
        out = temp_dir / "out"

        code = main([
            "--model", str(temp_dir / "model.png"),
            "--product", str(temp_dir / "product.png"),
            "--category", "Clothing",
            "--out", str(out),
        ])

        assert code == 1
        summary = json.loads((out / "pipeline_summary.json").read_text())
        assert summary["status"] == "failed"
        assert summary["error"] == "too_small"

    def test_rejected_upload(self, temp_dir, product_png):
        (temp_dir / "product.png").write_bytes(product_png)
        code = main([
            "--model", str(temp_dir / "missing.png"),
            "--product", str(temp_dir / "product.png"),
            "--category", "Jewelry",
            "--out", str(temp_dir / "out"),
        ])
        assert code == 2

    def test_invalid_scale_exits(self):
        with pytest.raises(SystemExit):
            main(["--model", "m.png", "--product", "p.png", "--category", "Jewelry", "--scale", "3"])
