#!/usr/bin/env python3
"""
CLI entry point for the Storefront compositing pipeline.

Reads the two uploads from disk, applies the upload checks (format, size,
scale range), runs the local or remote route and writes every variant, the
ZIP archive and a pipeline_summary.json to the output directory.
"""

import sys
import json
import time
import logging
import argparse
from datetime import datetime
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from .config import ALLOWED_FORMATS, MAX_FILE_SIZE, SCALE_RANGE, Category, PipelineConfig
from .errors import PipelineError
from .pipeline import CompositingPipeline
from .utils.imaging import open_image

logger = logging.getLogger("storefront.cli")


def check_upload(path: Path) -> bytes:
    """Boundary checks for one upload: exists, ≤10MB, PNG/JPEG/WebP."""
    if not path.exists():
        raise FileNotFoundError(f"Input image not found: {path}")
    if path.stat().st_size > MAX_FILE_SIZE:
        raise ValueError("Files must be 10MB or smaller.")
    data = path.read_bytes()
    try:
        with open_image(data) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError):
        fmt = None
    if fmt not in ALLOWED_FORMATS:
        raise ValueError(f"Unsupported file type: {path.name}")
    return data


def check_scale_factor(value: str) -> float:
    try:
        scale = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid scale factor: {value!r}")
    low, high = SCALE_RANGE
    if not (low <= scale <= high):
        raise argparse.ArgumentTypeError(f"scale factor must be between {low} and {high}")
    return scale


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Storefront compositing pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Jewelry on a display bust
    storefront-compose --model bust.jpg --product necklace.png --category Jewelry

    # Clothing, slightly larger, custom config
    storefront-compose --model mannequin.jpg --product shirt.jpg --category Clothing --scale 1.1 --config grade.yml

    # Remote (Gemini) compositor
    storefront-compose --model bust.jpg --product ring.png --category Jewelry --route remote
        """
    )
    parser.add_argument("--model", required=True, help="Mannequin/display image (PNG, JPEG or WebP)")
    parser.add_argument("--product", required=True, help="Product image (PNG, JPEG or WebP)")
    parser.add_argument("--category", required=True, type=Category.parse, help="Jewelry or Clothing")
    parser.add_argument("--scale", type=check_scale_factor, default=1.0, help="Placement scale factor (0.5-1.5)")
    parser.add_argument("--route", choices=["local", "remote"], default="local", help="Compositing route")
    parser.add_argument("--out", default="./storefront_output", help="Output directory")
    parser.add_argument("--config", help="Pipeline configuration YAML file")
    parser.add_argument("--timestamp", type=int, help="Fixed timestamp for output filenames")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    summary_path = out_dir / "pipeline_summary.json"
    start = time.time()

    summary = {
        "model_image": str(args.model),
        "product_image": str(args.product),
        "category": args.category.value,
        "scale_factor": args.scale,
        "route": args.route,
    }

    try:
        model = check_upload(Path(args.model))
        product = check_upload(Path(args.product))
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Upload rejected: {e}")
        print(f"❌ {e}", file=sys.stderr)
        return 2

    pipeline = CompositingPipeline(PipelineConfig.from_yaml(args.config))
    runner = pipeline.run_remote if args.route == "remote" else pipeline.run

    try:
        response = runner(model, product, args.category, args.scale, timestamp=args.timestamp)
    except PipelineError as e:
        logger.error(f"💥 Pipeline failed at {e.stage or 'unknown'} stage: {e.message}")
        summary.update({
            "processing_time_seconds": round(time.time() - start, 2),
            "timestamp": datetime.now().isoformat(),
            "status": "failed",
            **e.to_dict(),
        })
        with open(summary_path, "w") as f:
            json.dump(summary, f, indent=2)
        print(f"❌ {e.message}", file=sys.stderr)
        return 1

    for result in response.results:
        (out_dir / result.filenames["jpeg"]).write_bytes(result.jpeg)
        (out_dir / result.filenames["webp"]).write_bytes(result.webp)
    stem = Path(response.results[0].filenames["jpeg"]).stem.rsplit("-", 1)[0]
    archive_path = out_dir / f"{stem}.zip"
    archive_path.write_bytes(response.archive)

    total_time = time.time() - start
    summary.update({
        "processing_time_seconds": round(total_time, 2),
        "timestamp": datetime.now().isoformat(),
        "status": "completed",
        "archive": archive_path.name,
        "results": [
            {
                "size_key": r.size_key,
                "dimensions": list(r.dimensions),
                "filenames": r.filenames,
                "alt_text": r.alt_text,
            }
            for r in response.results
        ],
    })
    with open(summary_path, "w") as f:
        json.dump(summary, f, indent=2)

    print("\n" + "=" * 60)
    print("🎉 COMPOSITE COMPLETE!")
    print("=" * 60)
    print(f"⏱️  Total Time: {total_time:.1f}s")
    print(f"🖼️  Variants: {', '.join(r.size_key for r in response.results)}")
    print(f"📝 Alt text: {response.results[0].alt_text}")
    print(f"📦 Archive: {archive_path}")
    print(f"📋 Summary: {summary_path}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
