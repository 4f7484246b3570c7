#!/usr/bin/env python
"""
Command-line interface for the text extraction pipeline.

Usage:
    ocr-lines <image>

The detection and recognition models (text-detection.onnx,
text-recognition.onnx) are looked up in the current directory unless
OCR_LINES_MODELS_DIR points elsewhere.

Examples:
    # Print the text lines of a scanned page
    ocr-lines page.png

    # Same, with debug logging on stderr
    OCR_LINES_DEBUG=true ocr-lines page.png
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import LOG_FORMAT, PipelineConfig, get_config, get_log_level
from .errors import UsageError
from .pipeline import OcrPipeline
from .utils.engine import InferenceEngine
from .utils.export import format_report

logger = logging.getLogger("ocr_lines")


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser that raises UsageError instead of exiting."""

    def error(self, message):
        raise UsageError(message)


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = _ArgumentParser(
        prog="ocr-lines",
        usage="%(prog)s <image>",
        description="Detect and recognize the text lines of an image",
        add_help=False,
        allow_abbrev=False
    )

    parser.add_argument(
        "image",
        help="Path to the input image (PNG, JPEG, TIFF, BMP, ...)"
    )

    parser.add_argument(
        "--help",
        action="help",
        default=argparse.SUPPRESS,
        help="Show this message and exit"
    )

    return parser


def create_engine(config: PipelineConfig) -> InferenceEngine:
    """Create the inference backend used by the CLI."""
    from .utils.dnn_engine import DnnOcrEngine
    return DnnOcrEngine(config)


def _progress(message: str) -> None:
    print(message, flush=True)


def run_pipeline(args, config: PipelineConfig) -> int:
    """Run the pipeline on the parsed arguments and print the result."""
    pipeline = OcrPipeline(create_engine(config), config, progress=_progress)
    result = pipeline.run(args.image)

    if not result.ok:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    print(format_report(result))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = setup_argparser()

    try:
        args = parser.parse_args(argv)
    except UsageError as e:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return 2

    try:
        config = get_config()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(level=get_log_level(config), format=LOG_FORMAT)

    try:
        return run_pipeline(args, config)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
