"""
Single Image Text Extraction
============================

Locates words in a raster image, groups them into reading-order lines and
recognizes the text of each line.

Main components:
- Model loading (detection and recognition networks)
- Image loading and RGB normalization
- Word detection, line grouping and line recognition
- Pipeline orchestration with explicit run states
- Filtering and plain text output
"""

__version__ = "1.0.0"

from .errors import (
    OcrError, UsageError, ModelLoadError, ModelNotFound, ModelCorrupt,
    ImageLoadError, ImageNotFound, ImageDecodeError, InferenceError,
)
from .pipeline import OcrPipeline, PipelineResult, PipelineState, extract_text

__all__ = [
    # Pipeline
    "OcrPipeline", "PipelineResult", "PipelineState", "extract_text",
    # Errors
    "OcrError", "UsageError", "ModelLoadError", "ModelNotFound", "ModelCorrupt",
    "ImageLoadError", "ImageNotFound", "ImageDecodeError", "InferenceError",
]
