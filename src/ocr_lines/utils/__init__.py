"""
Pipeline stages for text extraction.
"""

from .io import Image, load_image, to_rgb8
from .models import ModelArtifact, ModelArtifacts, load_model, load_models
from .layout import WordRegion, LineGroup, group_words_into_lines
from .engine import InferenceEngine, PreparedInput, RecognizedLine
from .export import filter_lines, format_lines, format_report

__all__ = [
    # IO
    "Image", "load_image", "to_rgb8",
    # Models
    "ModelArtifact", "ModelArtifacts", "load_model", "load_models",
    # Layout
    "WordRegion", "LineGroup", "group_words_into_lines",
    # Engine
    "InferenceEngine", "PreparedInput", "RecognizedLine",
    # Export
    "filter_lines", "format_lines", "format_report",
]
