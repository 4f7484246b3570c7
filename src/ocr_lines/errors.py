"""
Error types for the text extraction pipeline.

Every error is fatal to a run: nothing is retried and no partial output is
produced. Library callers receive them on ``PipelineResult.error``; the CLI
maps them to exit codes.
"""

from pathlib import Path
from typing import Optional, Union


class OcrError(Exception):
    """Base class for all pipeline errors."""


class UsageError(OcrError):
    """Bad or missing command-line arguments."""


# ============================================================================
# Model Loading
# ============================================================================

class ModelLoadError(OcrError):
    """A model artifact could not be loaded."""

    def __init__(self, message: str, path: Union[str, Path, None] = None,
                 model: Optional[str] = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None
        self.model = model


class ModelNotFound(ModelLoadError):
    """Model file is missing or unreadable."""


class ModelCorrupt(ModelLoadError):
    """Model file exists but is not a valid model container."""


# ============================================================================
# Image Loading
# ============================================================================

class ImageLoadError(OcrError):
    """An input image could not be loaded."""

    def __init__(self, message: str, path: Union[str, Path, None] = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class ImageNotFound(ImageLoadError):
    """Image file is missing or unreadable."""


class ImageDecodeError(ImageLoadError):
    """Image bytes are corrupt or in an unsupported format."""


# ============================================================================
# Inference
# ============================================================================

class InferenceError(OcrError):
    """Failure inside input preparation, detection, grouping or recognition."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage
