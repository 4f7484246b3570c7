"""
Configuration and constants for the text extraction pipeline.

This module provides:
- Model file names and lookup directory
- Detection, line grouping and recognition parameters
- Output filtering parameters
- Environment variable overrides
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from pathlib import Path
import logging

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


# ============================================================================
# Model Files
# ============================================================================

DETECTION_MODEL_FILE = "text-detection.onnx"
RECOGNITION_MODEL_FILE = "text-recognition.onnx"

# Characters emitted by the recognition model. Class 0 is the CTC blank,
# class i (i >= 1) maps to DEFAULT_ALPHABET[i - 1].
DEFAULT_ALPHABET = (
    " 0123456789"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
    "!\"#$%&'()*+,-./:;<=>?@[\\]^_`{|}~"
)


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class ModelConfig:
    """Model artifact locations."""
    models_dir: Optional[Path] = None  # None = current working directory
    detection_model: str = DETECTION_MODEL_FILE
    recognition_model: str = RECOGNITION_MODEL_FILE

    def resolve(self, file_name: str) -> Path:
        base = self.models_dir if self.models_dir is not None else Path.cwd()
        return Path(base) / file_name

    @property
    def detection_path(self) -> Path:
        return self.resolve(self.detection_model)

    @property
    def recognition_path(self) -> Path:
        return self.resolve(self.recognition_model)


@dataclass
class DetectionConfig:
    """Word detection post-processing."""
    text_threshold: float = 0.2  # Minimum text probability for a mask pixel
    min_word_area: int = 20
    expand_px: float = 3.0  # Grow each word box on every side
    pad_multiple: int = 32  # Network input dims must be a multiple of this


@dataclass
class LineConfig:
    """Word to line grouping."""
    min_vertical_overlap: float = 0.5  # Fraction of the smaller word height
    max_gap_ratio: float = 3.0  # Horizontal gap in multiples of line height


@dataclass
class RecognitionConfig:
    """Line recognition."""
    input_height: int = 64
    min_input_width: int = 10
    alphabet: str = DEFAULT_ALPHABET
    blank_index: int = 0


@dataclass
class OutputConfig:
    """Result filtering."""
    # Lines shorter than this are dropped. Single glyph lines are usually
    # spurious detections with the current models.
    min_line_chars: int = 2


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    models: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    lines: LineConfig = field(default_factory=LineConfig)
    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    debug_mode: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    models_dir = os.environ.get("OCR_LINES_MODELS_DIR")
    if models_dir:
        config.models.models_dir = Path(models_dir)

    detection_model = os.environ.get("OCR_LINES_DETECTION_MODEL")
    if detection_model:
        config.models.detection_model = detection_model

    recognition_model = os.environ.get("OCR_LINES_RECOGNITION_MODEL")
    if recognition_model:
        config.models.recognition_model = recognition_model

    config.output.min_line_chars = _env_int(
        "OCR_LINES_MIN_LINE_CHARS", config.output.min_line_chars
    )

    if os.environ.get("OCR_LINES_DEBUG", "").lower() == "true":
        config.debug_mode = True

    return config


def get_log_level(config: PipelineConfig) -> int:
    """Log level for the CLI: quiet by default so stdout stays plain text."""
    return logging.DEBUG if config.debug_mode else logging.WARNING
