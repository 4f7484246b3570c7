"""
Shared fixtures: a scripted inference engine and on-disk inputs.
"""

import sys
from pathlib import Path
from typing import List, Optional

import numpy as np
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ocr_lines.config import PipelineConfig, DETECTION_MODEL_FILE, RECOGNITION_MODEL_FILE
from ocr_lines.utils.engine import InferenceEngine, PreparedInput, RecognizedLine
from ocr_lines.utils.layout import WordRegion, group_words_into_lines
from ocr_lines.utils.models import load_model


class FakeEngine(InferenceEngine):
    """Engine returning scripted words and texts; can fail at a chosen stage."""

    def __init__(
        self,
        words: Optional[List[WordRegion]] = None,
        texts: Optional[List[Optional[str]]] = None,
        fail_at: Optional[str] = None,
        error: Optional[Exception] = None
    ):
        self.words = list(words or [])
        self.texts = texts
        self.fail_at = fail_at
        self.error = error
        self.calls = []

    def _enter(self, stage: str):
        self.calls.append(stage)
        if self.fail_at == stage:
            raise self.error or RuntimeError(f"{stage} exploded")

    def load_model(self, path, name):
        self._enter("load")
        return load_model(path, name, reader=lambda p: object())

    def prepare_input(self, image):
        self._enter("prepare")
        tensor = np.zeros((1, image.height, image.width), dtype=np.float32)
        return PreparedInput(tensor=tensor, width=image.width, height=image.height)

    def detect_words(self, models, prepared):
        self._enter("detect")
        return list(self.words)

    def find_text_lines(self, prepared, words):
        self._enter("group")
        return group_words_into_lines(words)

    def recognize_text(self, models, prepared, lines):
        self._enter("recognize")
        texts = self.texts
        if texts is None:
            texts = [f"line {i}" for i in range(len(lines))]
        return [
            RecognizedLine(text=text, line=line) if text is not None else None
            for text, line in zip(texts, lines)
        ]


def two_line_words() -> List[WordRegion]:
    """Three words: two on a first line, one on a second line."""
    return [
        WordRegion.from_rect(10, 10, 50, 30),
        WordRegion.from_rect(60, 10, 100, 30),
        WordRegion.from_rect(10, 50, 50, 70),
    ]


@pytest.fixture
def model_dir(tmp_path):
    """Directory holding placeholder model files."""
    models = tmp_path / "models"
    models.mkdir()
    (models / DETECTION_MODEL_FILE).write_bytes(b"detection")
    (models / RECOGNITION_MODEL_FILE).write_bytes(b"recognition")
    return models


@pytest.fixture
def config(model_dir):
    config = PipelineConfig()
    config.models.models_dir = model_dir
    return config


@pytest.fixture
def image_file(tmp_path):
    """A small white PNG page."""
    import cv2

    path = tmp_path / "page.png"
    img = np.ones((80, 120, 3), dtype=np.uint8) * 255
    cv2.imwrite(str(path), img)
    return path
