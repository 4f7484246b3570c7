"""
Interface between the pipeline and the inference backend.

The pipeline only sequences these calls and propagates their failures. It
never reorders or reinterprets the geometry a backend returns.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import numpy as np

from .io import Image
from .layout import LineGroup, WordRegion
from .models import ModelArtifact, ModelArtifacts


@dataclass(frozen=True)
class PreparedInput:
    """Network-ready form of one image: ``(1, height, width)`` float32."""
    tensor: np.ndarray
    width: int
    height: int


@dataclass(frozen=True)
class RecognizedLine:
    """Text recognized for one line group."""
    text: str
    line: LineGroup

    def __str__(self) -> str:
        return self.text


class InferenceEngine(ABC):
    """
    Detection and recognition backend.

    Implementations raise ``InferenceError`` from the four inference
    operations and ``ModelLoadError`` subclasses from ``load_model``.
    """

    @abstractmethod
    def load_model(self, path: Path, name: str) -> ModelArtifact:
        raise NotImplementedError

    @abstractmethod
    def prepare_input(self, image: Image) -> PreparedInput:
        raise NotImplementedError

    @abstractmethod
    def detect_words(
        self, models: ModelArtifacts, prepared: PreparedInput
    ) -> List[WordRegion]:
        raise NotImplementedError

    @abstractmethod
    def find_text_lines(
        self, prepared: PreparedInput, words: List[WordRegion]
    ) -> List[LineGroup]:
        raise NotImplementedError

    @abstractmethod
    def recognize_text(
        self,
        models: ModelArtifacts,
        prepared: PreparedInput,
        lines: List[LineGroup]
    ) -> List[Optional[RecognizedLine]]:
        """Return exactly one entry per line; None where no text was found."""
        raise NotImplementedError
