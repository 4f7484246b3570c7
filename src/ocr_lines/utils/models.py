"""
Model artifact loading.

Detection and recognition networks are stored as ONNX files and read with
OpenCV's DNN module. Files are a fixed local precondition of a run, so there
is no retry and no fallback: a missing or malformed file fails the run.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Union

from ..config import ModelConfig
from ..errors import ModelCorrupt, ModelLoadError, ModelNotFound

logger = logging.getLogger(__name__)

DETECTION = "detection"
RECOGNITION = "recognition"


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class ModelArtifact:
    """Loaded inference model. The handle is never mutated after loading."""
    name: str
    path: Path
    handle: Any


@dataclass(frozen=True)
class ModelArtifacts:
    """The detection/recognition pair owned by one pipeline run."""
    detection: ModelArtifact
    recognition: ModelArtifact


# ============================================================================
# Loading
# ============================================================================

def read_onnx_net(path: Path) -> Any:
    """Parse an ONNX model container into an OpenCV DNN network."""
    import cv2

    net = cv2.dnn.readNetFromONNX(str(path))
    if net.empty():
        raise ValueError("network has no layers")
    return net


def load_model(
    path: Union[str, Path],
    name: str,
    reader: Optional[Callable[[Path], Any]] = None
) -> ModelArtifact:
    """
    Load one model artifact from disk.

    Args:
        path: Path to the model file
        name: Model role, used in error messages ("detection", "recognition")
        reader: Callable parsing the file into a network handle
            (default: ONNX via OpenCV DNN)

    Returns:
        ModelArtifact wrapping the parsed network

    Raises:
        ModelNotFound: If the file is missing or unreadable
        ModelCorrupt: If the file cannot be parsed as a model
    """
    path = Path(path)
    reader = reader or read_onnx_net

    if not path.is_file():
        raise ModelNotFound(f"Cannot open {name} model: {path}", path=path, model=name)

    try:
        with path.open("rb") as f:
            f.read(1)
    except OSError as e:
        raise ModelNotFound(
            f"Cannot open {name} model: {path} ({e})", path=path, model=name
        ) from e

    try:
        handle = reader(path)
    except Exception as e:
        raise ModelCorrupt(
            f"Invalid {name} model file: {path} ({e})", path=path, model=name
        ) from e

    if handle is None:
        raise ModelCorrupt(f"Invalid {name} model file: {path}", path=path, model=name)

    logger.info(f"Loaded {name} model: {path}")
    return ModelArtifact(name=name, path=path, handle=handle)


def load_models(
    config: ModelConfig,
    loader: Optional[Callable[[Path, str], ModelArtifact]] = None
) -> ModelArtifacts:
    """
    Load the detection and recognition models named by the config.

    Non-model errors raised by a custom loader are reported as
    ModelLoadError naming the model and its path.
    """
    loader = loader or load_model

    def _load(path: Path, name: str) -> ModelArtifact:
        try:
            return loader(path, name)
        except ModelLoadError:
            raise
        except Exception as e:
            raise ModelLoadError(
                f"Cannot load {name} model: {path} ({e})", path=path, model=name
            ) from e

    detection = _load(config.detection_path, DETECTION)
    recognition = _load(config.recognition_path, RECOGNITION)
    return ModelArtifacts(detection=detection, recognition=recognition)
