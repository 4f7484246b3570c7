"""
Inference backend built on OpenCV's DNN module.

Runs two ONNX networks:
- Detection: greyscale page in, per-pixel text probability out. Connected
  text regions become oriented word boxes.
- Recognition: one line image (fixed height) in, per-column character
  scores out, decoded with CTC greedy decoding.
"""

import logging
import math
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from ..config import PipelineConfig
from ..errors import InferenceError
from .engine import InferenceEngine, PreparedInput, RecognizedLine
from .io import Image
from .layout import LineGroup, Rect, WordRegion, group_words_into_lines
from .models import ModelArtifact, ModelArtifacts, load_model, read_onnx_net

logger = logging.getLogger(__name__)

# Value of black pixels after range mapping; used for padding.
BLACK_VALUE = -0.5


# ============================================================================
# Pre-processing
# ============================================================================

def to_network_input(pixels: np.ndarray) -> np.ndarray:
    """
    Convert RGB pixels to the network input layout.

    Args:
        pixels: (H, W, 3) uint8 RGB image

    Returns:
        (1, H, W) float32 greyscale tensor with values in [-0.5, 0.5]
    """
    import cv2

    gray = cv2.cvtColor(pixels, cv2.COLOR_RGB2GRAY)
    tensor = gray.astype(np.float32) / 255.0 - 0.5
    return tensor[np.newaxis, :, :]


def pad_to_multiple(tensor: np.ndarray, multiple: int) -> np.ndarray:
    """Pad a (1, H, W) tensor at the bottom/right so H and W divide evenly."""
    _, h, w = tensor.shape
    pad_h = (-h) % multiple
    pad_w = (-w) % multiple
    if pad_h == 0 and pad_w == 0:
        return tensor
    return np.pad(
        tensor,
        ((0, 0), (0, pad_h), (0, pad_w)),
        mode="constant",
        constant_values=BLACK_VALUE
    )


# ============================================================================
# Detection Post-processing
# ============================================================================

def _normalize_rotated_rect(center, size, angle) -> WordRegion:
    """Map OpenCV's (0, 90] angle range to a near-horizontal box."""
    w, h = size
    if angle > 45.0:
        w, h = h, w
        angle -= 90.0
    elif angle < -45.0:
        w, h = h, w
        angle += 90.0
    return WordRegion(
        center=(float(center[0]), float(center[1])),
        size=(float(w), float(h)),
        angle=float(angle)
    )


def text_mask_to_words(
    probabilities: np.ndarray,
    threshold: float = 0.2,
    min_area: int = 20,
    expand_px: float = 3.0
) -> List[WordRegion]:
    """
    Extract oriented word boxes from a text probability map.

    Args:
        probabilities: (H, W) per-pixel text probability
        threshold: Minimum probability for a pixel to count as text
        min_area: Regions whose rotated box is smaller than this are dropped
        expand_px: Amount added to each side of every box

    Returns:
        Word regions sorted by (top, left) of their bounding rects
    """
    import cv2

    mask = (probabilities > threshold).astype(np.uint8) * 255
    contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

    words = []
    for contour in contours:
        (cx, cy), (w, h), angle = cv2.minAreaRect(contour)
        if w * h < min_area:
            continue
        words.append(_normalize_rotated_rect(
            (cx, cy), (w + 2 * expand_px, h + 2 * expand_px), angle
        ))

    words.sort(key=lambda word: (word.bounding_rect()[1], word.bounding_rect()[0]))
    return words


# ============================================================================
# Recognition Helpers
# ============================================================================

def crop_line(
    tensor: np.ndarray,
    rect: Optional[Rect],
    input_height: int = 64,
    min_width: int = 10
) -> Optional[np.ndarray]:
    """
    Cut a line out of a prepared tensor and resize it for recognition.

    Args:
        tensor: (1, H, W) prepared image
        rect: Line bounding rect (x0, y0, x1, y1), clipped to the image
        input_height: Height expected by the recognition network
        min_width: Lower bound on the resized width

    Returns:
        (1, 1, input_height, width) float32 blob, or None if the clipped
        rect is empty
    """
    import cv2

    if rect is None:
        return None

    _, h, w = tensor.shape
    x0 = max(0, int(math.floor(rect[0])))
    y0 = max(0, int(math.floor(rect[1])))
    x1 = min(w, int(math.ceil(rect[2])))
    y1 = min(h, int(math.ceil(rect[3])))
    if x1 <= x0 or y1 <= y0:
        return None

    crop = tensor[0, y0:y1, x0:x1]
    scale = input_height / crop.shape[0]
    out_w = max(min_width, int(round(crop.shape[1] * scale)))
    resized = cv2.resize(crop, (out_w, input_height), interpolation=cv2.INTER_LINEAR)
    return resized[np.newaxis, np.newaxis, :, :].astype(np.float32)


def sequence_logits(output: np.ndarray) -> np.ndarray:
    """Reduce a recognition output to a (timesteps, classes) array."""
    out = np.asarray(output)
    if out.ndim == 3:
        if out.shape[1] == 1:  # (T, N, C)
            return out[:, 0, :]
        if out.shape[0] == 1:  # (N, T, C)
            return out[0]
    elif out.ndim == 2:
        return out
    raise ValueError(f"Unexpected recognition output shape: {out.shape}")


def ctc_greedy_decode(
    logits: np.ndarray,
    alphabet: Sequence[str],
    blank_index: int = 0
) -> str:
    """
    Decode per-timestep class scores into text.

    Takes the best class at each step, collapses repeats and removes blanks.
    Classes above the blank map to ``alphabet[cls - 1]``, classes below it
    to ``alphabet[cls]``. Classes outside the alphabet are skipped.
    """
    if logits.size == 0:
        return ""

    best = np.argmax(logits, axis=1)
    chars = []
    prev = None
    for cls in best:
        cls = int(cls)
        if cls != prev and cls != blank_index:
            idx = cls - 1 if cls > blank_index else cls
            if 0 <= idx < len(alphabet):
                chars.append(alphabet[idx])
        prev = cls
    return "".join(chars)


# ============================================================================
# Engine
# ============================================================================

@contextmanager
def _inference_stage(stage: str):
    """Re-raise any backend failure as an InferenceError for ``stage``."""
    try:
        yield
    except InferenceError:
        raise
    except Exception as e:
        raise InferenceError(f"{stage} failed: {e}", stage=stage) from e


def _forward(net, blob: np.ndarray) -> np.ndarray:
    net.setInput(blob)
    return net.forward()


class DnnOcrEngine(InferenceEngine):
    """Detection and recognition with ONNX models via OpenCV DNN."""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()

    def load_model(self, path: Path, name: str) -> ModelArtifact:
        return load_model(path, name, reader=read_onnx_net)

    def prepare_input(self, image: Image) -> PreparedInput:
        with _inference_stage("prepare"):
            tensor = to_network_input(image.pixels)
        return PreparedInput(tensor=tensor, width=image.width, height=image.height)

    def detect_words(
        self, models: ModelArtifacts, prepared: PreparedInput
    ) -> List[WordRegion]:
        cfg = self.config.detection

        with _inference_stage("detect"):
            padded = pad_to_multiple(prepared.tensor, cfg.pad_multiple)
            output = _forward(models.detection.handle, padded[np.newaxis, ...])
            output = np.asarray(output)
            if output.ndim != 4:
                raise ValueError(f"Unexpected detection output shape: {output.shape}")

            probabilities = output[0, 0, :prepared.height, :prepared.width]
            words = text_mask_to_words(
                probabilities,
                threshold=cfg.text_threshold,
                min_area=cfg.min_word_area,
                expand_px=cfg.expand_px
            )

        logger.debug(f"Detected {len(words)} words in {prepared.width}x{prepared.height} input")
        return words

    def find_text_lines(
        self, prepared: PreparedInput, words: List[WordRegion]
    ) -> List[LineGroup]:
        cfg = self.config.lines
        with _inference_stage("group"):
            return group_words_into_lines(
                words,
                min_vertical_overlap=cfg.min_vertical_overlap,
                max_gap_ratio=cfg.max_gap_ratio
            )

    def recognize_text(
        self,
        models: ModelArtifacts,
        prepared: PreparedInput,
        lines: List[LineGroup]
    ) -> List[Optional[RecognizedLine]]:
        cfg = self.config.recognition
        results: List[Optional[RecognizedLine]] = []

        with _inference_stage("recognize"):
            for line in lines:
                blob = crop_line(
                    prepared.tensor,
                    line.bounding_rect(),
                    input_height=cfg.input_height,
                    min_width=cfg.min_input_width
                )
                if blob is None:
                    results.append(None)
                    continue

                output = _forward(models.recognition.handle, blob)
                text = ctc_greedy_decode(
                    sequence_logits(output), cfg.alphabet, cfg.blank_index
                )
                results.append(RecognizedLine(text=text, line=line) if text else None)

        logger.debug(
            f"Recognized {sum(r is not None for r in results)} of {len(lines)} lines"
        )
        return results
