"""
Pipeline orchestration.

Runs one image through a strictly linear sequence of stages:

    START -> MODELS_LOADED -> IMAGE_LOADED -> INPUT_PREPARED
          -> WORDS_DETECTED -> LINES_GROUPED -> TEXT_RECOGNIZED -> DONE

The first failing stage moves the run to FAILED. Errors are returned on the
result instead of being raised, so library callers can inspect them; there
is no partial output for a failed run.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from .config import PipelineConfig, get_config
from .errors import ImageLoadError, InferenceError, ModelLoadError, OcrError
from .utils.engine import InferenceEngine, RecognizedLine
from .utils.export import filter_lines, format_lines
from .utils.io import load_image
from .utils.models import load_models

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    """Pipeline run states."""
    START = "start"
    MODELS_LOADED = "models_loaded"
    IMAGE_LOADED = "image_loaded"
    INPUT_PREPARED = "input_prepared"
    WORDS_DETECTED = "words_detected"
    LINES_GROUPED = "lines_grouped"
    TEXT_RECOGNIZED = "text_recognized"
    DONE = "done"
    FAILED = "failed"


# Stages whose failures come from the inference backend.
_INFERENCE_TARGETS = {
    PipelineState.INPUT_PREPARED: "prepare",
    PipelineState.WORDS_DETECTED: "detect",
    PipelineState.LINES_GROUPED: "group",
    PipelineState.TEXT_RECOGNIZED: "recognize",
}


def _wrap_unexpected(
    target: PipelineState,
    error: Exception,
    path: Union[str, Path, None] = None
) -> OcrError:
    """Map a non-pipeline exception to the error kind of its stage."""
    if target == PipelineState.MODELS_LOADED:
        return ModelLoadError(f"Model loading failed: {path} ({error})", path=path)
    if target == PipelineState.IMAGE_LOADED:
        return ImageLoadError(f"Image loading failed: {path} ({error})", path=path)
    stage = _INFERENCE_TARGETS[target]
    return InferenceError(f"{stage} failed: {error}", stage=stage)


@dataclass
class PipelineResult:
    """Outcome of one pipeline run: either DONE with lines or FAILED with an error."""
    state: PipelineState = PipelineState.START
    lines: List[str] = field(default_factory=list)
    recognized: List[Optional[RecognizedLine]] = field(default_factory=list)
    word_count: int = 0
    line_count: int = 0
    error: Optional[OcrError] = None
    failed_stage: Optional[PipelineState] = None
    started_at: Optional[datetime] = None
    elapsed: Optional[timedelta] = None

    @property
    def ok(self) -> bool:
        return self.state == PipelineState.DONE

    @property
    def text(self) -> str:
        return format_lines(self.lines)

    def raise_for_error(self) -> 'PipelineResult':
        """Raise the recorded error, if any; otherwise return self."""
        if self.error is not None:
            raise self.error
        return self


class _StageFailed(Exception):
    def __init__(self, target: PipelineState, error: OcrError):
        super().__init__(str(error))
        self.target = target
        self.error = error


class OcrPipeline:
    """
    Single image text extraction.

    Models and timing are scoped to each ``run`` call; nothing is kept
    between runs.
    """

    def __init__(
        self,
        engine: InferenceEngine,
        config: Optional[PipelineConfig] = None,
        progress: Optional[Callable[[str], None]] = None
    ):
        self.engine = engine
        self.config = config or get_config()
        self.progress = progress or (lambda message: None)

    def _stage(self, result: PipelineResult, target: PipelineState, call, *args,
               path: Union[str, Path, None] = None):
        """Run one transition; on failure raise _StageFailed carrying the error."""
        try:
            value = call(*args)
        except OcrError as e:
            raise _StageFailed(target, e) from e
        except Exception as e:
            raise _StageFailed(target, _wrap_unexpected(target, e, path)) from e

        result.state = target
        logger.debug(f"Pipeline state: {target.value}")
        return value

    def run(self, image_path: Union[str, Path]) -> PipelineResult:
        """
        Extract text lines from one image.

        Args:
            image_path: Path to the input raster image

        Returns:
            PipelineResult in state DONE (possibly with no lines) or FAILED
            (with exactly one error)
        """
        started_at = datetime.now().astimezone()
        result = PipelineResult(state=PipelineState.START, started_at=started_at)

        try:
            self.progress("Loading models..")
            models = self._stage(
                result, PipelineState.MODELS_LOADED,
                load_models, self.config.models, self.engine.load_model,
                path=self.config.models.resolve("")
            )

            self.progress("Starting engine..")
            self.progress("Loading image..")
            image = self._stage(
                result, PipelineState.IMAGE_LOADED, load_image, image_path,
                path=image_path
            )

            prepared = self._stage(
                result, PipelineState.INPUT_PREPARED,
                self.engine.prepare_input, image
            )

            self.progress("Detecting words..")
            words = self._stage(
                result, PipelineState.WORDS_DETECTED,
                self.engine.detect_words, models, prepared
            )

            self.progress("Finding text lines..")
            line_groups = self._stage(
                result, PipelineState.LINES_GROUPED,
                self.engine.find_text_lines, prepared, words
            )

            self.progress("Recognizing text..")
            recognized = self._stage(
                result, PipelineState.TEXT_RECOGNIZED,
                self.engine.recognize_text, models, prepared, line_groups
            )
            if len(recognized) > len(line_groups):
                raise _StageFailed(
                    PipelineState.TEXT_RECOGNIZED,
                    InferenceError(
                        f"recognize returned {len(recognized)} results "
                        f"for {len(line_groups)} lines",
                        stage="recognize"
                    )
                )

        except _StageFailed as failure:
            logger.error(f"Pipeline failed at {failure.target.value}: {failure.error}")
            result.state = PipelineState.FAILED
            result.failed_stage = failure.target
            result.error = failure.error
            result.lines = []
            result.recognized = []
            result.elapsed = datetime.now().astimezone() - started_at
            return result

        result.word_count = len(words)
        result.line_count = len(line_groups)
        result.recognized = list(recognized)
        result.lines = filter_lines(recognized, self.config.output.min_line_chars)
        result.state = PipelineState.DONE
        result.elapsed = datetime.now().astimezone() - started_at

        logger.debug(
            f"Done: {result.word_count} words, {result.line_count} lines, "
            f"{len(result.lines)} kept in {result.elapsed.total_seconds():.2f}s"
        )
        return result


def extract_text(
    image_path: Union[str, Path],
    engine: Optional[InferenceEngine] = None,
    config: Optional[PipelineConfig] = None
) -> str:
    """
    Return all filtered text of an image as one string.

    Raises:
        OcrError: The error of the failed stage
    """
    config = config or get_config()
    if engine is None:
        from .utils.dnn_engine import DnnOcrEngine
        engine = DnnOcrEngine(config)

    result = OcrPipeline(engine, config).run(image_path).raise_for_error()
    return result.text
