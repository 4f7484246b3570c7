"""
Tests for the pipeline orchestrator.
"""

import random

import pytest

from conftest import FakeEngine, two_line_words


class TestPipelineRun:
    """Successful runs."""

    def test_run_reaches_done(self, config, image_file):
        """A full run visits every stage in order and ends DONE."""
        from ocr_lines.pipeline import OcrPipeline, PipelineState

        engine = FakeEngine(words=two_line_words(), texts=["Hello world", "Second line"])
        messages = []
        result = OcrPipeline(engine, config, progress=messages.append).run(image_file)

        assert result.ok
        assert result.state == PipelineState.DONE
        assert result.error is None
        assert result.lines == ["Hello world", "Second line"]
        assert result.word_count == 3
        assert result.line_count == 2
        assert engine.calls == ["load", "load", "prepare", "detect", "group", "recognize"]
        assert messages == [
            "Loading models..",
            "Starting engine..",
            "Loading image..",
            "Detecting words..",
            "Finding text lines..",
            "Recognizing text..",
        ]

    def test_timing_recorded(self, config, image_file):
        from ocr_lines.pipeline import OcrPipeline

        result = OcrPipeline(FakeEngine(), config).run(image_file)

        assert result.started_at is not None
        assert result.started_at.tzinfo is not None
        assert result.elapsed is not None
        assert result.elapsed.total_seconds() >= 0

    def test_zero_words_is_empty_done(self, config, image_file):
        """No detected words is a successful, empty run."""
        from ocr_lines.pipeline import OcrPipeline, PipelineState

        result = OcrPipeline(FakeEngine(words=[]), config).run(image_file)

        assert result.state == PipelineState.DONE
        assert result.lines == []
        assert result.line_count == 0
        assert result.error is None

    def test_single_character_line_filtered(self, config, image_file):
        """A line recognized as "I" is recognized but not output."""
        from ocr_lines.pipeline import OcrPipeline

        engine = FakeEngine(words=two_line_words(), texts=["Hello world", "I"])
        result = OcrPipeline(engine, config).run(image_file)

        assert [r.text for r in result.recognized if r is not None] == ["Hello world", "I"]
        assert result.lines == ["Hello world"]

    def test_missing_recognition_dropped(self, config, image_file):
        from ocr_lines.pipeline import OcrPipeline

        engine = FakeEngine(words=two_line_words(), texts=[None, "Second line"])
        result = OcrPipeline(engine, config).run(image_file)

        assert result.ok
        assert result.lines == ["Second line"]

    def test_min_line_chars_configurable(self, config, image_file):
        from ocr_lines.pipeline import OcrPipeline

        config.output.min_line_chars = 1
        engine = FakeEngine(words=two_line_words(), texts=["Hello world", "I"])
        result = OcrPipeline(engine, config).run(image_file)

        assert result.lines == ["Hello world", "I"]

    def test_counts_never_grow(self, config, image_file):
        """Output lines <= recognized lines <= line groups <= words."""
        from ocr_lines.pipeline import OcrPipeline

        engine = FakeEngine(words=two_line_words(), texts=["ok", "x"])
        result = OcrPipeline(engine, config).run(image_file)

        recognized = [r for r in result.recognized if r is not None]
        assert len(result.lines) <= len(recognized) <= result.line_count <= result.word_count

    def test_text_property(self, config, image_file):
        from ocr_lines.pipeline import OcrPipeline

        engine = FakeEngine(words=two_line_words(), texts=["first", "second"])
        result = OcrPipeline(engine, config).run(image_file)

        assert result.text == "first\nsecond"
        assert result.raise_for_error() is result


class TestPipelineFailures:
    """Failed runs stop at the first failing stage."""

    def test_missing_image(self, config, tmp_path):
        """A missing image fails before any detection message."""
        from ocr_lines.errors import ImageLoadError, ImageNotFound
        from ocr_lines.pipeline import OcrPipeline, PipelineState

        engine = FakeEngine(words=two_line_words())
        messages = []
        result = OcrPipeline(engine, config, progress=messages.append).run(
            tmp_path / "nope.png"
        )

        assert result.state == PipelineState.FAILED
        assert result.failed_stage == PipelineState.IMAGE_LOADED
        assert isinstance(result.error, ImageNotFound)
        assert isinstance(result.error, ImageLoadError)
        assert "nope.png" in str(result.error)
        assert "Detecting words.." not in messages
        assert "detect" not in engine.calls
        assert result.lines == []

    def test_missing_model(self, config, image_file):
        from ocr_lines.errors import ModelNotFound
        from ocr_lines.pipeline import OcrPipeline, PipelineState

        (config.models.models_dir / config.models.recognition_model).unlink()
        engine = FakeEngine(words=two_line_words())
        result = OcrPipeline(engine, config).run(image_file)

        assert result.state == PipelineState.FAILED
        assert result.failed_stage == PipelineState.MODELS_LOADED
        assert isinstance(result.error, ModelNotFound)
        assert result.error.model == "recognition"
        assert "prepare" not in engine.calls

    @pytest.mark.parametrize("stage, target", [
        ("prepare", "INPUT_PREPARED"),
        ("detect", "WORDS_DETECTED"),
        ("group", "LINES_GROUPED"),
        ("recognize", "TEXT_RECOGNIZED"),
    ])
    def test_backend_failure_becomes_inference_error(self, config, image_file, stage, target):
        """Unexpected backend exceptions are reported as InferenceError."""
        from ocr_lines.errors import InferenceError
        from ocr_lines.pipeline import OcrPipeline, PipelineState

        engine = FakeEngine(words=two_line_words(), fail_at=stage)
        result = OcrPipeline(engine, config).run(image_file)

        assert result.state == PipelineState.FAILED
        assert result.failed_stage == PipelineState[target]
        assert isinstance(result.error, InferenceError)
        assert result.error.stage == stage
        assert engine.calls[-1] == stage
        assert result.lines == []

    def test_engine_load_failure_names_model(self, config, image_file):
        from ocr_lines.errors import ModelLoadError
        from ocr_lines.pipeline import OcrPipeline, PipelineState

        result = OcrPipeline(FakeEngine(fail_at="load"), config).run(image_file)

        assert result.failed_stage == PipelineState.MODELS_LOADED
        assert isinstance(result.error, ModelLoadError)
        assert result.error.model == "detection"
        assert result.error.path == config.models.detection_path
        assert "text-detection.onnx" in str(result.error)

    def test_unexpected_image_failure_names_path(self, monkeypatch, config, image_file):
        import ocr_lines.pipeline as pipeline
        from ocr_lines.errors import ImageLoadError

        def broken_loader(path):
            raise MemoryError("image too large")

        monkeypatch.setattr(pipeline, "load_image", broken_loader)
        result = pipeline.OcrPipeline(FakeEngine(), config).run(image_file)

        assert result.failed_stage == pipeline.PipelineState.IMAGE_LOADED
        assert isinstance(result.error, ImageLoadError)
        assert result.error.path == image_file
        assert "page.png" in str(result.error)

    def test_inference_error_passed_through(self, config, image_file):
        from ocr_lines.errors import InferenceError
        from ocr_lines.pipeline import OcrPipeline

        error = InferenceError("bad tensor", stage="detect")
        engine = FakeEngine(fail_at="detect", error=error)
        result = OcrPipeline(engine, config).run(image_file)

        assert result.error is error

    def test_recognizer_cannot_invent_lines(self, config, image_file):
        from ocr_lines.errors import InferenceError
        from ocr_lines.pipeline import OcrPipeline, PipelineState

        class InventingEngine(FakeEngine):
            def recognize_text(self, models, prepared, lines):
                return super().recognize_text(models, prepared, lines) + [None]

        result = OcrPipeline(InventingEngine(words=two_line_words()), config).run(image_file)

        assert result.state == PipelineState.FAILED
        assert isinstance(result.error, InferenceError)

    def test_raise_for_error(self, config, tmp_path):
        from ocr_lines.errors import ImageNotFound
        from ocr_lines.pipeline import OcrPipeline

        result = OcrPipeline(FakeEngine(), config).run(tmp_path / "missing.png")

        with pytest.raises(ImageNotFound):
            result.raise_for_error()


class TestDoneXorFailed:
    """Every run ends DONE without error or FAILED with exactly one error."""

    @pytest.mark.parametrize("fail_at", [None, "load", "prepare", "detect", "group", "recognize"])
    def test_exactly_one_outcome(self, config, image_file, fail_at):
        from ocr_lines.pipeline import OcrPipeline, PipelineState

        engine = FakeEngine(words=two_line_words(), fail_at=fail_at)
        result = OcrPipeline(engine, config).run(image_file)

        assert result.state in (PipelineState.DONE, PipelineState.FAILED)
        if result.state == PipelineState.DONE:
            assert result.error is None
            assert fail_at is None
        else:
            assert result.error is not None
            assert result.lines == []


class TestExtractText:
    """Convenience entry point."""

    def test_returns_joined_text(self, config, image_file):
        from ocr_lines.pipeline import extract_text

        words = two_line_words()
        random.Random(0).shuffle(words)
        engine = FakeEngine(words=words, texts=["alpha beta", "gamma"])

        assert extract_text(image_file, engine=engine, config=config) == "alpha beta\ngamma"

    def test_raises_on_failure(self, config, tmp_path):
        from ocr_lines.errors import ImageNotFound
        from ocr_lines.pipeline import extract_text

        with pytest.raises(ImageNotFound):
            extract_text(tmp_path / "missing.png", engine=FakeEngine(), config=config)
