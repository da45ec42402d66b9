"""Tests for the on-device Whisper backend."""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from voxpipe.asr.local import LocalModelBackend
from voxpipe.config import LocalModelConfig
from voxpipe.errors import InferenceError, ModelLoadError, VoiceIOError


class TestLocalModelBackend:
    """Tests for LocalModelBackend class."""

    @pytest.fixture
    def model_config(self, temp_dir):
        """Create test config pointing at an existing model directory."""
        model_dir = temp_dir / "whisper-tiny"
        model_dir.mkdir()
        return LocalModelConfig(model_path=str(model_dir), device="cpu", compute_type="int8")

    @pytest.fixture
    def backend_factory(self, model_config, mock_whisper_model):
        def create(language="auto"):
            with patch("voxpipe.asr.local.WhisperModel") as mock_whisper_class:
                mock_whisper_class.return_value = mock_whisper_model
                return LocalModelBackend(model_config, language=language)
        return create

    @patch("voxpipe.asr.local.WhisperModel")
    def test_load_model(self, mock_whisper_class, model_config):
        """Model is loaded once at construction."""
        backend = LocalModelBackend(model_config)

        mock_whisper_class.assert_called_once_with(
            model_config.model_path,
            device="cpu",
            compute_type="int8",
        )
        assert backend._model is mock_whisper_class.return_value

    @patch("voxpipe.asr.local.WhisperModel")
    def test_missing_model_path(self, mock_whisper_class, temp_dir):
        config = LocalModelConfig(model_path=str(temp_dir / "missing"))

        with pytest.raises(ModelLoadError, match="Model not found"):
            LocalModelBackend(config)
        mock_whisper_class.assert_not_called()

    @patch("voxpipe.asr.local.WhisperModel")
    def test_load_failure(self, mock_whisper_class, model_config):
        mock_whisper_class.side_effect = RuntimeError("Unable to open file 'model.bin'")

        with pytest.raises(ModelLoadError, match="model.bin"):
            LocalModelBackend(model_config)

    @patch("voxpipe.asr.local.WhisperModel")
    def test_load_io_failure(self, mock_whisper_class, model_config):
        mock_whisper_class.side_effect = PermissionError("permission denied")

        with pytest.raises(VoiceIOError) as exc_info:
            LocalModelBackend(model_config)
        assert isinstance(exc_info.value.cause, PermissionError)

    def test_transcribe_auto_language(self, backend_factory, mock_whisper_model, audio_buffer):
        """Automatic mode asks the engine to detect and reports its answer."""
        backend = backend_factory("auto")

        result = backend.transcribe(audio_buffer)

        kwargs = mock_whisper_model.transcribe.call_args.kwargs
        assert kwargs["language"] is None
        assert result.language == "en"
        assert result.text == "Hello world."
        assert result.backend == backend.descriptor

    def test_transcribe_fixed_language(self, backend_factory, mock_whisper_model, audio_buffer):
        """A fixed language is forced and reported as-is."""
        backend = backend_factory("zh")

        result = backend.transcribe(audio_buffer)

        kwargs = mock_whisper_model.transcribe.call_args.kwargs
        assert kwargs["language"] == "zh"
        assert result.language == "zh"

    def test_transcribe_service_language_code(self, backend_factory, mock_whisper_model, audio_buffer):
        """Service codes like zh_cn reach the engine as Whisper codes."""
        backend = backend_factory("zh_cn")

        result = backend.transcribe(audio_buffer)

        kwargs = mock_whisper_model.transcribe.call_args.kwargs
        assert kwargs["language"] == "zh"
        assert result.language == "zh_cn"

    def test_greedy_decoding(self, backend_factory, mock_whisper_model, audio_buffer):
        backend = backend_factory()
        backend.transcribe(audio_buffer)

        kwargs = mock_whisper_model.transcribe.call_args.kwargs
        assert kwargs["beam_size"] == 1
        assert kwargs["best_of"] == 1
        assert kwargs["temperature"] == 0.0
        assert kwargs["condition_on_previous_text"] is False
        assert kwargs["vad_filter"] is False
        assert kwargs["without_timestamps"] is False

    def test_samples_normalized(self, backend_factory, mock_whisper_model, audio_buffer):
        backend = backend_factory()
        backend.transcribe(audio_buffer)

        samples = mock_whisper_model.transcribe.call_args.args[0]
        assert samples.dtype == np.float32
        assert len(samples) == len(audio_buffer)
        assert np.abs(samples).max() <= 1.0001
        assert samples[0] == pytest.approx(audio_buffer.samples[0] / 32767)

    def test_segments(self, backend_factory, audio_buffer):
        backend = backend_factory()
        result = backend.transcribe(audio_buffer)

        assert [(s.start, s.end) for s in result.segments] == [(0.0, 1.2), (1.2, 2.5)]
        assert [s.text for s in result.segments] == [" Hello", " world."]

    def test_confidence(self, backend_factory, audio_buffer):
        backend = backend_factory()
        result = backend.transcribe(audio_buffer)

        assert result.confidence == pytest.approx(np.exp(-0.3))

    def test_empty_result(self, backend_factory, mock_whisper_model, audio_buffer):
        mock_whisper_model.transcribe.return_value = (iter([]), MagicMock(language="en"))
        backend = backend_factory()

        result = backend.transcribe(audio_buffer)

        assert result.text == ""
        assert result.segments == []
        assert result.confidence is None

    def test_inference_failure(self, backend_factory, mock_whisper_model, audio_buffer):
        mock_whisper_model.transcribe.side_effect = RuntimeError("CUDA out of memory")
        backend = backend_factory()

        with pytest.raises(InferenceError, match="out of memory"):
            backend.transcribe(audio_buffer)

    def test_failure_while_decoding_segments(self, backend_factory, mock_whisper_model, audio_buffer):
        """Segments are lazy; errors raised while iterating are inference errors too."""
        def broken():
            yield MagicMock(start=0.0, end=1.0, text="a", avg_logprob=-0.1)
            raise RuntimeError("decoder failed")

        mock_whisper_model.transcribe.return_value = (broken(), MagicMock(language="en"))
        backend = backend_factory()

        with pytest.raises(InferenceError):
            backend.transcribe(audio_buffer)
