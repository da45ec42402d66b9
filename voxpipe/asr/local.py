"""On-device speech-to-text using faster-whisper."""

import logging
from pathlib import Path
from typing import Optional

import numpy as np
from faster_whisper import WhisperModel

from ..audio.buffer import AudioBuffer
from ..config import LocalModelConfig
from ..errors import InferenceError, ModelLoadError, VoiceIOError
from .types import BackendDescriptor, Segment, TranscriptionResult, language_tag

logger = logging.getLogger(__name__)

AUTO_LANGUAGE = "auto"


class LocalModelBackend:
    """Runs one greedy Whisper pass over a fully buffered utterance."""

    descriptor = BackendDescriptor(name="local", capability="batch")

    def __init__(self, config: LocalModelConfig, language: str = AUTO_LANGUAGE):
        self.config = config
        self.model_path = config.model_path
        self.device = config.device
        self.compute_type = config.compute_type
        self.language = language
        self._model: WhisperModel = self._load_model()

    def _load_model(self) -> WhisperModel:
        """Load the Whisper model."""
        if not Path(self.model_path).exists():
            raise ModelLoadError(f"Model not found: {self.model_path}")

        logger.info(f"Loading Whisper model: {self.model_path} on {self.device}")
        try:
            model = WhisperModel(
                self.model_path,
                device=self.device,
                compute_type=self.compute_type,
            )
        except OSError as e:
            logger.error(f"Failed to read Whisper model: {e}")
            raise VoiceIOError(f"Cannot read model {self.model_path}: {e}", cause=e) from e
        except Exception as e:
            logger.error(f"Failed to load Whisper model: {e}")
            raise ModelLoadError(f"Failed to load {self.model_path}: {e}") from e

        logger.info("Whisper model loaded")
        return model

    @property
    def forced_language(self) -> Optional[str]:
        """Whisper language code passed to the engine, None to let it detect.

        Service codes such as 'zh_cn' are reduced to the Whisper code 'zh'.
        """
        if self.language == AUTO_LANGUAGE:
            return None
        return language_tag(self.language)

    def transcribe(self, audio: AudioBuffer) -> TranscriptionResult:
        """Transcribe a complete recording."""
        samples = audio.to_float()

        try:
            segments, info = self._model.transcribe(
                samples,
                language=self.forced_language,
                task="transcribe",
                beam_size=1,
                best_of=1,
                temperature=0.0,
                condition_on_previous_text=False,
                vad_filter=False,
                without_timestamps=False,
                word_timestamps=False,
            )

            texts = []
            result_segments = []
            total_logprob = 0.0
            for seg in segments:
                texts.append(seg.text)
                result_segments.append(
                    Segment(start=float(seg.start), end=float(seg.end), text=seg.text)
                )
                total_logprob += seg.avg_logprob
        except Exception as e:
            logger.error(f"Transcription error: {e}")
            raise InferenceError(str(e)) from e

        confidence = None
        if result_segments:
            confidence = float(np.exp(total_logprob / len(result_segments)))

        if self.forced_language is not None:
            language = self.language
        else:
            language = info.language
            logger.info(
                f"Detected language: {language} "
                f"(p={getattr(info, 'language_probability', 0.0):.2f})"
            )

        text = "".join(texts).strip()
        logger.info(f"Local recognition complete: {len(text)} characters")

        return TranscriptionResult(
            text=text,
            language=language,
            confidence=confidence,
            segments=result_segments,
            backend=self.descriptor,
        )
