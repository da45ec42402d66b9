"""Backend selection and result normalization."""

import logging
import threading
from typing import Optional, Union

from ..audio.buffer import MIN_DURATION_SECONDS, AudioBuffer
from ..config import Config
from ..errors import AuthError, BackendError, RecordingTooShortError, VoiceError
from .batch import CloudBatchBackend
from .local import LocalModelBackend
from .stream import CloudStreamBackend
from .types import BackendKind, Credential, TranscriptionResult

logger = logging.getLogger(__name__)

Backend = Union[CloudBatchBackend, CloudStreamBackend, LocalModelBackend]


class TranscriptionOrchestrator:
    """Runs a recording through the selected backend.

    Backend instances are created on first use and kept for later calls with
    the same selection, so the batch backend's token survives across calls.
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.min_duration = self.config.audio.min_duration_seconds or MIN_DURATION_SECONDS
        self._backends: dict[tuple, Backend] = {}
        self._lock = threading.Lock()

    def _create_backend(
        self,
        kind: BackendKind,
        language: str,
        credential: Optional[Credential],
    ) -> Backend:
        if kind == BackendKind.LOCAL:
            return LocalModelBackend(self.config.local, language=language)

        if credential is None:
            raise AuthError(f"Backend '{kind.value}' requires credentials")

        if kind == BackendKind.CLOUD_BATCH:
            return CloudBatchBackend(credential, self.config.batch, language=language)
        if kind == BackendKind.CLOUD_STREAM:
            return CloudStreamBackend(credential, self.config.stream, language=language)

        raise ValueError(f"Unknown backend: {kind}")

    def get_backend(
        self,
        kind: BackendKind | str,
        language: str,
        credential: Optional[Credential] = None,
    ) -> Backend:
        """Return the cached backend for this selection, creating it if needed."""
        kind = BackendKind(kind)
        key = (kind, language, credential)
        with self._lock:
            backend = self._backends.get(key)
            if backend is None:
                logger.info(f"Creating {kind.value} backend (language={language})")
                backend = self._create_backend(kind, language, credential)
                self._backends[key] = backend
        return backend

    def transcribe(
        self,
        audio: AudioBuffer,
        backend: BackendKind | str,
        language: str,
        credential: Optional[Credential] = None,
    ) -> TranscriptionResult:
        """Transcribe a recording.

        Raises:
            RecordingTooShortError: buffer below the minimum duration
            VoiceError: any failure from the selected backend
        """
        if not audio.is_valid(self.min_duration):
            raise RecordingTooShortError()

        selected = self.get_backend(backend, language, credential)
        name = selected.descriptor.name

        logger.info(f"Transcribing {audio.duration:.2f}s with {name}")
        try:
            result = selected.transcribe(audio)
        except VoiceError as e:
            logger.error(f"{name} transcription failed: {e}")
            raise
        except Exception as e:
            logger.error(f"{name} transcription failed unexpectedly: {e}", exc_info=True)
            raise BackendError(f"{name}: {e}") from e

        raw_text = result.text
        result.text = raw_text.strip()
        # Untimed results carry one segment holding the full text.
        for segment in result.segments:
            if segment.start == segment.end == 0.0 and segment.text == raw_text:
                segment.text = result.text
        return result.with_backend(selected.descriptor)

    def close(self) -> None:
        """Release cached backends."""
        with self._lock:
            backends = list(self._backends.values())
            self._backends.clear()
        for backend in backends:
            close = getattr(backend, "close", None)
            if close is not None:
                close()
