"""Error types shared by the capture, transcription and output stages."""

from typing import Optional


class VoiceError(Exception):
    """Base class for every error raised by voxpipe."""

    default_message = "Voice input error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ==================== Capture ====================

class CaptureError(VoiceError):
    default_message = "Audio capture error"


class NoMicrophoneError(CaptureError):
    default_message = "No microphone device found"


class MicrophonePermissionError(CaptureError):
    default_message = "Microphone access denied, grant permission in system settings"


class RecorderError(CaptureError):
    default_message = "Recorder error"


class RecordingTooShortError(CaptureError):
    default_message = "Recording too short (at least 0.5 seconds required)"


# ==================== Transcription ====================

class AuthError(VoiceError):
    default_message = "ASR authentication failed"


class NetworkError(VoiceError):
    default_message = "Network request failed"


class StreamTimeoutError(NetworkError):
    default_message = "Timed out waiting for recognition result"


class BackendError(VoiceError):
    """A transcription service rejected the request or answered garbage."""

    default_message = "ASR service error"

    def __init__(self, message: Optional[str] = None, code: Optional[int] = None):
        self.code = code
        if code is not None:
            message = f"[{code}] {message or self.default_message}"
        super().__init__(message)


class LocalModelError(VoiceError):
    default_message = "Local model error"


class ModelLoadError(LocalModelError):
    default_message = "Failed to load speech model"


class InferenceError(LocalModelError):
    default_message = "Speech model inference failed"


# ==================== Output ====================

class OutputError(VoiceError):
    default_message = "Text output error"


class ClipboardError(OutputError):
    default_message = "Clipboard operation failed"


class KeyboardError(OutputError):
    default_message = "Keyboard simulation failed"


class VoiceIOError(VoiceError):
    """Filesystem failure, typically while reading a model artifact."""

    default_message = "I/O error"

    def __init__(self, message: Optional[str] = None, cause: Optional[OSError] = None):
        self.cause = cause
        super().__init__(message)
