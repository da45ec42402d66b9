"""Push-to-talk microphone capture."""

import logging
import threading
import time
from typing import Optional

import numpy as np
import sounddevice as sd

from ..config import AudioConfig
from ..errors import (
    MicrophonePermissionError,
    NoMicrophoneError,
    RecorderError,
    RecordingTooShortError,
)
from .buffer import AudioBuffer

logger = logging.getLogger(__name__)


class AudioCapture:
    """Records one utterance from the microphone into an AudioBuffer.

    The sounddevice callback runs on the PortAudio thread. Samples are guarded
    by a lock; the recording flag and volume level can be polled from any
    thread without taking it.
    """

    def __init__(self, config: AudioConfig):
        self.config = config
        self.sample_rate = config.sample_rate
        self.channels = config.channels
        self.blocksize = int(config.sample_rate * config.blocksize_ms / 1000)
        self.max_samples = int(config.sample_rate * config.max_duration_seconds)

        self._samples: list[np.ndarray] = []
        self._sample_count = 0
        self._samples_lock = threading.Lock()
        self._recording = threading.Event()
        self._limit_reached = False
        self._volume = 0
        self._start_time: Optional[float] = None
        self._stop_time: Optional[float] = None
        self._stream: Optional[sd.InputStream] = None

    def _audio_callback(
        self,
        indata: np.ndarray,
        frames: int,
        time_info: dict,
        status: sd.CallbackFlags,
    ) -> None:
        """Callback for sounddevice stream."""
        if status:
            logger.warning(f"Audio callback status: {status}")

        if not self._recording.is_set():
            return

        audio = indata.reshape(-1).astype(np.float32)
        if len(audio) == 0:
            return

        level = int(np.abs(audio).mean() * 100)
        self._volume = max(0, min(level, 100))

        pcm = np.clip(audio * 32767.0, -32768, 32767).astype(np.int16)

        with self._samples_lock:
            room = self.max_samples - self._sample_count
            if room <= 0:
                if not self._limit_reached:
                    self._limit_reached = True
                    logger.warning(
                        f"Maximum recording duration reached "
                        f"({self.config.max_duration_seconds}s), dropping further audio"
                    )
                return
            pcm = pcm[:room]
            self._samples.append(pcm)
            self._sample_count += len(pcm)

    def _resolve_device(self):
        if self.config.device == "default":
            return None
        try:
            return int(self.config.device)
        except ValueError:
            return self.config.device

    @staticmethod
    def _stream_error(error: Exception) -> Exception:
        message = str(error)
        if "permission" in message.lower() or "access" in message.lower():
            return MicrophonePermissionError()
        return RecorderError(f"Failed to open input stream: {message}")

    def start(self) -> None:
        """Start recording. Does nothing if already recording."""
        if self._recording.is_set():
            logger.warning("Audio capture already recording")
            return

        with self._samples_lock:
            self._samples = []
            self._sample_count = 0
        self._limit_reached = False
        self._volume = 0

        device = self._resolve_device()
        try:
            info = sd.query_devices(device, kind="input")
        except (sd.PortAudioError, ValueError) as e:
            raise NoMicrophoneError() from e

        logger.info(
            f"Starting audio capture on '{info['name']}': "
            f"{self.sample_rate}Hz, {self.channels}ch"
        )

        try:
            stream = sd.InputStream(
                device=device,
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype=np.float32,
                blocksize=self.blocksize,
                callback=self._audio_callback,
            )
        except sd.PortAudioError as e:
            raise self._stream_error(e) from e

        self._recording.set()
        try:
            stream.start()
        except sd.PortAudioError as e:
            self._recording.clear()
            stream.close()
            raise self._stream_error(e) from e

        self._stream = stream
        self._start_time = time.monotonic()
        self._stop_time = None
        logger.info("Audio capture started")

    def _close_stream(self) -> None:
        if self._recording.is_set():
            self._stop_time = time.monotonic()
        self._recording.clear()
        if self._stream is None:
            return
        try:
            self._stream.stop()
            self._stream.close()
        except sd.PortAudioError as e:
            logger.warning(f"Error closing input stream: {e}")
        finally:
            self._stream = None

    def stop(self) -> AudioBuffer:
        """Stop recording and return the captured audio.

        Raises:
            RecorderError: if not currently recording
            RecordingTooShortError: if less than the minimum duration was captured
        """
        if not self._recording.is_set():
            raise RecorderError("Not recording")

        self._close_stream()

        with self._samples_lock:
            if self._samples:
                samples = np.concatenate(self._samples)
            else:
                samples = np.zeros(0, dtype=np.int16)

        audio = AudioBuffer(samples=samples, sample_rate=self.sample_rate, channels=self.channels)
        logger.info(f"Audio capture stopped, duration: {audio.duration:.2f}s")

        if not audio.is_valid(self.config.min_duration_seconds):
            raise RecordingTooShortError()

        return audio

    def cancel(self) -> None:
        """Stop recording and discard everything captured so far."""
        self._close_stream()
        with self._samples_lock:
            self._samples = []
            self._sample_count = 0
        self._volume = 0
        logger.info("Audio capture cancelled")

    def get_volume(self) -> int:
        """Current input level, 0-100."""
        return self._volume

    def get_duration(self) -> float:
        """Seconds since recording started."""
        if self._start_time is None:
            return 0.0
        end = self._stop_time if self._stop_time is not None else time.monotonic()
        return end - self._start_time

    def is_recording(self) -> bool:
        """Check if capture is running."""
        return self._recording.is_set()

    def limit_reached(self) -> bool:
        """Whether the maximum recording duration has been hit."""
        return self._limit_reached

    @staticmethod
    def list_devices() -> list[dict]:
        """List available audio input devices."""
        devices = []
        for i, device in enumerate(sd.query_devices()):
            if device["max_input_channels"] > 0:
                devices.append({
                    "id": i,
                    "name": device["name"],
                    "channels": device["max_input_channels"],
                    "sample_rate": device["default_samplerate"],
                })
        return devices
