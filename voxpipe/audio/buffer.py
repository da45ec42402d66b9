"""Finalized PCM audio handed from capture to the transcription backends."""

import io
import wave
from dataclasses import dataclass, field

import numpy as np

SAMPLE_RATE = 16000
CHANNELS = 1
SAMPLE_WIDTH = 2  # bytes, 16-bit PCM
MIN_DURATION_SECONDS = 0.5


@dataclass(frozen=True, eq=False)
class AudioBuffer:
    """Immutable mono int16 PCM recording."""
    samples: np.ndarray
    sample_rate: int = SAMPLE_RATE
    channels: int = CHANNELS
    duration: float = field(init=False)

    def __post_init__(self):
        samples = np.asarray(self.samples, dtype=np.int16).reshape(-1).copy()
        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)
        frames = len(samples) / max(self.channels, 1)
        object.__setattr__(self, "duration", frames / self.sample_rate)

    @classmethod
    def from_float(cls, audio: np.ndarray, sample_rate: int = SAMPLE_RATE) -> "AudioBuffer":
        """Build a buffer from float samples in [-1, 1]."""
        scaled = np.clip(np.asarray(audio, dtype=np.float32) * 32767.0, -32768, 32767)
        return cls(samples=scaled.astype(np.int16), sample_rate=sample_rate)

    def is_valid(self, min_duration: float = MIN_DURATION_SECONDS) -> bool:
        """Check the recording is long enough to be worth transcribing."""
        return self.duration >= min_duration

    def to_pcm_bytes(self) -> bytes:
        """Raw little-endian 16-bit PCM."""
        return self.samples.astype("<i2").tobytes()

    def to_float(self) -> np.ndarray:
        """Samples normalized to float32 in [-1, 1]."""
        return self.samples.astype(np.float32) / 32767.0

    def to_wav_bytes(self) -> bytes:
        """Encode as a self-contained RIFF/WAVE file."""
        output = io.BytesIO()
        with wave.open(output, "wb") as wav_file:
            wav_file.setnchannels(self.channels)
            wav_file.setsampwidth(SAMPLE_WIDTH)
            wav_file.setframerate(self.sample_rate)
            wav_file.writeframes(self.to_pcm_bytes())
        return output.getvalue()

    def __len__(self) -> int:
        return len(self.samples)
