"""Pytest configuration and shared fixtures."""

import asyncio
import json
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest


# ==================== Path Fixtures ====================

@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_config_file(temp_dir):
    """Create a temporary config file."""
    config_path = temp_dir / "settings.yaml"
    config_content = """
audio:
  device: "default"
  sample_rate: 16000
  max_duration_seconds: 30

transcription:
  backend: "cloud_batch"
  language: "zh"

stream:
  frame_interval_ms: 0
  timeout: 5

local:
  model_path: "{model_dir}"
  device: "cpu"

output:
  mode: "clipboard"

credentials:
  api_key: "key"
  api_secret: "secret"
  app_id: "app"

logging:
  level: "DEBUG"
  file: null
""".format(model_dir=str(temp_dir / "model"))

    config_path.write_text(config_content)
    return config_path


# ==================== Audio Fixtures ====================

@pytest.fixture
def speech_samples():
    """One second of int16 noise at 16kHz."""
    rng = np.random.default_rng(0)
    return (rng.standard_normal(16000) * 3000).astype(np.int16)


@pytest.fixture
def audio_buffer(speech_samples):
    """A valid one second AudioBuffer."""
    from voxpipe.audio.buffer import AudioBuffer
    return AudioBuffer(samples=speech_samples)


@pytest.fixture
def short_audio_buffer():
    """A 0.25 second AudioBuffer, below the minimum duration."""
    from voxpipe.audio.buffer import AudioBuffer
    return AudioBuffer(samples=np.zeros(4000, dtype=np.int16))


# ==================== Credential Fixtures ====================

@pytest.fixture
def credential():
    """Credential usable by every cloud backend."""
    from voxpipe.asr.types import Credential
    return Credential(api_key="test-key", api_secret="test-secret", app_id="test-app")


# ==================== Mock Fixtures ====================

@pytest.fixture
def mock_whisper_model():
    """Create a mock faster-whisper model."""
    mock_model = MagicMock()
    first = MagicMock(start=0.0, end=1.2, text=" Hello", avg_logprob=-0.2)
    second = MagicMock(start=1.2, end=2.5, text=" world.", avg_logprob=-0.4)
    info = MagicMock(language="en", language_probability=0.98)
    mock_model.transcribe.return_value = (iter([first, second]), info)
    return mock_model


def stream_message(words=(), status=1, code=0, message="success"):
    """Build a JSON message as sent by the streaming service."""
    payload = {"code": code, "message": message, "sid": "iat000001"}
    if status is not None:
        payload["data"] = {
            "status": status,
            "result": {"ws": [{"cw": [{"w": w}]} for w in words], "ls": status == 2},
        }
    return json.dumps(payload)


class FakeWebSocket:
    """Minimal stand-in for a websockets client connection."""

    def __init__(self, messages=(), hang=False, fail_send_at=None):
        self.messages = list(messages)
        self.hang = hang
        self.fail_send_at = fail_send_at
        self.sent: list[str] = []
        self.close = AsyncMock()

    async def send(self, payload):
        if self.fail_send_at is not None and len(self.sent) >= self.fail_send_at:
            raise OSError("broken pipe")
        self.sent.append(payload)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message
        if self.hang:
            await asyncio.Event().wait()


@pytest.fixture
def fake_websocket():
    """Factory for FakeWebSocket instances."""
    return FakeWebSocket


@pytest.fixture
def make_stream_message():
    """Factory for streaming service JSON messages."""
    return stream_message
