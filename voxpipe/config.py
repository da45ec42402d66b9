"""Configuration management for voxpipe."""

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass
class AudioConfig:
    """Microphone capture configuration."""
    device: str = "default"
    sample_rate: int = 16000
    channels: int = 1
    blocksize_ms: int = 32
    min_duration_seconds: float = 0.5
    max_duration_seconds: float = 60.0


@dataclass
class TranscriptionConfig:
    """Which backend to use and in what language."""
    backend: str = "cloud_stream"
    language: str = "zh_cn"


@dataclass
class BatchConfig:
    """Token-authenticated HTTP recognition service."""
    token_url: str = "https://aip.baidubce.com/oauth/2.0/token"
    api_url: str = "https://vop.baidu.com/server_api"
    cuid: str = "voxpipe"
    timeout: float = 30.0
    token_refresh_margin: float = 60.0  # seconds


@dataclass
class StreamConfig:
    """Signed WebSocket streaming recognition service."""
    host: str = "iat-api.xfyun.cn"
    path: str = "/v2/iat"
    domain: str = "iat"
    accent: str = "mandarin"
    vad_eos: int = 3000  # milliseconds
    dwa: Optional[str] = "wpgs"
    ptt: Optional[int] = 1
    frame_size: int = 1280  # bytes, 40ms at 16kHz mono 16-bit
    frame_interval_ms: int = 45
    timeout: float = 30.0  # seconds


@dataclass
class LocalModelConfig:
    """On-device Whisper model configuration."""
    model_path: str = "./models/whisper-small"
    device: str = "cpu"
    compute_type: str = "int8"


@dataclass
class OutputConfig:
    """Where transcribed text goes."""
    mode: str = "both"


@dataclass
class CredentialsConfig:
    """Backend credentials supplied by the host application."""
    api_key: str = ""
    api_secret: str = ""
    app_id: Optional[str] = None


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = "./logs/voxpipe.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Config:
    """Main configuration container."""
    audio: AudioConfig = field(default_factory=AudioConfig)
    transcription: TranscriptionConfig = field(default_factory=TranscriptionConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    local: LocalModelConfig = field(default_factory=LocalModelConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls(
            audio=AudioConfig(**data.get("audio", {})),
            transcription=TranscriptionConfig(**data.get("transcription", {})),
            batch=BatchConfig(**data.get("batch", {})),
            stream=StreamConfig(**data.get("stream", {})),
            local=LocalModelConfig(**data.get("local", {})),
            output=OutputConfig(**data.get("output", {})),
            credentials=CredentialsConfig(**data.get("credentials", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )

    def to_yaml(self, path: str | Path, include_credentials: bool = False) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = asdict(self)
        if not include_credentials:
            data.pop("credentials")

        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        log_level = getattr(logging, self.logging.level.upper(), logging.INFO)

        handlers = [logging.StreamHandler()]

        if self.logging.file:
            log_path = Path(self.logging.file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_path))

        logging.basicConfig(
            level=log_level,
            format=self.logging.format,
            handlers=handlers,
        )


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration from file or environment."""
    if path is None:
        path = os.environ.get("VOXPIPE_CONFIG", "config/settings.yaml")
    return Config.from_yaml(path)
