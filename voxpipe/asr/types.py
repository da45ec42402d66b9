"""Result and credential types shared by all transcription backends."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Literal, Optional

Capability = Literal["batch", "streaming"]


class BackendKind(str, Enum):
    """The interchangeable transcription backends."""
    CLOUD_BATCH = "cloud_batch"
    CLOUD_STREAM = "cloud_stream"
    LOCAL = "local"


@dataclass(frozen=True)
class BackendDescriptor:
    """Identifies which backend produced a result."""
    name: str
    capability: Capability


@dataclass(frozen=True)
class Credential:
    """Secret material for a cloud backend. Never persisted here."""
    api_key: str
    api_secret: str
    app_id: Optional[str] = None

    def __repr__(self) -> str:
        return f"Credential(api_key={self.api_key[:4]}..., app_id={self.app_id})"


@dataclass
class Segment:
    """A time-bounded span of recognized text, times in seconds."""
    start: float
    end: float
    text: str


@dataclass
class TranscriptionResult:
    """Normalized output of any backend."""
    text: str
    language: Optional[str] = None
    confidence: Optional[float] = None
    segments: list[Segment] = field(default_factory=list)
    backend: Optional[BackendDescriptor] = None

    @classmethod
    def untimed(
        cls,
        text: str,
        language: Optional[str] = None,
        backend: Optional[BackendDescriptor] = None,
    ) -> "TranscriptionResult":
        """Result for backends without timing: one zero-timestamp segment."""
        return cls(
            text=text,
            language=language,
            segments=[Segment(start=0.0, end=0.0, text=text)],
            backend=backend,
        )

    def with_backend(self, backend: BackendDescriptor) -> "TranscriptionResult":
        return replace(self, backend=backend)


def language_tag(language: str) -> str:
    """Reduce a service language code like 'zh_cn' to a tag like 'zh'."""
    return language.replace("-", "_").split("_", 1)[0].lower()
