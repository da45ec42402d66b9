"""Interchangeable transcription backends."""

from .batch import CloudBatchBackend
from .local import LocalModelBackend
from .orchestrator import TranscriptionOrchestrator
from .stream import CloudStreamBackend
from .types import (
    BackendDescriptor,
    BackendKind,
    Credential,
    Segment,
    TranscriptionResult,
)

__all__ = [
    "BackendDescriptor",
    "BackendKind",
    "CloudBatchBackend",
    "CloudStreamBackend",
    "Credential",
    "LocalModelBackend",
    "Segment",
    "TranscriptionOrchestrator",
    "TranscriptionResult",
]
