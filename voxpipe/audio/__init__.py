"""Microphone capture and finalized audio buffers.

``AudioCapture`` lives in ``voxpipe.audio.capture`` and needs PortAudio.
"""

from .buffer import AudioBuffer

__all__ = ["AudioBuffer"]
