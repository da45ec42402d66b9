"""voxpipe - push-to-talk speech-to-text pipeline."""

__version__ = "0.1.0"
