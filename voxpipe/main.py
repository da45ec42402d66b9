"""Command-line push-to-talk dictation."""

import argparse
import logging
import signal
import sys
import threading
from typing import Optional

from .asr.orchestrator import TranscriptionOrchestrator
from .asr.types import BackendKind, Credential, TranscriptionResult
from .audio.capture import AudioCapture
from .config import Config, load_config
from .errors import VoiceError
from .output.actuator import OutputActuator, OutputMode

logger = logging.getLogger(__name__)


class VoxPipe:
    """Wires capture, transcription and output for one session at a time."""

    def __init__(self, config: Config):
        self.config = config
        self.capture = AudioCapture(config.audio)
        self.orchestrator = TranscriptionOrchestrator(config)
        self.actuator = OutputActuator()

    @property
    def credential(self) -> Optional[Credential]:
        creds = self.config.credentials
        if not creds.api_key and not creds.app_id:
            return None
        return Credential(
            api_key=creds.api_key,
            api_secret=creds.api_secret,
            app_id=creds.app_id,
        )

    def start_recording(self) -> None:
        self.capture.start()

    def cancel_recording(self) -> None:
        self.capture.cancel()

    def finish_recording(
        self,
        backend: Optional[str] = None,
        language: Optional[str] = None,
        mode: Optional[str] = None,
    ) -> TranscriptionResult:
        """Stop capture, transcribe and deliver the text."""
        audio = self.capture.stop()
        result = self.orchestrator.transcribe(
            audio,
            backend=BackendKind(backend or self.config.transcription.backend),
            language=language or self.config.transcription.language,
            credential=self.credential,
        )
        logger.info(f"Transcribed: '{result.text[:50]}'")
        self.actuator.output(result.text, OutputMode(mode or self.config.output.mode))
        return result

    def wait_for_stop(self, stop_event: threading.Event, poll_interval: float = 0.1) -> None:
        """Block until stop_event is set or the duration ceiling is hit."""
        while not stop_event.wait(poll_interval):
            if self.capture.limit_reached():
                logger.info("Maximum duration reached, stopping")
                return

    def close(self) -> None:
        if self.capture.is_recording():
            self.capture.cancel()
        self.orchestrator.close()


def _listen_for_enter(stop_event: threading.Event) -> None:
    """Set stop_event when the user presses Enter."""
    def wait():
        try:
            input()
        except EOFError:
            pass
        stop_event.set()

    threading.Thread(target=wait, daemon=True).start()


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="voxpipe - push-to-talk dictation")
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to configuration file",
    )
    parser.add_argument(
        "-b", "--backend",
        choices=[kind.value for kind in BackendKind],
        help="Transcription backend (default: from config)",
    )
    parser.add_argument(
        "-l", "--language",
        help="Recognition language, or 'auto' for the local model",
    )
    parser.add_argument(
        "-m", "--mode",
        choices=[mode.value for mode in OutputMode],
        help="Output mode (default: from config)",
    )
    parser.add_argument(
        "--list-audio",
        action="store_true",
        help="List available audio devices",
    )
    args = parser.parse_args(argv)

    if args.list_audio:
        print("Available audio devices:")
        for dev in AudioCapture.list_devices():
            print(f"  [{dev['id']}] {dev['name']} ({dev['channels']}ch)")
        return 0

    config = load_config(args.config)
    config.setup_logging()

    app = VoxPipe(config)
    stop_event = threading.Event()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, cancelling")
        app.cancel_recording()
        stop_event.set()

    signal.signal(signal.SIGINT, signal_handler)

    try:
        app.start_recording()
        print("Recording... press Enter to stop, Ctrl+C to cancel")
        _listen_for_enter(stop_event)
        app.wait_for_stop(stop_event)

        if not app.capture.is_recording():
            print("Cancelled")
            return 1

        result = app.finish_recording(args.backend, args.language, args.mode)
        print(result.text)
        return 0
    except VoiceError as e:
        logger.error(f"Dictation failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        app.close()


if __name__ == "__main__":
    sys.exit(main())
