"""Delivers transcribed text to the clipboard and/or the focused window."""

import logging
from enum import Enum

import pyperclip

from ..errors import ClipboardError, KeyboardError

logger = logging.getLogger(__name__)


class OutputMode(str, Enum):
    TYPE = "type"
    CLIPBOARD = "clipboard"
    BOTH = "both"


class OutputActuator:
    """Writes text to the system clipboard and/or simulates typing it."""

    def __init__(self):
        self._keyboard = None

    def _get_keyboard(self):
        """Lazy-init the keyboard controller; pynput needs a display at import."""
        if self._keyboard is None:
            try:
                from pynput.keyboard import Controller

                self._keyboard = Controller()
            except Exception as e:
                raise KeyboardError(f"Keyboard controller unavailable: {e}") from e
        return self._keyboard

    def output(self, text: str, mode: OutputMode | str) -> None:
        """Deliver text. In BOTH mode the clipboard is always written first."""
        mode = OutputMode(mode)
        if not text:
            logger.info("Nothing to output")
            return

        if mode == OutputMode.TYPE:
            self.type_text(text)
        elif mode == OutputMode.CLIPBOARD:
            self.copy_to_clipboard(text)
        else:
            self.copy_to_clipboard(text)
            self.type_text(text)

    def type_text(self, text: str) -> None:
        """Simulate keystrokes for the text."""
        keyboard = self._get_keyboard()
        try:
            keyboard.type(text)
        except Exception as e:
            raise KeyboardError(str(e)) from e
        logger.info(f"Typed {len(text)} characters")

    def copy_to_clipboard(self, text: str) -> None:
        """Write text to the system clipboard."""
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            raise ClipboardError(str(e)) from e
        logger.info(f"Copied {len(text)} characters to clipboard")
