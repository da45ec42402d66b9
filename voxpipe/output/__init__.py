"""Text delivery to clipboard and keyboard."""

from .actuator import OutputActuator, OutputMode

__all__ = ["OutputActuator", "OutputMode"]
