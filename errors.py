"""
Error taxonomy for the route renderer.

Every failure raised by the pipeline is a RenderError carrying the name of
the stage that failed, so callers can report which step broke.
"""

from typing import Optional


class RenderError(Exception):
    """Base class for all rendering failures."""

    stage = "render"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        return f"[{self.stage}] {super().__str__()}"


class InputError(RenderError):
    """Missing or unreadable telemetry/background, or an empty sample set."""

    stage = "input"


class ConfigError(RenderError):
    """Configuration file could not be parsed into a RenderConfig."""

    stage = "config"


class EncoderError(RenderError):
    """The image/video sink failed to open, write, or close."""

    stage = "encoder"


class RenderCancelled(RenderError):
    """A render loop observed its cancel event and stopped early."""

    stage = "render"
