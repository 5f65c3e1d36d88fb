from typing import List


class VoiceCanvasError(Exception):
    """Base class for every error raised by the canvas core."""


class SchemaViolation(VoiceCanvasError):
    """A DiagramSpec failed shape validation and must not be rendered."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(
            f"Diagram spec rejected with {len(self.errors)} error(s): " + "; ".join(self.errors)
        )


class ConversionFailure(VoiceCanvasError):
    """The shape-conversion step produced no canvas elements."""


class GenerationError(VoiceCanvasError):
    """Raised on the generator side of a request."""


class GenerationTimeout(GenerationError):
    pass


class GenerationCancelled(GenerationError):
    """A newer request superseded this one. Never shown to the user."""


class GenerationFailed(GenerationError):
    """The generator answered with a non-retryable error or an unusable body."""
