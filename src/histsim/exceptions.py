"""Error types raised by histsim."""


class HistSimError(Exception):
    """Base class for all histsim errors."""


class DecodeError(HistSimError):
    """A pixel source could not produce a pixel grid for an identifier."""

    def __init__(self, identifier: str, reason: str = "could not decode image"):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"{identifier}: {reason}")


class InvalidImageError(HistSimError, ValueError):
    """A pixel grid is empty or malformed."""


class InvalidArgumentError(HistSimError, ValueError):
    """A caller-supplied argument is out of range."""


class BatchLoadError(HistSimError):
    """A single entry of a batch load failed, aborting the batch.

    The underlying error is chained as ``__cause__``.
    """

    def __init__(self, identifier: str, position: int, message: str):
        self.identifier = identifier
        self.position = position
        super().__init__(f"Failed to load {identifier} (entry {position}): {message}")


class LoadCancelledError(HistSimError):
    """A batch load was cancelled before all entries were started."""
