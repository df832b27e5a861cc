"""Exception classes for rendering and job handling."""


class StagreelError(Exception):
    """Base exception for stagreel errors."""

    pass


class InvalidInputError(StagreelError):
    """Raised when the source markup or render options are unusable."""

    pass


class RasterizerError(StagreelError):
    """Raised when the browser session cannot be opened or a capture fails."""

    pass


class EncoderError(StagreelError):
    """Raised when frames cannot be appended or the GIF cannot be written."""

    pass


class JobNotFoundError(StagreelError):
    """Raised for unknown, expired or not yet finished jobs."""

    pass
