from __future__ import annotations


class DeskformsError(Exception):
    """Base class for errors surfaced to operators or submitters.

    ``detail`` holds the message supplied by a collaborator, when there was one.
    """

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(DeskformsError):
    """Local, recoverable problem found before any network call.

    ``errors`` maps a field id to its message so every offending control can
    show its own error at once.
    """

    def __init__(self, message: str, errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.errors = dict(errors or {})


class NotFoundError(DeskformsError):
    pass


class TransportError(DeskformsError):
    """A storage or ticket collaborator call failed."""

    def __init__(self, message: str, *, status_code: int = 0, detail: str | None = None) -> None:
        super().__init__(message, detail=detail)
        self.status_code = status_code
