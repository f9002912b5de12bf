from __future__ import annotations


class RelayError(Exception):
    """Base class for pipeline failures. None of them is retried."""


class ConfigurationDefect(RelayError):
    """Static configuration is inconsistent (duplicate alias, missing route)."""


class ExtractionFailure(RelayError):
    """The oracle call failed or its response could not be parsed. Fatal to one cycle."""


class ValidationDrop(RelayError):
    """A single candidate offer is missing required fields; siblings are unaffected."""


class DispatchFailure(RelayError):
    """A single send could not be completed; other sends in the cycle proceed."""

    def __init__(self, channel_id: str, message: str) -> None:
        super().__init__(f"{channel_id}: {message}")
        self.channel_id = channel_id


class TransportError(RelayError):
    """The chat gateway rejected or failed a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
