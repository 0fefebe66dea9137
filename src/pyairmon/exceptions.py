"""Custom exception hierarchy for pyairmon."""

from __future__ import annotations


class AirMonError(Exception):
    """Base exception for all pyairmon errors."""


class AirMonConfigError(AirMonError):
    """Invalid or missing configuration."""


class AirMonTransportError(AirMonError):
    """The IPC client could not be built or lost its channel (e.g. broker unreachable)."""


class AirMonClientClosedError(AirMonTransportError):
    """A call was issued on (or pending when) the IPC client was closed."""


class AirMonCallError(AirMonError):
    """A remote call was rejected by the service."""

    def __init__(
        self,
        message: str,
        *,
        method: str = "",
        remote_name: str = "",
    ) -> None:
        self.method = method
        self.remote_name = remote_name
        super().__init__(message)


class AirMonPayloadError(AirMonError):
    """A reply or signal payload did not match the expected shape."""

    def __init__(self, message: str, *, source: str = "") -> None:
        self.source = source
        super().__init__(message)
