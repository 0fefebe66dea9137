"""Connection state exposed by the connection lifecycle manager."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class ConnectionStatus(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class ConnectionState(BaseModel):
    """Current connection status; ``message`` is set only for errors."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    message: str | None = None

    @classmethod
    def disconnected(cls) -> ConnectionState:
        return cls(status=ConnectionStatus.DISCONNECTED)

    @classmethod
    def connecting(cls) -> ConnectionState:
        return cls(status=ConnectionStatus.CONNECTING)

    @classmethod
    def connected(cls) -> ConnectionState:
        return cls(status=ConnectionStatus.CONNECTED)

    @classmethod
    def error(cls, message: str) -> ConnectionState:
        return cls(status=ConnectionStatus.ERROR, message=message)

    @property
    def is_error(self) -> bool:
        return self.status == ConnectionStatus.ERROR

    def __str__(self) -> str:
        if self.message:
            return f"{self.status.value}({self.message})"
        return self.status.value
