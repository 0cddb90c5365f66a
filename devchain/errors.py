from __future__ import annotations

from typing import Any, Optional


class ChainError(RuntimeError):
    """Base class for every failure raised while managing the dev chain."""


class ConfigError(ChainError):
    pass


class PortConflict(ChainError):
    def __init__(self, port: int) -> None:
        super().__init__(f"Port {port} is already in use by another chain process")
        self.port = port


class StartupTimeout(ChainError):
    def __init__(self, port: int, attempts: int) -> None:
        super().__init__(
            f"Chain on port {port} did not become ready after {attempts} attempts"
        )
        self.port = port
        self.attempts = attempts


class ChainBinaryError(ChainError):
    pass


class TransportError(ChainError):
    """Network-level failure talking to the chain (no usable JSON-RPC reply)."""


class RpcApplicationError(ChainError):
    """The chain answered a call with a JSON-RPC error object."""

    def __init__(
        self,
        method: str,
        code: Optional[int],
        message: str,
        data: Any = None,
    ) -> None:
        super().__init__(f"RPC error from {method}: [{code}] {message}")
        self.method = method
        self.code = code
        self.message = message
        self.data = data


class ProbeExhausted(ChainError):
    def __init__(self, port: int, attempts: int) -> None:
        super().__init__(
            f"Failed to connect to chain on port {port} after {attempts} attempts"
        )
        self.port = port
        self.attempts = attempts


class Cancelled(ChainError):
    """A wait observed the shutdown broadcast; not a failure and not retryable."""
