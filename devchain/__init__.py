"""
Local development chain management.

Launches (or attaches to) an anvil-compatible chain, waits for its JSON-RPC
interface, seeds it with a cached state snapshot or the packaged bootstrap plan,
and tears the process down exactly once on exit, signal, or error.
"""

from . import bootstrap, config, lifecycle, readiness, shutdown, snapshot, supervisor, system
from .errors import (
    Cancelled,
    ChainError,
    PortConflict,
    RpcApplicationError,
    StartupTimeout,
    TransportError,
)
from .models import BootstrapPlan, ChainEndpoint, ChainProcessHandle, GenesisSnapshot

__all__ = [
    "bootstrap",
    "config",
    "lifecycle",
    "readiness",
    "shutdown",
    "snapshot",
    "supervisor",
    "system",
    "BootstrapPlan",
    "Cancelled",
    "ChainEndpoint",
    "ChainError",
    "ChainProcessHandle",
    "GenesisSnapshot",
    "PortConflict",
    "RpcApplicationError",
    "StartupTimeout",
    "TransportError",
]
