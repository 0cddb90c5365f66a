from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")


def _require_hex(value: str, what: str, size: Optional[int] = None) -> str:
    if not isinstance(value, str) or not _HEX_RE.match(value):
        raise ValueError(f"{what} must be a 0x-prefixed hex string, got {value!r}")
    digits = len(value) - 2
    if digits % 2:
        raise ValueError(f"{what} has an odd number of hex digits: {value!r}")
    if size is not None and digits != size * 2:
        raise ValueError(f"{what} must be {size} bytes, got {digits // 2}: {value!r}")
    return value


def normalize_hex(value: Optional[str]) -> str:
    """Lowercase hex with the ``0x`` prefix; ``None`` and ``"0x"`` map to ``"0x"``."""
    if not value:
        return "0x"
    body = value[2:] if value[:2].lower() == "0x" else value
    return "0x" + body.lower()


@dataclass(frozen=True, slots=True)
class ChainEndpoint:
    port: int

    @property
    def base_url(self) -> str:
        return f"http://localhost:{self.port}"


@dataclass(frozen=True, slots=True)
class GenesisSnapshot:
    """A content-addressed state dump stored in the cache directory."""

    content_hash: str
    storage_path: str


@dataclass(slots=True)
class ChainProcessHandle:
    """
    Handle to the chain serving a port.

    ``process`` is only set when this manager spawned the chain; an attached
    chain has ``owns_lifecycle=False`` and is never waited on or killed.
    """

    pid: Optional[int]
    owns_lifecycle: bool
    process: Optional[subprocess.Popen] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True, slots=True)
class PredeployEntry:
    address: str
    bytecode: str
    name: str = ""

    def __post_init__(self) -> None:
        _require_hex(self.address, "predeploy address", 20)
        _require_hex(self.bytecode, f"bytecode for {self.address}")


@dataclass(frozen=True, slots=True)
class StorageOverride:
    address: str
    slot: str
    value: str

    def __post_init__(self) -> None:
        _require_hex(self.address, "storage override address", 20)
        _require_hex(self.slot, "storage slot", 32)
        _require_hex(self.value, "storage value", 32)


@dataclass(frozen=True, slots=True)
class BootstrapTransaction:
    to: str
    data: str

    def __post_init__(self) -> None:
        _require_hex(self.to, "transaction target", 20)
        _require_hex(self.data, "transaction data")


@dataclass(frozen=True, slots=True)
class BootstrapPlan:
    """Static description of the on-chain end-state applied by bootstrap."""

    sender: str
    predeploys: Tuple[PredeployEntry, ...] = ()
    storage: Tuple[StorageOverride, ...] = ()
    transactions: Tuple[BootstrapTransaction, ...] = ()

    def __post_init__(self) -> None:
        _require_hex(self.sender, "sender address", 20)
        seen = set()
        for entry in self.predeploys:
            key = entry.address.lower()
            if key in seen:
                raise ValueError(f"duplicate predeploy address {entry.address}")
            seen.add(key)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "BootstrapPlan":
        return BootstrapPlan(
            sender=data["sender"],
            predeploys=tuple(
                PredeployEntry(
                    address=item["address"],
                    bytecode=item["bytecode"],
                    name=item.get("name", ""),
                )
                for item in data.get("predeploys") or []
            ),
            storage=tuple(
                StorageOverride(
                    address=item["address"], slot=item["slot"], value=item["value"]
                )
                for item in data.get("storage") or []
            ),
            transactions=tuple(
                BootstrapTransaction(to=item["to"], data=item["data"])
                for item in data.get("transactions") or []
            ),
        )


@dataclass(slots=True)
class RPCResponse:
    """Representation of a JSON-RPC response."""

    jsonrpc: str
    result: Any
    id: Any
    error: Optional[Dict[str, Any]] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "RPCResponse":
        return RPCResponse(
            jsonrpc=data.get("jsonrpc"),
            result=data.get("result"),
            id=data.get("id"),
            error=data.get("error"),
        )

    def is_error(self) -> bool:
        return self.error is not None


@dataclass(slots=True)
class TxOutcome:
    index: int
    nonce: int
    tx_hash: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class BootstrapReport:
    injected: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)
    storage_applied: int = 0
    transactions: List[TxOutcome] = field(default_factory=list)

    @property
    def nonces(self) -> List[int]:
        return [outcome.nonce for outcome in self.transactions]

    @property
    def failed_transactions(self) -> List[TxOutcome]:
        return [outcome for outcome in self.transactions if not outcome.ok]
