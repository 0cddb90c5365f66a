from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import lru_cache
from importlib import resources
from typing import Iterator, List, Optional, Sequence

import yaml

from .errors import ChainError, RpcApplicationError, TransportError
from .models import (
    BootstrapPlan,
    BootstrapReport,
    BootstrapTransaction,
    ChainEndpoint,
    PredeployEntry,
    StorageOverride,
    TxOutcome,
    normalize_hex,
)
from .rpc import RpcClient

logger = logging.getLogger(__name__)

PLAN_RESOURCE = "bootstrap.yaml"


@lru_cache(maxsize=1)
def load_default_plan() -> BootstrapPlan:
    """Load the predeploy/storage/transaction tables shipped with the package."""
    text = (resources.files("devchain") / "data" / PLAN_RESOURCE).read_text(encoding="utf-8")
    return BootstrapPlan.from_dict(yaml.safe_load(text))


def inject_code(client: RpcClient, predeploys: Sequence[PredeployEntry], report: BootstrapReport) -> None:
    for entry in predeploys:
        label = entry.name or entry.address
        existing = normalize_hex(client.call("eth_getCode", [entry.address, "latest"]))
        target = normalize_hex(entry.bytecode)

        if existing == "0x":
            client.call("anvil_setCode", [entry.address, entry.bytecode])
            report.injected.append(entry.address)
            logger.info("Injected %s at %s", label, entry.address)
        elif existing == target:
            report.skipped.append(entry.address)
            logger.debug("%s already deployed at %s", label, entry.address)
        else:
            report.conflicts.append(entry.address)
            logger.warning(
                "Code at %s differs from %s (%d bytes on chain, %d expected); leaving it in place",
                entry.address,
                label,
                (len(existing) - 2) // 2,
                (len(target) - 2) // 2,
            )


def apply_storage(client: RpcClient, overrides: Sequence[StorageOverride], report: BootstrapReport) -> None:
    for override in overrides:
        client.call("anvil_setStorageAt", [override.address, override.slot, override.value])
        report.storage_applied += 1
        logger.debug("Set %s[%s] = %s", override.address, override.slot, override.value)


@contextmanager
def impersonating(client: RpcClient, address: str) -> Iterator[None]:
    """Let ``address`` send unsigned transactions for the duration of the block."""
    client.call("anvil_impersonateAccount", [address])
    try:
        yield
    except BaseException:
        try:
            client.call("anvil_stopImpersonatingAccount", [address])
        except ChainError as exc:
            logger.warning("Failed to stop impersonating %s: %s", address, exc)
        raise
    client.call("anvil_stopImpersonatingAccount", [address])


def send_transactions(
    client: RpcClient,
    sender: str,
    transactions: Sequence[BootstrapTransaction],
) -> List[TxOutcome]:
    """
    Send ``transactions`` in order with consecutive nonces.

    The starting nonce is read once; a rejected transaction still consumes its
    nonce slot locally and does not stop the sequence. Transport failures
    propagate.
    """
    raw_nonce = client.call("eth_getTransactionCount", [sender, "latest"])
    try:
        nonce = int(raw_nonce, 16)
    except (TypeError, ValueError) as exc:
        raise TransportError(f"eth_getTransactionCount for {sender} returned {raw_nonce!r}") from exc
    outcomes: List[TxOutcome] = []

    for index, tx in enumerate(transactions):
        params = {"from": sender, "to": tx.to, "data": tx.data, "nonce": hex(nonce)}
        try:
            tx_hash = client.call("eth_sendTransaction", [params])
        except RpcApplicationError as exc:
            logger.error("Bootstrap transaction %d to %s rejected: %s", index, tx.to, exc.message)
            outcomes.append(TxOutcome(index=index, nonce=nonce, error=exc.message))
        else:
            logger.debug("Bootstrap transaction %d sent: %s (nonce %d)", index, tx_hash, nonce)
            outcomes.append(TxOutcome(index=index, nonce=nonce, tx_hash=tx_hash))
        nonce += 1

    return outcomes


def bootstrap(
    endpoint: ChainEndpoint,
    plan: Optional[BootstrapPlan] = None,
    client: Optional[RpcClient] = None,
) -> BootstrapReport:
    """
    Bring a ready chain to the plan's end-state.

    Steps run strictly in order: code injection, storage overrides, then the
    transaction sequence under impersonation of the plan's sender. Safe to run
    again against an already bootstrapped chain.
    """
    plan = plan or load_default_plan()
    own_client = client is None
    client = client or RpcClient(endpoint)
    report = BootstrapReport()

    try:
        inject_code(client, plan.predeploys, report)
        apply_storage(client, plan.storage, report)
        if plan.transactions:
            with impersonating(client, plan.sender):
                report.transactions = send_transactions(client, plan.sender, plan.transactions)
    finally:
        if own_client:
            client.close()

    failed = len(report.failed_transactions)
    logger.info(
        "Bootstrap done: %d injected, %d already present, %d conflicts, %d storage overrides, %d/%d transactions accepted",
        len(report.injected),
        len(report.skipped),
        len(report.conflicts),
        report.storage_applied,
        len(report.transactions) - failed,
        len(report.transactions),
    )
    return report
