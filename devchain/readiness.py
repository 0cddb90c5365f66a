from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from .errors import Cancelled, ChainError, ProbeExhausted
from .models import ChainEndpoint
from .rpc import RpcClient

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.25


def check_ready(client: RpcClient) -> bool:
    """
    One liveness round: True only for a success reply with a 0x block number.
    """
    try:
        block_number = client.call("eth_blockNumber")
    except ChainError as exc:
        logger.debug("Chain on %s not ready: %s", client.url, exc)
        return False
    return isinstance(block_number, str) and block_number.startswith("0x")


def await_ready(
    endpoint: ChainEndpoint,
    max_attempts: int,
    cancel: Optional[threading.Event] = None,
    interval: float = POLL_INTERVAL,
    client: Optional[RpcClient] = None,
) -> None:
    """
    Poll ``endpoint`` until it answers ``eth_blockNumber``.

    ``max_attempts=0`` performs a single immediate check with no waiting; it is
    the probe used to detect whether something already serves the port.

    Raises:
        ProbeExhausted: every attempt failed.
        Cancelled: ``cancel`` was set before or between attempts.
    """
    attempts = max(max_attempts, 1)
    if max_attempts > 0:
        logger.info("Waiting for chain to be ready on port %d...", endpoint.port)
    else:
        logger.info("Checking for chain on port %d...", endpoint.port)

    if cancel is not None and cancel.is_set():
        raise Cancelled(f"readiness wait on port {endpoint.port} cancelled")

    own_client = client is None
    client = client or RpcClient(endpoint)
    try:
        for attempt in range(1, attempts + 1):
            if check_ready(client):
                logger.info("Chain is ready on port %d.", endpoint.port)
                return
            if attempt == attempts:
                break
            if cancel is None:
                time.sleep(interval)
            elif cancel.wait(interval):
                raise Cancelled(f"readiness wait on port {endpoint.port} cancelled")
    finally:
        if own_client:
            client.close()

    raise ProbeExhausted(endpoint.port, attempts)


def is_serving(endpoint: ChainEndpoint, client: Optional[RpcClient] = None) -> bool:
    try:
        await_ready(endpoint, 0, client=client)
    except ProbeExhausted:
        return False
    return True
