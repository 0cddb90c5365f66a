from __future__ import annotations

import logging
from typing import Optional

from . import supervisor
from .bootstrap import bootstrap
from .config import ChainConfig
from .errors import Cancelled, ChainError
from .models import BootstrapPlan, ChainEndpoint, GenesisSnapshot
from .rpc import RpcClient
from .shutdown import ShutdownCoordinator
from .snapshot import load_snapshot_content, write_snapshot

logger = logging.getLogger(__name__)


def prepare_snapshot(config: ChainConfig) -> Optional[GenesisSnapshot]:
    if not config.preload_state:
        return None
    return write_snapshot(load_snapshot_content(config.state_file), config.cache_path)


def execute(
    config: ChainConfig,
    plan: Optional[BootstrapPlan] = None,
    coordinator: Optional[ShutdownCoordinator] = None,
) -> str:
    """
    Run the dev chain until shutdown and return what triggered it.

    With ``preload_state`` the chain starts from the cached snapshot; otherwise
    a chain is spawned (or an existing one attached) and bootstrapped from the
    static plan. Any error unwinds through the coordinator, so an owned chain is
    always cleaned up.
    """
    snapshot = prepare_snapshot(config)
    coordinator = coordinator or ShutdownCoordinator()

    with coordinator:
        handle = supervisor.start(
            config.port,
            snapshot,
            config.verbose,
            binary=config.binary,
            cache_dir=config.cache_path,
            attempts=config.probe_attempts,
            interval=config.poll_interval,
            timeout=config.rpc_timeout,
            cancel=coordinator.cancelled,
        )
        coordinator.adopt(handle)

        if snapshot is None:
            endpoint = ChainEndpoint(config.port)
            with RpcClient(endpoint, timeout=config.rpc_timeout) as client:
                try:
                    bootstrap(endpoint, plan, client=client)
                except ChainError as exc:
                    if coordinator.cancelled.is_set():
                        raise Cancelled("shutdown requested during bootstrap") from exc
                    raise

        logger.info("Chain available at %s", ChainEndpoint(config.port).base_url)
        return coordinator.wait()
