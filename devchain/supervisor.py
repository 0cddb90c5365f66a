from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .errors import Cancelled, ChainBinaryError, PortConflict, ProbeExhausted, StartupTimeout
from .models import ChainEndpoint, ChainProcessHandle, GenesisSnapshot
from .readiness import POLL_INTERVAL, await_ready, is_serving
from .rpc import RpcClient
from .system import find_listening_pid

logger = logging.getLogger(__name__)

DEFAULT_BINARY = "anvil"
STARTUP_ATTEMPTS = 15


def build_command(
    binary: Union[str, Sequence[str]],
    port: int,
    snapshot: Optional[GenesisSnapshot] = None,
) -> List[str]:
    command = [binary] if isinstance(binary, str) else list(binary)
    command += ["--port", str(port)]
    if snapshot is not None:
        command += ["--load-state", snapshot.storage_path]
    return command


def _log_path(cache_dir: Path, command: Sequence[str], port: int) -> Path:
    return cache_dir / f"{Path(command[0]).stem}-{port}.log"


def _kill(process: subprocess.Popen) -> None:
    process.kill()
    process.wait()


def start(
    port: int,
    snapshot: Optional[GenesisSnapshot] = None,
    verbose: bool = False,
    *,
    binary: Union[str, Sequence[str]] = DEFAULT_BINARY,
    cache_dir: Union[str, Path],
    attempts: int = STARTUP_ATTEMPTS,
    interval: float = POLL_INTERVAL,
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> ChainProcessHandle:
    """
    Spawn the chain on ``port`` or attach to one already serving it.

    Without a snapshot an existing chain is reused and returned with
    ``owns_lifecycle=False``; with a snapshot an existing chain is a
    ``PortConflict``, since preloaded state cannot be layered onto it.
    A spawned chain that never becomes ready is killed before the error
    propagates. ``timeout`` bounds each probe request.
    """
    endpoint = ChainEndpoint(port)

    with RpcClient(endpoint, timeout=timeout) as client:
        if is_serving(endpoint, client=client):
            if snapshot is not None:
                raise PortConflict(port)
            pid = find_listening_pid(port)
            logger.info("Attaching to chain already running on port %d (pid %s)", port, pid)
            return ChainProcessHandle(pid=pid, owns_lifecycle=False)

        cache_dir = Path(cache_dir)
        cache_dir.mkdir(parents=True, exist_ok=True)
        command = build_command(binary, port, snapshot)

        log_file = None
        if not verbose:
            log_path = _log_path(cache_dir, command, port)
            log_file = open(log_path, "ab")
            logger.info("Chain output redirected to %s", log_path)

        logger.info("Starting chain: %s", " ".join(command))
        try:
            process = subprocess.Popen(
                command,
                cwd=cache_dir,
                stdout=log_file,
                stderr=subprocess.STDOUT if log_file else None,
                start_new_session=True,
            )
        except OSError as exc:
            raise ChainBinaryError(f"Failed to launch {command[0]}: {exc}") from exc
        finally:
            if log_file is not None:
                log_file.close()

        try:
            await_ready(endpoint, attempts, cancel=cancel, interval=interval, client=client)
        except ProbeExhausted as exc:
            logger.error("Chain failed to start on port %d, cleaning up", port)
            _kill(process)
            raise StartupTimeout(port, attempts) from exc
        except Cancelled:
            logger.info("Startup cancelled, stopping chain on port %d", port)
            _kill(process)
            raise
        except BaseException:
            _kill(process)
            raise

    logger.info("Chain running on port %d (pid %d)", port, process.pid)
    return ChainProcessHandle(pid=process.pid, owns_lifecycle=True, process=process)
