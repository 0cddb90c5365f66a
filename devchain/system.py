from __future__ import annotations

import logging
import os
import signal
from typing import Optional

import psutil

logger = logging.getLogger(__name__)


def kill_process_group(pgid: int) -> None:
    """SIGKILL every process left in group ``pgid``; a no-op once it is empty."""
    if not hasattr(os, "killpg"):
        return
    try:
        os.killpg(pgid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass


def clean_process_by_pid(pid: int) -> None:
    """
    Kill ``pid`` together with any descendants and stray members of its
    process group.

    Only valid while ``pid`` has not been reaped; afterwards the number may
    belong to an unrelated process, and ``kill_process_group`` is the safe call.
    """
    try:
        parent = psutil.Process(pid)
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        parent = None
        children = []

    for proc in children + ([parent] if parent is not None else []):
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            logger.warning("Not allowed to kill process %d", proc.pid)
    if children:
        psutil.wait_procs(children, timeout=3)

    # Chains are spawned as session leaders, so the pid doubles as the group id.
    kill_process_group(pid)
    logger.debug("Cleaned up process %d (%d descendants)", pid, len(children))


def find_listening_pid(port: int) -> Optional[int]:
    """
    Best-effort lookup of the process listening on ``port``; ``None`` when it
    cannot be determined (e.g. insufficient privileges).
    """
    try:
        connections = psutil.net_connections(kind="tcp")
    except (psutil.AccessDenied, PermissionError):
        return None
    for conn in connections:
        if conn.status == psutil.CONN_LISTEN and conn.laddr and conn.laddr.port == port:
            return conn.pid
    return None
