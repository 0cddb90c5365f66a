from __future__ import annotations

import logging
import queue
import signal
import threading
from typing import Any, Dict, Optional

from .models import ChainProcessHandle
from .system import clean_process_by_pid, kill_process_group

logger = logging.getLogger(__name__)

SIGNAL = "signal"
CHILD_EXIT = "child-exit"
CLEANUP_REQUEST = "cleanup-request"

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownCoordinator:
    """
    Fans shutdown triggers into one cancellation broadcast.

    Triggers are an OS signal, exit of the owned chain process, or an explicit
    ``request_cleanup()``. The first one to arrive is recorded as ``reason``,
    ``cancelled`` is set for every waiter, and the owned process tree is reaped.
    Reaping happens at most once per run, however many triggers race.

    Use as a context manager; leaving the block always shuts down.
    """

    def __init__(self, install_signals: bool = True) -> None:
        self.cancelled = threading.Event()
        self.reason: Optional[str] = None
        self._install_signals = install_signals
        self._triggers: "queue.SimpleQueue[str]" = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._handle: Optional[ChainProcessHandle] = None
        self._reaped = False
        self._previous_handlers: Dict[int, Any] = {}
        self._dispatcher: Optional[threading.Thread] = None
        self._reaper: Optional[threading.Thread] = None

    def __enter__(self) -> "ShutdownCoordinator":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def start(self) -> None:
        if self._install_signals and threading.current_thread() is threading.main_thread():
            for signum in HANDLED_SIGNALS:
                self._previous_handlers[signum] = signal.signal(signum, self._on_signal)
        self._dispatcher = threading.Thread(target=self._dispatch, name="shutdown-dispatch", daemon=True)
        self._dispatcher.start()

    def close(self, timeout: float = 5.0) -> None:
        self.request_cleanup()
        if self._dispatcher is not None:
            self._dispatcher.join(timeout)
        if self._reaper is not None:
            self._reaper.join(timeout)
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous_handlers.clear()

    def adopt(self, handle: ChainProcessHandle) -> None:
        """
        Take ownership of the chain process. Only the reaper thread started
        here ever waits on it.
        """
        with self._lock:
            if self._handle is not None:
                raise RuntimeError("a chain process has already been adopted")
            self._handle = handle
        if not handle.owns_lifecycle or handle.process is None:
            return
        if self.cancelled.is_set():
            self.reap()
        self._reaper = threading.Thread(
            target=self._reap_on_exit,
            args=(handle,),
            name=f"chain-reaper-{handle.pid}",
            daemon=True,
        )
        self._reaper.start()

    def request_cleanup(self) -> None:
        self._triggers.put(CLEANUP_REQUEST)

    def wait(self, poll: float = 0.5) -> str:
        """Block until shutdown has been triggered and return its reason."""
        # Short waits keep the main thread responsive to signal handlers.
        while not self.cancelled.wait(poll):
            pass
        return self.reason

    def reap(self) -> bool:
        """Kill the owned process tree; returns False if there was nothing to do."""
        with self._lock:
            handle = self._handle
            if self._reaped or handle is None or not handle.owns_lifecycle:
                return False
            self._reaped = True
        if handle.process is not None and handle.process.returncode is not None:
            # Already waited on, so the pid may have been reused; only the group is safe.
            logger.info("Cleaning up process group of exited chain %d", handle.pid)
            kill_process_group(handle.pid)
        else:
            logger.info("Cleaning up chain process %d", handle.pid)
            clean_process_by_pid(handle.pid)
        return True

    def _on_signal(self, signum, frame) -> None:
        # SimpleQueue.put is reentrant, so this is safe inside a signal handler.
        self._triggers.put(SIGNAL)

    def _reap_on_exit(self, handle: ChainProcessHandle) -> None:
        returncode = handle.process.wait()
        logger.info("Chain process %d exited with status %s", handle.pid, returncode)
        self.reap()
        self._triggers.put(CHILD_EXIT)

    def _dispatch(self) -> None:
        reason = self._triggers.get()
        self.reason = reason
        logger.info("Shutting down (%s)", reason)
        self.cancelled.set()
        self.reap()
