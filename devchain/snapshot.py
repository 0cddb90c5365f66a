from __future__ import annotations

import hashlib
import logging
import os
from importlib import resources
from pathlib import Path
from typing import Optional, Union

from .errors import ConfigError
from .models import GenesisSnapshot

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "chainstate"
PACKAGED_STATE = "chainstate.json"


def load_snapshot_content(path: Optional[Union[str, Path]] = None) -> bytes:
    """
    Read snapshot bytes from ``path`` or, by default, the state dump shipped
    with the package.
    """
    if path is not None:
        try:
            return Path(path).read_bytes()
        except OSError as exc:
            raise ConfigError(f"cannot read state file {path}: {exc}") from exc
    return (resources.files("devchain") / "data" / PACKAGED_STATE).read_bytes()


def snapshot_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def snapshot_path(cache_dir: Union[str, Path], content_hash: str, namespace: str = DEFAULT_NAMESPACE) -> Path:
    return Path(cache_dir) / f"{namespace}-{content_hash}.json"


def write_snapshot(
    content: bytes,
    cache_dir: Union[str, Path],
    namespace: str = DEFAULT_NAMESPACE,
) -> GenesisSnapshot:
    """
    Store ``content`` under its sha256 in ``cache_dir`` unless already cached.

    Cached files are never overwritten; identical content maps to the same file.
    """
    content_hash = snapshot_hash(content)
    # Absolute, since the chain process runs with the cache dir as its cwd.
    target = snapshot_path(Path(cache_dir).absolute(), content_hash, namespace)

    if target.exists():
        logger.debug("Snapshot %s already cached at %s", content_hash, target)
    else:
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(f".{target.name}.{os.getpid()}.tmp")
        tmp.write_bytes(content)
        os.replace(tmp, target)
        logger.info("Cached snapshot %s at %s", content_hash, target)

    return GenesisSnapshot(content_hash=content_hash, storage_path=str(target))
