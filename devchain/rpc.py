from __future__ import annotations

import itertools
import logging
from typing import Any, List, Optional

import requests

from .errors import RpcApplicationError, TransportError
from .models import ChainEndpoint, RPCResponse

logger = logging.getLogger(__name__)


class RpcClient:
    """
    Minimal JSON-RPC 2.0 client for the dev chain.

    Transport problems (refused connections, non-2xx status, bodies that are
    not a JSON-RPC envelope) raise ``TransportError``; a well-formed reply that
    carries an ``error`` object raises ``RpcApplicationError``.
    """

    def __init__(
        self,
        endpoint: ChainEndpoint,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()
        self._ids = itertools.count(1)

    @property
    def url(self) -> str:
        return self.endpoint.base_url

    def request(self, method: str, params: Optional[List[Any]] = None) -> RPCResponse:
        body = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            r = self.session.post(self.url, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"{method} to {self.url} failed: {exc}") from exc

        if not r.ok:
            raise TransportError(f"{method} to {self.url} returned HTTP {r.status_code}")
        try:
            data = r.json()
        except ValueError as exc:
            raise TransportError(f"{method} to {self.url} returned a non-JSON body") from exc
        if not isinstance(data, dict) or ("result" not in data and "error" not in data):
            raise TransportError(f"{method} to {self.url} returned a malformed reply: {data!r}")
        return RPCResponse.from_dict(data)

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        response = self.request(method, params)
        if response.is_error():
            error = response.error if isinstance(response.error, dict) else {}
            raise RpcApplicationError(
                method,
                error.get("code"),
                str(error.get("message", response.error)),
                error.get("data"),
            )
        logger.debug("%s -> %r", method, response.result)
        return response.result

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "RpcClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
