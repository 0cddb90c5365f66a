import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from devchain.models import ChainEndpoint


class FakeChain:
    """In-memory stand-in for the anvil JSON-RPC surface used by devchain."""

    def __init__(self):
        self.lock = threading.Lock()
        self.block_number = "0x0"
        self.code = {}
        self.storage = {}
        self.nonces = {}
        self.impersonated = set()
        self.calls = []
        self.sent = []
        self.reject_tx = set()
        self.unready_rounds = 0
        self.http_status = 200
        self.server = None

    @property
    def port(self):
        return self.server.server_address[1]

    @property
    def endpoint(self):
        return ChainEndpoint(self.port)

    def methods(self):
        return [method for method, _ in self.calls]

    def handle(self, method, params):
        with self.lock:
            self.calls.append((method, params))
            if method == "eth_blockNumber":
                if self.unready_rounds > 0:
                    self.unready_rounds -= 1
                    return None, {"code": -32000, "message": "starting up"}
                return self.block_number, None
            if method == "eth_getCode":
                return self.code.get(params[0].lower(), "0x"), None
            if method == "anvil_setCode":
                self.code[params[0].lower()] = params[1]
                return None, None
            if method == "anvil_setStorageAt":
                self.storage[(params[0].lower(), params[1])] = params[2]
                return True, None
            if method == "anvil_impersonateAccount":
                self.impersonated.add(params[0].lower())
                return None, None
            if method == "anvil_stopImpersonatingAccount":
                self.impersonated.discard(params[0].lower())
                return None, None
            if method == "eth_getTransactionCount":
                return hex(self.nonces.get(params[0].lower(), 0)), None
            if method == "eth_sendTransaction":
                tx = params[0]
                sender = tx["from"].lower()
                index = len(self.sent)
                self.sent.append(tx)
                if sender not in self.impersonated:
                    return None, {"code": -32000, "message": "no signer available"}
                if index in self.reject_tx:
                    return None, {"code": 3, "message": "execution reverted"}
                nonce = int(tx["nonce"], 16)
                self.nonces[sender] = max(self.nonces.get(sender, 0), nonce + 1)
                return "0x%064x" % (index + 1), None
            return None, {"code": -32601, "message": f"Method not found: {method}"}


def _make_handler(chain):
    class Handler(BaseHTTPRequestHandler):
        def log_message(self, format, *args):
            pass

        def do_POST(self):
            length = int(self.headers.get("Content-Length", "0"))
            body = json.loads(self.rfile.read(length))
            if chain.http_status != 200:
                self.send_response(chain.http_status)
                self.end_headers()
                return
            result, error = chain.handle(body["method"], body.get("params", []))
            payload = {"jsonrpc": "2.0", "id": body.get("id")}
            if error is not None:
                payload["error"] = error
            else:
                payload["result"] = result
            data = json.dumps(payload).encode()
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

    return Handler


@pytest.fixture
def fake_chain():
    chain = FakeChain()
    server = ThreadingHTTPServer(("127.0.0.1", 0), _make_handler(chain))
    server.daemon_threads = True
    chain.server = server
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield chain
    server.shutdown()
    server.server_close()


@pytest.fixture
def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
