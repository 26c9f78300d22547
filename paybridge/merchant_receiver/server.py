import json
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Self
from urllib.parse import parse_qsl

from paybridge.signing.envelope import SIGNATURE_FIELD, verify_signature

REQUIRED_FIELDS = ["x_account_id", "x_amount", "x_currency", "x_reference", "x_result", "x_timestamp"]


class _CallbackHandler(BaseHTTPRequestHandler):
    """Receives form-encoded outcome callbacks the way the merchant platform does."""

    def _reply(self, code: int, body: dict | None = None) -> None:
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        if body is not None:
            self.wfile.write(json.dumps(body).encode())

    def do_POST(self):
        content_length = int(self.headers.get("Content-Length", 0))
        raw = self.rfile.read(content_length).decode("utf-8", errors="replace")

        server_config = self.server.config  # type: ignore[attr-defined]

        with server_config["lock"]:
            server_config["request_count"] += 1
            scripted = server_config["scripted_codes"]
            scripted_code = scripted.pop(0) if scripted else None

        if server_config["response_delay"] > 0:
            time.sleep(server_config["response_delay"])

        params = dict(parse_qsl(raw, keep_blank_values=True))

        missing = [f for f in REQUIRED_FIELDS if f not in params]
        if missing:
            self._reply(400, {"error": f"missing fields: {missing}"})
            return

        if server_config["signature_secret"]:
            sig = params.get(SIGNATURE_FIELD, "")
            if not sig:
                self._reply(401, {"error": "missing signature"})
                return
            if not verify_signature(params, server_config["signature_secret"], sig):
                self._reply(401, {"error": "invalid signature"})
                return

        code = scripted_code if scripted_code is not None else server_config["response_code"]
        if not 200 <= code < 300:
            self._reply(code, {"error": "simulated failure"})
            return

        key = (params["x_reference"], params["x_result"])
        with server_config["lock"]:
            if server_config["idempotency_enabled"] and key in server_config["processed_keys"]:
                self._reply(code, {"status": "already_processed"})
                return
            server_config["received_callbacks"].append({
                "params": params,
                "headers": dict(self.headers),
            })
            server_config["processed_keys"].add(key)

        self._reply(code, {"status": "ok"})

    def log_message(self, format, *args):
        """Suppress default request logging."""
        pass


class MerchantCallbackServer:
    """Local stand-in for the merchant platform's callback endpoint."""

    def __init__(self, host: str = "127.0.0.1", port: int = 0, secret: str | None = None):
        self._host = host
        self._port = port
        self._config = {
            "response_code": 200,
            "scripted_codes": [],
            "response_delay": 0,
            "signature_secret": secret,
            "idempotency_enabled": False,
            "request_count": 0,
            "received_callbacks": [],
            "processed_keys": set(),
            "lock": threading.Lock(),
        }
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    def set_response_code(self, code: int) -> Self:
        self._config["response_code"] = code
        return self

    def script_response_codes(self, codes: list[int]) -> Self:
        """Answer the next requests with ``codes`` in order, then the default code."""
        with self._config["lock"]:
            self._config["scripted_codes"] = list(codes)
        return self

    def set_response_delay(self, seconds: float) -> Self:
        self._config["response_delay"] = seconds
        return self

    def enable_signature_verification(self, secret: str) -> Self:
        self._config["signature_secret"] = secret
        return self

    def enable_idempotency(self) -> Self:
        self._config["idempotency_enabled"] = True
        return self

    def start(self) -> None:
        self._server = ThreadingHTTPServer((self._host, self._port), _CallbackHandler)
        self._server.config = self._config  # type: ignore[attr-defined]
        self._port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

    @property
    def url(self) -> str:
        return f"http://{self._host}:{self._port}/callback"

    @property
    def port(self) -> int:
        return self._port

    def get_received_callbacks(self) -> list[dict]:
        with self._config["lock"]:
            return list(self._config["received_callbacks"])

    def get_processed_count(self) -> int:
        with self._config["lock"]:
            return len(self._config["received_callbacks"])

    def get_request_count(self) -> int:
        """Every request that reached the handler, accepted or not."""
        with self._config["lock"]:
            return self._config["request_count"]

    def clear(self) -> None:
        with self._config["lock"]:
            self._config["received_callbacks"].clear()
            self._config["processed_keys"].clear()
            self._config["scripted_codes"].clear()
            self._config["request_count"] = 0
