"""
Tests for the HTTP clients against a local server — service health
requests and the Tailscale OAuth exchange.

Each test talks to a real ``http.server`` bound to an ephemeral port on
127.0.0.1, so redirects, error statuses, refused connections and
timeouts go through urllib exactly as they do in production.
"""

import json
import socket
import threading
import time
import urllib.parse
import urllib.request
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from sullivan_ctl.adapters.vpn.tailscale import TailscaleAPI, urllib_transport
from sullivan_ctl.core.errors import CredentialExchangeError
from sullivan_ctl.core.models.service import HttpCheck
from sullivan_ctl.core.models.state import EnrollmentOptions, TailscaleCredentials
from sullivan_ctl.core.services.lifecycle import HostProber

SLOW_SECONDS = 0.5


class _Handler(BaseHTTPRequestHandler):
    received: list[tuple[str, str, dict, str]] = []

    def log_message(self, format, *args):
        pass

    def _reply(self, status, body="", headers=None):
        payload = body.encode()
        try:
            self.send_response(status)
            for name, value in (headers or {}).items():
                self.send_header(name, value)
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)
        except (BrokenPipeError, ConnectionResetError):
            pass  # client gave up (timeout tests)

    def do_GET(self):
        if self.path == "/ok":
            self._reply(200, "ok")
        elif self.path == "/redirect":
            self._reply(302, headers={"Location": "/ok"})
        elif self.path == "/login":
            self._reply(401, "login required")
        elif self.path == "/broken":
            self._reply(500, "internal error")
        elif self.path == "/slow":
            time.sleep(SLOW_SECONDS)
            self._reply(200, "late")
        else:
            self._reply(404, "not found")

    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length).decode()
        self.received.append((self.path, self.headers.get("Content-Type", ""), dict(self.headers), body))

        if self.path == "/api/v2/oauth/token":
            form = urllib.parse.parse_qs(body)
            if form.get("client_secret") == ["tskey-client-good"]:
                self._reply(200, json.dumps({"access_token": "access-local", "token_type": "Bearer"}))
            else:
                self._reply(401, json.dumps({"message": "invalid client credentials"}))
        elif self.path == "/api/v2/tailnet/-/keys":
            if self.headers.get("Authorization") == "Bearer access-local":
                self._reply(200, json.dumps({"key": "tskey-auth-local", "id": "k1"}))
            else:
                self._reply(403, json.dumps({"message": "forbidden"}))
        elif self.path == "/api/v2/slow":
            time.sleep(SLOW_SECONDS)
            self._reply(200, "{}")
        else:
            self._reply(404, "{}")


@pytest.fixture
def server():
    """Base URL of a local HTTP server, torn down after the test."""
    _Handler.received = []
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    host, port = httpd.server_address[:2]
    yield f"http://{host}:{port}"
    httpd.shutdown()
    httpd.server_close()
    thread.join(timeout=5)


@pytest.fixture
def closed_url():
    """A URL on a port nothing listens on."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}"


@pytest.fixture
def prober():
    return HostProber(compose=None)


# ── Service health requests ──────────────────────────────────────────


class TestHttpHealth:
    def test_ok(self, server, prober):
        result = prober.http_probe(f"{server}/ok", timeout=2)
        assert result.reachable
        assert result.status_code == 200
        assert result.detail == "HTTP 200"

    def test_redirect_followed(self, server, prober):
        result = prober.http_probe(f"{server}/redirect", timeout=2)
        assert result.reachable
        assert result.status_code == 200

    def test_client_error_is_unhealthy(self, server, prober):
        result = prober.http_probe(f"{server}/login", timeout=2)
        assert not result.reachable
        assert result.status_code == 401

    def test_expected_status_accepts_login_wall(self, server, prober):
        check = HttpCheck(url=f"{server}/login", expect_status=[200, 401])
        assert check.probe("grocy", prober, 2).reachable

    def test_server_error(self, server, prober):
        result = prober.http_probe(f"{server}/broken", timeout=2)
        assert not result.reachable
        assert result.status_code == 500
        assert result.detail == "HTTP 500"

    def test_connection_refused(self, closed_url, prober):
        result = prober.http_probe(f"{closed_url}/", timeout=2)
        assert not result.reachable
        assert result.status_code is None
        assert result.detail.startswith("unreachable:")

    def test_timeout(self, server, prober):
        started = time.monotonic()
        result = prober.http_probe(f"{server}/slow", timeout=0.1)
        assert not result.reachable
        assert result.status_code is None
        assert "timed out" in result.detail
        assert time.monotonic() - started < SLOW_SECONDS + 1


# ── Tailscale OAuth exchange ─────────────────────────────────────────


class TestTailscaleExchange:
    def test_access_token_and_key(self, server):
        api = TailscaleAPI(f"{server}/api/v2", timeout=2)
        creds = TailscaleCredentials(client_id="cid", client_secret="tskey-client-good")
        token = api.request_access_token(creds)
        assert token == "access-local"
        assert api.create_auth_key(token, EnrollmentOptions(tags=["tag:media"])) == "tskey-auth-local"

        (token_path, token_type, _, form), (keys_path, keys_type, keys_headers, document) = _Handler.received
        assert token_path == "/api/v2/oauth/token"
        assert token_type == "application/x-www-form-urlencoded"
        assert urllib.parse.parse_qs(form)["grant_type"] == ["client_credentials"]
        assert keys_type == "application/json"
        assert keys_headers["Authorization"] == "Bearer access-local"
        sent = json.loads(document)
        assert sent["capabilities"]["devices"]["create"]["tags"] == ["tag:media"]
        assert sent["capabilities"]["devices"]["create"]["reusable"] is False

    def test_rejected_client_carries_body(self, server):
        api = TailscaleAPI(f"{server}/api/v2", timeout=2)
        with pytest.raises(CredentialExchangeError) as exc:
            api.request_access_token(TailscaleCredentials(client_id="cid", client_secret="wrong"))
        assert exc.value.status == 401
        assert "invalid client credentials" in str(exc.value)

    def test_transport_returns_error_status(self, server):
        request = urllib.request.Request(f"{server}/api/v2/oauth/token", data=b"client_secret=x", method="POST")
        status, body = urllib_transport(request, 2)
        assert status == 401
        assert json.loads(body) == {"message": "invalid client credentials"}

    def test_transport_connection_refused(self, closed_url):
        request = urllib.request.Request(f"{closed_url}/api/v2/oauth/token", data=b"", method="POST")
        status, body = urllib_transport(request, 2)
        assert status is None
        assert body.startswith("request failed:")

    def test_transport_timeout(self, server):
        request = urllib.request.Request(f"{server}/api/v2/slow", data=b"", method="POST")
        status, body = urllib_transport(request, 0.1)
        assert status is None
        assert "timed out" in body

    def test_unreachable_control_plane_raises(self, closed_url):
        api = TailscaleAPI(f"{closed_url}/api/v2", timeout=2)
        with pytest.raises(CredentialExchangeError) as exc:
            api.request_access_token(TailscaleCredentials(client_id="cid", client_secret="tskey-client-good"))
        assert exc.value.status is None
