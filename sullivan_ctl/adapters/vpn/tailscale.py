"""
Tailscale bindings — control-plane API client and the ``tailscale`` CLI.

The API client performs the two-request OAuth exchange:

    POST {api}/oauth/token        client credentials → access_token
    POST {api}/tailnet/-/keys     bearer token       → single-use auth key

Any non-200 response, unparseable body, or absent/null token field is a
CredentialExchangeError carrying the raw response body, so the operator
sees exactly what the control plane said.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable

from sullivan_ctl.adapters.base import Adapter, ExecutionContext
from sullivan_ctl.adapters.shell.command import CommandRunner
from sullivan_ctl.core.errors import CredentialExchangeError
from sullivan_ctl.core.models.action import Receipt
from sullivan_ctl.core.models.state import EnrollmentOptions, TailscaleCredentials

logger = logging.getLogger(__name__)

# (request, timeout) -> (status or None when no response, body)
Transport = Callable[[urllib.request.Request, float], tuple[int | None, str]]


def urllib_transport(request: urllib.request.Request, timeout: float) -> tuple[int | None, str]:
    """Send ``request``; HTTP errors are returned, not raised."""
    try:
        with urllib.request.urlopen(request, timeout=timeout) as resp:
            return resp.getcode(), resp.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as e:
        body = e.read().decode("utf-8", errors="replace") if e.fp else ""
        return e.code, body
    except (urllib.error.URLError, TimeoutError, OSError) as e:
        reason = getattr(e, "reason", e)
        return None, f"request failed: {reason}"


class TailscaleAPI:
    """Minimal client for the two enrollment endpoints."""

    def __init__(
        self,
        api_base: str = "https://api.tailscale.com/api/v2",
        timeout: float = 15,
        transport: Transport | None = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport or urllib_transport

    def _post(self, endpoint: str, data: bytes, headers: dict[str, str]) -> dict:
        url = f"{self.api_base}{endpoint}"
        request = urllib.request.Request(
            url,
            data=data,
            method="POST",
            headers={"User-Agent": "sullivan-ctl/1.0", **headers},
        )
        status, body = self._transport(request, self.timeout)
        logger.info("POST %s → %s", endpoint, status if status is not None else "no response")
        logger.debug("Response body: %s", body)

        if status != 200:
            raise CredentialExchangeError(endpoint, status, body)
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError as e:
            raise CredentialExchangeError(endpoint, status, body) from e
        if not isinstance(parsed, dict):
            raise CredentialExchangeError(endpoint, status, body)
        return parsed

    def request_access_token(self, credentials: TailscaleCredentials) -> str:
        """Exchange OAuth client credentials for a short-lived access token."""
        form = urllib.parse.urlencode({
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret,
            "grant_type": "client_credentials",
        }).encode()
        endpoint = "/oauth/token"
        data = self._post(
            endpoint, form, {"Content-Type": "application/x-www-form-urlencoded"},
        )
        token = data.get("access_token")
        if not token:
            raise CredentialExchangeError(endpoint, 200, json.dumps(data))
        return str(token)

    def create_auth_key(self, access_token: str, options: EnrollmentOptions) -> str:
        """Request a single-use, preauthorized enrollment key."""
        document = {
            "capabilities": {
                "devices": {
                    "create": {
                        "reusable": False,
                        "ephemeral": False,
                        "preauthorized": True,
                        "tags": list(options.tags),
                    }
                }
            },
            "expirySeconds": options.expiry_seconds,
        }
        endpoint = "/tailnet/-/keys"
        data = self._post(
            endpoint,
            json.dumps(document).encode(),
            {
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
        )
        key = data.get("key")
        if not key:
            raise CredentialExchangeError(endpoint, 200, json.dumps(data))
        return str(key)


class TailscaleAdapter(Adapter):
    """``tailscale`` CLI operations.

    Step params:
        operation (str): 'up', 'login' or 'status'.
        authkey (str): Enrollment key for 'up'. 'login' takes none: the
            command runs attached and prints a URL to authorize the node.
        hostname (str), accept_routes (bool), advertise_exit_node (bool).
    """

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    @property
    def name(self) -> str:
        return "tailscale"

    def is_available(self) -> bool:
        return self._runner.which("tailscale")

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.params.get("operation", "")
        if operation not in ("up", "login", "status"):
            return False, f"Unknown operation '{operation}'. Valid: login, status, up"
        if operation == "up" and not context.params.get("authkey"):
            return False, "'up' requires 'authkey'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.params
        if params["operation"] == "status":
            return self.status(action_id=context.step.id)
        options = EnrollmentOptions(
            hostname=params.get("hostname", "sullivan"),
            accept_routes=params.get("accept_routes", True),
            advertise_exit_node=params.get("advertise_exit_node", True),
        )
        if params["operation"] == "login":
            return self.login(options, action_id=context.step.id)
        return self.up(params["authkey"], options, action_id=context.step.id)

    @staticmethod
    def _up_flags(options: EnrollmentOptions) -> list[str]:
        flags = ["--hostname", options.hostname]
        if options.accept_routes:
            flags.append("--accept-routes")
        if options.advertise_exit_node:
            flags.append("--advertise-exit-node")
        return flags

    def up(self, authkey: str, options: EnrollmentOptions, action_id: str = "tailscale-up") -> Receipt:
        argv = ["tailscale", "up", "--authkey", authkey, *self._up_flags(options)]
        return self._runner.run(
            argv, action_id=action_id, adapter=self.name, privileged=True, mask=[authkey],
        )

    def login(self, options: EnrollmentOptions, action_id: str = "tailscale-login") -> Receipt:
        """Interactive ``tailscale up``; blocks until the browser login completes."""
        argv = ["tailscale", "up", *self._up_flags(options)]
        code = self._runner.run_attached(argv, privileged=True)
        metadata = {"command": " ".join(argv), "return_code": code}
        if code != 0:
            return Receipt.failure(
                adapter=self.name, action_id=action_id,
                error=f"tailscale up exited with {code}", metadata=metadata,
            )
        return Receipt.success(adapter=self.name, action_id=action_id, metadata=metadata)

    def status(self, action_id: str = "tailscale-status") -> Receipt:
        return self._runner.run(
            ["tailscale", "status"], action_id=action_id, adapter=self.name, privileged=True,
        )
