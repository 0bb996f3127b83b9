"""HTTP transport for talking to a search cluster's REST API.

Uses stdlib ``urllib.request`` and ``ssl``, no extra dependencies required.
Every call is bounded by the configured request timeout.
"""

from __future__ import annotations

import base64
import json
import logging
import ssl
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

from eck_config_sync.errors import ClusterConnectionError, RemoteAPIError

logger = logging.getLogger(__name__)


def build_ssl_context(ca_cert: bytes, insecure_fallback: bool = True) -> ssl.SSLContext:
    """Build the TLS context for a cluster connection.

    With a CA bundle the server certificate is verified against it. Without
    one, *insecure_fallback* accepts any server certificate; otherwise the
    system trust store is used.

    Raises:
        ClusterConnectionError: If the CA bundle cannot be loaded.
    """
    if ca_cert:
        try:
            return ssl.create_default_context(cadata=ca_cert.decode("ascii"))
        except (ssl.SSLError, ValueError) as exc:
            raise ClusterConnectionError(f"invalid CA certificate: {exc}") from exc

    if insecure_fallback:
        logger.warning(
            "No CA certificate provided, server certificates will NOT be "
            "verified (set insecure_fallback: false to require verification)"
        )
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    logger.info("No CA certificate provided, using the system trust store")
    return ssl.create_default_context()


@dataclass(frozen=True)
class ClusterResponse:
    """Status and raw body of one REST call."""

    method: str
    path: str
    status: int
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))

    def raise_for_status(self) -> None:
        if not self.ok:
            raise RemoteAPIError(self.method, self.path, self.status, self.text)


class ClusterClient:
    """Minimal JSON-over-HTTP client bound to one cluster endpoint.

    Non-2xx answers are returned as responses, not raised, so callers can
    decide which statuses are acceptable (e.g. 404 on delete).
    Network and TLS failures raise :class:`ClusterConnectionError`.
    """

    def __init__(
        self,
        endpoint: str,
        username: str,
        password: str,
        ssl_context: ssl.SSLContext | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._ssl_context = ssl_context
        self._timeout = timeout
        token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
        self._auth_header = f"Basic {token}"

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def request(
        self,
        method: str,
        path: str,
        body: Any | None = None,
        params: dict[str, Any] | None = None,
    ) -> ClusterResponse:
        url = self._endpoint + path
        if params:
            url += "?" + urllib.parse.urlencode(params)

        data = None
        headers = {
            "Authorization": self._auth_header,
            "Accept": "application/json",
        }
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"

        req = urllib.request.Request(url, data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(  # noqa: S310
                req, timeout=self._timeout, context=self._ssl_context,
            ) as resp:
                return ClusterResponse(method, path, resp.status, resp.read())
        except urllib.error.HTTPError as e:
            return ClusterResponse(method, path, e.code, e.read())
        except (urllib.error.URLError, OSError) as e:
            raise ClusterConnectionError(
                f"{method} {self._endpoint}{path} failed: {e}"
            ) from e
