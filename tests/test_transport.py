"""Tests for the HTTP transport and TLS context selection."""

from __future__ import annotations

import base64
import io
import json
import logging
import ssl
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from eck_config_sync.connections.transport import (
    ClusterClient,
    ClusterResponse,
    build_ssl_context,
)
from eck_config_sync.errors import ClusterConnectionError, RemoteAPIError

URLOPEN = "eck_config_sync.connections.transport.urllib.request.urlopen"


def _fake_response(status: int = 200, payload: dict | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status = status
    resp.read.return_value = json.dumps(payload or {}).encode()
    resp.__enter__ = MagicMock(return_value=resp)
    resp.__exit__ = MagicMock(return_value=False)
    return resp


# --- TLS ---


class TestBuildSSLContext:
    def test_insecure_fallback(self, caplog):
        with caplog.at_level(logging.WARNING):
            ctx = build_ssl_context(b"", insecure_fallback=True)
        assert ctx.verify_mode == ssl.CERT_NONE
        assert ctx.check_hostname is False
        assert "will NOT be verified" in caplog.text

    def test_system_trust_store(self):
        ctx = build_ssl_context(b"", insecure_fallback=False)
        assert ctx.verify_mode == ssl.CERT_REQUIRED
        assert ctx.check_hostname is True

    def test_invalid_ca_raises(self):
        with pytest.raises(ClusterConnectionError, match="invalid CA certificate"):
            build_ssl_context(b"not a certificate")

    def test_ca_is_loaded(self):
        with patch("eck_config_sync.connections.transport.ssl.create_default_context") as create:
            build_ssl_context(b"PEM DATA")
        create.assert_called_once_with(cadata="PEM DATA")


# --- Responses ---


class TestClusterResponse:
    def test_ok_range(self):
        assert ClusterResponse("GET", "/", 200).ok
        assert ClusterResponse("PUT", "/", 201).ok
        assert not ClusterResponse("GET", "/", 404).ok

    def test_json_and_text(self):
        resp = ClusterResponse("GET", "/", 200, b'{"a": 1}')
        assert resp.json() == {"a": 1}
        assert resp.text == '{"a": 1}'

    def test_raise_for_status(self):
        resp = ClusterResponse("PUT", "/_index_template/x", 500, b"boom")
        with pytest.raises(RemoteAPIError) as exc_info:
            resp.raise_for_status()
        assert exc_info.value.status == 500
        assert str(exc_info.value) == "PUT /_index_template/x failed: HTTP 500 - boom"

    def test_raise_for_status_ok_is_noop(self):
        ClusterResponse("PUT", "/", 200).raise_for_status()


# --- Client ---


class TestClusterClient:
    def test_put_json_with_basic_auth(self):
        client = ClusterClient("https://es:9200/", "elastic", "pw", timeout=3.0)
        with patch(URLOPEN, return_value=_fake_response(200, {"acknowledged": True})) as urlopen:
            resp = client.request("PUT", "/_ilm/policy/p", body={"policy": {}})

        assert resp.status == 200
        assert resp.json() == {"acknowledged": True}
        req = urlopen.call_args[0][0]
        assert req.full_url == "https://es:9200/_ilm/policy/p"
        assert req.get_method() == "PUT"
        assert json.loads(req.data) == {"policy": {}}
        assert req.get_header("Content-type") == "application/json"
        token = base64.b64encode(b"elastic:pw").decode()
        assert req.get_header("Authorization") == f"Basic {token}"
        assert urlopen.call_args.kwargs["timeout"] == 3.0

    def test_query_params(self):
        client = ClusterClient("https://es:9200", "u", "p")
        with patch(URLOPEN, return_value=_fake_response()) as urlopen:
            client.request("PUT", "/x", body={}, params={"if_seq_no": 3, "if_primary_term": 1})
        req = urlopen.call_args[0][0]
        assert req.full_url == "https://es:9200/x?if_seq_no=3&if_primary_term=1"

    def test_get_has_no_body(self):
        client = ClusterClient("https://es:9200", "u", "p")
        with patch(URLOPEN, return_value=_fake_response()) as urlopen:
            client.request("GET", "/")
        req = urlopen.call_args[0][0]
        assert req.data is None

    def test_http_error_becomes_response(self):
        client = ClusterClient("https://es:9200", "u", "p")
        error = urllib.error.HTTPError(
            "https://es:9200/x", 404, "Not Found", {}, io.BytesIO(b'{"found": false}'),
        )
        with patch(URLOPEN, side_effect=error):
            resp = client.request("DELETE", "/x")
        assert resp.status == 404
        assert resp.json() == {"found": False}

    def test_network_error_raises(self):
        client = ClusterClient("https://es:9200", "u", "p")
        with (
            patch(URLOPEN, side_effect=urllib.error.URLError("connection refused")),
            pytest.raises(ClusterConnectionError, match="connection refused"),
        ):
            client.request("GET", "/")

    def test_timeout_raises(self):
        client = ClusterClient("https://es:9200", "u", "p")
        with (
            patch(URLOPEN, side_effect=TimeoutError("timed out")),
            pytest.raises(ClusterConnectionError, match="timed out"),
        ):
            client.request("GET", "/")

    def test_endpoint_trailing_slash_stripped(self):
        assert ClusterClient("https://es:9200/", "u", "p").endpoint == "https://es:9200"
