"""Tests for eck-config-sync data models and duration parsing."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from eck_config_sync.errors import ConfigurationError, DurationError
from eck_config_sync.models import (
    ClusterSelector,
    Dialect,
    Phase,
    RecordSpec,
    ResourceKind,
    SyncRecord,
    parse_duration,
)

# --- parse_duration ---


class TestParseDuration:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("10s", timedelta(seconds=10)),
            ("5m", timedelta(minutes=5)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("1.5s", timedelta(seconds=1.5)),
            ("250ms", timedelta(milliseconds=250)),
            ("0", timedelta(0)),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["", "   ", "10", "ten seconds", "5x", "s10", "10s junk"])
    def test_invalid(self, value):
        with pytest.raises(DurationError):
            parse_duration(value)

    def test_duration_error_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            parse_duration("soon")


# --- ClusterSelector ---


class TestClusterSelector:
    def test_aliases(self):
        selector = ClusterSelector.model_validate({
            "name": "search",
            "endpoint": "https://search:9200",
            "username": "admin",
            "passwordSecretRef": {"name": "creds", "key": "password"},
            "caCertSecretRef": {"name": "ca", "key": "ca.crt", "namespace": "certs"},
            "clusterType": "opensearch",
        })
        assert selector.password_secret_ref.name == "creds"
        assert selector.ca_cert_secret_ref.namespace == "certs"
        assert selector.dialect_override == Dialect.OPENSEARCH
        assert selector.manual

    def test_snake_case_names_accepted(self):
        selector = ClusterSelector(name="logging", dialect_override="elasticsearch")
        assert selector.dialect_override == Dialect.ELASTICSEARCH
        assert not selector.manual

    def test_namespace_defaults_to_record(self):
        assert ClusterSelector(name="logging").target_namespace("team-a") == "team-a"
        assert ClusterSelector(name="logging", namespace="infra").target_namespace("team-a") == "infra"

    def test_cluster_key_auto_discovery(self):
        assert ClusterSelector(name="logging").cluster_key("default") == "default_logging"

    def test_cluster_key_manual_includes_endpoint_and_user(self):
        a = ClusterSelector(endpoint="https://a:9200", username="admin")
        b = ClusterSelector(endpoint="https://b:9200", username="admin")
        assert a.cluster_key("ns") == "ns_https://a:9200_admin"
        assert a.cluster_key("ns") != b.cluster_key("ns")

    def test_display_name(self):
        assert ClusterSelector(name="logging").display_name("ns") == "ns/logging"
        assert ClusterSelector(endpoint="https://a:9200").display_name("ns") == "ns/https://a:9200"


# --- SyncRecord ---


class TestSyncRecord:
    def _object(self, **metadata):
        return {
            "metadata": {
                "name": "logs",
                "namespace": "default",
                "generation": 3,
                "resourceVersion": "42",
                **metadata,
            },
            "spec": {
                "resourceSelector": {"name": "logging"},
                "syncInterval": "30s",
                "resources": {"logs-template": {"index_patterns": ["logs-*"]}},
            },
            "status": {
                "phase": "Ready",
                "appliedResources": ["logs-template"],
            },
        }

    def test_from_object(self):
        record = SyncRecord.from_object("IndexTemplate", self._object())
        assert record.kind == ResourceKind.INDEX_TEMPLATE
        assert record.key == "IndexTemplate/default/logs"
        assert record.generation == 3
        assert record.resource_version == "42"
        assert record.spec.resync_interval == "30s"
        assert record.status.phase == Phase.READY
        assert record.status.applied_resources == ["logs-template"]
        assert not record.deleting

    def test_deletion_timestamp_marks_deleting(self):
        obj = self._object(deletionTimestamp="2026-01-01T00:00:00Z", finalizers=["x/y"])
        record = SyncRecord.from_object(ResourceKind.INDEX_TEMPLATE, obj)
        assert record.deleting
        assert record.finalizers == ["x/y"]

    def test_missing_status_defaults_to_pending(self):
        obj = self._object()
        del obj["status"]
        record = SyncRecord.from_object(ResourceKind.INDEX_TEMPLATE, obj)
        assert record.status.phase == Phase.PENDING
        assert record.status.applied_resources == []

    def test_default_resync_interval(self):
        spec = RecordSpec.model_validate({"resourceSelector": {"name": "logging"}})
        assert spec.resync_interval == "10s"

    def test_cluster_key(self):
        record = SyncRecord.from_object(ResourceKind.INDEX_TEMPLATE, self._object())
        assert record.cluster_key == "default_logging"

    def test_status_payload_uses_wire_names(self):
        record = SyncRecord.from_object(ResourceKind.INDEX_TEMPLATE, self._object())
        record.status.last_sync_time = datetime(2026, 1, 1, tzinfo=UTC)
        record.status.target_cluster = "default/logging"
        payload = record.status_payload()
        assert payload["appliedResources"] == ["logs-template"]
        assert payload["targetCluster"] == "default/logging"
        assert payload["phase"] == "Ready"
        assert payload["lastSyncTime"].startswith("2026-01-01T00:00:00")
