"""Tests for session configuration parsing and models."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from kubebridge.config import (
    DEFAULT_BRIDGE_IMAGE,
    ConfigError,
    LocalService,
    RemoteService,
    SessionConfig,
    build_session_config,
    detect_config,
    parse_config,
    parse_local_service,
    parse_remote_service,
)
from kubebridge.config.models import (
    BRIDGE_APP,
    BRIDGE_GROUP,
    LABEL_INSTANCE,
    LABEL_NAME,
    LABEL_PART_OF,
    bridge_labels,
)


class TestRemoteService:
    """Tests for RemoteService."""

    def test_local_port_defaults_to_port(self) -> None:
        service = RemoteService(hostname="postgres", port=5432)
        assert service.effective_local_port == 5432

    def test_explicit_local_port(self) -> None:
        service = RemoteService(hostname="postgres", port=5432, local_port=15432)
        assert service.effective_local_port == 15432

    def test_rejects_empty_hostname(self) -> None:
        with pytest.raises(ConfigError, match="hostname"):
            RemoteService(hostname="", port=80)

    @pytest.mark.parametrize("port", [0, 65536, -1])
    def test_rejects_out_of_range_port(self, port: int) -> None:
        with pytest.raises(ConfigError, match="between 1 and 65535"):
            RemoteService(hostname="db", port=port)

    def test_rejects_out_of_range_local_port(self) -> None:
        with pytest.raises(ConfigError):
            RemoteService(hostname="db", port=5432, local_port=70000)


class TestLocalService:
    """Tests for LocalService and its Service manifest."""

    def test_defaults_to_cluster_ip(self) -> None:
        assert LocalService(service_name="api", port=8080).type == "ClusterIP"

    @pytest.mark.parametrize("name", ["API", "1api", "api_v2", "api-", "a" * 64, ""])
    def test_rejects_invalid_names(self, name: str) -> None:
        with pytest.raises(ConfigError, match="Invalid service name"):
            LocalService(service_name=name, port=8080)

    def test_accepts_63_character_name(self) -> None:
        service = LocalService(service_name="a" * 63, port=8080)
        assert len(service.service_name) == 63

    def test_rejects_unknown_type(self) -> None:
        with pytest.raises(ConfigError, match="Invalid service type"):
            LocalService(service_name="api", port=8080, type="ExternalName")

    def test_to_service_selects_bridge_pod(self) -> None:
        manifest = LocalService(service_name="api", port=8080).to_service("sid-1")

        assert manifest["kind"] == "Service"
        assert manifest["metadata"]["name"] == "api"
        assert manifest["spec"]["type"] == "ClusterIP"
        assert manifest["spec"]["selector"] == bridge_labels("sid-1")
        assert manifest["spec"]["ports"] == [
            {"protocol": "TCP", "port": 8080, "targetPort": 8080}
        ]

    def test_to_service_reuses_previous_ports(self) -> None:
        previous = {
            "spec": {"ports": [{"port": 80, "targetPort": 9090, "protocol": "TCP"}]}
        }
        manifest = LocalService(service_name="api", port=8080).to_service(
            "sid-1", previous=previous
        )
        assert manifest["spec"]["ports"] == [
            {"protocol": "TCP", "port": 80, "targetPort": 9090}
        ]

    def test_to_service_named_target_port_falls_back_to_port(self) -> None:
        previous = {"spec": {"ports": [{"port": 80, "targetPort": "http"}]}}
        manifest = LocalService(service_name="api", port=8080).to_service(
            "sid-1", previous=previous
        )
        assert manifest["spec"]["ports"][0]["targetPort"] == 80


class TestBridgeLabels:
    def test_labels(self) -> None:
        labels = bridge_labels("abc")
        assert labels == {
            LABEL_NAME: BRIDGE_APP,
            LABEL_PART_OF: BRIDGE_GROUP,
            LABEL_INSTANCE: "abc",
        }


class TestSessionConfig:
    """Tests for SessionConfig validation."""

    def test_defaults(self) -> None:
        config = SessionConfig()
        assert config.remote_services == ()
        assert config.local_services == ()
        assert config.ssh_port is None
        assert config.socks_port is None
        assert config.bridge_image == DEFAULT_BRIDGE_IMAGE
        assert config.bridge_port == 2222

    def test_rejects_duplicate_local_service_names(self) -> None:
        with pytest.raises(ConfigError, match="unique: api"):
            SessionConfig(
                local_services=(
                    LocalService(service_name="api", port=8080),
                    LocalService(service_name="api", port=8081),
                )
            )

    def test_rejects_invalid_ssh_port(self) -> None:
        with pytest.raises(ConfigError, match="SSH port"):
            SessionConfig(ssh_port=0)

    def test_rejects_non_integer_ssh_port(self) -> None:
        with pytest.raises(ConfigError, match="must be an integer"):
            SessionConfig(ssh_port="35000")  # type: ignore[arg-type]


class TestParseSpecs:
    """Tests for command-line service specs."""

    def test_remote_service(self) -> None:
        service = parse_remote_service("postgres:5432")
        assert service == RemoteService(hostname="postgres", port=5432)

    def test_remote_service_with_local_port(self) -> None:
        service = parse_remote_service("db.prod.svc:5432:15432")
        assert service.hostname == "db.prod.svc"
        assert service.effective_local_port == 15432

    @pytest.mark.parametrize("spec", ["postgres", ":5432", "a:b:c:d", "db:http"])
    def test_remote_service_malformed(self, spec: str) -> None:
        with pytest.raises(ConfigError):
            parse_remote_service(spec)

    def test_local_service(self) -> None:
        assert parse_local_service("api:8080") == LocalService(
            service_name="api", port=8080
        )

    def test_local_service_with_type(self) -> None:
        service = parse_local_service("api:8080:NodePort")
        assert service.type == "NodePort"

    def test_local_service_malformed(self) -> None:
        with pytest.raises(ConfigError, match="NAME:PORT"):
            parse_local_service("api")


class TestParseConfig:
    """Tests for kubebridge.json parsing."""

    def test_full_config(self, tmp_path: Path) -> None:
        config_file = tmp_path / "kubebridge.json"
        config_file.write_text(
            json.dumps(
                {
                    "remoteServices": [
                        {"hostname": "postgres", "port": 5432, "localPort": 15432}
                    ],
                    "localServices": [
                        {"serviceName": "api", "port": 8080, "type": "NodePort"}
                    ],
                    "sshPort": 35000,
                    "socksPort": 1080,
                    "bridgeImage": "example.com/bridge:1",
                }
            )
        )

        config = parse_config(config_file)

        assert config.remote_services == (
            RemoteService(hostname="postgres", port=5432, local_port=15432),
        )
        assert config.local_services == (
            LocalService(service_name="api", port=8080, type="NodePort"),
        )
        assert config.ssh_port == 35000
        assert config.socks_port == 1080
        assert config.bridge_image == "example.com/bridge:1"

    def test_numeric_string_ports(self, tmp_path: Path) -> None:
        config_file = tmp_path / "kubebridge.json"
        config_file.write_text(json.dumps({"sshPort": "35000", "socksPort": "1080"}))

        config = parse_config(config_file)

        assert config.ssh_port == 35000
        assert config.socks_port == 1080

    @pytest.mark.parametrize("key", ["sshPort", "socksPort"])
    def test_invalid_port_values(self, tmp_path: Path, key: str) -> None:
        config_file = tmp_path / "kubebridge.json"
        config_file.write_text(json.dumps({key: "ssh"}))
        with pytest.raises(ConfigError, match=f"Invalid {key}"):
            parse_config(config_file)

    def test_empty_object(self, tmp_path: Path) -> None:
        config_file = tmp_path / "kubebridge.json"
        config_file.write_text("{}")
        assert parse_config(config_file) == SessionConfig()

    def test_invalid_json(self, tmp_path: Path) -> None:
        config_file = tmp_path / "kubebridge.json"
        config_file.write_text("{not json")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            parse_config(config_file)

    def test_not_an_object(self, tmp_path: Path) -> None:
        config_file = tmp_path / "kubebridge.json"
        config_file.write_text("[]")
        with pytest.raises(ConfigError, match="JSON object"):
            parse_config(config_file)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Cannot read"):
            parse_config(tmp_path / "missing.json")

    def test_missing_required_key(self, tmp_path: Path) -> None:
        config_file = tmp_path / "kubebridge.json"
        config_file.write_text(json.dumps({"localServices": [{"port": 8080}]}))
        with pytest.raises(ConfigError, match="Invalid local service entry"):
            parse_config(config_file)


class TestBuildSessionConfig:
    def test_appends_services_to_base(self) -> None:
        base = SessionConfig(
            local_services=(LocalService(service_name="api", port=8080),)
        )
        config = build_session_config(
            base, remote_specs=["db:5432"], local_specs=["web:3000"]
        )
        assert [s.service_name for s in config.local_services] == ["api", "web"]
        assert config.remote_services == (RemoteService(hostname="db", port=5432),)

    def test_scalar_overrides(self) -> None:
        base = SessionConfig(ssh_port=35000, bridge_image="a")
        config = build_session_config(base, ssh_port=36000, socks_port=1080)
        assert config.ssh_port == 36000
        assert config.socks_port == 1080
        assert config.bridge_image == "a"

    def test_duplicate_names_across_sources(self) -> None:
        base = SessionConfig(
            local_services=(LocalService(service_name="api", port=8080),)
        )
        with pytest.raises(ConfigError, match="unique"):
            build_session_config(base, local_specs=["api:9090"])


class TestDetectConfig:
    def test_prefers_kubebridge_json(self, tmp_path: Path) -> None:
        (tmp_path / "kubebridge.json").write_text("{}")
        (tmp_path / ".kubebridge.json").write_text("{}")
        assert detect_config(tmp_path) == tmp_path / "kubebridge.json"

    def test_hidden_file(self, tmp_path: Path) -> None:
        (tmp_path / ".kubebridge.json").write_text("{}")
        assert detect_config(tmp_path) == tmp_path / ".kubebridge.json"

    def test_no_config(self, tmp_path: Path) -> None:
        assert detect_config(tmp_path) is None
