"""Tests for the compose descriptor model and its structural validation."""

from __future__ import annotations

from typing import Any

import pytest

from holectl.domain.compose import ComposeFile, ServiceSpec, VolumeMount
from holectl.domain.types import DescriptorError, Severity


def _compose(**services: Any) -> ComposeFile:
    data: dict[str, Any] = {"services": services, "volumes": {"state": None}}
    return ComposeFile.from_mapping(data)


def _messages(compose: ComposeFile) -> list[str]:
    return [i.message for i in compose.validate_structure()]


class TestVolumeMount:
    def test_short_syntax(self) -> None:
        mount = VolumeMount.parse("./tailscale:/config:ro")
        assert mount.source == "./tailscale"
        assert mount.target == "/config"
        assert mount.read_only is True
        assert mount.is_named is False

    def test_named_volume(self) -> None:
        mount = VolumeMount.parse("pihole-etc:/etc/pihole")
        assert mount.is_named is True

    def test_anonymous_volume(self) -> None:
        mount = VolumeMount.parse("/data")
        assert mount.source is None
        assert mount.is_named is False

    def test_long_syntax(self) -> None:
        mount = VolumeMount.parse({"type": "bind", "source": "./x", "target": "/x"})
        assert mount.target == "/x"
        assert mount.is_named is False

    def test_long_syntax_without_target(self) -> None:
        with pytest.raises(DescriptorError):
            VolumeMount.parse({"source": "state"})


class TestServiceSpec:
    def test_environment_list_and_mapping_agree(self) -> None:
        from_list = ServiceSpec.from_mapping("a", {"environment": ["TZ=UTC", "EMPTY"]})
        from_map = ServiceSpec.from_mapping("a", {"environment": {"TZ": "UTC", "EMPTY": None}})
        assert from_list.environment == from_map.environment == {"TZ": "UTC", "EMPTY": None}

    def test_yaml_booleans_serialize_like_compose(self) -> None:
        svc = ServiceSpec.from_mapping("a", {"environment": {"TS_USERSPACE": False}})
        assert svc.env("TS_USERSPACE") == "false"

    def test_depends_on_mapping_keeps_condition(self) -> None:
        svc = ServiceSpec.from_mapping(
            "a", {"depends_on": {"db": {"condition": "service_healthy"}}}
        )
        assert svc.depends_on == {"db": "service_healthy"}

    def test_unknown_keys_kept_in_extra(self) -> None:
        svc = ServiceSpec.from_mapping("a", {"image": "x", "labels": {"k": "v"}})
        assert svc.extra == {"labels": {"k": "v"}}

    def test_shared_namespace(self) -> None:
        svc = ServiceSpec.from_mapping("a", {"network_mode": "service:tailscale"})
        assert svc.shared_namespace == "tailscale"
        assert ServiceSpec.from_mapping("b", {"network_mode": "host"}).shared_namespace is None

    def test_mount_for_prefers_longest(self) -> None:
        svc = ServiceSpec.from_mapping(
            "a", {"volumes": ["./all:/config", "./serve:/config/serve"]}
        )
        mount = svc.mount_for("/config/serve/serve.json")
        assert mount is not None
        assert mount.source == "./serve"
        assert svc.mount_for("/configuration") is None

    def test_environment_of_wrong_type(self) -> None:
        with pytest.raises(DescriptorError):
            ServiceSpec.from_mapping("a", {"environment": "TZ=UTC"})


class TestComposeFile:
    def test_top_level_must_be_mapping(self) -> None:
        with pytest.raises(DescriptorError):
            ComposeFile.from_mapping(["services"])

    @pytest.mark.parametrize(
        ("document", "message"),
        [
            ({"volumes": ["tailscale-state", "pihole-etc"]}, "'volumes' must be a mapping"),
            ({"secrets": ["ts_authkey"]}, "'secrets' must be a mapping"),
            (
                {"secrets": {"ts_authkey": "./secrets/ts_authkey"}},
                "Secret 'ts_authkey' must be a mapping",
            ),
            ({"services": {"pihole": {"image": 1.0}}}, "Malformed service 'pihole'"),
            ({"services": {"pihole": {"container_name": 123}}}, "Malformed service 'pihole'"),
            ({"services": {"pihole": {"cap_add": 5}}}, "Malformed service 'pihole'"),
        ],
    )
    def test_malformed_sections(self, document: dict[str, Any], message: str) -> None:
        with pytest.raises(DescriptorError, match=message):
            ComposeFile.from_mapping(document)

    def test_dependencies_include_network_namespace(self) -> None:
        compose = _compose(
            tailscale={"image": "ts"},
            pihole={"image": "ph", "network_mode": "service:tailscale"},
            web={"image": "w", "depends_on": ["pihole"]},
        )
        deps = compose.dependencies()
        assert deps["pihole"] == {"tailscale"}
        assert deps["web"] == {"pihole"}
        assert deps["tailscale"] == set()


class TestValidateStructure:
    def test_no_services(self) -> None:
        issues = ComposeFile.from_mapping({}).validate_structure()
        assert [i.message for i in issues] == ["No services defined"]

    def test_valid_service_has_no_issues(self) -> None:
        compose = _compose(a={"image": "x", "restart": "unless-stopped"})
        assert compose.validate_structure() == []

    def test_missing_image(self) -> None:
        assert "Service has no image or build" in _messages(_compose(a={"restart": "always"}))

    def test_build_counts_as_image(self) -> None:
        compose = _compose(a={"build": ".", "restart": "always"})
        assert compose.validate_structure() == []

    @pytest.mark.parametrize("policy", ["no", "always", "on-failure", "on-failure:3"])
    def test_valid_restart_policies(self, policy: str) -> None:
        assert _compose(a={"image": "x", "restart": policy}).validate_structure() == []

    def test_invalid_restart_policy_is_error(self) -> None:
        issues = _compose(a={"image": "x", "restart": "sometimes"}).validate_structure()
        assert [i.severity for i in issues] == [Severity.ERROR]

    def test_missing_restart_is_warning(self) -> None:
        issues = _compose(a={"image": "x"}).validate_structure()
        assert [i.severity for i in issues] == [Severity.WARNING]

    def test_unknown_dependency(self) -> None:
        compose = _compose(a={"image": "x", "restart": "no", "depends_on": ["ghost"]})
        assert "depends_on unknown service 'ghost'" in _messages(compose)

    def test_unknown_network_namespace(self) -> None:
        compose = _compose(a={"image": "x", "restart": "no", "network_mode": "service:ghost"})
        assert "network_mode references unknown service 'ghost'" in _messages(compose)

    def test_shared_namespace_cannot_publish_ports(self) -> None:
        compose = _compose(
            ts={"image": "x", "restart": "no"},
            ph={"image": "y", "restart": "no", "network_mode": "service:ts", "ports": ["53:53"]},
        )
        issues = compose.validate_structure()
        assert len(issues) == 1
        assert issues[0].subject == "ph"
        assert "cannot publish ports" in issues[0].message

    def test_undeclared_named_volume(self) -> None:
        compose = _compose(a={"image": "x", "restart": "no", "volumes": ["other:/data"]})
        assert "Named volume 'other' is not declared" in _messages(compose)

    def test_declared_named_volume_and_bind_mount(self) -> None:
        compose = _compose(
            a={"image": "x", "restart": "no", "volumes": ["state:/s", "./conf:/c"]}
        )
        assert compose.validate_structure() == []

    def test_secret_must_be_declared_with_file(self) -> None:
        compose = ComposeFile.from_mapping(
            {
                "services": {
                    "a": {"image": "x", "restart": "no", "secrets": ["key", "other"]},
                },
                "secrets": {"key": {}},
            }
        )
        messages = _messages(compose)
        assert "Secret 'key' has no file source" in messages
        assert "Secret 'other' is not declared" in messages

    def test_capability_names(self) -> None:
        compose = _compose(
            a={"image": "x", "restart": "no", "cap_add": ["CAP_NET_ADMIN", "NET_RAW"]}
        )
        issues = compose.validate_structure()
        assert len(issues) == 1
        assert issues[0].severity == Severity.WARNING
        assert "CAP_NET_ADMIN" in issues[0].message
