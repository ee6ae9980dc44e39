"""Tests for serve-config parsing, route resolution and validation."""

from __future__ import annotations

from typing import Any

import pytest

from holectl.domain.serve import CERT_DOMAIN_PLACEHOLDER, ServeConfig
from holectl.domain.types import DescriptorError, Severity

HOST = "pihole.tailnet-1234.ts.net"


def _serve(handlers: dict[str, Any], *, https: bool = True, **extra: Any) -> ServeConfig:
    data: dict[str, Any] = {
        "TCP": {"443": {"HTTPS": https} if https else {"HTTP": True}},
        "Web": {f"{CERT_DOMAIN_PLACEHOLDER}:443": {"Handlers": handlers}},
        **extra,
    }
    return ServeConfig.from_mapping(data)


class TestParsing:
    def test_ports_become_ints(self) -> None:
        serve = _serve({"/": {"Proxy": "http://127.0.0.1:80"}})
        assert list(serve.tcp) == [443]
        assert serve.tcp[443].https is True
        assert list(serve.web) == [f"{CERT_DOMAIN_PLACEHOLDER}:443"]

    def test_non_object(self) -> None:
        with pytest.raises(DescriptorError):
            ServeConfig.from_mapping([])

    def test_bad_port(self) -> None:
        with pytest.raises(DescriptorError):
            ServeConfig.from_mapping({"TCP": {"https": {"HTTPS": True}}})

    def test_web_key_without_port(self) -> None:
        with pytest.raises(DescriptorError):
            ServeConfig.from_mapping({"Web": {"443": {"Handlers": {}}}})

    @pytest.mark.parametrize(
        "document",
        [
            {"TCP": {"443": True}},
            {"TCP": ["443"]},
            {"Web": {"host:443": {"Handlers": {"/": "http://127.0.0.1:80"}}}},
            {"Web": {"host:443": {"Handlers": ["/"]}}},
            {"Web": {"host:443": "http://127.0.0.1:80"}},
            {"Web": {"host:443": {"Handlers": {"/": {"Proxy": 80}}}}},
            {"AllowFunnel": ["host:443"]},
        ],
    )
    def test_malformed_sections(self, document: dict[str, Any]) -> None:
        with pytest.raises(DescriptorError):
            ServeConfig.from_mapping(document)


class TestResolve:
    def test_placeholder_matches_any_host(self) -> None:
        serve = _serve({"/": {"Proxy": "http://127.0.0.1:80"}})
        route = serve.resolve(HOST, 443, "/admin/index.php")
        assert route is not None
        assert route.target == "http://127.0.0.1:80/admin/index.php"
        assert route.tls is True
        assert route.funnel is False

    def test_longest_mount_wins_and_is_stripped(self) -> None:
        serve = _serve(
            {
                "/": {"Proxy": "http://127.0.0.1:80"},
                "/grafana": {"Proxy": "http://127.0.0.1:3000"},
            }
        )
        route = serve.resolve(HOST, 443, "/grafana/d/abc")
        assert route is not None
        assert route.mount == "/grafana"
        assert route.target == "http://127.0.0.1:3000/d/abc"

    def test_mount_respects_path_boundaries(self) -> None:
        serve = _serve(
            {
                "/": {"Proxy": "http://127.0.0.1:80"},
                "/grafana": {"Proxy": "http://127.0.0.1:3000"},
            }
        )
        route = serve.resolve(HOST, 443, "/grafanaX")
        assert route is not None
        assert route.mount == "/"

    def test_exact_mount_without_trailing_slash(self) -> None:
        serve = _serve({"/admin/": {"Proxy": "http://127.0.0.1:80/admin"}})
        route = serve.resolve(HOST, 443, "/admin")
        assert route is not None
        assert route.target == "http://127.0.0.1:80/admin/"

    def test_wrong_port_has_no_route(self) -> None:
        serve = _serve({"/": {"Proxy": "http://127.0.0.1:80"}})
        assert serve.resolve(HOST, 8443, "/") is None

    def test_explicit_host_beats_placeholder(self) -> None:
        serve = ServeConfig.from_mapping(
            {
                "TCP": {"443": {"HTTPS": True}},
                "Web": {
                    f"{CERT_DOMAIN_PLACEHOLDER}:443": {
                        "Handlers": {"/": {"Proxy": "http://127.0.0.1:80"}}
                    },
                    "dns.example.com:443": {"Handlers": {"/": {"Text": "hello"}}},
                },
            }
        )
        route = serve.resolve("DNS.example.com", 443)
        assert route is not None
        assert route.kind == "text"
        assert route.target is None

    def test_path_handler(self) -> None:
        serve = _serve({"/static/": {"Path": "/srv/static"}})
        route = serve.resolve(HOST, 443, "/static/app.js")
        assert route is not None
        assert route.kind == "path"
        assert route.target == "/srv/static"

    def test_routes_lists_every_mount(self) -> None:
        serve = _serve({"/": {"Proxy": "http://a:1"}, "/b": {"Proxy": "http://b:2"}})
        assert sorted(r.mount for r in serve.routes()) == ["/", "/b"]


class TestValidate:
    def test_clean_config(self) -> None:
        assert _serve({"/": {"Proxy": "http://127.0.0.1:80"}}).validate_structure() == []

    def test_plain_http_listener_is_warning(self) -> None:
        issues = _serve({"/": {"Proxy": "http://127.0.0.1:80"}}, https=False).validate_structure()
        assert [i.severity for i in issues] == [Severity.WARNING]

    def test_web_without_tcp_listener(self) -> None:
        serve = ServeConfig.from_mapping(
            {"Web": {"x:8443": {"Handlers": {"/": {"Proxy": "http://a:1"}}}}}
        )
        messages = [i.message for i in serve.validate_structure()]
        assert "No TCP listener for port 8443" in messages

    def test_handler_needs_exactly_one_target(self) -> None:
        serve = _serve({"/": {"Proxy": "http://a:1", "Text": "x"}, "/e": {}})
        issues = serve.validate_structure()
        assert {i.subject for i in issues} == {
            f"{CERT_DOMAIN_PLACEHOLDER}:443/",
            f"{CERT_DOMAIN_PLACEHOLDER}:443/e",
        }

    @pytest.mark.parametrize("target", ["ftp://a:1", "127.0.0.1:80", "http://"])
    def test_invalid_proxy(self, target: str) -> None:
        issues = _serve({"/": {"Proxy": target}}).validate_structure()
        assert any("Invalid proxy target" in i.message for i in issues)

    def test_https_insecure_proxy_is_allowed(self) -> None:
        serve = _serve({"/": {"Proxy": "https+insecure://127.0.0.1:443"}})
        assert serve.validate_structure() == []

    def test_mount_must_be_absolute(self) -> None:
        issues = _serve({"admin": {"Proxy": "http://a:1"}}).validate_structure()
        assert any(i.message == "Mount point must start with /" for i in issues)

    def test_funnel_on_unsupported_port(self) -> None:
        serve = ServeConfig.from_mapping(
            {
                "TCP": {"8080": {"HTTPS": True}},
                "Web": {"x:8080": {"Handlers": {"/": {"Proxy": "http://a:1"}}}},
                "AllowFunnel": {"x:8080": True},
            }
        )
        errors = [i for i in serve.validate_structure() if i.severity == Severity.ERROR]
        assert len(errors) == 1
        assert "443, 8443 and 10000" in errors[0].message

    def test_funnel_on_443_is_a_warning(self) -> None:
        serve = _serve(
            {"/": {"Proxy": "http://a:1"}},
            AllowFunnel={f"{CERT_DOMAIN_PLACEHOLDER}:443": True},
        )
        issues = serve.validate_structure()
        assert [i.severity for i in issues] == [Severity.WARNING]
        route = serve.resolve(HOST, 443)
        assert route is not None
        assert route.funnel is True
