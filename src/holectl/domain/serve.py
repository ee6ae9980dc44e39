"""Reverse-proxy routing descriptor (Tailscale serve config).

The file maps listening ports to a TLS-termination flag (``TCP``) and
``host:port`` pairs to path handlers (``Web``).  The literal host
``${TS_CERT_DOMAIN}`` is substituted by the Tailscale container at start,
so when resolving offline it matches any host name.

Mount points behave like Tailscale's: ``/admin`` matches ``/admin`` and
anything under ``/admin/``; the mount prefix is stripped before the
remainder is appended to the proxy target.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Self
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from holectl.domain.types import Category, DescriptorError, Issue, error, warning

CERT_DOMAIN_PLACEHOLDER = "${TS_CERT_DOMAIN}"
FUNNEL_PORTS = frozenset({443, 8443, 10000})
_PROXY_SCHEMES = frozenset({"http", "https", "https+insecure"})


class TcpPort(BaseModel):
    """``TCP`` entry for one listening port."""

    model_config = {"frozen": True}

    port: int
    https: bool = False
    http: bool = False
    tcp_forward: str | None = None


class WebHandler(BaseModel):
    """One mount point of a web server; exactly one target should be set."""

    model_config = {"frozen": True}

    mount: str
    proxy: str | None = None
    path: str | None = None
    text: str | None = None

    @property
    def kind(self) -> str:
        if self.proxy is not None:
            return "proxy"
        if self.path is not None:
            return "path"
        if self.text is not None:
            return "text"
        return "empty"

    def matches(self, request_path: str) -> bool:
        mount = self.mount
        if mount == "/" or request_path == mount.rstrip("/"):
            return True
        prefix = mount if mount.endswith("/") else mount + "/"
        return request_path.startswith(prefix)


class WebServer(BaseModel):
    """``Web`` entry keyed by ``host:port``."""

    model_config = {"frozen": True}

    host: str
    port: int
    handlers: dict[str, WebHandler] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.host}:{self.port}"

    def matches_host(self, host: str) -> bool:
        return self.host == CERT_DOMAIN_PLACEHOLDER or self.host.lower() == host.lower()

    def handler_for(self, request_path: str) -> WebHandler | None:
        """Longest matching mount point wins."""
        candidates = [h for h in self.handlers.values() if h.matches(request_path)]
        if not candidates:
            return None
        return max(candidates, key=lambda h: len(h.mount.rstrip("/")))


@dataclass(frozen=True)
class Route:
    """Outcome of resolving one request against the serve config."""

    server: str
    mount: str
    kind: str
    target: str | None
    tls: bool
    funnel: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "server": self.server,
            "mount": self.mount,
            "kind": self.kind,
            "target": self.target,
            "tls": self.tls,
            "funnel": self.funnel,
        }


class ServeConfig(BaseModel):
    """The whole serve descriptor."""

    model_config = {"frozen": True}

    tcp: dict[int, TcpPort] = Field(default_factory=dict)
    web: dict[str, WebServer] = Field(default_factory=dict)
    allow_funnel: dict[str, bool] = Field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Any) -> Self:
        if not isinstance(data, dict):
            msg = "Serve config must be a JSON object"
            raise DescriptorError(msg)

        tcp: dict[int, TcpPort] = {}
        web: dict[str, WebServer] = {}
        try:
            for raw_port, entry in _mapping(data.get("TCP"), "'TCP'").items():
                port = _parse_port(raw_port)
                entry = _mapping(entry, f"TCP entry {raw_port!r}")
                tcp[port] = TcpPort(
                    port=port,
                    https=bool(entry.get("HTTPS", False)),
                    http=bool(entry.get("HTTP", False)),
                    tcp_forward=entry.get("TCPForward"),
                )

            for host_port, entry in _mapping(data.get("Web"), "'Web'").items():
                host, _, raw_port = str(host_port).rpartition(":")
                if not host:
                    msg = f"Web key {host_port!r} must be host:port"
                    raise DescriptorError(msg)
                entry = _mapping(entry, f"Web entry {host_port!r}")
                handlers: dict[str, WebHandler] = {}
                for mount, h in _mapping(entry.get("Handlers"), f"{host_port} Handlers").items():
                    h = _mapping(h, f"Handler {mount!r} of {host_port}")
                    handlers[mount] = WebHandler(
                        mount=mount, proxy=h.get("Proxy"), path=h.get("Path"), text=h.get("Text")
                    )
                server = WebServer(host=host, port=_parse_port(raw_port), handlers=handlers)
                web[server.key] = server

            funnel = {
                str(k): bool(v)
                for k, v in _mapping(data.get("AllowFunnel"), "'AllowFunnel'").items()
            }
            return cls(tcp=tcp, web=web, allow_funnel=funnel)
        except DescriptorError:
            raise
        except (TypeError, ValueError) as exc:
            # pydantic.ValidationError is a ValueError
            msg = f"Malformed serve config: {exc}"
            raise DescriptorError(msg) from exc

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, host: str, port: int, path: str = "/") -> Route | None:
        """Resolve a request to the handler that would serve it, or None."""
        if not path.startswith("/"):
            path = "/" + path
        servers = [s for s in self.web.values() if s.port == port and s.matches_host(host)]
        # An explicit host entry beats the placeholder.
        servers.sort(key=lambda s: s.host == CERT_DOMAIN_PLACEHOLDER)
        for server in servers:
            handler = server.handler_for(path)
            if handler is None:
                continue
            return self._route(server, handler, path)
        return None

    def routes(self) -> list[Route]:
        """Every configured mount point, as if requested at its own path."""
        out: list[Route] = []
        for server in self.web.values():
            for handler in server.handlers.values():
                out.append(self._route(server, handler, handler.mount))
        return out

    def _route(self, server: WebServer, handler: WebHandler, path: str) -> Route:
        tcp = self.tcp.get(server.port)
        target: str | None
        if handler.kind == "proxy":
            target = _join_target(str(handler.proxy), handler.mount, path)
        elif handler.kind == "path":
            target = handler.path
        else:
            target = None
        return Route(
            server=server.key,
            mount=handler.mount,
            kind=handler.kind,
            target=target,
            tls=bool(tcp and tcp.https),
            funnel=self.allow_funnel.get(server.key, False),
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_structure(self) -> list[Issue]:
        issues: list[Issue] = []
        if not self.web and not self.tcp:
            issues.append(error(Category.SERVE, "Serve config defines no listeners"))

        for port in self.tcp:
            if not 1 <= port <= 65535:
                issues.append(error(Category.SERVE, f"Port {port} out of range"))

        for key, server in self.web.items():
            if not 1 <= server.port <= 65535:
                issues.append(error(Category.SERVE, f"Port {server.port} out of range", key))
            tcp = self.tcp.get(server.port)
            if tcp is None:
                issues.append(
                    error(Category.SERVE, f"No TCP listener for port {server.port}", key)
                )
            elif not tcp.https:
                issues.append(
                    warning(Category.SERVE, "Listener serves plain HTTP without TLS", key)
                )
            if not server.handlers:
                issues.append(error(Category.SERVE, "Web server has no handlers", key))

            for mount, handler in server.handlers.items():
                subject = f"{key}{mount}"
                if not mount.startswith("/"):
                    issues.append(error(Category.SERVE, "Mount point must start with /", subject))
                targets = [t for t in (handler.proxy, handler.path, handler.text) if t is not None]
                if len(targets) != 1:
                    issues.append(
                        error(
                            Category.SERVE,
                            "Handler needs exactly one of Proxy, Path or Text",
                            subject,
                        )
                    )
                if handler.proxy is not None and not _valid_proxy(handler.proxy):
                    issues.append(
                        error(Category.SERVE, f"Invalid proxy target {handler.proxy!r}", subject)
                    )

        for key, enabled in self.allow_funnel.items():
            if not enabled:
                continue
            _, _, raw_port = key.rpartition(":")
            if not raw_port.isdigit() or int(raw_port) not in FUNNEL_PORTS:
                issues.append(
                    error(
                        Category.SERVE,
                        "Funnel is only available on ports 443, 8443 and 10000",
                        key,
                    )
                )
            else:
                issues.append(
                    warning(Category.SERVE, "Funnel exposes this listener to the internet", key)
                )
        return issues


def _mapping(raw: Any, what: str) -> dict[Any, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        msg = f"{what} must be a JSON object"
        raise DescriptorError(msg)
    return raw


def _parse_port(raw: Any) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        msg = f"Invalid port {raw!r}"
        raise DescriptorError(msg) from exc


def _valid_proxy(target: str) -> bool:
    parts = urlsplit(target)
    return parts.scheme in _PROXY_SCHEMES and bool(parts.hostname)


def _join_target(proxy: str, mount: str, path: str) -> str:
    """Strip *mount* from *path* and append the rest to the proxy URL."""
    remainder = path[len(mount.rstrip("/")) :] if mount != "/" else path
    if not remainder.startswith("/"):
        remainder = "/" + remainder
    return proxy.rstrip("/") + remainder
