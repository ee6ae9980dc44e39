"""RouteService — which backend would serve a given tailnet URL."""

from __future__ import annotations

from urllib.parse import urlsplit

from holectl.services.base import BaseService
from holectl.services.result import ServiceResult
from holectl.services.telemetry import traced

_DEFAULT_PORTS = {"https": 443, "http": 80}


class RouteService(BaseService):
    """Offline resolution against the serve config."""

    @traced
    def resolve(self, url: str) -> ServiceResult:
        """Resolve *url* (``https://host[:port]/path``) to its handler."""
        op = "route_resolve"
        serve, failure = self._load(op, self._stack.serve)
        if failure is not None:
            return failure
        assert serve is not None

        if "://" not in url:
            url = "https://" + url
        parts = urlsplit(url)
        try:
            port = parts.port or _DEFAULT_PORTS.get(parts.scheme)
        except ValueError:
            port = None
        if not parts.hostname or port is None:
            return ServiceResult.failure(op, "INVALID_INPUT", f"Cannot parse URL {url!r}")

        path = parts.path or "/"
        route = serve.resolve(parts.hostname, port, path)
        if route is None:
            return ServiceResult.failure(
                op,
                "NO_ROUTE",
                f"Nothing is served at {parts.hostname}:{port}{path}",
                host=parts.hostname,
                port=port,
                path=path,
            )

        data = {"url": url, "host": parts.hostname, "port": port, "path": path, **route.to_dict()}
        if route.target and parts.query:
            data["target"] = f"{route.target}?{parts.query}"
        warnings: list[str] = []
        if parts.scheme == "https" and not route.tls:
            warnings.append(f"Port {port} does not terminate TLS")
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    @traced
    def list_routes(self) -> ServiceResult:
        op = "routes"
        serve, failure = self._load(op, self._stack.serve)
        if failure is not None:
            return failure
        assert serve is not None

        routes = [r.to_dict() for r in serve.routes()]
        return ServiceResult(ok=True, op=op, data={"items": routes, "count": len(routes)})
