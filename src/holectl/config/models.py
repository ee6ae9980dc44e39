"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, holectl.toml only contains overrides.
A fresh stack usually needs only [tailscale] hostname and [pihole] timezone.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# --- holectl.toml sections ---


class StackConfig(BaseModel):
    """[stack] section — descriptor file locations relative to the stack root."""

    model_config = {"frozen": True}

    compose_file: str = "docker-compose.yml"
    serve_file: str = "tailscale/serve.json"
    policy_file: str = "policy.json"
    secrets_dir: str = "secrets"
    auth_key_secret: str = "ts_authkey"


class TailscaleConfig(BaseModel):
    """[tailscale] section."""

    model_config = {"frozen": True}

    service: str = "tailscale"
    image: str = "tailscale/tailscale:latest"
    hostname: str = "pihole"
    tag: str = "tag:pihole"
    state_dir: str = "/var/lib/tailscale"
    serve_mount: str = "/config"


class PiholeConfig(BaseModel):
    """[pihole] section."""

    model_config = {"frozen": True}

    service: str = "pihole"
    image: str = "pihole/pihole:latest"
    timezone: str = "Etc/UTC"
    web_port: int = 80


class ComposeConfig(BaseModel):
    """[compose] section."""

    model_config = {"frozen": True}

    binary: list[str] = Field(default_factory=lambda: ["docker", "compose"])
    project_name: str | None = None


class VerifyConfig(BaseModel):
    """[verify] section — functional DNS check targets."""

    model_config = {"frozen": True}

    resolver: str = "127.0.0.1"
    port: int = 53
    blocked_domain: str = "doubleclick.net"
    allowed_domain: str = "example.com"
    timeout: float = 3.0
    ipv6: bool = False
