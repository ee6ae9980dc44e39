"""holectl — Pi-hole behind Tailscale stack control CLI."""

__version__ = "0.3.0"
