"""DNS lookups against the Pi-hole resolver, via dnspython.

Only used for the functional check: a lookup never raises, every outcome
(answer, NXDOMAIN, empty answer, timeout, transport error) becomes a
:class:`Reply`.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Any

import dns.exception
import dns.resolver

logger = logging.getLogger(__name__)

NULL_ADDRESSES = frozenset({ipaddress.ip_address("0.0.0.0"), ipaddress.ip_address("::")})


@dataclass(frozen=True)
class Reply:
    domain: str
    rtype: str
    status: str
    addresses: list[str] = field(default_factory=list)
    detail: str | None = None

    @property
    def all_null(self) -> bool:
        """True when every answer is an unspecified address."""
        return bool(self.addresses) and all(
            ipaddress.ip_address(a) in NULL_ADDRESSES for a in self.addresses
        )

    @property
    def has_real_answer(self) -> bool:
        return any(ipaddress.ip_address(a) not in NULL_ADDRESSES for a in self.addresses)

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "rtype": self.rtype,
            "status": self.status,
            "addresses": self.addresses,
            "detail": self.detail,
        }


class PiholeResolver:
    """Thin wrapper over a non-system-configured dnspython resolver.

    *server* is an IP address, a DNS-over-HTTPS URL or a host name.  A host
    name (for example a MagicDNS name) is looked up once through the system
    resolver before the first query.
    """

    def __init__(self, server: str, *, port: int = 53, timeout: float = 3.0) -> None:
        self.server = server
        self.address: str | None = None
        self._resolver = dns.resolver.Resolver(configure=False)
        # nameserver objects capture the port when they are assigned
        self._resolver.port = port
        self._resolver.lifetime = timeout
        self._resolver.cache = None
        if _is_direct(server):
            self._use(server)

    def _use(self, address: str) -> None:
        self._resolver.nameservers = [address]
        self.address = address

    def _locate_server(self) -> str:
        answer = dns.resolver.resolve(self.server, "A")
        addresses = [rdata.to_text() for rdata in answer.rrset or []]
        if not addresses:
            msg = f"{self.server} has no address"
            raise dns.exception.DNSException(msg)
        return addresses[0]

    def lookup(self, domain: str, rtype: str = "A") -> Reply:
        if self.address is None:
            try:
                self._use(self._locate_server())
            except dns.exception.DNSException as exc:
                logger.debug("Cannot resolve resolver host %s", self.server, exc_info=True)
                detail = f"Cannot resolve resolver host {self.server}: {exc}"
                return Reply(domain, rtype, "error", detail=detail)
        try:
            answer = self._resolver.resolve(domain, rtype, raise_on_no_answer=False)
        except dns.resolver.NXDOMAIN:
            return Reply(domain, rtype, "nxdomain")
        except dns.exception.Timeout:
            return Reply(domain, rtype, "timeout", detail=f"No reply from {self.server}")
        except dns.exception.DNSException as exc:
            logger.debug("Lookup of %s failed", domain, exc_info=True)
            return Reply(domain, rtype, "error", detail=str(exc))

        if answer.rrset is None:
            return Reply(domain, rtype, "noanswer")
        addresses = [rdata.to_text() for rdata in answer.rrset]
        return Reply(domain, rtype, "answer", addresses=addresses)


def _is_direct(server: str) -> bool:
    """True for values dnspython accepts as a nameserver as-is."""
    if server.startswith("https://"):
        return True
    try:
        ipaddress.ip_address(server)
    except ValueError:
        return False
    return True
