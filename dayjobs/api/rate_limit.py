"""Per-client rate limits (slowapi).

Limits are keyed on the client address. X-Forwarded-For is only believed
when the direct peer sits in Settings.trusted_proxy_cidrs; anyone else
could put an arbitrary address there.
"""

import ipaddress
import logging
from functools import lru_cache
from typing import Iterable, Optional, Tuple

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


@lru_cache(maxsize=8)
def parse_networks(cidrs: Tuple[str, ...]) -> Tuple[Network, ...]:
    """Parse proxy CIDRs, skipping (and logging) malformed entries."""
    networks = []
    for cidr in cidrs:
        try:
            networks.append(ipaddress.ip_network(cidr.strip(), strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy CIDR | cidr={cidr}")
    return tuple(networks)


def resolve_client(peer: str, forwarded_for: Optional[str], trusted: Iterable[Network]) -> str:
    """
    The address a request is charged to.

    That is the first X-Forwarded-For hop when the peer is a trusted proxy,
    otherwise the peer itself.
    """
    if not forwarded_for:
        return peer
    try:
        peer_addr = ipaddress.ip_address(peer)
    except ValueError:
        return peer
    if not any(peer_addr in network for network in trusted):
        return peer
    return forwarded_for.split(",")[0].strip() or peer


def get_client_ip(request: Request) -> str:
    settings = get_settings()
    return resolve_client(
        get_remote_address(request),
        request.headers.get("x-forwarded-for"),
        parse_networks(tuple(settings.trusted_proxy_cidrs)),
    )


limiter = Limiter(key_func=get_client_ip)


def configure_limiter(settings: Settings) -> Limiter:
    """Apply settings to the shared limiter. slowapi reads `enabled` per request."""
    limiter.enabled = settings.rate_limit_enabled
    if not limiter.enabled:
        logger.info("Rate limiting disabled")
    return limiter
