"""
Query string parsing — peers parameters and host[:port] addresses.

Depends on: config, models, router
"""

import ipaddress
import socket
from typing import Optional
from urllib.parse import unquote

import anyio

from cartographer.config import SERVICE_MASK_BITS
from cartographer.models import PeerAddress, PeersQuery
from cartographer.router import BadRequest


def parse_query(query: Optional[str]) -> dict[str, str]:
    """Split a raw query string into a dict.

    Pairs are split on '&', then on the first '='. Keys and values are trimmed
    and percent-decoded. A pair without '=' maps to "". Later keys win.
    """
    params: dict[str, str] = {}
    if not query:
        return params
    for pair in query.split("&"):
        if not pair.strip():
            continue
        key, _, value = pair.partition("=")
        params[unquote(key.strip())] = unquote(value.strip())
    return params


def parse_int(value: str) -> int:
    """Parse a decimal or 0x-prefixed hex integer. Raises BadRequest."""
    text = value.strip().lower()
    # int() would also take other scripts' digits
    if not text.isascii():
        raise BadRequest(f"not an integer: {value!r}")
    try:
        if text.startswith(("0x", "-0x", "+0x")):
            return int(text.replace("0x", "", 1), 16)
        return int(text, 10)
    except ValueError:
        raise BadRequest(f"not an integer: {value!r}") from None


def parse_peers_query(params: dict[str, str]) -> PeersQuery:
    service_mask = None
    if "srvmask" in params:
        service_mask = parse_int(params["srvmask"]) & SERVICE_MASK_BITS
    return PeersQuery(
        service_mask=service_mask,
        get_utxo=params.get("getutxo") == "true",
        no_cache="nocache" in params,
    )


# =============================================================================
# Addresses
# =============================================================================

def split_host_port(text: str, default_port: int) -> tuple[str, int]:
    """Split "host", "host:port", "[v6]" or "[v6]:port". Raises BadRequest."""
    text = text.strip()
    if not text:
        raise BadRequest("missing address")

    port_text = None
    if text.startswith("["):
        end = text.find("]")
        if end < 0:
            raise BadRequest(f"unterminated IPv6 literal: {text!r}")
        host, rest = text[1:end], text[end + 1:]
        if rest:
            if not rest.startswith(":"):
                raise BadRequest(f"junk after IPv6 literal: {text!r}")
            port_text = rest[1:]
    elif text.count(":") == 1:
        host, port_text = text.split(":")
    else:
        # Bare IPv6 literals contain several colons and no port
        host = text

    if not host:
        raise BadRequest(f"missing host: {text!r}")
    if port_text is None:
        return host, default_port
    if not (port_text.isascii() and port_text.isdecimal()):
        raise BadRequest(f"bad port: {text!r}")
    try:
        port = int(port_text)
    except ValueError:
        raise BadRequest(f"bad port: {text!r}") from None
    if not 0 < port < 65536:
        raise BadRequest(f"bad port: {text!r}")
    return host, port


def parse_address(text: str, default_port: int) -> PeerAddress:
    """Parse an IP literal address. Raises BadRequest for anything else."""
    host, port = split_host_port(text, default_port)
    try:
        return PeerAddress(str(ipaddress.ip_address(host)), port)
    except ValueError:
        raise BadRequest(f"not an IP address: {host!r}") from None


async def resolve_address(text: str, default_port: int) -> PeerAddress:
    """Like parse_address, but hostnames are resolved to their first address."""
    host, port = split_host_port(text, default_port)
    try:
        return PeerAddress(str(ipaddress.ip_address(host)), port)
    except ValueError:
        pass
    if any(c.isspace() or c in "/?#@" for c in host):
        raise BadRequest(f"bad host: {host!r}")
    try:
        info = await anyio.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except (OSError, UnicodeError):
        raise BadRequest(f"cannot resolve {host!r}") from None
    if not info:
        raise BadRequest(f"cannot resolve {host!r}")
    return PeerAddress(str(ipaddress.ip_address(info[0][4][0])), port)
