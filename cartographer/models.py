"""
Data models — pure data classes with no business logic.

Depends on: nothing
"""

import ipaddress
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional


# =============================================================================
# Service Bits
# =============================================================================

NODE_NETWORK = 1 << 0
NODE_GETUTXO = 1 << 1

# Passed to the crawler when the caller asked for no service filtering.
# Crawlers must special-case it: as a plain mask it would match no peer.
SERVICES_WILDCARD = -1


# =============================================================================
# Enums
# =============================================================================

class PeerStatus(str, Enum):
    UNTESTED = "untested"
    OK = "ok"
    UNREACHABLE = "unreachable"
    BEHIND = "behind"


# =============================================================================
# Addresses & Records
# =============================================================================

class PeerAddress(NamedTuple):
    """A network endpoint. host is a normalised IP literal."""
    host: str
    port: int

    @property
    def is_ipv6(self) -> bool:
        return ipaddress.ip_address(self.host).version == 6

    def __str__(self) -> str:
        if self.is_ipv6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class PeerRecord:
    """What the crawler knows about one peer. Read-only to the HTTP layer."""
    address: PeerAddress
    service_bits: int = 0
    status: PeerStatus = PeerStatus.UNTESTED
    # Set by the crawler once the peer has answered a getutxo probe correctly
    getutxo_verified: bool = False
    last_attempt: Optional[int] = None
    last_success: Optional[int] = None

    @property
    def supports_getutxo(self) -> bool:
        return bool(self.service_bits & NODE_GETUTXO) and self.getutxo_verified

    def __str__(self) -> str:
        return (
            f"PeerRecord(address={self.address}, status={self.status.value}, "
            f"services=0x{self.service_bits:x}, getutxo={self.supports_getutxo}, "
            f"last_attempt={self.last_attempt}, last_success={self.last_success})"
        )


@dataclass(frozen=True)
class PendingRecrawl:
    """An entry in the crawler's recrawl queue."""
    address: PeerAddress
    due_at: int

    def __str__(self) -> str:
        return f"{self.address} due {self.due_at}"


# =============================================================================
# Queries
# =============================================================================

@dataclass(frozen=True)
class PeersQuery:
    """Parsed parameters of a /peers request."""
    service_mask: Optional[int] = None   # already masked to 24 bits
    get_utxo: bool = False
    no_cache: bool = False
