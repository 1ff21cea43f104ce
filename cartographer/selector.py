"""
Peer selection — turns parsed /peers parameters into a crawler query.

Depends on: config, models, crawler
"""

from cartographer.config import GETUTXO_MASK, MAX_PEERS_PER_QUERY
from cartographer.crawler import Crawler
from cartographer.models import SERVICES_WILDCARD, PeerAddress, PeerRecord, PeersQuery


def effective_service_mask(query: PeersQuery) -> int:
    """The mask handed to the crawler: the caller's 24-bit mask, or the wildcard."""
    if query.service_mask is None:
        return SERVICES_WILDCARD
    return query.service_mask


def wants_verified_getutxo(query: PeersQuery) -> bool:
    return (
        query.get_utxo
        and query.service_mask is not None
        and query.service_mask & GETUTXO_MASK == GETUTXO_MASK
    )


def select_peers(crawler: Crawler, query: PeersQuery,
                 count: int = MAX_PEERS_PER_QUERY) -> list[tuple[PeerAddress, PeerRecord]]:
    peers = crawler.get_some_peers(count, effective_service_mask(query))
    if wants_verified_getutxo(query):
        # Drop peers that advertise getutxo but failed the probe
        peers = [(address, record) for address, record in peers if record.supports_getutxo]
    return peers
