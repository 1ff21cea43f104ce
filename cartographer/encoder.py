"""
Response encoding — PeerSeeds construction, plain-text and signed binary
formats, compression and cache headers.

Depends on: config, identity, models, protocol
"""

import gzip
import time
from typing import Iterable, Optional

from starlette.responses import Response

from cartographer.config import CACHE_CONTROL, TEXT_SUFFIX
from cartographer.identity import Identity
from cartographer.models import PeerAddress, PeerRecord
from cartographer.protocol import PeerSeedData, PeerSeeds, SignedPeerSeeds, write_delimited

TEXT_MEDIA_TYPE = "text/plain"
BINARY_MEDIA_TYPE = "application/octet-stream"


# =============================================================================
# Message construction
# =============================================================================

def peer_to_proto(address: PeerAddress, record: PeerRecord) -> PeerSeedData:
    return PeerSeedData(
        ip_address=address.host,
        port=address.port,
        services=record.service_bits & 0xFFFFFFFF,
    )


def build_peer_seeds(peers: Iterable[tuple[PeerAddress, PeerRecord]], net: str,
                     timestamp: Optional[int] = None) -> PeerSeeds:
    msg = PeerSeeds(
        timestamp=int(time.time()) if timestamp is None else timestamp,
        net=net,
    )
    msg.seed.extend(peer_to_proto(address, record) for address, record in peers)
    return msg


# =============================================================================
# Formats
# =============================================================================

def to_text(msg: PeerSeeds) -> bytes:
    """Comma-separated IP addresses. Ports and services are left out."""
    return ",".join(seed.ip_address for seed in msg.seed).encode("utf-8")


def sign_serialize_and_compress(msg: PeerSeeds, identity: Identity) -> bytes:
    """gzip(length-delimited(SignedPeerSeeds)) with the signature over the embedded bytes."""
    peer_seeds = msg.SerializeToString()
    envelope = SignedPeerSeeds(
        peer_seeds=peer_seeds,
        pubkey=identity.public_key_bytes,
        signature=identity.sign(peer_seeds),
    )
    return gzip.compress(write_delimited(envelope), mtime=0)


def wants_text(path: str) -> bool:
    return path.endswith(TEXT_SUFFIX)


def encode_peer_seeds(msg: PeerSeeds, path: str, identity: Identity) -> tuple[bytes, str]:
    """Pick the format from the request path. Returns (body, media type)."""
    if wants_text(path):
        return to_text(msg), TEXT_MEDIA_TYPE
    return sign_serialize_and_compress(msg, identity), BINARY_MEDIA_TYPE


def respond(bits: bytes, media_type: str, no_cache: bool) -> Response:
    headers = {}
    if not no_cache:
        # Signed output makes tampering by caches detectable, so let ISPs cache it
        headers["Cache-Control"] = CACHE_CONTROL
    return Response(content=bits, media_type=media_type, headers=headers)
