"""
Seed client — fetch a signed peer snapshot and check it before trusting it.

Depends on: config, identity, protocol
"""

import gzip
import time
from typing import Optional

import httpx
from google.protobuf.message import DecodeError

from cartographer.config import MAX_SEED_AGE
from cartographer.identity import verify_signature
from cartographer.protocol import PeerSeeds, SignedPeerSeeds, read_delimited


class SeedResponseError(Exception):
    """The seed response is malformed, unsigned, or fails a caller check."""


def decode_peer_seeds_response(bits: bytes, *, pubkey: Optional[bytes] = None,
                               net: Optional[str] = None,
                               max_age: Optional[int] = MAX_SEED_AGE,
                               now: Optional[int] = None) -> PeerSeeds:
    """Decompress, verify and decode a binary /peers response.

    pubkey pins the signer, net pins the network name, max_age (seconds)
    rejects stale snapshots. Pass None to skip a check.
    """
    try:
        raw = gzip.decompress(bits)
    except (OSError, EOFError) as e:
        raise SeedResponseError(f"response is not gzip data: {e}") from e
    try:
        envelope = read_delimited(raw, SignedPeerSeeds)
    except DecodeError as e:
        raise SeedResponseError(f"bad signed envelope: {e}") from e

    if pubkey is not None and envelope.pubkey != pubkey:
        raise SeedResponseError(f"signed by unexpected key {envelope.pubkey.hex()}")
    if not verify_signature(envelope.pubkey, envelope.signature, envelope.peer_seeds):
        raise SeedResponseError("signature does not verify")

    seeds = PeerSeeds()
    try:
        seeds.ParseFromString(envelope.peer_seeds)
    except DecodeError as e:
        raise SeedResponseError(f"bad peer seeds payload: {e}") from e

    if net is not None and seeds.net != net:
        raise SeedResponseError(f"snapshot is for network {seeds.net!r}, expected {net!r}")
    if max_age is not None:
        age = (int(time.time()) if now is None else now) - seeds.timestamp
        if age > max_age:
            raise SeedResponseError(f"snapshot is {age}s old (limit {max_age}s)")
    return seeds


async def fetch_peer_seeds(url: str, *, params: Optional[dict] = None,
                           client: Optional[httpx.AsyncClient] = None,
                           timeout: float = 10.0, **checks) -> PeerSeeds:
    """GET url (a /peers endpoint) and return the verified PeerSeeds.

    Extra keyword arguments are passed to decode_peer_seeds_response().
    """
    if client is None:
        async with httpx.AsyncClient(timeout=timeout) as own_client:
            resp = await own_client.get(url, params=params)
    else:
        resp = await client.get(url, params=params)
    resp.raise_for_status()
    return decode_peer_seeds_response(resp.content, **checks)
