"""
HTTP handlers — the /peers seed query and the diagnostic endpoints.

Collaborator calls, signing and compression run in worker threads; the
handlers themselves keep no state between requests.

Depends on: encoder, query, router, selector, state
"""

import sys
from urllib.parse import unquote

import anyio
from starlette.requests import Request
from starlette.responses import Response

from cartographer.encoder import TEXT_MEDIA_TYPE, build_peer_seeds, encode_peer_seeds, respond
from cartographer.query import parse_peers_query, parse_query, resolve_address
from cartographer.selector import select_peers
from cartographer.state import get_seed_state


def _describe_client(request: Request) -> str:
    if request.client is None:
        return "unknown"
    return f"{request.client.host}:{request.client.port}"


# =============================================================================
# Seed query
# =============================================================================

async def handle_peers(request: Request) -> Response:
    """The main seed query: signed binary by default, CSV of IPs for .txt."""
    seed = get_seed_state(request)
    raw_query = request.url.query
    query = parse_peers_query(parse_query(raw_query))

    peers = await anyio.to_thread.run_sync(select_peers, seed.crawler, query)
    msg = build_peer_seeds(peers, seed.net_name)
    bits, media_type = await anyio.to_thread.run_sync(
        encode_peer_seeds, msg, request.url.path, seed.identity,
    )
    response = respond(bits, media_type, query.no_cache)

    target = f"{request.url.path}?{raw_query}" if raw_query else request.url.path
    user_agent = request.headers.get("user-agent", "-")
    print(f"[Cartographer] Query {target} from {_describe_client(request)} "
          f"{user_agent} => {len(peers)} peers", file=sys.stderr)
    return response


# =============================================================================
# Diagnostics
# =============================================================================

async def handle_lookup(request: Request) -> Response:
    """Status of a single peer, given as the whole query string (host[:port])."""
    seed = get_seed_state(request)
    address = await resolve_address(unquote(request.url.query), seed.crawler.default_port)
    record = await anyio.to_thread.run_sync(seed.crawler.address_lookup, address)
    text = str(record) if record is not None else "Unknown"
    return Response(text, media_type=TEXT_MEDIA_TYPE)


async def handle_recrawls(request: Request) -> Response:
    """The crawler's pending recrawl queue, one entry per line."""
    seed = get_seed_state(request)
    pending = await anyio.to_thread.run_sync(seed.crawler.snapshot_recrawl_queue)
    return Response("".join(f"{item}\n" for item in pending), media_type=TEXT_MEDIA_TYPE)


async def handle_force(request: Request) -> Response:
    """Queue an immediate connection attempt; the outcome is not reported."""
    seed = get_seed_state(request)
    address = await resolve_address(unquote(request.url.query), seed.crawler.default_port)
    print(f"[Cartographer] Forcing recrawl for {address}", file=sys.stderr)
    seed.crawler.submit_connect(address)
    return Response(status_code=200)
