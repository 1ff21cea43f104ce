"""
Application composition root — create_app(), seed peer loading, main entry point.

Depends on: everything (this IS the composition root)
"""

import contextlib
import sys
from typing import Optional

import uvicorn
from starlette.applications import Starlette
from starlette.routing import Route

from cartographer.config import (
    BASE_PATH,
    HTTP_HOST,
    HTTP_PORT,
    KEY_FILE,
    NET_NAME,
    SEED_PEERS,
    TEXT_SUFFIX,
)
from cartographer.crawler import AddressBook, Crawler
from cartographer.handlers import handle_force, handle_lookup, handle_peers, handle_recrawls
from cartographer.identity import Identity, IdentityError, load_or_create_identity
from cartographer.models import PeerStatus
from cartographer.query import parse_address, parse_int
from cartographer.router import BadRequest, serve
from cartographer.state import SeedState, set_seed_state


# =============================================================================
# App factory
# =============================================================================

def build_routes(base_path: str) -> list[Route]:
    return [
        serve("GET", f"{base_path}/peers", handle_peers),
        serve("GET", f"{base_path}/peers{TEXT_SUFFIX}", handle_peers),
        serve("GET", f"{base_path}/lookup", handle_lookup),
        serve("GET", f"{base_path}/recrawls", handle_recrawls),
        serve("GET", f"{base_path}/force", handle_force),
    ]


def create_app(crawler: Crawler, identity: Optional[Identity] = None, *,
               key_file: str = KEY_FILE, net_name: str = NET_NAME,
               base_path: str = BASE_PATH) -> Starlette:
    """Create the seed ASGI app.

    The identity is loaded (or created) here, before any request can be
    served; IdentityError propagates to the caller.
    """
    if identity is None:
        identity = load_or_create_identity(key_file)
    base_path = base_path.rstrip("/")

    @contextlib.asynccontextmanager
    async def lifespan(app):
        yield
        crawler.close()

    app = Starlette(routes=build_routes(base_path), lifespan=lifespan)
    set_seed_state(app, SeedState(identity=identity, crawler=crawler, net_name=net_name))
    print(f"[Cartographer] Serving '{net_name}' seeds, context path is {base_path or '/'}", file=sys.stderr)
    return app


# =============================================================================
# Seed peers
# =============================================================================

def load_seed_peers(book: AddressBook, entries: list[str]) -> int:
    """Add "ip[:port][/services]" entries to book as reachable peers.

    Raises ValueError on a malformed entry. Returns the number loaded.
    """
    for entry in entries:
        address_text, _, services_text = entry.partition("/")
        try:
            address = parse_address(address_text, book.default_port)
            services = parse_int(services_text) if services_text else 0
        except BadRequest as e:
            raise ValueError(f"bad seed peer {entry!r}: {e}") from None
        book.add(address, service_bits=services, status=PeerStatus.OK)
    return len(entries)


# =============================================================================
# Main entry point
# =============================================================================

def print_startup_banner(host: str, port: int, base_path: str, identity: Identity, peers: int) -> None:
    print(f"[Cartographer] Binding HTTP server to {host}:{port}, context path is {base_path or '/'}", file=sys.stderr)
    print(f"[Cartographer] Public key: {identity.public_key_hex}", file=sys.stderr)
    print(f"[Cartographer] Seed peers loaded: {peers}", file=sys.stderr)


def main() -> None:
    """Load the identity, build the address book and serve until interrupted."""
    try:
        identity = load_or_create_identity(KEY_FILE)
    except IdentityError as e:
        print(f"[Cartographer] FATAL: {e}", file=sys.stderr)
        sys.exit(1)

    book = AddressBook()
    try:
        loaded = load_seed_peers(book, SEED_PEERS)
    except ValueError as e:
        print(f"[Cartographer] FATAL: {e}", file=sys.stderr)
        book.close()
        sys.exit(1)

    app = create_app(book, identity)
    print_startup_banner(HTTP_HOST, HTTP_PORT, BASE_PATH, identity, loaded)
    uvicorn.run(app, host=HTTP_HOST, port=HTTP_PORT)


if __name__ == "__main__":
    main()
