#!/usr/bin/env python3
"""
Unit tests for query parsing, address parsing and peer selection.
"""

import asyncio
import sys

from cartographer.models import (
    SERVICES_WILDCARD,
    PeerAddress,
    PeerRecord,
    PeersQuery,
    PeerStatus,
)
from cartographer.query import (
    parse_address,
    parse_int,
    parse_peers_query,
    parse_query,
    resolve_address,
    split_host_port,
)
from cartographer.router import BadRequest, ErrorKind, MethodNotAllowed, classify
from cartographer.selector import effective_service_mask, select_peers, wants_verified_getutxo

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

GREEN = "\033[92m"
RED = "\033[91m"
BOLD = "\033[1m"
RESET = "\033[0m"

results: list[tuple[str, bool, str]] = []


def report(name: str, passed: bool, detail: str = "") -> None:
    mark = f"{GREEN}✓{RESET}" if passed else f"{RED}✗{RESET}"
    print(f"  {mark} {name}")
    if detail and not passed:
        print(f"      {detail}")
    results.append((name, passed, detail))
    assert passed, f"{name}: {detail}"


def bad_request(fn, *args) -> bool:
    try:
        fn(*args)
    except BadRequest:
        return True
    return False


class ListCrawler:
    """Minimal stand-in exposing only get_some_peers."""

    def __init__(self, peers):
        self.peers = peers
        self.masks = []

    def get_some_peers(self, count, service_mask):
        self.masks.append(service_mask)
        return self.peers[:count]


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


async def test_parse_query() -> None:
    """Split on '&', then on the first '='; trim; decode."""
    report("missing query -> empty", parse_query(None) == {} and parse_query("") == {})
    report("basic pairs", parse_query("a=1&b=2") == {"a": "1", "b": "2"})
    report("split on first '=' only", parse_query("a=b=c") == {"a": "b=c"})
    report("flag without value", parse_query("nocache") == {"nocache": ""})
    report("whitespace trimmed", parse_query(" a = 1 & b=2 ") == {"a": "1", "b": "2"})
    report("empty segments skipped", parse_query("a=1&&b=2&") == {"a": "1", "b": "2"})
    report("percent-escapes decoded", parse_query("net=te%73t") == {"net": "test"})
    report("last duplicate wins", parse_query("a=1&a=2") == {"a": "2"})


async def test_parse_peers_query() -> None:
    """srvmask masked to 24 bits, getutxo literal, nocache presence."""
    report("defaults", parse_peers_query({}) == PeersQuery())
    report("srvmask masked", parse_peers_query({"srvmask": "536870911"}).service_mask == 0xFFFFFF)
    report("hex srvmask accepted", parse_peers_query({"srvmask": "0x1FFFFFFF"}).service_mask == 0xFFFFFF)
    report("negative srvmask masked", parse_peers_query({"srvmask": "-1"}).service_mask == 0xFFFFFF)
    report("getutxo=true", parse_peers_query({"getutxo": "true"}).get_utxo)
    report("getutxo=TRUE is false", not parse_peers_query({"getutxo": "TRUE"}).get_utxo)
    report("getutxo=1 is false", not parse_peers_query({"getutxo": "1"}).get_utxo)
    report("nocache flag", parse_peers_query({"nocache": ""}).no_cache)
    report("malformed srvmask -> BadRequest", bad_request(parse_peers_query, {"srvmask": "abc"}))
    report("empty srvmask -> BadRequest", bad_request(parse_peers_query, {"srvmask": ""}))
    report("parse_int decimal and hex", parse_int("42") == 42 and parse_int("0x2A") == 42)
    report("non-ASCII digits in srvmask -> BadRequest",
           bad_request(parse_peers_query, {"srvmask": "\u0663"}))
    report("full-width digits -> BadRequest", bad_request(parse_int, "\uff14\uff12"))


async def test_addresses() -> None:
    """host, host:port, [v6], [v6]:port, bare v6."""
    report("host only uses default port",
           parse_address("1.2.3.4", 8333) == PeerAddress("1.2.3.4", 8333))
    report("host:port", parse_address("1.2.3.4:18333", 8333) == PeerAddress("1.2.3.4", 18333))
    report("bare IPv6", parse_address("2001:DB8::1", 8333) == PeerAddress("2001:db8::1", 8333))
    report("bracketed IPv6 with port",
           parse_address("[2001:db8::1]:9", 8333) == PeerAddress("2001:db8::1", 9))
    report("bracketed IPv6 without port",
           parse_address("[::1]", 8333) == PeerAddress("::1", 8333))
    report("IPv6 renders bracketed", str(PeerAddress("::1", 8333)) == "[::1]:8333")
    report("hostname split", split_host_port("seed.example:8333", 1) == ("seed.example", 8333))

    for text in ["", "   ", ":8333", "1.2.3.4:", "1.2.3.4:0", "1.2.3.4:65536",
                 "1.2.3.4:-1", "1.2.3.4:\u00b2", "1.2.3.4:\u0663", "[::1]:\uff19",
                 "[::1", "[::1]8333", "[]:1", "seed.example"]:
        report(f"{text!r} rejected", bad_request(parse_address, text, 8333))


async def test_resolve_address() -> None:
    """IP literals skip DNS; obviously bad hosts fail before it."""
    resolved = await resolve_address("10.0.0.1:1234", 8333)
    report("literal passes through", resolved == PeerAddress("10.0.0.1", 1234))
    try:
        await resolve_address("bad host/name", 8333)
        rejected = False
    except BadRequest:
        rejected = True
    report("host with illegal characters rejected", rejected)


async def test_error_classification() -> None:
    report("BadRequest -> 400", classify(BadRequest()) == ErrorKind.BAD_REQUEST == 400)
    report("MethodNotAllowed -> 405", classify(MethodNotAllowed()) == ErrorKind.METHOD_NOT_ALLOWED)
    report("anything else -> 500", classify(KeyError("x")) == ErrorKind.INTERNAL_FAILURE)


async def test_selection() -> None:
    """The getutxo filter needs getutxo=true and both low mask bits."""
    verified = PeerRecord(PeerAddress("10.0.0.1", 8333), service_bits=3,
                          status=PeerStatus.OK, getutxo_verified=True)
    unverified = PeerRecord(PeerAddress("10.0.0.2", 8333), service_bits=3,
                            status=PeerStatus.OK, getutxo_verified=False)
    not_advertised = PeerRecord(PeerAddress("10.0.0.3", 8333), service_bits=1,
                                status=PeerStatus.OK, getutxo_verified=True)
    peers = [(r.address, r) for r in (verified, unverified, not_advertised)]

    report("supports_getutxo needs the bit and the probe",
           verified.supports_getutxo and not unverified.supports_getutxo
           and not not_advertised.supports_getutxo)

    crawler = ListCrawler(peers)
    strict = select_peers(crawler, PeersQuery(service_mask=3, get_utxo=True))
    report("strict filter keeps verified only", [a.host for a, _ in strict] == ["10.0.0.1"])
    loose = select_peers(crawler, PeersQuery(service_mask=1, get_utxo=True))
    report("mask without bit 1 does not filter", len(loose) == 3)
    unasked = select_peers(crawler, PeersQuery(service_mask=3))
    report("getutxo=false does not filter", len(unasked) == 3)
    report("masks passed through", crawler.masks == [3, 1, 3], str(crawler.masks))

    report("wildcard when no mask", effective_service_mask(PeersQuery()) == SERVICES_WILDCARD)
    report("no filter without mask", not wants_verified_getutxo(PeersQuery(get_utxo=True)))
    report("count respected", len(select_peers(crawler, PeersQuery(), count=2)) == 2)


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

async def main() -> None:
    print(f"\n{BOLD}Cartographer Query Tests{RESET}\n")

    tests = [
        ("1. Query strings", test_parse_query),
        ("2. Peers parameters", test_parse_peers_query),
        ("3. Addresses", test_addresses),
        ("4. Address resolution", test_resolve_address),
        ("5. Error classification", test_error_classification),
        ("6. Peer selection", test_selection),
    ]

    for label, test_fn in tests:
        print(f"\n{BOLD}{label}{RESET}")
        try:
            await test_fn()
        except AssertionError:
            pass
        except Exception as e:
            print(f"  {RED}✗{RESET} {label}: EXCEPTION: {e}")
            results.append((label, False, f"EXCEPTION: {e}"))

    passed = sum(1 for _, ok, _ in results if ok)
    total = len(results)
    print(f"\n{'─' * 40}")
    if passed == total:
        print(f"{GREEN}{BOLD}All {total} checks passed.{RESET}")
    else:
        failed = total - passed
        print(f"{RED}{BOLD}{failed}/{total} checks failed.{RESET}")

    sys.exit(0 if passed == total else 1)


if __name__ == "__main__":
    asyncio.run(main())
