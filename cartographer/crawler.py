"""
Crawler interface — what the HTTP front-end needs from the peer discovery
engine, plus an in-memory address book implementing it.

The crawler owns all peer state and its own locking. The HTTP layer only
reads snapshots and submits fire-and-forget work to the crawler's executor.

Depends on: config, models
"""

import sys
import threading
import time
import traceback
from abc import ABC, abstractmethod
from collections import deque
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, Optional

from cartographer.config import CRAWLER_WORKERS, NETWORK_PORT
from cartographer.models import (
    SERVICES_WILDCARD,
    PeerAddress,
    PeerRecord,
    PeerStatus,
    PendingRecrawl,
)


class Crawler(ABC):
    """Abstract peer discovery engine consumed by the seed front-end.

    Implementations must be safe to query from many threads while their own
    crawl loop mutates state.
    """

    @property
    @abstractmethod
    def default_port(self) -> int:
        """Port assumed for addresses given without one."""
        ...

    @property
    @abstractmethod
    def executor(self) -> Executor:
        """Worker pool that runs connection attempts."""
        ...

    @abstractmethod
    def get_some_peers(self, count: int, service_mask: int) -> list[tuple[PeerAddress, PeerRecord]]:
        """Return up to count reachable peers, best first.

        A peer matches when service_bits & service_mask == service_mask.
        service_mask == SERVICES_WILDCARD (-1) disables service filtering.
        Results must be deterministic for unchanged state.
        """
        ...

    @abstractmethod
    def address_lookup(self, address: PeerAddress) -> Optional[PeerRecord]:
        ...

    @abstractmethod
    def snapshot_recrawl_queue(self) -> list:
        """Copy of the pending recrawl queue at call time."""
        ...

    @abstractmethod
    def attempt_connect(self, address: PeerAddress) -> None:
        """Probe address now. Runs on the executor; may block."""
        ...

    def close(self) -> None:
        """Release resources owned by the crawler. Called on app shutdown."""

    def submit_connect(self, address: PeerAddress) -> None:
        """Queue attempt_connect on the executor without waiting for it."""
        future = self.executor.submit(self.attempt_connect, address)
        future.add_done_callback(lambda f: _log_connect_failure(address, f))


def _log_connect_failure(address: PeerAddress, future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        print(f"[Cartographer] Connection attempt to {address} failed:", file=sys.stderr)
        traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)


# =============================================================================
# In-memory address book
# =============================================================================

# connector(address) -> service bits if the peer answered, None if it did not
Connector = Callable[[PeerAddress], Optional[int]]


class AddressBook(Crawler):
    """Lock-protected in-memory Crawler.

    Records keep insertion order, so peer selection is stable across queries.
    Without a connector, attempt_connect only records the attempt and queues
    the address for the next recrawl pass.
    """

    def __init__(self, default_port: int = NETWORK_PORT, workers: int = CRAWLER_WORKERS,
                 connector: Optional[Connector] = None) -> None:
        self._default_port = default_port
        self._connector = connector
        self._lock = threading.Lock()
        self._records: dict[PeerAddress, PeerRecord] = {}
        self._recrawls: deque[PendingRecrawl] = deque()
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cartographer-crawl")

    @property
    def default_port(self) -> int:
        return self._default_port

    @property
    def executor(self) -> Executor:
        return self._executor

    # -- maintenance ----------------------------------------------------------

    def add(self, address: PeerAddress, service_bits: int = 0,
            status: PeerStatus = PeerStatus.UNTESTED,
            getutxo_verified: bool = False) -> PeerRecord:
        """Insert or replace the record for address."""
        record = PeerRecord(
            address=address,
            service_bits=service_bits,
            status=status,
            getutxo_verified=getutxo_verified,
        )
        with self._lock:
            self._records[address] = record
        return record

    def record_result(self, address: PeerAddress, status: PeerStatus,
                      service_bits: Optional[int] = None,
                      getutxo_verified: Optional[bool] = None,
                      when: Optional[int] = None) -> PeerRecord:
        """Fold the outcome of a connection attempt into the record for address."""
        now = when if when is not None else int(time.time())
        with self._lock:
            record = self._records.get(address) or PeerRecord(address=address)
            changes = {"status": status, "last_attempt": now}
            if status == PeerStatus.OK:
                changes["last_success"] = now
            if service_bits is not None:
                changes["service_bits"] = service_bits
            if getutxo_verified is not None:
                changes["getutxo_verified"] = getutxo_verified
            record = replace(record, **changes)
            self._records[address] = record
        return record

    def schedule_recrawl(self, address: PeerAddress, due_at: Optional[int] = None) -> None:
        due = due_at if due_at is not None else int(time.time())
        with self._lock:
            self._recrawls = deque(p for p in self._recrawls if p.address != address)
            self._recrawls.append(PendingRecrawl(address=address, due_at=due))

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    # -- Crawler --------------------------------------------------------------

    def get_some_peers(self, count: int, service_mask: int) -> list[tuple[PeerAddress, PeerRecord]]:
        selected: list[tuple[PeerAddress, PeerRecord]] = []
        if count <= 0:
            return selected
        with self._lock:
            for address, record in self._records.items():
                if record.status != PeerStatus.OK:
                    continue
                if service_mask != SERVICES_WILDCARD and record.service_bits & service_mask != service_mask:
                    continue
                selected.append((address, record))
                if len(selected) >= count:
                    break
        return selected

    def address_lookup(self, address: PeerAddress) -> Optional[PeerRecord]:
        with self._lock:
            return self._records.get(address)

    def snapshot_recrawl_queue(self) -> list[PendingRecrawl]:
        with self._lock:
            return list(self._recrawls)

    def attempt_connect(self, address: PeerAddress) -> None:
        if self._connector is None:
            self.schedule_recrawl(address)
            return
        service_bits = self._connector(address)
        if service_bits is None:
            self.record_result(address, PeerStatus.UNREACHABLE)
        else:
            self.record_result(address, PeerStatus.OK, service_bits=service_bits)
