"""
Per-application seed state — identity, crawler and network name.

Set once by create_app() on the Starlette app and read-only afterwards;
handlers reach it through the request.

Depends on: crawler, identity
"""

from dataclasses import dataclass

from starlette.requests import Request

from cartographer.crawler import Crawler
from cartographer.identity import Identity


@dataclass(frozen=True)
class SeedState:
    identity: Identity
    crawler: Crawler
    net_name: str


def get_seed_state(request: Request) -> SeedState:
    return request.app.state.seed


def set_seed_state(app, state: SeedState) -> None:
    app.state.seed = state
