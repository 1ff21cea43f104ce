"""
Configuration constants and environment variables.

This is a leaf module with no internal dependencies.
"""

import os

# =============================================================================
# HTTP Server
# =============================================================================

HTTP_HOST = os.environ.get("CARTOGRAPHER_HOST", "127.0.0.1")
HTTP_PORT = int(os.environ.get("CARTOGRAPHER_PORT", "8080"))
BASE_PATH = os.environ.get("CARTOGRAPHER_BASE_PATH", "").rstrip("/")

# =============================================================================
# Identity
# =============================================================================

KEY_FILE = os.environ.get("CARTOGRAPHER_KEY_FILE", "http-privkey.txt")

# =============================================================================
# Network
# =============================================================================

NET_NAME = os.environ.get("CARTOGRAPHER_NET", "main")
NETWORK_PORT = int(os.environ.get("CARTOGRAPHER_NETWORK_PORT", "8333"))
_seed_env = os.environ.get("CARTOGRAPHER_SEED_PEERS", "").strip()
SEED_PEERS: list[str] = [s.strip() for s in _seed_env.split(",") if s.strip()] if _seed_env else []
CRAWLER_WORKERS = int(os.environ.get("CARTOGRAPHER_WORKERS", "4"))

# =============================================================================
# Seed Protocol
# =============================================================================

MAX_PEERS_PER_QUERY = 30
SERVICE_MASK_BITS = 0xFFFFFF     # services are 24 bits wide on the wire
GETUTXO_MASK = 3                 # NODE_NETWORK | NODE_GETUTXO
CACHE_MAX_AGE = 90               # seconds
CACHE_CONTROL = f"no-transform,public,max-age={CACHE_MAX_AGE}"
TEXT_SUFFIX = ".txt"
MAX_SEED_AGE = 86400             # clients reject snapshots older than a day
