"""
Tracker configuration - every tunable comes from the environment.
Core modules read these through the module at call time so tests can patch them.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

MS_PER_DAY = 86_400_000

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/tracker.db")

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Remote registry table
TRACKER_NETWORK = os.getenv("TRACKER_NETWORK", "mainnet")  # mainnet|testnet|devnet
GRAPHQL_URL_OVERRIDE = os.getenv("TRACKER_GRAPHQL_URL", "").strip()
RPC_URL_OVERRIDE = os.getenv("TRACKER_RPC_URL", "").strip()
REGISTRY_TABLE_ID = os.getenv(
    "TRACKER_REGISTRY_TABLE_ID",
    "0xe64cd9db9f829c6cc405d9790bd71567ae07259855f4fba6f02c84f52298c106",
)
DOMAIN_TYPE = os.getenv(
    "TRACKER_DOMAIN_TYPE",
    "0xd22b24490e0bae52676651b4f56660a5ff8022a2576e0089f79b3c88d44e08f0::domain::Domain",
)
REQUEST_TIMEOUT_SEC = float(os.getenv("TRACKER_REQUEST_TIMEOUT_SEC", "15"))

# Windows
GRACE_PERIOD_MS = int(os.getenv("TRACKER_GRACE_PERIOD_DAYS", "30")) * MS_PER_DAY
EXPIRING_WINDOW_MS = int(os.getenv("TRACKER_EXPIRING_WINDOW_DAYS", "7")) * MS_PER_DAY
DISPLAY_WINDOW_MS = int(os.getenv("TRACKER_DISPLAY_WINDOW_DAYS", "7")) * MS_PER_DAY
RESCAN_INTERVAL_MS = int(os.getenv("TRACKER_RESCAN_INTERVAL_SEC", "86400")) * 1000

# Per-invocation budgets
PAGES_PER_INVOCATION = int(os.getenv("TRACKER_PAGES_PER_INVOCATION", "500"))
PAGE_SIZE = int(os.getenv("TRACKER_PAGE_SIZE", "50"))
VERIFY_BATCH_SIZE = int(os.getenv("TRACKER_VERIFY_BATCH_SIZE", "50"))
MAX_VERIFICATIONS = int(os.getenv("TRACKER_MAX_VERIFICATIONS", "500"))

# Storage layout
LEASE_TTL_SEC = int(os.getenv("TRACKER_LEASE_TTL_SEC", "900"))
SNAPSHOT_BUCKET_MS = int(os.getenv("TRACKER_SNAPSHOT_BUCKET_SEC", "86400")) * 1000

VERSION = "1.0.0"

GRAPHQL_URLS = {
    "mainnet": "https://graphql.mainnet.sui.io/graphql",
    "testnet": "https://graphql.testnet.sui.io/graphql",
    "devnet": "https://graphql.devnet.sui.io/graphql",
}

RPC_URLS = {
    "mainnet": "https://fullnode.mainnet.sui.io:443",
    "testnet": "https://fullnode.testnet.sui.io:443",
    "devnet": "https://fullnode.devnet.sui.io:443",
}


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def get_graphql_url():
    """Paginated-query endpoint; an explicit override beats the network default."""
    if GRAPHQL_URL_OVERRIDE:
        return GRAPHQL_URL_OVERRIDE
    return GRAPHQL_URLS.get(TRACKER_NETWORK, GRAPHQL_URLS["mainnet"])


def get_rpc_url():
    """Point-lookup endpoint; an explicit override beats the network default."""
    if RPC_URL_OVERRIDE:
        return RPC_URL_OVERRIDE
    return RPC_URLS.get(TRACKER_NETWORK, RPC_URLS["mainnet"])


def validate_tracker_config():
    """Validate tracker configuration and return any issues."""
    issues = []

    if TRACKER_NETWORK not in GRAPHQL_URLS:
        issues.append(f"Invalid TRACKER_NETWORK: {TRACKER_NETWORK}")

    if GRACE_PERIOD_MS <= 0:
        issues.append("TRACKER_GRACE_PERIOD_DAYS must be >= 1")

    if EXPIRING_WINDOW_MS <= 0 or EXPIRING_WINDOW_MS > GRACE_PERIOD_MS:
        issues.append("TRACKER_EXPIRING_WINDOW_DAYS must be between 1 and the grace period")

    if DISPLAY_WINDOW_MS <= 0 or DISPLAY_WINDOW_MS > GRACE_PERIOD_MS:
        issues.append("TRACKER_DISPLAY_WINDOW_DAYS must be between 1 and the grace period")

    if RESCAN_INTERVAL_MS <= 0:
        issues.append("TRACKER_RESCAN_INTERVAL_SEC must be >= 1")

    if PAGES_PER_INVOCATION < 1:
        issues.append("TRACKER_PAGES_PER_INVOCATION must be >= 1")

    if PAGE_SIZE < 1:
        issues.append("TRACKER_PAGE_SIZE must be >= 1")

    if VERIFY_BATCH_SIZE < 1:
        issues.append("TRACKER_VERIFY_BATCH_SIZE must be >= 1")

    if VERIFY_BATCH_SIZE > MAX_VERIFICATIONS:
        issues.append("TRACKER_VERIFY_BATCH_SIZE must not exceed TRACKER_MAX_VERIFICATIONS")

    if LEASE_TTL_SEC < 1:
        issues.append("TRACKER_LEASE_TTL_SEC must be >= 1")

    if SNAPSHOT_BUCKET_MS <= 0:
        issues.append("TRACKER_SNAPSHOT_BUCKET_SEC must be >= 1")

    return issues
