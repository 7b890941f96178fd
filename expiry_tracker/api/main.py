"""
Tracker HTTP API - read-only view of expiring records plus health and a
debug-only probe of the remote table and store.
"""

from fastapi import FastAPI, HTTPException, Depends

from .schemas import (
    DebugScanResponse,
    ExpiringNamesResponse,
    ExpiringRecordResponse,
    HealthResponse,
)
from ..core import config as config_module
from ..core.coordinator import now_ms
from ..core.db import health_check
from ..core.diagnostics import run_probe
from ..core.kv_store import IKeyValueStore, SQLiteKVStore, StoreError
from ..core.query import build_expiring_view
from ..core.remote_table import RemoteTableClient
from ..core.snapshot import SnapshotStore
from ..util.logging import logger

app = FastAPI(
    title="Expiry Tracker API",
    version=config_module.VERSION,
    description="Read-only view of registry records nearing the end of their grace period",
    docs_url="/docs" if config_module.debug_enabled() else None,
    redoc_url="/redoc" if config_module.debug_enabled() else None
)


def get_store() -> IKeyValueStore:
    return SQLiteKVStore(config_module.DB_PATH)


def get_client():
    client = RemoteTableClient()
    try:
        yield client
    finally:
        client.close()


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint(store: IKeyValueStore = Depends(get_store)):
    """Check system health."""
    db_health = health_check(store.db_path) if isinstance(store, SQLiteKVStore) else True
    try:
        state = SnapshotStore(store).load_state()
    except StoreError as e:
        logger.error(f"Health check could not read tracker state: {e}")
        return HealthResponse(status="unhealthy", version=config_module.VERSION,
                              db_health=False, phase="unknown")

    return HealthResponse(
        status="healthy" if db_health else "unhealthy",
        version=config_module.VERSION,
        db_health=db_health,
        phase=state.phase.value,
        last_scan_completed_at=state.last_scan_completed_at,
    )


@app.get("/expiring-names", response_model=ExpiringNamesResponse)
def expiring_names_endpoint(store: IKeyValueStore = Depends(get_store)):
    """Records whose grace period ends inside the display window, soonest first."""
    try:
        view = build_expiring_view(store, now_ms())
    except StoreError as e:
        logger.error(f"Expiring view unavailable: {e}")
        raise HTTPException(status_code=500, detail="Tracker store unavailable")

    return ExpiringNamesResponse(
        records=[
            ExpiringRecordResponse(
                name=entry.name,
                expiration_ms=entry.expiration_ms,
                grace_period_end_ms=entry.grace_period_end_ms,
                days_left=entry.days_left,
            )
            for entry in view.records
        ],
        last_scan_completed_at=view.last_scan_completed_at,
        scan_progress_percent=view.scan_progress_percent,
        total_tracked=view.total_tracked,
    )


@app.get("/debug/scan", response_model=DebugScanResponse)
def debug_scan_endpoint(store: IKeyValueStore = Depends(get_store),
                        client: RemoteTableClient = Depends(get_client)):
    """Probe the first remote page and a store round trip."""
    if not config_module.debug_enabled():
        raise HTTPException(status_code=403, detail="Debug probe requires debug mode")

    return DebugScanResponse(**run_probe(store, client))
