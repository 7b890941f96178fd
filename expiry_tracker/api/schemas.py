"""
Response models for the tracker API. Fields are snake_case in Python and
camelCase on the wire.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExpiringRecordResponse(CamelModel):
    name: str
    expiration_ms: int
    grace_period_end_ms: int
    days_left: int


class ExpiringNamesResponse(CamelModel):
    records: List[ExpiringRecordResponse]
    last_scan_completed_at: Optional[int] = None
    scan_progress_percent: int
    total_tracked: int


class HealthResponse(CamelModel):
    status: str
    version: str
    db_health: bool
    phase: str
    last_scan_completed_at: Optional[int] = None


class DebugScanResponse(CamelModel):
    log: List[str]
