"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    MonitorResponse,
    RecordList,
    RecordPayload,
    ReplicationResponse,
)
from datastore.timeseries import TimeSeriesTable, build_default_table
from services.errors import (
    CheckpointPersistFailed,
    ConfigurationError,
    NotifyFailed,
    SourceUnavailable,
    StoreWriteFailed,
)
from services.extractor import normalize_timestamp
from services.monitor import StalenessMonitor, build_default_monitor
from services.replicator import IncrementalReplicator, build_default_replicator

router = APIRouter()


def _configured(factory):
    try:
        return factory()
    except ConfigurationError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


def get_table() -> TimeSeriesTable:
    return _configured(build_default_table)


def get_replicator() -> IncrementalReplicator:
    return _configured(build_default_replicator)


def get_monitor() -> StalenessMonitor:
    return _configured(build_default_monitor)


@router.get(
    "/records/latest",
    response_model=RecordPayload,
    summary="Newest record in the time-series store.",
)
async def latest_record(table: TimeSeriesTable = Depends(get_table)) -> RecordPayload:
    record = table.latest()
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No records have been replicated yet.",
        )
    return RecordPayload.from_record(record)


@router.get(
    "/records",
    response_model=RecordList,
    summary="Records whose timestamp falls within an inclusive range.",
)
async def list_records(
    start: Optional[datetime] = Query(None, description="Inclusive lower bound."),
    end: Optional[datetime] = Query(None, description="Inclusive upper bound."),
    table: TimeSeriesTable = Depends(get_table),
) -> RecordList:
    start = normalize_timestamp(start) if start is not None else None
    end = normalize_timestamp(end) if end is not None else None
    if start is not None and end is not None and start > end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start must not be after end.",
        )
    records = [RecordPayload.from_record(record) for record in table.query(start, end)]
    return RecordList(count=len(records), records=records)


@router.post(
    "/replication/run",
    response_model=ReplicationResponse,
    summary="Replicate revisions committed since the last checkpoint.",
)
def run_replication(
    replicator: IncrementalReplicator = Depends(get_replicator),
) -> ReplicationResponse:
    try:
        written = replicator.run()
    except SourceUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except (StoreWriteFailed, CheckpointPersistFailed) as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    return ReplicationResponse(records_written=written)


@router.post(
    "/monitor/check",
    response_model=MonitorResponse,
    summary="Check the latest record's age and alert if it is stale.",
)
def run_monitor_check(
    monitor: StalenessMonitor = Depends(get_monitor),
) -> MonitorResponse:
    try:
        result = monitor.check()
    except SourceUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except NotifyFailed as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc
    return MonitorResponse(status=result)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
