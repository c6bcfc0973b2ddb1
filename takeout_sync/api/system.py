"""System status and export API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from takeout_sync import __version__
from takeout_sync.config import settings
from takeout_sync.database import get_session
from takeout_sync.schemas.photo import (
    DeletionCandidate,
    DeletionCandidatesResponse,
    SystemStatusResponse,
)
from takeout_sync.services.catalog import photo_stats
from takeout_sync.services.report_service import date_summary, deletion_candidates, photo_row

router = APIRouter(prefix="/system", tags=["system"])
export_router = APIRouter(prefix="/export", tags=["export"])


@router.get("/status", response_model=SystemStatusResponse)
def system_status(session: Session = Depends(get_session)):
    """Catalog totals and configured accounts."""
    return SystemStatusResponse(
        version=__version__,
        db_path=str(settings.db_path),
        accounts=[a.name for a in settings.accounts()],
        **photo_stats(session),
    )


@export_router.get("/deletion-candidates", response_model=DeletionCandidatesResponse)
def get_deletion_candidates(
    account: Optional[str] = None,
    session: Session = Depends(get_session),
):
    """Archive photos already on the remote store, safe to remove at the source."""
    photos = deletion_candidates(session, account_name=account)
    summary = date_summary(photos)
    return DeletionCandidatesResponse(
        photos=[DeletionCandidate(**photo_row(p)) for p in photos],
        total_count=summary["total"],
        oldest=summary["oldest"],
        newest=summary["newest"],
        by_month=summary["by_month"],
    )
