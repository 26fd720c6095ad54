"""Internal endpoints called by cron jobs and deploy scripts."""

import logging
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from campaign_site.models.petition import BrevoSyncRequest
from campaign_site.services import BrevoService, Database, SignatureService
from campaign_site.services.database import DEFAULT_PETITION_ID, DEFAULT_PETITION_LIST_ID
from .auth import verify_internal_key

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/internal",
    tags=["internal"],
    dependencies=[Depends(verify_internal_key)],
)


@router.post("/init-db")
def init_db(request: Request):
    """Create the schema and seed the default petition."""
    db: Database = request.app.state.db

    try:
        db.initialize()
        seeded = db.seed_default_petition()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise HTTPException(status_code=500, detail="Database initialization failed")

    return {"success": True, "message": "Database initialized successfully", "seeded": seeded}


@router.post("/sync-brevo")
async def sync_brevo(request: Request, payload: Optional[BrevoSyncRequest] = None):
    """
    Pull a petition's signature count from its Brevo list.

    Args:
        payload: Optional petition id and list id; defaults to the main petition

    Returns:
        Dict with the synced petition id, count and timestamp
    """
    brevo: BrevoService = request.app.state.brevo
    signature_service: SignatureService = request.app.state.signature_service

    petition_id = (payload.petition_id if payload else None) or DEFAULT_PETITION_ID
    list_id = (payload.list_id if payload else None) or DEFAULT_PETITION_LIST_ID

    try:
        count = await brevo.get_list_subscriber_count(list_id)
        await run_in_threadpool(signature_service.update_count, petition_id, count, synced=True)
    except Exception as e:
        logger.error(f"Brevo sync failed for {petition_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to sync with Brevo")

    logger.info(f"Synced {petition_id}: {count} signatures")

    return {
        "success": True,
        "petitionId": petition_id,
        "count": count,
        "syncedAt": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/sync-all")
async def sync_all(request: Request):
    signature_service: SignatureService = request.app.state.signature_service
    result = await signature_service.sync_all_from_brevo()
    return {"success": not result["errors"], **result}
