"""Admin endpoints, guarded by the secret token in the path."""

import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from campaign_site.models.activity import ActivityCreate
from campaign_site.services import ActivityService, BrevoError, SignatureService
from .auth import verify_admin_token

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/admin/{token}",
    tags=["admin"],
    dependencies=[Depends(verify_admin_token)],
)


@router.get("/activities")
def list_all_activities(request: Request):
    activity_service: ActivityService = request.app.state.activity_service
    return {"activities": [a.model_dump(by_alias=True) for a in activity_service.list_all()]}


@router.post("/activities", status_code=201)
async def create_activity(request: Request, payload: ActivityCreate):
    """
    Create an activity.

    A Brevo list named "<title> - <date>" is created in the "Aktiviteter"
    folder to collect registrations.
    """
    if not payload.title or not payload.date or not payload.time:
        raise HTTPException(status_code=400, detail="Titel, datum och tid krävs")

    activity_service: ActivityService = request.app.state.activity_service
    try:
        activity = await activity_service.create(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BrevoError as e:
        logger.error(f"Error creating activity: {e}")
        raise HTTPException(status_code=500, detail=f"Kunde inte skapa Brevo-lista: {e.body}")

    return {"success": True, "activity": activity.model_dump(by_alias=True)}


@router.get("/activities/{activity_id}/participants")
async def list_participants(
    request: Request,
    activity_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    """Get one page of participants for an activity."""
    activity_service: ActivityService = request.app.state.activity_service
    activity = await run_in_threadpool(activity_service.get, activity_id)
    if activity is None:
        raise HTTPException(status_code=404, detail="Aktivitet hittades inte")

    try:
        page = await activity_service.participants(activity, limit=limit, offset=offset)
    except (BrevoError, ValueError) as e:
        logger.error(f"Error fetching participants: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    page["participants"] = [p.model_dump(by_alias=True) for p in page["participants"]]
    return page


@router.get("/petitions")
def list_petitions(request: Request):
    signature_service: SignatureService = request.app.state.signature_service
    result = signature_service.get_all_petitions()
    return {
        "petitions": {pid: p.model_dump(by_alias=True) for pid, p in result["petitions"].items()},
        "lastSyncedAt": result["lastSyncedAt"],
    }
