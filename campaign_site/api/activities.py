"""Public activity listing and registration endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from campaign_site.models.activity import ActivityRegistration
from campaign_site.services import ActivityService, BrevoError
from campaign_site.services.rate_limit import ACTIVITY_REGISTRATION_LIMIT, limiter

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/activities", tags=["activities"])


@router.get("")
async def list_activities(request: Request):
    """
    Get upcoming activities.

    Returns:
        Activities dated today or later, soonest first
    """
    activity_service: ActivityService = request.app.state.activity_service
    try:
        activities = await run_in_threadpool(activity_service.list_upcoming)
    except Exception as e:
        logger.error(f"Error listing activities: {e}")
        activities = []

    return {"activities": [a.model_dump(by_alias=True) for a in activities]}


@router.post("/{activity_id}/register")
@limiter.limit(ACTIVITY_REGISTRATION_LIMIT)
async def register_for_activity(request: Request, activity_id: str, payload: ActivityRegistration):
    """Register a person for an activity by adding them to its Brevo list."""
    if not payload.first_name or not payload.last_name or not payload.email:
        raise HTTPException(status_code=400, detail="Förnamn, efternamn och e-post krävs")

    activity_service: ActivityService = request.app.state.activity_service
    activity = await run_in_threadpool(activity_service.get, activity_id)
    if activity is None:
        raise HTTPException(status_code=404, detail="Aktiviteten hittades inte")

    try:
        await activity_service.register(activity, payload)
    except (BrevoError, ValueError) as e:
        logger.error(f"Error registering for activity {activity_id}: {e}")
        raise HTTPException(status_code=500, detail="Kunde inte registrera anmälan")

    logger.info(f"Registered participant for activity {activity_id}")
    return {"success": True, "message": "Du är nu anmäld!", "activity": activity.title}
