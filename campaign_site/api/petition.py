"""Petition signing and signature counter endpoints."""

import logging
from datetime import datetime, timezone
from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from campaign_site.models.petition import PetitionSignRequest, UpdateContactRequest
from campaign_site.services import BrevoError, BrevoService, SignatureService, format_swedish_phone
from campaign_site.services.brevo import is_valid_email
from campaign_site.services.database import DEFAULT_PETITION_ID, DEFAULT_PETITION_LIST_ID
from campaign_site.services.rate_limit import PETITION_LIMIT, limiter

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["petition"])

# Petitions that can be signed, by id -> Brevo list
PETITIONS = {
    DEFAULT_PETITION_ID: DEFAULT_PETITION_LIST_ID,
}

GENERIC_ERROR = "Något gick fel. Försök igen."


async def sync_signature_to_brevo(brevo: BrevoService, payload: PetitionSignRequest, list_id: int):
    """Upsert the signer in Brevo; failures are logged and never reach the signer."""
    attributes = {
        "FIRSTNAME": payload.first_name,
        "LASTNAME": payload.last_name,
        "HAS_SIGNED_PETITION": True,
        "PETITION_SIGNED_DATE": datetime.now(timezone.utc).date().isoformat(),
        "SOURCE": "hemsida",
    }
    try:
        await brevo.upsert_contact(payload.email, attributes, list_ids=[list_id])
    except (BrevoError, ValueError) as e:
        logger.error(f"Brevo sync failed for petition signature: {e}")


@router.post("/petition/sign")
@limiter.limit(PETITION_LIMIT)
async def sign_petition(request: Request, payload: PetitionSignRequest, background_tasks: BackgroundTasks):
    """
    Sign a petition.

    The signature is stored locally first; the CRM contact is created or
    updated afterwards in the background.

    Returns:
        Success message with the new count and the display name shown in the ticker
    """
    if not payload.first_name or not payload.last_name or not payload.email:
        raise HTTPException(status_code=400, detail="Alla fält måste fyllas i")

    if not is_valid_email(payload.email):
        raise HTTPException(status_code=400, detail="Ogiltig e-postadress")

    petition_id = payload.petition_id or DEFAULT_PETITION_ID
    list_id = PETITIONS.get(petition_id)
    if list_id is None:
        raise HTTPException(status_code=400, detail="Ogiltigt upprop")

    signature_service: SignatureService = request.app.state.signature_service
    try:
        result = await run_in_threadpool(signature_service.add_signature, petition_id, payload.first_name)
    except Exception as e:
        logger.error(f"Error signing petition: {e}")
        raise HTTPException(status_code=500, detail=GENERIC_ERROR)

    background_tasks.add_task(sync_signature_to_brevo, request.app.state.brevo, payload, list_id)

    logger.info(f"Petition {petition_id} signed, count now {result['newCount']}")
    return {"success": True, "message": "Tack för din underskrift!", **result}


@router.post("/petition/update-contact")
async def update_contact(request: Request, payload: UpdateContactRequest):
    """
    Add phone and postal code to a signer's contact.

    If Brevo rejects the phone number as already used by another contact,
    the postal code is saved on its own and a warning is returned.
    """
    if not payload.email:
        raise HTTPException(status_code=400, detail="E-post saknas")

    attributes = {}
    if payload.phone:
        attributes["SMS"] = format_swedish_phone(payload.phone)
    if payload.postnummer:
        attributes["POSTALCODE"] = "".join(payload.postnummer.split())

    brevo: BrevoService = request.app.state.brevo
    try:
        await brevo.update_contact(payload.email, attributes)
    except BrevoError as e:
        sms_taken = "duplicate_parameter" in e.body and "SMS" in e.body
        if not (sms_taken and "POSTALCODE" in attributes):
            logger.error(f"Error updating contact: {e}")
            raise HTTPException(status_code=500, detail=GENERIC_ERROR)

        logger.info("SMS duplicate, trying without SMS")
        try:
            await brevo.update_contact(payload.email, {"POSTALCODE": attributes["POSTALCODE"]})
        except BrevoError as retry_error:
            logger.error(f"Retry without SMS also failed: {retry_error}")
            raise HTTPException(status_code=500, detail=GENERIC_ERROR)

        return {
            "success": True,
            "message": "Postnummer sparat! (Mobilnumret är redan registrerat)",
            "warning": "phone_duplicate",
        }
    except ValueError as e:
        logger.error(f"Error updating contact: {e}")
        raise HTTPException(status_code=500, detail=GENERIC_ERROR)

    return {"success": True, "message": "Uppgifter uppdaterade!"}


@router.get("/signatures/count")
async def signature_count(request: Request, petition_id: str = Query(DEFAULT_PETITION_ID, alias="petitionId")):
    """Current signature count; falls back to zero if the database is unavailable."""
    signature_service: SignatureService = request.app.state.signature_service
    try:
        result = await signature_service.get_count(petition_id)
    except Exception as e:
        logger.error(f"Error fetching signature count: {e}")
        result = {"count": 0, "goal": 10000}

    return {**result, "updatedAt": datetime.now(timezone.utc).isoformat()}


@router.get("/signatures/recent")
async def recent_signers(
    request: Request,
    petition_id: str = Query(DEFAULT_PETITION_ID, alias="petitionId"),
    limit: int = Query(5),
):
    limit = min(max(1, limit), 10)
    signature_service: SignatureService = request.app.state.signature_service
    try:
        signers = await signature_service.get_recent_signers(petition_id, limit)
    except Exception as e:
        logger.error(f"Error fetching recent signers: {e}")
        signers = []

    return {"signers": [s.model_dump(by_alias=True) for s in signers], "petitionId": petition_id}
