"""Campaign action endpoints: contacting politicians, volunteering, ordering material."""

import logging
from datetime import datetime, timezone
from fastapi import APIRouter, HTTPException, Request
from campaign_site.config import Settings
from campaign_site.models.campaign import ContactPoliticianRequest, MaterialOrderRequest, VolunteerSignupRequest
from campaign_site.services import BrevoError, BrevoService, format_swedish_phone
from campaign_site.services.brevo import is_valid_email
from campaign_site.services.rate_limit import (
    CONTACT_POLITICIAN_LIMIT,
    MATERIAL_LIMIT,
    VOLUNTEER_LIMIT,
    limiter,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["campaign"])

VOLUNTEER_LIST_ID = 7
MATERIAL_LIST_ID = 6

POLITICIAN_SUBJECT = "Fråga om marknadshyror"
REQUIRED_FIELDS_MESSAGE = "Alla obligatoriska fält måste fyllas i"
INVALID_EMAIL_MESSAGE = "Ogiltig e-postadress"
GENERIC_ERROR = "Något gick fel. Försök igen."


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


@router.post("/contact-politician")
@limiter.limit(CONTACT_POLITICIAN_LIMIT)
async def contact_politician(request: Request, payload: ContactPoliticianRequest):
    """
    Send a visitor's message to a politician and record the contact.

    The email goes out with the visitor as reply-to. Recording the visitor
    in Brevo afterwards is best effort: the message has already been sent.
    """
    if not payload.user_name or not payload.user_email or not payload.politician_email or not payload.message:
        raise HTTPException(status_code=400, detail=REQUIRED_FIELDS_MESSAGE)

    if not is_valid_email(payload.user_email) or not is_valid_email(payload.politician_email):
        raise HTTPException(status_code=400, detail=INVALID_EMAIL_MESSAGE)

    settings: Settings = request.app.state.settings
    brevo: BrevoService = request.app.state.brevo

    html_message = payload.message.replace("\n", "<br>")
    try:
        await brevo.send_transactional_email(
            sender={
                "name": f"{payload.user_name} via {settings.brevo_sender_name}",
                "email": settings.brevo_sender_email,
            },
            reply_to={"name": payload.user_name, "email": payload.user_email},
            to=[{"email": payload.politician_email, "name": payload.politician_name}],
            subject=POLITICIAN_SUBJECT,
            html_content=(
                '<div style="font-family: Arial, sans-serif; font-size: 16px; line-height: 1.6; color: #333;">'
                f"{html_message}</div>"
            ),
            text_content=payload.message,
            tags=["politiker-kontakt"],
        )
    except (BrevoError, ValueError) as e:
        logger.error(f"Error sending politician email: {e}")
        raise HTTPException(status_code=500, detail=GENERIC_ERROR)

    logger.info("Email sent successfully")

    name_parts = payload.user_name.strip().split(" ")
    attributes = {
        "FIRSTNAME": name_parts[0],
        "LASTNAME": " ".join(name_parts[1:]) or None,
        "HAS_CONTACTED_POLITICIAN": True,
        "LAST_POLITICIAN_CONTACT": _today(),
        "POSTALCODE": payload.postnummer or None,
        "MUNICIPALITY": payload.kommun or None,
    }
    try:
        await brevo.upsert_contact(payload.user_email, attributes)
    except BrevoError as e:
        logger.error(f"Contact update failed after sending email: {e}")

    return {"success": True, "message": "Mejlet har skickats!"}


@router.post("/volunteer/signup")
@limiter.limit(VOLUNTEER_LIMIT)
async def volunteer_signup(request: Request, payload: VolunteerSignupRequest):
    """Register a volunteer in the volunteer list."""
    required = [payload.first_name, payload.last_name, payload.email, payload.phone, payload.postal_code, payload.region]
    if not all(required):
        raise HTTPException(status_code=400, detail=REQUIRED_FIELDS_MESSAGE)

    if not is_valid_email(payload.email):
        raise HTTPException(status_code=400, detail=INVALID_EMAIL_MESSAGE)

    attributes = {
        "FIRSTNAME": payload.first_name,
        "LASTNAME": payload.last_name,
        "POSTALCODE": "".join(payload.postal_code.split()),
        "IS_VOLUNTEER": True,
        "VOLUNTEER_SIGNUP_DATE": _today(),
        "VOLUNTEER_REGION": payload.region,
        "WANTS_NEWSLETTER": payload.accept_contact,
        "SOURCE": "hemsida",
        "SMS": format_swedish_phone(payload.phone),
        "VOLUNTEER_INTERESTS": ",".join(payload.interests) or None,
        "VOLUNTEER_EXPERIENCE": payload.experience or None,
        "VOLUNTEER_AVAILABILITY": payload.availability or None,
    }

    brevo: BrevoService = request.app.state.brevo
    try:
        await brevo.upsert_contact(payload.email, attributes, list_ids=[VOLUNTEER_LIST_ID])
    except (BrevoError, ValueError) as e:
        logger.error(f"Error processing volunteer signup: {e}")
        raise HTTPException(status_code=500, detail=GENERIC_ERROR)

    return {"success": True, "message": "Tack för din anmälan!"}


@router.post("/material/order")
@limiter.limit(MATERIAL_LIMIT)
async def order_material(request: Request, payload: MaterialOrderRequest):
    """Record a material order on the contact and add it to the order list."""
    required = [
        payload.first_name,
        payload.last_name,
        payload.email,
        payload.address,
        payload.postal_code,
        payload.city,
        payload.quantity,
    ]
    if not all(required):
        raise HTTPException(status_code=400, detail=REQUIRED_FIELDS_MESSAGE)

    if not is_valid_email(payload.email):
        raise HTTPException(status_code=400, detail=INVALID_EMAIL_MESSAGE)

    attributes = {
        "FIRSTNAME": payload.first_name,
        "LASTNAME": payload.last_name,
        "SMS": payload.phone or None,
        "POSTALCODE": payload.postal_code,
        "CITY": payload.city,
        "ADDRESS": payload.address,
        "HAS_ORDERED_MATERIAL": True,
        "MATERIAL_ORDER_DATE": _today(),
        "MATERIAL_QUANTITY": payload.quantity,
        "MATERIAL_MESSAGE": payload.message or None,
        "SOURCE": "hemsida",
    }

    brevo: BrevoService = request.app.state.brevo
    try:
        await brevo.upsert_contact(payload.email, attributes, list_ids=[MATERIAL_LIST_ID])
    except (BrevoError, ValueError) as e:
        logger.error(f"Error processing material order: {e}")
        raise HTTPException(status_code=500, detail=GENERIC_ERROR)

    return {"success": True, "message": "Beställningen har tagits emot!"}
