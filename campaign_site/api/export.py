"""Export endpoints for participant CSV and lesson PDF/markdown."""

import io
import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from campaign_site.models.lesson import LessonExportRequest
from campaign_site.services import ActivityService, BrevoError, ParticipantProcessor
from campaign_site.services.lesson_pdf import export_filename, render_lesson_pdf
from .auth import verify_admin_token
from .lessons import get_lesson_storage

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["export"])


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


def _pdf_response(markdown: str) -> StreamingResponse:
    try:
        pdf = render_lesson_pdf(markdown)
    except Exception as e:
        logger.error(f"PDF generation failed: {e}")
        raise HTTPException(status_code=500, detail="Kunde inte skapa PDF. Försök igen.")

    return StreamingResponse(
        io.BytesIO(pdf),
        media_type="application/pdf",
        headers=_attachment(export_filename("pdf", date.today())),
    )


def _markdown_response(markdown: str) -> StreamingResponse:
    return StreamingResponse(
        iter([markdown]),
        media_type="text/markdown; charset=utf-8",
        headers=_attachment(export_filename("md", date.today())),
    )


@router.get("/admin/{token}/activities/{activity_id}/export", dependencies=[Depends(verify_admin_token)])
async def export_participants(request: Request, activity_id: str):
    """
    Export all participants of an activity to CSV.

    Returns:
        CSV file named after the activity
    """
    activity_service: ActivityService = request.app.state.activity_service
    activity = await run_in_threadpool(activity_service.get, activity_id)
    if activity is None:
        raise HTTPException(status_code=404, detail="Aktivitet hittades inte")

    try:
        participants = await activity_service.all_participants(activity)
    except (BrevoError, ValueError) as e:
        logger.error(f"Error exporting participants: {e}")
        raise HTTPException(status_code=500, detail="Kunde inte hämta deltagare från Brevo")

    csv_content = ParticipantProcessor.to_csv(participants)
    filename = ParticipantProcessor.export_filename(activity.title)

    logger.info(f"Exported {len(participants)} participants for activity {activity_id}")

    return StreamingResponse(
        iter([csv_content]),
        media_type="text/csv; charset=utf-8",
        headers=_attachment(filename),
    )


@router.post("/lessons/export/pdf")
async def export_lesson_pdf(payload: LessonExportRequest):
    if not payload.markdown.strip():
        raise HTTPException(status_code=400, detail="Lektionsplan saknas")
    return _pdf_response(payload.markdown)


@router.post("/lessons/export/markdown")
async def export_lesson_markdown(payload: LessonExportRequest):
    if not payload.markdown.strip():
        raise HTTPException(status_code=400, detail="Lektionsplan saknas")
    return _markdown_response(payload.markdown)


@router.get("/lessons/{lesson_id}/pdf")
async def export_stored_lesson_pdf(request: Request, lesson_id: str):
    _, storage = get_lesson_storage(request)
    lesson = storage.get(lesson_id)
    if lesson is None:
        raise HTTPException(status_code=404, detail="Lektionen hittades inte")
    return _pdf_response(lesson.markdown)


@router.get("/lessons/{lesson_id}/markdown")
async def export_stored_lesson_markdown(request: Request, lesson_id: str):
    _, storage = get_lesson_storage(request)
    lesson = storage.get(lesson_id)
    if lesson is None:
        raise HTTPException(status_code=404, detail="Lektionen hittades inte")
    return _markdown_response(lesson.markdown)
