"""Lesson-plan generation, curriculum metadata and lesson history endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import StreamingResponse
from campaign_site.models.lesson import SurveyData
from campaign_site.services import Curriculum, LessonGenerator, LessonStorage, SessionManager
from campaign_site.services.generator import sse_frame
from campaign_site.services.session import SESSION_COOKIE

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["lessons"])

SESSION_MAX_AGE = 3600


def get_lesson_storage(request: Request) -> tuple[str, LessonStorage]:
    """
    Resolve the caller's lesson history from the session cookie.

    Returns:
        Tuple of (session_id, storage); a new session is started if needed
    """
    session_manager: SessionManager = request.app.state.session_manager
    session_id, session = session_manager.get_or_create(request.cookies.get(SESSION_COOKIE))
    return session_id, LessonStorage(session)


def set_session_cookie(response: Response, session_id: str):
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_id,
        httponly=True,
        max_age=SESSION_MAX_AGE,
        samesite="lax",
    )


@router.get("/curriculum")
async def curriculum(request: Request):
    """Subjects and grade levels with their enabled status."""
    curriculum: Curriculum = request.app.state.curriculum
    return {
        "subjects": curriculum.subjects_with_status(),
        "gradeLevels": curriculum.grade_levels_with_status(),
    }


@router.post("/generate")
async def generate_lesson(request: Request, survey: SurveyData):
    """
    Generate a lesson plan, streaming progress as Server-Sent Events.

    Each frame is ``data: {json}`` with type progress, complete or error.
    A completed lesson is saved to the caller's history and its id added
    to the complete event.
    """
    if survey.missing_required():
        raise HTTPException(status_code=400, detail="Missing required survey data")

    if not 1 <= survey.student_count <= 100:
        raise HTTPException(status_code=400, detail="Student count must be between 1 and 100")

    generator: LessonGenerator = request.app.state.lesson_generator
    session_id, storage = get_lesson_storage(request)
    survey_dict = survey.model_dump(by_alias=True, exclude_none=True)
    if storage.is_generating(survey_dict):
        raise HTTPException(status_code=409, detail="Lektionen genereras redan")
    storage.set_generating(survey_dict)

    async def event_stream():
        try:
            async for event in generator.generate(survey):
                if event["type"] == "complete":
                    lesson = storage.save(event["document"], survey_dict)
                    event["lessonId"] = lesson.id

                yield sse_frame(event)

                if event["type"] in ("complete", "error"):
                    break
        except Exception as e:
            logger.error(f"Stream error: {e}")
            yield sse_frame({"type": "error", "error": f"Fel vid generering: {e}"})
        finally:
            storage.clear_generating()

    response = StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
    set_session_cookie(response, session_id)
    return response


@router.get("/lessons")
async def list_lessons(request: Request, response: Response):
    session_id, storage = get_lesson_storage(request)
    set_session_cookie(response, session_id)

    current = storage.current()
    return {
        "lessons": [lesson.model_dump(by_alias=True) for lesson in storage.all()],
        "currentLessonId": current.id if current else None,
    }


@router.get("/lessons/{lesson_id}")
async def get_lesson(request: Request, lesson_id: str):
    _, storage = get_lesson_storage(request)
    lesson = storage.get(lesson_id)
    if lesson is None:
        raise HTTPException(status_code=404, detail="Lektionen hittades inte")
    return lesson.model_dump(by_alias=True)


@router.post("/lessons/{lesson_id}/current")
async def set_current_lesson(request: Request, lesson_id: str):
    _, storage = get_lesson_storage(request)
    if storage.get(lesson_id) is None:
        raise HTTPException(status_code=404, detail="Lektionen hittades inte")

    storage.set_current(lesson_id)
    return {"success": True, "currentLessonId": lesson_id}


@router.delete("/lessons/{lesson_id}")
async def delete_lesson(request: Request, lesson_id: str):
    _, storage = get_lesson_storage(request)
    if not storage.delete(lesson_id):
        raise HTTPException(status_code=404, detail="Lektionen hittades inte")

    current = storage.current()
    return {"success": True, "currentLessonId": current.id if current else None}
