"""Activity storage and attendee registration."""

import logging
import uuid
from datetime import date, datetime, time
from typing import Callable, Optional
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import insert, select
from campaign_site.models.activity import (
    Activity,
    ActivityCreate,
    ActivityRegistration,
    Participant,
    PublicActivity,
)
from .brevo import BrevoService, format_swedish_phone
from .database import Database, activities, as_utc, utcnow
from .participant_processor import ParticipantProcessor

logger = logging.getLogger(__name__)

BREVO_FOLDER_NAME = "Aktiviteter"


def _format_time(value) -> str:
    if isinstance(value, time):
        return value.strftime("%H:%M")
    return str(value)[:5]


def _format_date(value) -> str:
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class ActivityService:
    """Campaign activities stored locally, attendees kept in Brevo lists."""

    def __init__(self, db: Database, brevo: BrevoService, clock: Callable = utcnow):
        self.db = db
        self.brevo = brevo
        self._clock = clock

    @staticmethod
    def _row_to_activity(row) -> Activity:
        created_at = as_utc(row.created_at)
        return Activity(
            id=row.id,
            title=row.title,
            description=row.description or "",
            date=_format_date(row.date),
            time=_format_time(row.time),
            location=row.location or "",
            postnummer=row.postnummer or "",
            kommun=row.kommun or "",
            kommun_kod=row.kommun_kod or "",
            lan=row.lan or "",
            is_online=bool(row.is_online),
            brevo_list_id=row.brevo_list_id,
            brevo_folder_id=row.brevo_folder_id,
            created_at=created_at.isoformat() if created_at else "",
        )

    def list_upcoming(self, today: Optional[date] = None) -> list[PublicActivity]:
        """
        Get public activities dated today or later.

        Args:
            today: Reference date (defaults to the current UTC date)

        Returns:
            Activities sorted by date, then time, ascending
        """
        today = today or self._clock().date()

        with self.db.engine.connect() as conn:
            rows = conn.execute(
                select(activities)
                .where(activities.c.date >= today)
                .order_by(activities.c.date.asc(), activities.c.time.asc())
            ).all()

        return [
            PublicActivity(**self._row_to_activity(row).model_dump(exclude={"brevo_list_id", "brevo_folder_id", "created_at"}))
            for row in rows
        ]

    def list_all(self) -> list[Activity]:
        with self.db.engine.connect() as conn:
            rows = conn.execute(
                select(activities).order_by(activities.c.created_at.desc())
            ).all()
        return [self._row_to_activity(row) for row in rows]

    def get(self, activity_id: str) -> Optional[Activity]:
        with self.db.engine.connect() as conn:
            row = conn.execute(select(activities).where(activities.c.id == activity_id)).first()
        return self._row_to_activity(row) if row else None

    def _stored_folder_id(self) -> Optional[int]:
        with self.db.engine.connect() as conn:
            return conn.execute(
                select(activities.c.brevo_folder_id)
                .where(activities.c.brevo_folder_id.is_not(None))
                .limit(1)
            ).scalar()

    async def _get_or_create_folder(self) -> int:
        folder_id = await run_in_threadpool(self._stored_folder_id)
        if folder_id:
            return folder_id

        return await self.brevo.get_or_create_folder(BREVO_FOLDER_NAME)

    async def create(self, payload: ActivityCreate) -> Activity:
        """
        Create an activity and provision its attendee list in Brevo.

        Raises:
            ValueError: If date or time cannot be parsed
            BrevoError: If the folder or list cannot be created
        """
        try:
            activity_date = datetime.strptime(payload.date, "%Y-%m-%d").date()
            activity_time = datetime.strptime(payload.time[:5], "%H:%M").time()
        except ValueError:
            raise ValueError("Ogiltigt datum eller tid")

        folder_id = await self._get_or_create_folder()
        list_id = await self.brevo.create_list(f"{payload.title} - {payload.date}", folder_id)

        activity_id = str(uuid.uuid4())
        values = {
            "id": activity_id,
            "title": payload.title,
            "description": payload.description,
            "date": activity_date,
            "time": activity_time,
            "location": payload.location,
            "postnummer": payload.postnummer.replace(" ", "")[:5],
            "kommun": payload.kommun,
            "kommun_kod": payload.kommun_kod[:4],
            "lan": payload.lan,
            "is_online": payload.is_online,
            "brevo_list_id": list_id,
            "brevo_folder_id": folder_id,
            "created_at": self._clock(),
        }
        activity = await run_in_threadpool(self._insert, values)

        logger.info(f"Created activity {activity_id} with Brevo list {list_id}")
        return activity

    def _insert(self, values: dict) -> Activity:
        with self.db.engine.begin() as conn:
            conn.execute(insert(activities).values(**values))
        return self.get(values["id"])

    async def register(self, activity: Activity, registration: ActivityRegistration) -> str:
        """
        Add a person to the activity's Brevo list.

        Returns:
            "created" or "updated" depending on whether the contact existed
        """
        attributes = {
            "FIRSTNAME": registration.first_name,
            "LASTNAME": registration.last_name,
            "SOURCE": "aktivitet",
        }
        if registration.phone:
            attributes["SMS"] = format_swedish_phone(registration.phone)

        return await self.brevo.upsert_contact(
            registration.email, attributes, list_ids=[activity.brevo_list_id]
        )

    async def participants(self, activity: Activity, limit: int = 50, offset: int = 0) -> dict:
        page = await self.brevo.get_list_contacts(activity.brevo_list_id, limit=limit, offset=offset)
        return {
            "participants": [ParticipantProcessor.parse_contact(c) for c in page["contacts"]],
            "total": page["count"],
            "limit": limit,
            "offset": offset,
        }

    async def all_participants(self, activity: Activity) -> list[Participant]:
        contacts = await self.brevo.get_all_list_contacts(activity.brevo_list_id)
        return [ParticipantProcessor.parse_contact(c) for c in contacts]
