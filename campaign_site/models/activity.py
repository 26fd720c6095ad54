"""Activity data models."""

from typing import Optional
from pydantic import Field
from .base import CamelModel


class Activity(CamelModel):
    """Campaign activity (e.g. a canvassing session) as stored."""

    id: str
    title: str
    description: str = ""
    date: str = Field(description="Date as YYYY-MM-DD")
    time: str = Field(description="Start time as HH:MM")
    location: str = ""
    postnummer: str = ""
    kommun: str = ""
    kommun_kod: str = ""
    lan: str = ""
    is_online: bool = False
    brevo_list_id: int = Field(description="CRM list holding the attendees")
    brevo_folder_id: Optional[int] = None
    created_at: str


class PublicActivity(CamelModel):
    """Activity fields shown on the public listing."""

    id: str
    title: str
    description: str
    date: str
    time: str
    location: str
    postnummer: str
    kommun: str
    kommun_kod: str
    lan: str
    is_online: bool


class ActivityCreate(CamelModel):
    """Admin form payload for a new activity."""

    title: str = ""
    description: str = ""
    date: str = ""
    time: str = ""
    location: str = ""
    postnummer: str = ""
    kommun: str = ""
    kommun_kod: str = ""
    lan: str = ""
    is_online: bool = False


class ActivityRegistration(CamelModel):
    """Public registration for an activity."""

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: Optional[str] = None


class Participant(CamelModel):
    """Attendee as read back from the CRM list."""

    id: Optional[int] = None
    email: str
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    postal_code: str = ""
    registered_at: str = ""
