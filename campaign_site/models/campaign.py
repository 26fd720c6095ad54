"""Request models for campaign actions."""

from typing import Optional
from pydantic import Field
from .base import CamelModel


class ContactPoliticianRequest(CamelModel):
    user_name: str = ""
    user_email: str = ""
    politician_email: str = ""
    politician_name: str = ""
    message: str = ""
    postnummer: Optional[str] = None
    kommun: Optional[str] = None


class VolunteerSignupRequest(CamelModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    postal_code: str = ""
    region: str = ""
    interests: list[str] = Field(default_factory=list)
    experience: Optional[str] = None
    availability: Optional[str] = None
    accept_contact: bool = False


class MaterialOrderRequest(CamelModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: Optional[str] = None
    address: str = ""
    postal_code: str = ""
    city: str = ""
    quantity: str = ""
    message: Optional[str] = None
