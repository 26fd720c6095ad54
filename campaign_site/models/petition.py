"""Petition and signature models."""

from typing import Optional
from .base import CamelModel


class Petition(CamelModel):
    """Locally tracked petition mirrored to a CRM list."""

    id: str
    name: str
    goal: int
    brevo_list_id: int
    count: int = 0
    last_synced_at: Optional[str] = None


class PetitionSignRequest(CamelModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    petition_id: Optional[str] = None


class UpdateContactRequest(CamelModel):
    email: str = ""
    phone: Optional[str] = None
    postnummer: Optional[str] = None


class SignerDisplay(CamelModel):
    """Entry in the "recently signed" ticker."""

    display_name: str
    minutes_ago: int


class BrevoSyncRequest(CamelModel):
    """Body of the cron-triggered count sync; both fields are optional."""

    petition_id: Optional[str] = None
    list_id: Optional[int] = None
