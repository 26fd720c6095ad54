"""Location search models."""

from typing import Literal, Optional
from .base import CamelModel


class LocationResult(CamelModel):
    """Autocomplete hit for a postal code or a place."""

    type: Literal["postnummer", "ort"]
    display: str
    ort: str
    kommun: str
    kommun_kod: str
    lan: str
    postnummer: Optional[str] = None
