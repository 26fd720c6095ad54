"""Data processing for activity participants."""

import io
import re
from datetime import datetime
import pandas as pd
from campaign_site.models.activity import Participant

CSV_COLUMNS = {
    "first_name": "Förnamn",
    "last_name": "Efternamn",
    "email": "E-post",
    "phone": "Telefon",
    "postal_code": "Postnummer",
    "registered_at": "Registrerad",
}


class ParticipantProcessor:
    """Transform Brevo contacts into participant rows."""

    @staticmethod
    def parse_contact(raw_contact: dict) -> Participant:
        """
        Parse a raw Brevo list contact into a Participant.

        Args:
            raw_contact: Contact as returned by the Brevo list-contacts endpoint

        Returns:
            Participant model instance
        """
        attributes = raw_contact.get("attributes") or {}

        return Participant(
            id=raw_contact.get("id"),
            email=raw_contact.get("email", ""),
            first_name=str(attributes.get("FIRSTNAME") or ""),
            last_name=str(attributes.get("LASTNAME") or ""),
            phone=str(attributes.get("SMS") or ""),
            postal_code=str(attributes.get("POSTALCODE") or ""),
            registered_at=raw_contact.get("createdAt", ""),
        )

    @staticmethod
    def format_registered_date(value: str) -> str:
        """Format an ISO timestamp as a Swedish short date (YYYY-MM-DD)."""
        if not value:
            return ""
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).date().isoformat()
        except ValueError:
            return value

    @staticmethod
    def participants_to_dataframe(participants: list[Participant]) -> pd.DataFrame:
        """
        Convert participants to a DataFrame with Swedish column labels.

        Args:
            participants: List of participants

        Returns:
            DataFrame with one row per participant
        """
        if not participants:
            return pd.DataFrame(columns=list(CSV_COLUMNS.values()))

        data = [p.model_dump(include=set(CSV_COLUMNS)) for p in participants]
        df = pd.DataFrame(data, columns=list(CSV_COLUMNS))

        df["registered_at"] = df["registered_at"].apply(ParticipantProcessor.format_registered_date)

        return df.rename(columns=CSV_COLUMNS)

    @staticmethod
    def to_csv(participants: list[Participant]) -> str:
        df = ParticipantProcessor.participants_to_dataframe(participants)

        csv_buffer = io.StringIO()
        df.to_csv(csv_buffer, index=False)
        return csv_buffer.getvalue()

    @staticmethod
    def export_filename(title: str) -> str:
        """Build the download name, keeping letters, digits, single spaces and dashes."""
        collapsed = re.sub(r"\s+", " ", title).strip()
        cleaned = re.sub(r"[^a-zA-Z0-9åäöÅÄÖ -]", "", collapsed)
        return f"{cleaned}-deltagare.csv"
