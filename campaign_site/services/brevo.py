"""Brevo (CRM and transactional email) service."""

import logging
import re
from typing import Any, Optional
from urllib.parse import quote
import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.brevo.com/v3"
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class BrevoError(Exception):
    """Non-2xx response from the Brevo API."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Brevo API error: {status_code} {body}")
        self.status_code = status_code
        self.body = body

    @property
    def is_duplicate(self) -> bool:
        """True for the "contact already exists" signature."""
        return self.status_code == 400 and "duplicate" in self.body


def format_swedish_phone(phone: str) -> str:
    """
    Normalize a Swedish phone number to international format.

    Args:
        phone: Number as typed, e.g. "070-123 45 67"

    Returns:
        Number like "+46701234567"
    """
    formatted = re.sub(r"[\s-]", "", phone)
    if formatted.startswith("0"):
        return "+46" + formatted[1:]
    if not formatted.startswith("+"):
        return "+46" + formatted
    return formatted


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


def _clean_attributes(attributes: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in attributes.items() if value is not None}


class BrevoService:
    """Service for interacting with the Brevo REST API."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize Brevo service.

        Args:
            api_key: Brevo API key
            base_url: API root, without trailing slash
            transport: Optional httpx transport (used by tests)
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "api-key": self.api_key or "",
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        if not self.api_key:
            raise ValueError("BREVO_API_KEY not configured")

        response = await self._get_client().request(method, path, json=json, params=params)

        if response.status_code >= 400:
            logger.error(f"Brevo API error: {response.status_code} {response.text}")
            raise BrevoError(response.status_code, response.text)

        if not response.content:
            return None
        return response.json()

    # Contacts

    async def create_contact(
        self,
        email: str,
        attributes: dict[str, Any],
        list_ids: Optional[list[int]] = None,
    ) -> Any:
        """Create a contact (Brevo merges it if updateEnabled applies)."""
        payload: dict[str, Any] = {
            "email": email,
            "attributes": _clean_attributes(attributes),
            "updateEnabled": True,
        }
        if list_ids:
            payload["listIds"] = list_ids
        return await self._request("POST", "/contacts", json=payload)

    async def update_contact(
        self,
        email: str,
        attributes: dict[str, Any],
        list_ids: Optional[list[int]] = None,
    ) -> None:
        payload: dict[str, Any] = {"attributes": _clean_attributes(attributes)}
        if list_ids:
            payload["listIds"] = list_ids
        await self._request("PUT", f"/contacts/{quote(email, safe='')}", json=payload)

    async def upsert_contact(
        self,
        email: str,
        attributes: dict[str, Any],
        list_ids: Optional[list[int]] = None,
    ) -> str:
        """
        Create a contact, falling back to an update if it already exists.

        Returns:
            "created" or "updated"

        Raises:
            BrevoError: If both the create and the fallback update fail
        """
        try:
            await self.create_contact(email, attributes, list_ids)
            logger.info("Contact created successfully")
            return "created"
        except BrevoError as e:
            if not e.is_duplicate:
                raise

        logger.info("Contact exists, trying update...")
        await self.update_contact(email, attributes, list_ids)
        logger.info("Contact updated successfully")
        return "updated"

    # Transactional email

    async def send_transactional_email(
        self,
        sender: dict[str, str],
        to: list[dict[str, str]],
        subject: str,
        html_content: str,
        text_content: str,
        reply_to: Optional[dict[str, str]] = None,
        tags: Optional[list[str]] = None,
    ) -> Any:
        payload: dict[str, Any] = {
            "sender": sender,
            "to": to,
            "subject": subject,
            "htmlContent": html_content,
            "textContent": text_content,
        }
        if reply_to:
            payload["replyTo"] = reply_to
        if tags:
            payload["tags"] = tags
        return await self._request("POST", "/smtp/email", json=payload)

    # Lists and folders

    async def get_list(self, list_id: int) -> dict:
        return await self._request("GET", f"/contacts/lists/{list_id}")

    async def get_list_subscriber_count(self, list_id: int) -> int:
        data = await self.get_list(list_id)
        return data.get("totalSubscribers") or data.get("uniqueSubscribers") or 0

    async def get_list_contacts(self, list_id: int, limit: int = 50, offset: int = 0) -> dict:
        """
        Get one page of contacts in a list.

        Returns:
            Dict with "contacts" and "count" (total in list)
        """
        data = await self._request(
            "GET",
            f"/contacts/lists/{list_id}/contacts",
            params={"limit": limit, "offset": offset},
        )
        return {"contacts": data.get("contacts", []), "count": data.get("count", 0)}

    async def get_all_list_contacts(self, list_id: int, page_size: int = 100) -> list[dict]:
        """Page through a list until a short page is returned."""
        contacts: list[dict] = []
        offset = 0

        while True:
            page = await self.get_list_contacts(list_id, limit=page_size, offset=offset)
            contacts.extend(page["contacts"])
            if len(page["contacts"]) < page_size:
                break
            offset += page_size

        return contacts

    async def create_folder(self, name: str) -> int:
        data = await self._request("POST", "/contacts/folders", json={"name": name})
        return data["id"]

    async def list_folders(self, limit: int = 50) -> list[dict]:
        data = await self._request("GET", "/contacts/folders", params={"limit": limit})
        return data.get("folders") or []

    async def get_or_create_folder(self, name: str) -> int:
        """
        Create a contact folder, or find it by name if it already exists.

        Raises:
            BrevoError: If the folder can neither be created nor found
        """
        try:
            return await self.create_folder(name)
        except BrevoError as e:
            if not (e.status_code == 400 and "already exists" in e.body):
                raise
            for folder in await self.list_folders():
                if folder.get("name") == name:
                    return folder["id"]
            raise

    async def create_list(self, name: str, folder_id: int) -> int:
        data = await self._request(
            "POST", "/contacts/lists", json={"name": name, "folderId": folder_id}
        )
        return data["id"]
