import json
from pathlib import Path
from urllib.parse import unquote
import httpx
import pytest
from fastapi.testclient import TestClient
import main
from campaign_site.config import Settings
from campaign_site.services import BrevoService, Database
from campaign_site.services.generator import ModelResponse
from campaign_site.services.rate_limit import limiter

ROOT_DIR = Path(__file__).resolve().parent.parent

ADMIN_TOKEN = "admin-secret"
INTERNAL_KEY = "internal-key"

LESSON_JSON = {
    "title": "Mönsterjakt i skogen",
    "aboutActivity": "Eleverna letar efter mönster och symmetrier i naturen.",
    "preparation": {
        "steps": ["Rekognosera platsen", "Förbered uppdragskort"],
        "materials": ["Uppdragskort", "Måttband"],
    },
    "execution": "1. Samling i ring\n2. Mönsterjakt i par\n3. Redovisning",
    "safety": {
        "riskSummary": "Låg risk i känd miljö.",
        "keyPrecautions": ["Bestäm samlingsplats", "Räkna eleverna"],
        "staffingNote": "En lärare per 15 elever.",
        "weatherNote": "Ta med regnkläder.",
    },
    "variations": ["Fotografera mönstren"],
    "curriculum": {"centralContent": ["Symmetrier och mönster i naturen"]},
    "conceptList": [{"term": "Symmetri", "explanation": "När två halvor är lika."}],
}


class FakeBrevo:
    """In-memory Brevo API served through httpx.MockTransport."""

    def __init__(self):
        self.contacts: dict[str, dict] = {}
        self.list_sizes: dict[int, int] = {}
        self.folders: list[dict] = []
        self.lists: list[dict] = []
        self.emails: list[dict] = []
        self.requests: list[tuple[str, str]] = []
        self.taken_phones: set[str] = set()
        self.fail_paths: dict[str, int] = {}
        self._next_id = 100

    def _id(self) -> int:
        self._next_id += 1
        return self._next_id

    def add_contact(self, email: str, attributes: dict, list_ids: list[int], created_at: str = "2026-03-01T10:00:00Z"):
        self.contacts[email] = {
            "id": self._id(),
            "email": email,
            "attributes": dict(attributes),
            "listIds": set(list_ids),
            "createdAt": created_at,
        }

    def list_members(self, list_id: int) -> list[dict]:
        return [c for c in self.contacts.values() if list_id in c["listIds"]]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = unquote(request.url.path).removeprefix("/v3")
        method = request.method
        self.requests.append((method, path))
        body = json.loads(request.content) if request.content else {}

        if path in self.fail_paths:
            return httpx.Response(self.fail_paths[path], json={"code": "error", "message": "failure"})

        if method == "POST" and path == "/contacts":
            if body["email"] in self.contacts:
                return httpx.Response(400, json={"code": "duplicate_parameter", "message": "Contact already exist"})
            self.add_contact(body["email"], body["attributes"], body.get("listIds", []))
            return httpx.Response(201, json={"id": self.contacts[body["email"]]["id"]})

        if method == "PUT" and path.startswith("/contacts/"):
            email = path[len("/contacts/"):]
            if email not in self.contacts:
                return httpx.Response(404, json={"code": "document_not_found", "message": "Contact does not exist"})
            sms = body["attributes"].get("SMS")
            if sms and sms in self.taken_phones:
                return httpx.Response(
                    400,
                    json={"code": "duplicate_parameter", "message": "Unable to update contact, SMS is already associated with another Contact"},
                )
            contact = self.contacts[email]
            contact["attributes"].update(body["attributes"])
            contact["listIds"].update(body.get("listIds", []))
            return httpx.Response(204)

        if method == "POST" and path == "/smtp/email":
            self.emails.append(body)
            return httpx.Response(201, json={"messageId": "<test@smtp>"})

        if method == "POST" and path == "/contacts/folders":
            if any(f["name"] == body["name"] for f in self.folders):
                return httpx.Response(400, json={"code": "invalid_parameter", "message": "Folder name already exists"})
            folder = {"id": self._id(), "name": body["name"]}
            self.folders.append(folder)
            return httpx.Response(201, json={"id": folder["id"]})

        if method == "GET" and path == "/contacts/folders":
            return httpx.Response(200, json={"folders": self.folders, "count": len(self.folders)})

        if method == "POST" and path == "/contacts/lists":
            created = {"id": self._id(), "name": body["name"], "folderId": body["folderId"]}
            self.lists.append(created)
            return httpx.Response(201, json={"id": created["id"]})

        if method == "GET" and path.startswith("/contacts/lists/"):
            parts = path.split("/")
            list_id = int(parts[3])
            members = self.list_members(list_id)
            if len(parts) == 5 and parts[4] == "contacts":
                limit = int(request.url.params.get("limit", 50))
                offset = int(request.url.params.get("offset", 0))
                page = [
                    {**c, "listIds": sorted(c["listIds"])}
                    for c in members[offset:offset + limit]
                ]
                return httpx.Response(200, json={"contacts": page, "count": len(members)})
            total = self.list_sizes.get(list_id, len(members))
            return httpx.Response(200, json={"id": list_id, "totalSubscribers": total, "uniqueSubscribers": total})

        return httpx.Response(404, json={"code": "not_found", "message": f"{method} {path}"})


class FakeModelClient:
    """Lesson model client that replays queued replies or exceptions."""

    def __init__(self, replies=None, model: str = "claude-sonnet-4-5-20250929"):
        self.model = model
        self.replies = list(replies or [])
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system: str, user: str) -> ModelResponse:
        self.calls.append((system, user))
        reply = self.replies.pop(0) if self.replies else json.dumps(LESSON_JSON)
        if isinstance(reply, Exception):
            raise reply
        return ModelResponse(text=reply, input_tokens=1200, output_tokens=800)


@pytest.fixture
def fake_brevo():
    return FakeBrevo()


@pytest.fixture
def brevo(fake_brevo):
    return BrevoService("test-brevo-key", transport=httpx.MockTransport(fake_brevo.handler))


@pytest.fixture
def db():
    database = Database("sqlite://")
    database.initialize()
    database.seed_default_petition()
    yield database
    database.dispose()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        brevo_api_key="test-brevo-key",
        brevo_sender_name="Stoppa Marknadshyror",
        brevo_sender_email="info@example.se",
        admin_secret_token=ADMIN_TOKEN,
        internal_api_key=INTERNAL_KEY,
        database_url="sqlite://",
        data_dir=ROOT_DIR / "data",
        prompts_dir=ROOT_DIR / "prompts",
        curated_content_dir=ROOT_DIR / "curated-content",
        logs_dir=tmp_path / "logs",
    )


@pytest.fixture
def model_client():
    return FakeModelClient()


@pytest.fixture
def client(settings, fake_brevo, model_client):
    limiter.reset()
    with TestClient(main.app) as test_client:
        main.init_services(
            main.app,
            settings,
            brevo_transport=httpx.MockTransport(fake_brevo.handler),
            model_client=model_client,
        )
        main.app.state.lesson_generator._sleep = _no_sleep
        main.app.state.db.initialize()
        main.app.state.db.seed_default_petition()
        yield test_client
    limiter.reset()


async def _no_sleep(seconds: float) -> None:
    return None
