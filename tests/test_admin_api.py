import csv
import io
from datetime import date, timedelta
from conftest import ADMIN_TOKEN, INTERNAL_KEY

ADMIN = f"/api/admin/{ADMIN_TOKEN}"


def future_day(days: int = 30) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def create_activity(client, title="Dörrknackning", day=None, time="18:00"):
    response = client.post(
        f"{ADMIN}/activities",
        json={"title": title, "date": day or future_day(), "time": time, "location": "Medborgarplatsen", "kommun": "Stockholm"},
    )
    assert response.status_code == 201
    return response.json()["activity"]


def test_admin_requires_valid_token(client):
    """Test that a wrong path token is rejected"""
    response = client.get("/api/admin/wrong-token/activities")

    assert response.status_code == 401
    assert response.json()["detail"] == "Unauthorized"


def test_create_and_list_activities(client, fake_brevo):
    activity = create_activity(client)

    assert activity["brevoListId"] == fake_brevo.lists[0]["id"]

    response = client.get(f"{ADMIN}/activities")
    assert response.status_code == 200
    assert [a["id"] for a in response.json()["activities"]] == [activity["id"]]


def test_create_activity_validation(client):
    response = client.post(f"{ADMIN}/activities", json={"title": "Möte"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Titel, datum och tid krävs"

    response = client.post(f"{ADMIN}/activities", json={"title": "Möte", "date": "imorgon", "time": "18:00"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Ogiltigt datum eller tid"


def test_create_activity_brevo_failure(client, fake_brevo):
    fake_brevo.fail_paths["/contacts/lists"] = 400

    response = client.post(f"{ADMIN}/activities", json={"title": "Möte", "date": future_day(), "time": "18:00"})

    assert response.status_code == 500
    assert response.json()["detail"].startswith("Kunde inte skapa Brevo-lista:")


def test_public_listing_and_registration(client, fake_brevo):
    """Test that a visitor can see an upcoming activity and register for it"""
    activity = create_activity(client)
    create_activity(client, title="Förra året", day="2020-01-01")

    listing = client.get("/api/activities").json()["activities"]
    assert [a["title"] for a in listing] == ["Dörrknackning"]
    assert "brevoListId" not in listing[0]

    response = client.post(
        f"/api/activities/{activity['id']}/register",
        json={"firstName": "Anna", "lastName": "Svensson", "email": "anna@example.se"},
    )
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Du är nu anmäld!", "activity": "Dörrknackning"}
    assert fake_brevo.contacts["anna@example.se"]["listIds"] == {activity["brevoListId"]}


def test_register_unknown_activity(client):
    response = client.post(
        "/api/activities/finns-inte/register",
        json={"firstName": "Anna", "lastName": "Svensson", "email": "anna@example.se"},
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "Aktiviteten hittades inte"


def test_register_requires_fields(client):
    activity = create_activity(client)
    response = client.post(f"/api/activities/{activity['id']}/register", json={"firstName": "Anna"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Förnamn, efternamn och e-post krävs"


def test_participants_and_csv_export(client, fake_brevo):
    """Test that participants can be listed and exported to CSV"""
    activity = create_activity(client, title="Mote: Soder!")
    fake_brevo.add_contact(
        "anna@example.se",
        {"FIRSTNAME": "Anna", "LASTNAME": "Svensson", "SMS": "+46701234567", "POSTALCODE": "11440"},
        [activity["brevoListId"]],
        created_at="2026-03-01T10:00:00.000+01:00",
    )

    page = client.get(f"{ADMIN}/activities/{activity['id']}/participants").json()
    assert page["total"] == 1
    assert page["participants"][0]["firstName"] == "Anna"

    response = client.get(f"{ADMIN}/activities/{activity['id']}/export")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"] == 'attachment; filename="Mote Soder-deltagare.csv"'

    rows = list(csv.DictReader(io.StringIO(response.text)))
    assert rows == [
        {
            "Förnamn": "Anna",
            "Efternamn": "Svensson",
            "E-post": "anna@example.se",
            "Telefon": "+46701234567",
            "Postnummer": "11440",
            "Registrerad": "2026-03-01",
        }
    ]


def test_participants_unknown_activity(client):
    response = client.get(f"{ADMIN}/activities/finns-inte/participants")
    assert response.status_code == 404


def test_admin_petitions(client):
    client.post("/api/petition/sign", json={"firstName": "Anna", "lastName": "S", "email": "anna@example.se"})

    response = client.get(f"{ADMIN}/petitions")

    assert response.status_code == 200
    petition = response.json()["petitions"]["stoppa-marknadshyror-2026"]
    assert petition["count"] >= 1
    assert petition["brevoListId"] == 3


def test_internal_endpoints_require_api_key(client):
    assert client.post("/api/internal/init-db").status_code == 401
    assert client.post("/api/internal/sync-brevo", headers={"x-api-key": "wrong"}).status_code == 401


def test_internal_init_db(client):
    response = client.post("/api/internal/init-db", headers={"x-api-key": INTERNAL_KEY})

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Database initialized successfully", "seeded": False}


def test_internal_sync_brevo(client, fake_brevo):
    """Test that the cron sync overwrites the local count with the list size"""
    fake_brevo.list_sizes[3] = 4321

    response = client.post("/api/internal/sync-brevo", headers={"x-api-key": INTERNAL_KEY})

    assert response.status_code == 200
    data = response.json()
    assert data["petitionId"] == "stoppa-marknadshyror-2026"
    assert data["count"] == 4321

    count = client.get("/api/signatures/count").json()
    assert count["count"] == 4321


def test_internal_sync_brevo_failure(client, fake_brevo):
    fake_brevo.fail_paths["/contacts/lists/3"] = 500

    response = client.post("/api/internal/sync-brevo", headers={"x-api-key": INTERNAL_KEY}, json={"listId": 3})

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to sync with Brevo"


def test_internal_sync_all(client, fake_brevo):
    fake_brevo.list_sizes[3] = 9

    response = client.post("/api/internal/sync-all", headers={"x-api-key": INTERNAL_KEY})

    assert response.json() == {"success": True, "synced": ["stoppa-marknadshyror-2026"], "errors": []}
