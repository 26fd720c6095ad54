MESSAGE = {
    "userName": "Anna Maria Svensson",
    "userEmail": "anna@example.se",
    "politicianEmail": "politiker@kommun.se",
    "politicianName": "Per Politiker",
    "message": "Hej!\nVad tycker du om marknadshyror?",
    "postnummer": "11440",
    "kommun": "Stockholm",
}


def test_contact_politician_sends_email(client, fake_brevo):
    """Test that the message is sent with the visitor as reply-to"""
    response = client.post("/api/contact-politician", json=MESSAGE)

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Mejlet har skickats!"}

    email = fake_brevo.emails[0]
    assert email["subject"] == "Fråga om marknadshyror"
    assert email["sender"] == {"name": "Anna Maria Svensson via Stoppa Marknadshyror", "email": "info@example.se"}
    assert email["replyTo"] == {"name": "Anna Maria Svensson", "email": "anna@example.se"}
    assert email["to"] == [{"email": "politiker@kommun.se", "name": "Per Politiker"}]
    assert "Hej!<br>Vad tycker" in email["htmlContent"]
    assert email["tags"] == ["politiker-kontakt"]

    attributes = fake_brevo.contacts["anna@example.se"]["attributes"]
    assert attributes["FIRSTNAME"] == "Anna"
    assert attributes["LASTNAME"] == "Maria Svensson"
    assert attributes["HAS_CONTACTED_POLITICIAN"] is True
    assert attributes["MUNICIPALITY"] == "Stockholm"


def test_contact_politician_validation(client):
    response = client.post("/api/contact-politician", json={**MESSAGE, "message": ""})
    assert response.status_code == 400
    assert response.json()["detail"] == "Alla obligatoriska fält måste fyllas i"

    response = client.post("/api/contact-politician", json={**MESSAGE, "politicianEmail": "inte-en-adress"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Ogiltig e-postadress"


def test_contact_politician_email_failure(client, fake_brevo):
    fake_brevo.fail_paths["/smtp/email"] = 500

    response = client.post("/api/contact-politician", json=MESSAGE)

    assert response.status_code == 500
    assert "anna@example.se" not in fake_brevo.contacts


def test_contact_update_failure_still_succeeds(client, fake_brevo):
    """Test that a CRM failure after sending does not fail the request"""
    fake_brevo.fail_paths["/contacts"] = 500

    response = client.post("/api/contact-politician", json=MESSAGE)

    assert response.status_code == 200
    assert len(fake_brevo.emails) == 1


def test_volunteer_signup(client, fake_brevo):
    response = client.post(
        "/api/volunteer/signup",
        json={
            "firstName": "Erik",
            "lastName": "Lind",
            "email": "erik@example.se",
            "phone": "070-555 66 77",
            "postalCode": "411 01",
            "region": "Göteborg",
            "interests": ["dörrknackning", "sociala medier"],
            "acceptContact": True,
        },
    )

    assert response.status_code == 200
    contact = fake_brevo.contacts["erik@example.se"]
    assert contact["listIds"] == {7}
    assert contact["attributes"]["POSTALCODE"] == "41101"
    assert contact["attributes"]["SMS"] == "+46705556677"
    assert contact["attributes"]["VOLUNTEER_INTERESTS"] == "dörrknackning,sociala medier"
    assert contact["attributes"]["WANTS_NEWSLETTER"] is True
    assert "VOLUNTEER_EXPERIENCE" not in contact["attributes"]


def test_volunteer_signup_requires_fields(client):
    response = client.post("/api/volunteer/signup", json={"firstName": "Erik", "email": "erik@example.se"})

    assert response.status_code == 400


def test_material_order(client, fake_brevo):
    response = client.post(
        "/api/material/order",
        json={
            "firstName": "Karin",
            "lastName": "Berg",
            "email": "karin@example.se",
            "address": "Storgatan 1",
            "postalCode": "75220",
            "city": "Uppsala",
            "quantity": "50",
        },
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Beställningen har tagits emot!"
    contact = fake_brevo.contacts["karin@example.se"]
    assert contact["listIds"] == {6}
    assert contact["attributes"]["MATERIAL_QUANTITY"] == "50"
    assert contact["attributes"]["HAS_ORDERED_MATERIAL"] is True
