import asyncio
from datetime import date
import pytest
from campaign_site.models import ActivityCreate, ActivityRegistration
from campaign_site.services import ActivityService


@pytest.fixture
def service(db, brevo):
    return ActivityService(db, brevo)


def create(service, title, day, time="18:00", **fields):
    payload = ActivityCreate(title=title, date=day, time=time, **fields)
    return asyncio.run(service.create(payload))


def test_create_provisions_brevo_list(service, fake_brevo):
    """Test that a new activity gets its own list in the Aktiviteter folder"""
    activity = create(service, "Dörrknackning", "2026-05-10", postnummer="114 40", kommunKod="01801")

    assert activity.title == "Dörrknackning"
    assert activity.date == "2026-05-10"
    assert activity.time == "18:00"
    assert activity.postnummer == "11440"
    assert activity.kommun_kod == "0180"
    assert fake_brevo.folders == [{"id": activity.brevo_folder_id, "name": "Aktiviteter"}]
    assert fake_brevo.lists[0]["name"] == "Dörrknackning - 2026-05-10"
    assert fake_brevo.lists[0]["folderId"] == activity.brevo_folder_id


def test_second_activity_reuses_folder(service, fake_brevo):
    first = create(service, "Möte", "2026-05-10")
    second = create(service, "Flygblad", "2026-05-11")

    assert second.brevo_folder_id == first.brevo_folder_id
    assert len([r for r in fake_brevo.requests if r == ("POST", "/contacts/folders")]) == 1


def test_invalid_date_is_rejected(service):
    with pytest.raises(ValueError, match="Ogiltigt datum eller tid"):
        create(service, "Möte", "10/05/2026")


def test_list_upcoming_only_future_sorted(service):
    """Test that past activities are hidden and the rest sorted by date and time"""
    create(service, "Gammal", "2026-01-01")
    create(service, "Sen kväll", "2026-05-10", time="20:00")
    create(service, "Tidig kväll", "2026-05-10", time="17:30")
    create(service, "Tidigare dag", "2026-04-01", time="21:00")

    upcoming = service.list_upcoming(today=date(2026, 3, 1))

    assert [a.title for a in upcoming] == ["Tidigare dag", "Tidig kväll", "Sen kväll"]
    assert "brevoListId" not in upcoming[0].model_dump(by_alias=True)


def test_list_upcoming_includes_today(service):
    create(service, "Idag", "2026-03-01")
    assert [a.title for a in service.list_upcoming(today=date(2026, 3, 1))] == ["Idag"]


def test_register_adds_contact_to_activity_list(service, fake_brevo):
    activity = create(service, "Möte", "2026-05-10")
    registration = ActivityRegistration(first_name="Anna", last_name="Svensson", email="anna@example.se", phone="070-111 22 33")

    result = asyncio.run(service.register(activity, registration))

    assert result == "created"
    contact = fake_brevo.contacts["anna@example.se"]
    assert contact["attributes"]["SMS"] == "+46701112233"
    assert contact["attributes"]["SOURCE"] == "aktivitet"
    assert contact["listIds"] == {activity.brevo_list_id}


def test_participants_page(service, fake_brevo):
    activity = create(service, "Möte", "2026-05-10")
    for i in range(3):
        fake_brevo.add_contact(f"p{i}@example.se", {"FIRSTNAME": f"P{i}", "LASTNAME": "Test"}, [activity.brevo_list_id])

    page = asyncio.run(service.participants(activity, limit=2, offset=0))

    assert page["total"] == 3
    assert page["limit"] == 2
    assert [p.first_name for p in page["participants"]] == ["P0", "P1"]
