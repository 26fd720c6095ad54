import pytest
from conftest import ROOT_DIR
from campaign_site.services import Curriculum
from campaign_site.services.curriculum import normalize_grade_level, normalize_subject

CURRICULUM_DIR = ROOT_DIR / "prompts" / "curriculum"


def test_normalize_names():
    assert normalize_grade_level("Årskurs 4-6") == "arskurs-4-6"
    assert normalize_subject("Idrott och hälsa") == "idrott-och-halsa"
    assert normalize_subject("Språk och kommunikation") == "sprak-och-kommunikation"


def test_load_context_files():
    curriculum = Curriculum(CURRICULUM_DIR)

    expert = curriculum.load_expert_context("Årskurs 1-3", "Matematik")
    lgr22 = curriculum.load_lgr22_context("Årskurs 1-3", "Matematik")

    assert expert.startswith("# Matematik - Årskurs 1-3 - Expert")
    assert "symmetrier och mönster" in lgr22


def test_missing_context_falls_back():
    curriculum = Curriculum(CURRICULUM_DIR)

    assert curriculum.load_expert_context("Årskurs 1-3", "Slöjd") == "Du är specialist på slöjd för årskurs 1-3."
    assert curriculum.load_lgr22_context("Årskurs 1-3", "Slöjd") == "Allmän pedagogisk utveckling genom utomhusaktiviteter."


def test_subjects_discovered_from_headings():
    """Test that subject names come from the expert.md headings"""
    curriculum = Curriculum(CURRICULUM_DIR)

    assert curriculum.available_subjects() == ["Idrott och hälsa", "Matematik", "Naturvetenskap"]


def test_enabled_subjects_sorted_first():
    curriculum = Curriculum(CURRICULUM_DIR, enabled_subjects=["Naturvetenskap"], enabled_grade_levels=["Årskurs 4-6"])

    assert curriculum.subjects_with_status() == [
        {"name": "Naturvetenskap", "enabled": True},
        {"name": "Idrott och hälsa", "enabled": False},
        {"name": "Matematik", "enabled": False},
    ]
    assert curriculum.grade_levels_with_status()[0] == {"name": "Årskurs 4-6", "enabled": True}
    assert curriculum.available_subjects() == ["Naturvetenskap"]


def test_missing_directory_uses_fallbacks(tmp_path):
    curriculum = Curriculum(tmp_path / "saknas")

    names = [s["name"] for s in curriculum.subjects_with_status()]
    assert "Matematik" in names
    assert [g["name"] for g in curriculum.grade_levels_with_status()] == ["Årskurs 1-3", "Årskurs 4-6", "Årskurs 7-9"]


def test_curriculum_endpoint(client):
    response = client.get("/api/curriculum")

    assert response.status_code == 200
    data = response.json()
    assert {"name": "Matematik", "enabled": True} in data["subjects"]
    assert len(data["gradeLevels"]) == 3
