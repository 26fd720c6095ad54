"""Data models for the application."""

from .activity import (
    Activity,
    ActivityCreate,
    ActivityRegistration,
    Participant,
    PublicActivity,
)
from .campaign import ContactPoliticianRequest, MaterialOrderRequest, VolunteerSignupRequest
from .lesson import (
    ConceptItem,
    CuratedContent,
    CurriculumConnection,
    GenerationMetadata,
    LessonData,
    LessonExportRequest,
    PreparationData,
    SafetyData,
    StoredLesson,
    SurveyData,
)
from .location import LocationResult
from .petition import (
    BrevoSyncRequest,
    Petition,
    PetitionSignRequest,
    SignerDisplay,
    UpdateContactRequest,
)

__all__ = [
    "Activity",
    "ActivityCreate",
    "ActivityRegistration",
    "Participant",
    "PublicActivity",
    "ContactPoliticianRequest",
    "MaterialOrderRequest",
    "VolunteerSignupRequest",
    "ConceptItem",
    "CuratedContent",
    "CurriculumConnection",
    "GenerationMetadata",
    "LessonData",
    "LessonExportRequest",
    "PreparationData",
    "SafetyData",
    "StoredLesson",
    "SurveyData",
    "LocationResult",
    "BrevoSyncRequest",
    "Petition",
    "PetitionSignRequest",
    "SignerDisplay",
    "UpdateContactRequest",
]
