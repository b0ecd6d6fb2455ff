"""Pydantic schemas validated at the integration boundaries."""

from enum import Enum

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ServiceError


class Platform(str, Enum):
    """Store a keyword scorer is bound to."""

    ITUNES = "itunes"
    GPLAY = "gplay"


class Level(str, Enum):
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"
    UNKNOWN = "unknown"


class Recommendation(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    CONSIDER = "consider"
    CHALLENGING = "challenging"
    AVOID = "avoid"
    ANALYSIS_FAILED = "analysis_failed"


class AppMetadata(BaseModel):
    """Store listing data fed to the keyword generator."""

    app_id: int = Field(gt=0)
    title: str
    description: str = ""
    subtitle: str = ""
    developer: str = ""
    genre: str = ""
    url: str = ""
    screenshots: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def title_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("App title is empty")
        return value

    @field_validator("description", "subtitle", "developer", "genre", "url", mode="before")
    @classmethod
    def normalize_text_fields(cls, value: object) -> str:
        return str(value or "").strip()


class SimilarApp(BaseModel):
    """One entry of the App Store "You Might Also Like" shelf."""

    app_id: int = Field(gt=0)
    title: str = ""
    url: str = ""


class GeneratedKeywords(BaseModel):
    """Input of the generate_app_keywords / suggest_additional_keywords tools."""

    keywords: list[str]

    @field_validator("keywords", mode="before")
    @classmethod
    def drop_blank_keywords(cls, value: object) -> list[str]:
        if not isinstance(value, list):
            raise ValueError("keywords must be a list")
        cleaned: list[str] = []
        for item in value:
            text = str(item or "").strip()
            if text:
                cleaned.append(text)
        return cleaned


class KeywordScore(BaseModel):
    """Validated response of a keyword scorer."""

    keyword: str
    traffic_score: int = Field(ge=0, le=100)
    difficulty_score: int = Field(ge=0, le=100)
    traffic_level: Level
    competition_level: Level
    recommendation: Recommendation


def validate_payload(schema: type[BaseModel], payload: object, source: str):
    """
    Validate a collaborator payload, turning schema errors into ServiceError.

    Missing or mistyped fields never travel past the boundary as None.
    """
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        raise ServiceError(f"Malformed response from {source}", details=str(e)) from e
