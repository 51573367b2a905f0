"""Pydantic models for equipment, maintenance tasks and capability payloads."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    raise ValueError("expected a list of strings")


class RawTask(BaseModel):
    """A candidate maintenance task as returned by the completion capability."""

    task_name: str = Field(description="What to do")
    periodicity: str = Field(default="", description="How often, as written in the manual")
    instructions: list[str] = Field(default_factory=list, description="Steps")

    @field_validator("task_name", mode="before")
    @classmethod
    def _require_task_name(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("task_name must be a non-empty string")
        return value.strip()

    @field_validator("periodicity", mode="before")
    @classmethod
    def _coerce_periodicity(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if not isinstance(value, str):
            raise ValueError("periodicity must be a string")
        return value.strip()

    @field_validator("instructions", mode="before")
    @classmethod
    def _coerce_instructions(cls, value: Any) -> list[str]:
        return _string_list(value)


class EquipmentDraft(BaseModel):
    """Merged extraction result before ids and dates are assigned."""

    name: str = ""
    type: str = ""
    maintenance_schedule: list[RawTask] = Field(default_factory=list)
    important_rules: list[str] = Field(default_factory=list)

    @field_validator("name", "type", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("important_rules", mode="before")
    @classmethod
    def _coerce_rules(cls, value: Any) -> list[str]:
        return _string_list(value)


class Task(BaseModel):
    """A scheduled maintenance task owned by an Equipment record."""

    id: str
    task_name: str
    periodicity: str = ""
    instructions: list[str] = Field(default_factory=list)
    last_completed_date: datetime | None = None


class Equipment(BaseModel):
    """A registered piece of equipment with its maintenance schedule."""

    id: str
    name: str
    type: str = ""
    location: str = ""
    maintenance_schedule: list[Task] = Field(default_factory=list)
    important_rules: list[str] = Field(default_factory=list)


class Settings(BaseModel):
    """Credentials for the search and completion capabilities."""

    api_key: str = ""
    folder_id: str = ""
    search_api_key: str = ""


class SearchResult(BaseModel):
    """A ranked search hit for a manual."""

    title: str = ""
    url: str
