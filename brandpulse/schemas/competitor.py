"""Pydantic models for competitor-list payloads produced by LLMs."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CompetitorItem(BaseModel):
    """One competitor as returned by the provider. All four core fields are required."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    name: str = Field(min_length=2, max_length=255)
    domain: str = Field(min_length=3, max_length=255)
    industry: str = Field(min_length=2, max_length=255)
    relevance: str = Field(min_length=3, max_length=100)
    description: str = ""


class CompetitorListPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    competitors: list[CompetitorItem] = Field(min_length=1)


class CompetitorSuggestion(BaseModel):
    """Normalized competitor ready for onboarding."""

    name: str
    domain: str
    url: str
    logo: str
    industry: str
    relevance: str
    description: str = ""
    source: str = "llm"  # llm | llm-regex
