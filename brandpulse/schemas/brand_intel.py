"""Pydantic model for brand-intelligence payloads produced by LLMs.

Providers drift on key names, so each field accepts the variants seen in practice.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class BrandIntel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore", populate_by_name=True)

    brand_name: str = Field(
        min_length=1,
        validation_alias=AliasChoices("brandName", "brand_name", "name", "companyName", "company_name"),
    )
    homepage_url: str | None = Field(
        default=None, validation_alias=AliasChoices("homepageUrl", "homepage_url", "homepage", "url", "website")
    )
    summary: str | None = Field(default=None, validation_alias=AliasChoices("summary", "description"))
    ceo: str | None = Field(default=None, validation_alias=AliasChoices("ceo", "ceo_name", "ceoName"))
    headquarters: str | None = Field(
        default=None, validation_alias=AliasChoices("headquarters", "hq", "location")
    )
    founded_year: int | None = Field(
        default=None, validation_alias=AliasChoices("foundedYear", "founded_year", "founded", "year_founded")
    )
    industry: str | None = Field(default=None, validation_alias=AliasChoices("industry", "sector", "vertical"))
    competitors: list[str] = Field(default_factory=list)

    @field_validator("founded_year", mode="before")
    @classmethod
    def _coerce_year(cls, value):
        if value is None or isinstance(value, int):
            return value
        digits = "".join(ch for ch in str(value) if ch.isdigit())
        return int(digits[:4]) if len(digits) >= 4 else None

    @field_validator("competitors", mode="before")
    @classmethod
    def _coerce_competitors(cls, value):
        if not isinstance(value, list):
            return []
        names = []
        for item in value:
            if isinstance(item, str):
                names.append(item)
            elif isinstance(item, dict) and isinstance(item.get("name"), str):
                names.append(item["name"])
        return [n.strip() for n in names if n and n.strip()]
