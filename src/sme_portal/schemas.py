"""Pydantic models for request bodies, discovered candidates and stage results."""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models.sme import DEFAULT_OPPORTUNITY_SCORE

EARLIEST_FOUNDED_YEAR = 1800


class CountryCreate(BaseModel):
    """Body of ``POST /api/countries``. ``name`` is checked by the pipeline."""

    name: Optional[str] = Field(default=None, description="Country name")
    code: Optional[str] = Field(default=None, description="Country code")
    flag: Optional[str] = Field(default=None, description="Flag emoji")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value)


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return None


class SmeCandidate(BaseModel):
    """A business record proposed by the discovery model.

    Model output is loosely typed, so every field is coerced rather than
    rejected: missing or malformed values fall back to defaults. Only a
    candidate without a usable name is unusable.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = ""
    industry: str = ""
    product_type: str = Field(default="", alias="productType")
    description: str = ""
    location: str = ""
    founded_year: Optional[int] = Field(default=None, alias="foundedYear")
    employee_count: str = Field(default="", alias="employeeCount")
    monthly_revenue: str = Field(default="", alias="monthlyRevenue")
    social_media: Dict[str, Any] = Field(default_factory=dict, alias="socialMedia")
    contact_email: str = Field(default="", alias="contactEmail")
    owner_name: str = Field(default="", alias="ownerName")
    followers: Dict[str, Any] = Field(default_factory=dict)
    products: List[Any] = Field(default_factory=list)
    price_range: str = Field(default="", alias="priceRange")
    tags: List[Any] = Field(default_factory=list)
    no_website_reason: str = Field(default="", alias="noWebsiteReason")
    opportunity_score: int = Field(default=DEFAULT_OPPORTUNITY_SCORE, alias="opportunityScore")
    languages: List[Any] = Field(default_factory=list)

    @field_validator(
        "name", "industry", "product_type", "description", "location",
        "employee_count", "monthly_revenue", "contact_email", "owner_name",
        "price_range", "no_website_reason",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("founded_year", mode="before")
    @classmethod
    def coerce_year(cls, v: Any) -> Optional[int]:
        """Years outside 1800..current year are treated as unknown."""
        year = _as_int(v)
        if year is None or not EARLIEST_FOUNDED_YEAR <= year <= date.today().year:
            return None
        return year

    @field_validator("opportunity_score", mode="before")
    @classmethod
    def coerce_score(cls, v: Any) -> int:
        """Clamp to 0-100; unusable values fall back to the default score."""
        score = _as_int(v)
        if score is None:
            return DEFAULT_OPPORTUNITY_SCORE
        return max(0, min(100, score))

    @field_validator("social_media", "followers", mode="before")
    @classmethod
    def coerce_mapping(cls, v: Any) -> dict:
        return v if isinstance(v, dict) else {}

    @field_validator("products", "tags", "languages", mode="before")
    @classmethod
    def coerce_list(cls, v: Any) -> list:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [part.strip() for part in v.split(",") if part.strip()]
        return []

    @property
    def is_usable(self) -> bool:
        return bool(self.name)


class EmailDraft(BaseModel):
    """Subject and body of a generated outreach email."""

    subject: str
    body: str

    @field_validator("subject", "body", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return _as_text(v)


class DeployResult(BaseModel):
    """Outcome of a deploy stage, as returned by ``POST /api/smes/{id}/deploy``."""

    ok: bool = True
    url: str
    slug: str
    note: str = ""


__all__ = [
    "CountryCreate",
    "SmeCandidate",
    "EmailDraft",
    "DeployResult",
]
