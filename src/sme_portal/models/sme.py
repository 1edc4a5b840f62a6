"""Sme SQLAlchemy model for discovered small businesses."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, TYPE_CHECKING

from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base
from ._types import JSONType, isoformat, new_id, utcnow

if TYPE_CHECKING:
    from .country import Country
    from .email import Email
    from .website import Website

DEFAULT_OPPORTUNITY_SCORE = 75


class SmeStatus(str, Enum):
    """Last pipeline stage that completed for an SME.

    The label is advisory: each stage checks for the artifacts it needs
    rather than trusting the status.
    """

    DISCOVERED = "discovered"
    WEBSITE_BUILT = "website_built"
    DEPLOYED = "deployed"
    EMAIL_READY = "email_ready"


class Sme(Base):
    """SQLAlchemy model representing a discovered small business.

    Profile fields come from the discovery stage and are not edited later.
    ``status`` and ``deployed_url`` are updated as pipeline stages complete;
    ``deployed_url`` mirrors the owned Website's deployment.

    Attributes:
        id: Unique identifier (UUID).
        country_id: Owning country.
        social_media: Map of platform name to handle or URL.
        followers: Map of platform name to follower count.
        products, tags, languages: Free-text lists.
        opportunity_score: Model-estimated opportunity, 0-100.
        status: Advisory pipeline status.
        deployed_url: Public URL of the deployed website, if any.
    """

    __tablename__ = "smes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    country_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("countries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Business profile
    name: Mapped[str] = mapped_column(Text, nullable=False)
    industry: Mapped[str] = mapped_column(Text, nullable=False, default="General")
    product_type: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    location: Mapped[str] = mapped_column(Text, nullable=False, default="")
    founded_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    employee_count: Mapped[str] = mapped_column(Text, nullable=False, default="1-5")
    monthly_revenue: Mapped[str] = mapped_column(Text, nullable=False, default="Unknown")
    contact_email: Mapped[str] = mapped_column(Text, nullable=False, default="")
    owner_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price_range: Mapped[str] = mapped_column(Text, nullable=False, default="")
    no_website_reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    opportunity_score: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_OPPORTUNITY_SCORE
    )

    # Collections
    social_media: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    followers: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    products: Mapped[Optional[list[Any]]] = mapped_column(JSONType, nullable=True)
    tags: Mapped[Optional[list[Any]]] = mapped_column(JSONType, nullable=True)
    languages: Mapped[Optional[list[Any]]] = mapped_column(JSONType, nullable=True)

    # Pipeline state
    status: Mapped[SmeStatus] = mapped_column(
        SQLEnum(
            SmeStatus,
            name="sme_status",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=SmeStatus.DISCOVERED,
        index=True,
    )
    deployed_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )

    country: Mapped["Country"] = relationship("Country", back_populates="smes")

    website: Mapped[Optional["Website"]] = relationship(
        "Website",
        back_populates="sme",
        uselist=False,
        passive_deletes=True,
        lazy="selectin",
    )

    email: Mapped[Optional["Email"]] = relationship(
        "Email",
        back_populates="sme",
        uselist=False,
        passive_deletes=True,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Sme(id={self.id!r}, name={self.name!r}, status={self.status.value!r})>"

    def to_dict(self) -> dict:
        """Convert to the camelCase view used by the UI and the prompt builders."""
        return {
            "id": self.id,
            "countryId": self.country_id,
            "name": self.name,
            "industry": self.industry,
            "productType": self.product_type,
            "description": self.description,
            "location": self.location,
            "foundedYear": self.founded_year,
            "employeeCount": self.employee_count,
            "monthlyRevenue": self.monthly_revenue,
            "socialMedia": self.social_media or {},
            "contactEmail": self.contact_email,
            "ownerName": self.owner_name,
            "followers": self.followers or {},
            "products": self.products or [],
            "priceRange": self.price_range,
            "tags": self.tags or [],
            "noWebsiteReason": self.no_website_reason,
            "opportunityScore": self.opportunity_score,
            "languages": self.languages or [],
            "status": self.status.value,
            "deployedUrl": self.deployed_url,
            "createdAt": isoformat(self.created_at),
        }
