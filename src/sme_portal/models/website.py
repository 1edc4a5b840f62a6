"""Website SQLAlchemy model for generated single-file sites."""

from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import String, Text, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base
from ._types import isoformat, new_id, utcnow

if TYPE_CHECKING:
    from .sme import Sme


class Website(Base):
    """The generated website of one SME.

    At most one row exists per SME (unique ``sme_id``); rebuilding replaces
    the html and clears the deployment fields.
    """

    __tablename__ = "websites"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    sme_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("smes.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    html: Mapped[str] = mapped_column(Text, nullable=False)

    # Deployment (e.g. https://anush-s-jams-co.netlify.app)
    deployed_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    slug: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    built_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    deployed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    sme: Mapped["Sme"] = relationship("Sme", back_populates="website")

    def __repr__(self) -> str:
        return f"<Website(id={self.id!r}, sme_id={self.sme_id!r}, slug={self.slug!r})>"

    def to_dict(self) -> dict:
        """Deployment metadata; the html itself is served separately."""
        return {
            "deployedUrl": self.deployed_url,
            "slug": self.slug,
            "builtAt": isoformat(self.built_at),
        }
