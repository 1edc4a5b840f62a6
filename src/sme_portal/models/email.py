"""Email SQLAlchemy model for generated outreach drafts."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import String, Text, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base
from ._types import new_id, utcnow

if TYPE_CHECKING:
    from .sme import Sme


class Email(Base):
    """The outreach email drafted for one SME (at most one per SME)."""

    __tablename__ = "emails"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    sme_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("smes.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    subject: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    sme: Mapped["Sme"] = relationship("Sme", back_populates="email")

    def __repr__(self) -> str:
        return f"<Email(id={self.id!r}, sme_id={self.sme_id!r})>"

    def to_dict(self) -> dict:
        return {"subject": self.subject, "body": self.body}
