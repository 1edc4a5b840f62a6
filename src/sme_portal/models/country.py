"""Country SQLAlchemy model for the markets SMEs are discovered in."""

from datetime import datetime
from typing import List, TYPE_CHECKING

from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base
from ._types import isoformat, new_id, utcnow

if TYPE_CHECKING:
    from .sme import Sme

DEFAULT_FLAG = "🌍"


class Country(Base):
    """A market the operator researches for social-media-only businesses.

    Country names are not unique; two rows may share a name. Deleting a
    country removes its SMEs (and their websites and emails) through
    ``ON DELETE CASCADE``.
    """

    __tablename__ = "countries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    name: Mapped[str] = mapped_column(Text, nullable=False)

    # ISO-style code, free text
    code: Mapped[str] = mapped_column(Text, nullable=False, default="")

    flag: Mapped[str] = mapped_column(Text, nullable=False, default=DEFAULT_FLAG)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )

    smes: Mapped[List["Sme"]] = relationship(
        "Sme",
        back_populates="country",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Country(id={self.id!r}, name={self.name!r})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code or "",
            "flag": self.flag or DEFAULT_FLAG,
            "createdAt": isoformat(self.created_at),
        }
