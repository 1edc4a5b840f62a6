"""Persistence gateway for countries, SMEs, websites and emails.

Every operation runs inside the caller's :class:`AsyncSession`; the caller
owns the transaction boundary (see :func:`~sme_portal.models.get_db_session`).
Website and email writes are single ``INSERT .. ON CONFLICT (sme_id) DO
UPDATE`` statements, so concurrent writers for one SME never create a second
row: the last writer wins.
"""

from typing import Any, Iterable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import NotFoundError, PersistenceError, PreconditionFailed
from .logging_utils import get_logger
from .models import Country, Email, Sme, SmeStatus, Website
from .models._types import new_id, utcnow
from .models.country import DEFAULT_FLAG
from .schemas import SmeCandidate

logger = get_logger(__name__)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class PipelineStore:
    """Typed reads and writes over one database session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _execute(self, statement: Any, action: str) -> Any:
        try:
            return await self.session.execute(statement)
        except SQLAlchemyError as e:
            logger.error("Database error while trying to %s: %s", action, e)
            raise PersistenceError(f"Failed to {action}: {e}") from e

    async def _flush(self, action: str) -> None:
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("Database error while trying to %s: %s", action, e)
            raise PersistenceError(f"Failed to {action}: {e}") from e

    def _insert(self, model: Any) -> Any:
        dialect = self.session.get_bind().dialect.name
        try:
            return _DIALECT_INSERTS[dialect](model)
        except KeyError:
            raise PersistenceError(f"Upserts are not supported on {dialect!r}") from None

    # Countries

    async def insert_country(
        self,
        name: str,
        code: Optional[str] = None,
        flag: Optional[str] = None,
    ) -> Country:
        country = Country(
            id=new_id(),
            name=name,
            code=code or "",
            flag=flag or DEFAULT_FLAG,
            created_at=utcnow(),
        )
        self.session.add(country)
        await self._flush("create country")
        return country

    async def list_countries(self) -> list[Country]:
        """All countries, oldest first."""
        result = await self._execute(
            select(Country).order_by(Country.created_at.asc()),
            "list countries",
        )
        return list(result.scalars().all())

    async def get_country(self, country_id: str) -> Optional[Country]:
        result = await self._execute(
            select(Country).where(Country.id == country_id),
            "load country",
        )
        return result.scalar_one_or_none()

    async def delete_country(self, country_id: str) -> bool:
        """Delete a country; its SMEs, websites and emails go with it.

        Returns:
            True if a row was deleted.
        """
        result = await self._execute(
            delete(Country)
            .where(Country.id == country_id)
            .execution_options(synchronize_session=False),
            "delete country",
        )
        return result.rowcount > 0

    # SMEs

    async def insert_smes_for_country(
        self,
        country_id: str,
        candidates: Iterable[SmeCandidate],
        default_location: str,
    ) -> list[Sme]:
        """Insert one SME row per candidate with ``status=discovered``."""
        now = utcnow()
        smes = [
            Sme(
                id=new_id(),
                country_id=country_id,
                name=candidate.name,
                industry=candidate.industry or "General",
                product_type=candidate.product_type,
                description=candidate.description,
                location=candidate.location or default_location,
                founded_year=candidate.founded_year,
                employee_count=candidate.employee_count or "1-5",
                monthly_revenue=candidate.monthly_revenue or "Unknown",
                social_media=candidate.social_media,
                contact_email=candidate.contact_email,
                owner_name=candidate.owner_name,
                followers=candidate.followers,
                products=candidate.products,
                price_range=candidate.price_range,
                tags=candidate.tags,
                no_website_reason=candidate.no_website_reason,
                opportunity_score=candidate.opportunity_score,
                languages=candidate.languages,
                status=SmeStatus.DISCOVERED,
                created_at=now,
            )
            for candidate in candidates
        ]
        self.session.add_all(smes)
        await self._flush("insert SMEs")
        return smes

    async def list_smes_for_country(self, country_id: str) -> list[Sme]:
        """SMEs of a country, newest first."""
        result = await self._execute(
            select(Sme)
            .where(Sme.country_id == country_id)
            .order_by(Sme.created_at.desc()),
            "list SMEs",
        )
        return list(result.scalars().all())

    async def get_sme(self, sme_id: str) -> Optional[Sme]:
        result = await self._execute(
            select(Sme).where(Sme.id == sme_id).execution_options(populate_existing=True),
            "load SME",
        )
        return result.scalar_one_or_none()

    async def set_status(self, sme_id: str, status: SmeStatus, **extra: Any) -> None:
        """Set an SME's status plus any mirrored columns (e.g. ``deployed_url``).

        Raises:
            NotFoundError: If the SME no longer exists.
        """
        result = await self._execute(
            update(Sme)
            .where(Sme.id == sme_id)
            .values(status=status, **extra)
            .execution_options(synchronize_session=False),
            "update SME status",
        )
        if result.rowcount == 0:
            raise NotFoundError("SME not found")

    # Websites

    async def upsert_website(self, sme_id: str, html: str) -> Website:
        """Create or replace an SME's website, clearing any deployment."""
        statement = self._insert(Website).values(
            id=new_id(),
            sme_id=sme_id,
            html=html,
            built_at=utcnow(),
            deployed_url=None,
            deployed_at=None,
            slug=None,
        )
        statement = statement.on_conflict_do_update(
            index_elements=[Website.sme_id],
            set_={
                "html": statement.excluded.html,
                "built_at": statement.excluded.built_at,
                "deployed_url": None,
                "deployed_at": None,
                "slug": None,
            },
        )
        await self._execute(statement, "save website")
        return await self._require_website(sme_id)

    async def get_website(self, sme_id: str) -> Optional[Website]:
        result = await self._execute(
            select(Website)
            .where(Website.sme_id == sme_id)
            .execution_options(populate_existing=True),
            "load website",
        )
        return result.scalar_one_or_none()

    async def _require_website(self, sme_id: str) -> Website:
        website = await self.get_website(sme_id)
        if website is None:
            raise PersistenceError(f"Website for SME {sme_id} missing after write")
        return website

    async def upsert_website_deployment(self, sme_id: str, url: str, slug: str) -> Website:
        """Record the deployment of an existing website.

        Raises:
            PreconditionFailed: If the SME has no website.
        """
        result = await self._execute(
            update(Website)
            .where(Website.sme_id == sme_id)
            .values(deployed_url=url, slug=slug, deployed_at=utcnow())
            .execution_options(synchronize_session=False),
            "record deployment",
        )
        if result.rowcount == 0:
            raise PreconditionFailed("Build website first")
        return await self._require_website(sme_id)

    # Emails

    async def upsert_email(self, sme_id: str, subject: str, body: str) -> Email:
        """Create or replace an SME's outreach email."""
        statement = self._insert(Email).values(
            id=new_id(),
            sme_id=sme_id,
            subject=subject,
            body=body,
            created_at=utcnow(),
        )
        statement = statement.on_conflict_do_update(
            index_elements=[Email.sme_id],
            set_={
                "subject": statement.excluded.subject,
                "body": statement.excluded.body,
                "created_at": statement.excluded.created_at,
            },
        )
        await self._execute(statement, "save email")

        email = await self.get_email(sme_id)
        if email is None:
            raise PersistenceError(f"Email for SME {sme_id} missing after write")
        return email

    async def get_email(self, sme_id: str) -> Optional[Email]:
        result = await self._execute(
            select(Email)
            .where(Email.sme_id == sme_id)
            .execution_options(populate_existing=True),
            "load email",
        )
        return result.scalar_one_or_none()
