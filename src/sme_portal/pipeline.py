"""Pipeline controller for SME discovery, website build, deploy and outreach.

Each stage is an independent async operation keyed by a country or SME id:

1. ``discover`` - ask the model for social-media-only businesses in a country
2. ``build_website`` - generate a single-file website for an SME
3. ``deploy`` - publish the website (simulated) and record its URL
4. ``generate_email`` - draft a personalized outreach email

Stages can be re-run at any time; they replace the artifact they own. The
SME status is advisory: each stage checks for the artifacts it needs when it
runs. Database sessions are never held open across a model call; a stage
reads a snapshot, calls the model, then writes in a fresh unit of work.
"""

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .config import config
from .deploy import SimulatedDeployer, slugify
from .discovery import SmeDiscoveryAgent
from .errors import NotFoundError, ParseError, PreconditionFailed, ValidationError
from .extraction import extract_html_document, extract_json_object
from .llm_client import ModelProvider
from .logging_utils import ContextAdapter, LogContext, get_logger
from .models import SmeStatus, get_db_session
from .prompts import EMAIL_SYSTEM_PROMPT, WEBSITE_SYSTEM_PROMPT, email_prompt, website_prompt
from .schemas import DeployResult, EmailDraft, SmeCandidate
from .search import SearchCapability
from .store import PipelineStore

logger = ContextAdapter(get_logger(__name__), {})

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class PipelineStage(str, Enum):
    """Stages of the SME pipeline, used to tag log records."""

    DISCOVER = "discover"
    BUILD_WEBSITE = "build_website"
    DEPLOY = "deploy"
    GENERATE_EMAIL = "generate_email"


@dataclass
class WebsiteDownload:
    """A website packaged as a downloadable file."""

    filename: str
    html: str


class SmePipeline:
    """Runs pipeline stages against the store and the model provider.

    Args:
        provider: Model provider for website and email generation.
        discovery_agent: Agent used by the discover stage. Built from
            ``provider`` and ``search`` when omitted.
        search: Search capability for the default discovery agent.
        deployer: Deploy target. Defaults to a simulated deployer on
            ``DEPLOY_DOMAIN``.
        session_factory: Returns a session context manager that commits on
            exit. Defaults to :func:`~sme_portal.models.get_db_session`.
    """

    def __init__(
        self,
        provider: ModelProvider,
        discovery_agent: Optional[SmeDiscoveryAgent] = None,
        search: Optional[SearchCapability] = None,
        deployer: Optional[SimulatedDeployer] = None,
        session_factory: Optional[SessionFactory] = None,
        website_max_tokens: Optional[int] = None,
        email_max_tokens: Optional[int] = None,
    ):
        self.provider = provider
        self.discovery_agent = discovery_agent or SmeDiscoveryAgent(
            provider,
            search=search,
            max_tokens=config.DISCOVERY_MAX_TOKENS,
        )
        self.deployer = deployer or SimulatedDeployer(config.DEPLOY_DOMAIN)
        self.session_factory = session_factory or get_db_session
        self.website_max_tokens = website_max_tokens or config.WEBSITE_MAX_TOKENS
        self.email_max_tokens = email_max_tokens or config.EMAIL_MAX_TOKENS

    # Countries

    async def create_country(
        self,
        name: Optional[str],
        code: Optional[str] = None,
        flag: Optional[str] = None,
    ) -> dict[str, Any]:
        """Register a country.

        Raises:
            ValidationError: If ``name`` is missing or blank.
        """
        if not name or not name.strip():
            raise ValidationError("Name required")

        async with self.session_factory() as session:
            country = await PipelineStore(session).insert_country(
                name.strip(),
                code=(code or "").strip(),
                flag=(flag or "").strip() or None,
            )
            view = country.to_dict()

        logger.info("Country created", extra={"country_id": view["id"]})
        return view

    async def list_countries(self) -> list[dict[str, Any]]:
        async with self.session_factory() as session:
            countries = await PipelineStore(session).list_countries()
            return [c.to_dict() for c in countries]

    async def delete_country(self, country_id: str) -> bool:
        """Delete a country with everything discovered for it. Deleting an unknown id is a no-op."""
        async with self.session_factory() as session:
            deleted = await PipelineStore(session).delete_country(country_id)

        if deleted:
            logger.info("Country deleted", extra={"country_id": country_id})
        return deleted

    # Stage 1: discovery

    async def discover(self, country_id: str) -> list[dict[str, Any]]:
        """Discover SMEs for a country and store them as ``discovered``.

        Returns:
            The inserted SMEs (camelCase views).

        Raises:
            NotFoundError: If the country does not exist.
            DiscoveryFailed: If the discovery conversation fails.
        """
        with LogContext(stage=PipelineStage.DISCOVER.value, country_id=country_id):
            async with self.session_factory() as session:
                country = await PipelineStore(session).get_country(country_id)
                if country is None:
                    raise NotFoundError("Country not found")
                country_name = country.name

            logger.info("Starting SME discovery for %s", country_name)
            records = await self.discovery_agent.discover(country_name)

            candidates = [SmeCandidate.model_validate(record) for record in records]
            usable = [c for c in candidates if c.is_usable]
            if len(usable) < len(candidates):
                logger.warning(
                    "Skipping %d candidates without a name",
                    len(candidates) - len(usable),
                )

            async with self.session_factory() as session:
                smes = await PipelineStore(session).insert_smes_for_country(
                    country_id, usable, default_location=country_name
                )
                views = [sme.to_dict() for sme in smes]

            logger.info("Stored %d SMEs", len(views))
            return views

    async def list_smes(self, country_id: str) -> list[dict[str, Any]]:
        """SMEs of a country, newest first (empty for an unknown country)."""
        async with self.session_factory() as session:
            smes = await PipelineStore(session).list_smes_for_country(country_id)
            return [sme.to_dict() for sme in smes]

    async def _load_profile(self, store: PipelineStore, sme_id: str) -> dict[str, Any]:
        sme = await store.get_sme(sme_id)
        if sme is None:
            raise NotFoundError("SME not found")
        return sme.to_dict()

    # Stage 2: website

    async def build_website(self, sme_id: str) -> dict[str, Any]:
        """Generate (or regenerate) the SME's website.

        Rebuilding replaces the html and clears any previous deployment.

        Raises:
            NotFoundError: If the SME does not exist.
            GenerationFailed: If the model call fails.
        """
        with LogContext(stage=PipelineStage.BUILD_WEBSITE.value, sme_id=sme_id):
            async with self.session_factory() as session:
                profile = await self._load_profile(PipelineStore(session), sme_id)

            logger.info("Generating website for %s", profile["name"])
            raw = await self.provider.complete(
                WEBSITE_SYSTEM_PROMPT,
                website_prompt(profile),
                max_tokens=self.website_max_tokens,
            )
            html = extract_html_document(raw)

            async with self.session_factory() as session:
                store = PipelineStore(session)
                website = await store.upsert_website(sme_id, html)
                await store.set_status(sme_id, SmeStatus.WEBSITE_BUILT, deployed_url=None)
                view = website.to_dict()

            logger.info("Website stored", extra={"html_length": len(html)})
            return view

    async def get_website(self, sme_id: str) -> dict[str, Any]:
        """Deployment metadata of the SME's website.

        Raises:
            NotFoundError: If no website has been built.
        """
        async with self.session_factory() as session:
            website = await PipelineStore(session).get_website(sme_id)
            if website is None:
                raise NotFoundError("No website built yet")
            return website.to_dict()

    async def get_website_html(self, sme_id: str) -> str:
        """Raw html of the SME's website, for previewing."""
        async with self.session_factory() as session:
            website = await PipelineStore(session).get_website(sme_id)
            if website is None:
                raise NotFoundError("No website built yet")
            return website.html

    async def get_website_download(self, sme_id: str) -> WebsiteDownload:
        """The SME's website as ``<slug>.html``."""
        async with self.session_factory() as session:
            store = PipelineStore(session)
            website = await store.get_website(sme_id)
            if website is None:
                raise NotFoundError("No website built yet")
            sme = await store.get_sme(sme_id)
            name = sme.name if sme is not None else ""
            return WebsiteDownload(filename=f"{slugify(name)}.html", html=website.html)

    # Stage 3: deploy

    async def deploy(self, sme_id: str) -> DeployResult:
        """Deploy the SME's website and mirror the URL onto the SME.

        Raises:
            NotFoundError: If the SME does not exist.
            PreconditionFailed: If no website has been built.
        """
        with LogContext(stage=PipelineStage.DEPLOY.value, sme_id=sme_id):
            async with self.session_factory() as session:
                store = PipelineStore(session)
                profile = await self._load_profile(store, sme_id)
                if await store.get_website(sme_id) is None:
                    raise PreconditionFailed("Build website first")

            slug = slugify(profile["name"])
            target = self.deployer.deploy(slug)

            async with self.session_factory() as session:
                store = PipelineStore(session)
                await store.upsert_website_deployment(sme_id, target.url, slug)
                await store.set_status(sme_id, SmeStatus.DEPLOYED, deployed_url=target.url)

            logger.info("Website deployed to %s", target.url)
            return DeployResult(url=target.url, slug=slug, note=target.note)

    # Stage 4: outreach email

    async def generate_email(self, sme_id: str) -> EmailDraft:
        """Draft the SME's outreach email, linking the deployed site when there is one.

        Raises:
            NotFoundError: If the SME does not exist.
            GenerationFailed: If the model call fails or its output lacks a
                subject or body.
        """
        with LogContext(stage=PipelineStage.GENERATE_EMAIL.value, sme_id=sme_id):
            async with self.session_factory() as session:
                store = PipelineStore(session)
                profile = await self._load_profile(store, sme_id)
                website = await store.get_website(sme_id)
                deployed_url = website.deployed_url if website is not None else None

            logger.info("Generating outreach email for %s", profile["name"])
            raw = await self.provider.complete(
                EMAIL_SYSTEM_PROMPT,
                email_prompt(profile, deployed_url),
                max_tokens=self.email_max_tokens,
            )
            draft = self._parse_draft(raw)

            async with self.session_factory() as session:
                store = PipelineStore(session)
                await store.upsert_email(sme_id, draft.subject, draft.body)
                await store.set_status(sme_id, SmeStatus.EMAIL_READY)

            logger.info("Outreach email stored")
            return draft

    @staticmethod
    def _parse_draft(raw: str) -> EmailDraft:
        payload = extract_json_object(raw)
        draft = EmailDraft(subject=payload.get("subject"), body=payload.get("body"))
        if not draft.subject or not draft.body:
            raise ParseError("Email response is missing a subject or body")
        return draft

    async def get_email(self, sme_id: str) -> EmailDraft:
        """The SME's stored outreach email.

        Raises:
            NotFoundError: If no email has been generated.
        """
        async with self.session_factory() as session:
            email = await PipelineStore(session).get_email(sme_id)
            if email is None:
                raise NotFoundError("No email generated yet")
            return EmailDraft(subject=email.subject, body=email.body)
